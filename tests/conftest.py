import sys
import threading
from io import BytesIO
from pathlib import Path

import pytest
import torch
import torch.nn as nn
from PIL import Image

# Make the package importable without installing it
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root))

from palmscan.config.settings import CLASS_NAMES_PATH
from palmscan.models import PalmClassifier
from palmscan.services import DiagnosisService, DiagnosisSession

LEAF_GREEN = (60, 140, 50)
DRY_BROWN = (140, 100, 60)
BLUE_SKY = (40, 90, 200)

HEALTHY_PROBS = [0.01, 0.01, 0.01, 0.01, 0.01, 0.01, 0.01, 0.01, 0.92]
UNSURE_PROBS = [0.05, 0.10, 0.40, 0.15, 0.10, 0.05, 0.05, 0.05, 0.05]


class FixedOutputModel(nn.Module):
    """Stand-in classifier that always returns the same probability vector"""

    def __init__(self, probs, gate: threading.Event = None):
        super().__init__()
        self.probs = torch.tensor([probs], dtype=torch.float64)
        self.gate = gate
        self.entered = threading.Event()
        self.calls = 0
        self.last_input_shape = None

    def forward(self, x):
        self.calls += 1
        self.last_input_shape = tuple(x.shape)
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        return self.probs.clone()


class UniformModel(nn.Module):
    """Scriptable model spreading probability evenly over the nine classes"""

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return torch.full([x.shape[0], 9], 1.0 / 9)


class BrokenModel(nn.Module):
    def forward(self, x):
        raise RuntimeError("backend exploded")


def solid_image(color, size=(320, 240)) -> Image.Image:
    return Image.new('RGB', size, color)


def encode_image(img: Image.Image, fmt: str = 'PNG') -> bytes:
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def make_classifier(model: nn.Module, **kwargs) -> PalmClassifier:
    return PalmClassifier(class_names_path=CLASS_NAMES_PATH, model=model, device='cpu', **kwargs)


@pytest.fixture
def leaf_image():
    return solid_image(LEAF_GREEN)


@pytest.fixture
def leaf_bytes(leaf_image):
    return encode_image(leaf_image)


@pytest.fixture
def sky_bytes():
    return encode_image(solid_image(BLUE_SKY))


@pytest.fixture
def healthy_model():
    return FixedOutputModel(HEALTHY_PROBS)


@pytest.fixture
def healthy_classifier(healthy_model):
    return make_classifier(healthy_model)


@pytest.fixture
def service(healthy_classifier):
    return DiagnosisService(classifier=healthy_classifier)


@pytest.fixture
def session(service):
    return DiagnosisSession(service=service)


@pytest.fixture
def empty_session():
    return DiagnosisSession(service=DiagnosisService())
