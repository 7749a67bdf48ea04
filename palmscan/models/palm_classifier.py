import logging
import torch
import torch.nn as nn
from dataclasses import dataclass
from typing import List, Optional, Sequence
from pathlib import Path
from palmscan.config.settings import NUM_CLASSES, INPUT_LAYOUT, APPLY_SOFTMAX

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Prediction:
    class_name: str
    confidence: float


def rank_predictions(probabilities: Sequence[float], class_names: Sequence[str], top_k: int = 3) -> List[Prediction]:
    """
    Pair every probability with its positional label and keep the best ``top_k``

    Args:
        probabilities: classifier output, one scalar per class
        class_names: labels in the classifier's output order
        top_k: number of predictions to keep

    Returns:
        Predictions sorted by descending confidence
    """
    if len(probabilities) != len(class_names):
        raise ValueError(
            f"Output size {len(probabilities)} does not match {len(class_names)} class names"
        )
    paired = [Prediction(name, float(p)) for name, p in zip(class_names, probabilities)]
    paired.sort(key=lambda pred: pred.confidence, reverse=True)
    return paired[:min(top_k, len(paired))]


def load_class_names(class_names_path: Path, expected: int = NUM_CLASSES) -> List[str]:
    """Load class names, one per line, in the classifier's output order"""
    try:
        with open(class_names_path, 'r', encoding='utf-8') as f:
            names = [line.strip() for line in f.readlines() if line.strip()]
    except Exception as e:
        logger.error(f"Failed to load class names: {str(e)}")
        raise
    if len(names) != expected:
        raise ValueError(f"Expected {expected} class names in {class_names_path}, got {len(names)}")
    return names


class PalmClassifier:
    def __init__(
        self,
        class_names_path: Path,
        model_path: Optional[Path] = None,
        model: Optional[nn.Module] = None,
        device: str = None,
        input_layout: str = INPUT_LAYOUT,
        apply_softmax: bool = APPLY_SOFTMAX
    ):
        """
        Pretrained palm disease classifier

        Args:
            class_names_path: path to the class names file
            model_path: path to the exported TorchScript model
            model: already constructed module, used instead of ``model_path``
            device: compute device ('cuda' or 'cpu')
            input_layout: 'NCHW' or 'NHWC' input tensor layout
            apply_softmax: apply softmax when the model outputs logits
        """
        if model is None and model_path is None:
            raise ValueError("Either model_path or model must be given")

        self.class_names = load_class_names(class_names_path)
        self.num_classes = len(self.class_names)
        self.device = device or ('cuda' if torch.cuda.is_available() else 'cpu')
        self.input_layout = input_layout.upper()
        self.apply_softmax = apply_softmax

        if self.input_layout not in ('NCHW', 'NHWC'):
            raise ValueError(f"Unsupported input layout: {input_layout}")

        self.model = model if model is not None else self._load_model(Path(model_path))
        self.model.to(self.device)
        self.model.eval()

    def _load_model(self, model_path: Path) -> nn.Module:
        """Load the exported TorchScript graph"""
        try:
            if not model_path.exists():
                raise FileNotFoundError(f"Model file not found: {model_path}")
            model = torch.jit.load(str(model_path), map_location=self.device)
            logger.info(f"Classifier loaded from {model_path}")
            return model

        except Exception as e:
            logger.error(f"Failed to load model: {str(e)}")
            raise

    def _to_batch(self, image_tensor: torch.Tensor) -> torch.Tensor:
        batch = image_tensor.unsqueeze(0)
        if self.input_layout == 'NHWC':
            batch = batch.permute(0, 2, 3, 1)
        return batch.to(self.device)

    @torch.inference_mode()
    def probabilities(self, image_tensor: torch.Tensor) -> List[float]:
        """
        Run a single forward pass

        Args:
            image_tensor: normalized image tensor (C, H, W)

        Returns:
            One probability per class, in class name order
        """
        try:
            outputs = self.model(self._to_batch(image_tensor))
            if self.apply_softmax:
                outputs = torch.nn.functional.softmax(outputs, dim=-1)

            probs = outputs.reshape(-1).cpu().tolist()
            if len(probs) != self.num_classes:
                raise ValueError(f"Model returned {len(probs)} values, expected {self.num_classes}")
            return probs

        except Exception as e:
            logger.error(f"Prediction failed: {str(e)}")
            raise

        finally:
            if torch.cuda.is_available():
                torch.cuda.empty_cache()

    def predict(self, image_tensor: torch.Tensor, top_k: int = 3) -> List[Prediction]:
        """Top ``top_k`` predictions for a prepared image tensor"""
        return rank_predictions(self.probabilities(image_tensor), self.class_names, top_k)

    def __del__(self):
        """Free cached device memory"""
        if torch.cuda.is_available():
            torch.cuda.empty_cache()
