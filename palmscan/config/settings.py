import yaml
from pathlib import Path
from typing import Dict, List
import os

PACKAGE_ROOT = Path(__file__).resolve().parent.parent
CONFIG_FILE = Path(os.getenv('PALMSCAN_CONFIG', Path(__file__).resolve().parent / "config.yml"))

with open(CONFIG_FILE, "r", encoding="utf-8") as f:
    config = yaml.safe_load(f)

# The model file may be missing at import time; loading it is what reports the error
WEIGHT_PATH = Path(os.getenv('PALMSCAN_MODEL_PATH', PACKAGE_ROOT / config["path"]["model_path"]))
CLASS_NAMES_PATH = Path(PACKAGE_ROOT / config["path"]["class_names_path"])

if not CLASS_NAMES_PATH.exists():
    raise FileNotFoundError(f"Class names file not found: {CLASS_NAMES_PATH}")

NUM_CLASSES = 9

# Upload parameters
MAX_FILE_SIZE = 10 * 1024 * 1024
ALLOWED_FORMATS: Dict[str, List[str]] = {
    'image/jpeg': ['.jpg', '.jpeg'],
    'image/png': ['.png'],
    'image/webp': ['.webp'],
    'image/heic': ['.heic', '.heif']
}

# Model parameters
MODEL_INPUT_SIZE = config["model"]["input_size"]
INPUT_LAYOUT = config["model"]["input_layout"].upper()
APPLY_SOFTMAX = bool(config["model"]["apply_softmax"])
TOP_K = config["model"]["top_k"]
HEALTHY_LABEL = config["model"]["healthy_label"]
LOW_CONFIDENCE_THRESHOLD = config["model"]["low_confidence_threshold"]
INFERENCE_TIMEOUT = float(config["model"]["inference_timeout"])

# Leaf plausibility filter thresholds
FILTER_SIZE = config["filter"]["sample_size"]
FILTER_EPSILON = config["filter"]["epsilon"]
GREEN_RATIO_MIN = config["filter"]["green_ratio_min"]
GREEN_RATIO_FALLBACK = config["filter"]["green_ratio_fallback"]
RED_GREEN_MAX_GAP = config["filter"]["red_green_max_gap"]
YELLOW_CHANNEL_MIN = config["filter"]["yellow_channel_min"]
SATURATION_MIN = config["filter"]["saturation_min"]
BRIGHTNESS_MIN = config["filter"]["brightness_min"]
BRIGHTNESS_MAX = config["filter"]["brightness_max"]

# User-facing texts
NOT_READY_MESSAGE = config["messages"]["not_ready"]
IMPLAUSIBLE_MESSAGE = config["messages"]["implausible"]
FAILURE_MESSAGE = config["messages"]["failure"]
LOW_CONFIDENCE_TIPS: List[str] = list(config["messages"]["low_confidence_tips"])

# Logging parameters
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        },
        'detailed': {
            'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s'
        },
    },
    'handlers': {
        'default': {
            'level': LOG_LEVEL,
            'formatter': 'standard',
            'class': 'logging.StreamHandler',
        },
        'error_file': {
            'level': 'ERROR',
            'formatter': 'detailed',
            'class': 'logging.FileHandler',
            'filename': 'error.log',
            'mode': 'a',
            'delay': True,
        },
    },
    'loggers': {
        '': {  # root logger
            'handlers': ['default', 'error_file'],
            'level': LOG_LEVEL,
            'propagate': True
        }
    }
}
