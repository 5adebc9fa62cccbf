"""Project-wide configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(os.environ.get("FACADE360_PROJECT_ROOT", Path.cwd()))

load_dotenv(PROJECT_ROOT / ".env")

DB_PATH = Path(os.environ.get("FACADE360_DB_PATH", PROJECT_ROOT / "facade360.duckdb"))
MODELS_DIR = Path(os.environ.get("FACADE360_MODELS_DIR", PROJECT_ROOT / "models"))
DATA_DIR = PROJECT_ROOT / "data"

# Label dictionary: JSON document (path or URL), then training CSV as fallback
LABEL_MAPS_SOURCE = os.environ.get("FACADE360_LABEL_MAPS", str(MODELS_DIR / "label_maps.json"))
TRAINING_CSV_PATH = Path(
    os.environ.get("FACADE360_TRAINING_CSV", DATA_DIR / "model_trainin.csv")
)

# Classification ensemble
MODEL_ARCHITECTURES: tuple[str, ...] = ("mobilenet", "efficientnet")
TASKS: tuple[str, ...] = ("tipologia", "material_fachada", "pisos")
MODEL_FILENAME_TEMPLATE = "modelo_{architecture}_{task}.pt"
MODEL_INPUT_SIZE = 224
IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)
DEVICE = os.environ.get("FACADE360_DEVICE", "cpu")

# Frame sampling
FRAME_INTERVAL_SEC = float(os.environ.get("FACADE360_FRAME_INTERVAL", "5"))
SEEK_TIMEOUT_SEC = float(os.environ.get("FACADE360_SEEK_TIMEOUT", "5.0"))
MAX_CONSECUTIVE_ERRORS = 3
INTER_FRAME_DELAY_SEC = 0.1

# Thumbnails (JPEG quality)
FRAME_THUMBNAIL_QUALITY = 70
PERSPECTIVE_THUMBNAIL_QUALITY = 80

# Consensus vote thresholds
STRONG_CONSENSUS_VOTES = int(os.environ.get("FACADE360_STRONG_VOTES", "4"))
PARTIAL_CONSENSUS_VOTES = int(os.environ.get("FACADE360_PARTIAL_VOTES", "2"))
CONFLICT_VOTE_GAP = 1

# Logging
LOG_LEVEL = os.environ.get("FACADE360_LOG_LEVEL", "INFO")
LOG_FILE = os.environ.get("FACADE360_LOG_FILE") or None

# Perspective windows over an equirectangular frame: (x, y, width, height) fractions
DEFAULT_PERSPECTIVES: dict[str, dict] = {
    "front": {
        "display_name": "Front view",
        "description": "Facades straight ahead along the street",
        "region": (0.25, 0.25, 0.5, 0.5),
    },
    "left": {
        "display_name": "Left view",
        "description": "Facades on the left side of the street",
        "region": (0.0, 0.25, 0.3, 0.5),
    },
    "right": {
        "display_name": "Right view",
        "description": "Facades on the right side of the street",
        "region": (0.7, 0.25, 0.3, 0.5),
    },
    "rear": {
        "display_name": "Rear view",
        "description": "Facades behind the camera, stitched from both frame edges",
        "region": (0.0, 0.25, 0.15, 0.5),
        "secondary_region": (0.85, 0.25, 0.15, 0.5),
    },
}
