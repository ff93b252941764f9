"""
Configuration constants for the form coach pipeline.

Centralizes confidence thresholds, smoothing, session timing defaults and
environment variable loading.  Values can be overridden through a ``.env``
file at the project root or the process environment.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_PATH = PROJECT_ROOT / ".env"
load_dotenv(_ENV_PATH)

CONFIG_DIR = PROJECT_ROOT / "config"
THRESHOLDS_CONFIG_PATH = Path(
    os.environ.get(
        "FORM_COACH_THRESHOLDS_PATH",
        str(CONFIG_DIR / "analyzer_thresholds.yaml"),
    )
)

# ---------------------------------------------------------------------------
# Landmark confidence
# ---------------------------------------------------------------------------
MIN_CONFIDENCE: float = float(os.environ.get("FORM_COACH_MIN_CONFIDENCE", "0.5"))
RECOMMENDED_CONFIDENCE: float = float(
    os.environ.get("FORM_COACH_RECOMMENDED_CONFIDENCE", "0.7")
)

# ---------------------------------------------------------------------------
# Smoothing
# ---------------------------------------------------------------------------
# 0 disables smoothing; values close to 1 favour the previous position.
SMOOTHING_ALPHA: float = float(os.environ.get("FORM_COACH_SMOOTHING_ALPHA", "0.5"))

# ---------------------------------------------------------------------------
# Rep timing (milliseconds)
# ---------------------------------------------------------------------------
# A 10-frame squat at a 30 Hz detector cadence lasts about 260 ms.
MIN_REP_DURATION_MS: int = int(os.environ.get("FORM_COACH_MIN_REP_DURATION_MS", "150"))
MAX_REP_DURATION_MS: int = int(os.environ.get("FORM_COACH_MAX_REP_DURATION_MS", "15000"))

# ---------------------------------------------------------------------------
# Session defaults
# ---------------------------------------------------------------------------
COUNTDOWN_SECONDS: int = int(os.environ.get("FORM_COACH_COUNTDOWN_SECONDS", "3"))
DEFAULT_REST_SECONDS: int = int(os.environ.get("FORM_COACH_REST_SECONDS", "60"))
DEFAULT_TARGET_REPS: int = 10
DEFAULT_TARGET_SETS: int = 3
FEEDBACK_INTERVAL_MS: int = int(os.environ.get("FORM_COACH_FEEDBACK_INTERVAL_MS", "3000"))
TICK_INTERVAL_SECONDS: float = 1.0

# ---------------------------------------------------------------------------
# Performance monitoring
# ---------------------------------------------------------------------------
# Frames averaged for fps and processing time.
MONITOR_WINDOW: int = int(os.environ.get("FORM_COACH_MONITOR_WINDOW", "60"))

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL: str = os.environ.get("FORM_COACH_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(levelname)s | %(name)s | %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging for command-line entry points."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
