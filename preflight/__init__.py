"""
preflight - Release pre-flight checks

Validates a packaged release archive and its deployment manifest before a
deploy proceeds: existence checks, extraction into a scratch workspace,
release parsing, and structural validation.
"""

__version__ = "0.1.0"


__all__ = [
    "PreflightConfig",
    "load_config",
    "get_preflight_home",
    "run_preflight",
    "PreflightPipeline",
    "PreflightResult",
    "StagedError",
]

from .config import PreflightConfig, load_config, get_preflight_home
from .errors import StagedError
from .pipeline import PreflightPipeline, PreflightResult, run_preflight
