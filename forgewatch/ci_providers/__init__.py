# Core exports
from .models import (
    CanonicalStatus,
    Job,
    NormalizedRun,
    Repository,
    RunRecord,
)
from .normalizer import normalize_run, workflow_name
from .status import classify, classify_run, normalize_status

__all__ = [
    # Enums
    "CanonicalStatus",
    # Models
    "Repository",
    "NormalizedRun",
    "RunRecord",
    "Job",
    # Normalization
    "normalize_run",
    "workflow_name",
    # Classification
    "normalize_status",
    "classify",
    "classify_run",
]
