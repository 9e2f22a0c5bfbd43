"""Lead qualification: questionnaire scoring and tier classification."""

from app.services.qualification.classification_policy import (
    ClassificationPolicy,
    get_classification_policy,
)
from app.services.qualification.score_calculator import (
    ScoreBreakdown,
    compute_score,
    compute_score_breakdown,
)

__all__ = [
    "ClassificationPolicy",
    "ScoreBreakdown",
    "compute_score",
    "compute_score_breakdown",
    "get_classification_policy",
]
