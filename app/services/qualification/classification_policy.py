"""Classification policy — lead score → tier label.

Tiers are an ordered list of (tier, threshold) pairs, highest threshold first.
A score is assigned the highest tier whose threshold it meets (score >= threshold),
so a score exactly on a boundary belongs to the upper tier. The lowest
threshold must be 0, which makes the mapping total over [0, 100].
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import lru_cache

from app.services.errors import ConfigurationError, ValidationError
from app.services.qualification.score_calculator import SCORE_MAX, SCORE_MIN

# Used when neither CLASSIFICATION_THRESHOLDS nor the questionnaire defines tiers.
DEFAULT_TIERS: tuple[tuple[str, int], ...] = (
    ("hot", 80),
    ("warm", 55),
    ("cold", 30),
    ("info_seeker", 0),
)


class ClassificationPolicy:
    """Maps scores onto an ordered tier table."""

    def __init__(self, tiers: Iterable[tuple[str, int]]) -> None:
        self._tiers: tuple[tuple[str, int], ...] = tuple((str(t), th) for t, th in tiers)
        _validate_tiers(self._tiers)
        self._ranks = {tier: len(self._tiers) - i - 1 for i, (tier, _) in enumerate(self._tiers)}

    def __repr__(self) -> str:
        table = ", ".join(f"{tier}>={threshold}" for tier, threshold in self._tiers)
        return f"ClassificationPolicy({table})"

    @property
    def tiers(self) -> tuple[tuple[str, int], ...]:
        """(tier, threshold) pairs, highest threshold first."""
        return self._tiers

    @property
    def tier_labels(self) -> tuple[str, ...]:
        return tuple(tier for tier, _ in self._tiers)

    @property
    def highest_tier(self) -> str:
        return self._tiers[0][0]

    @property
    def lowest_tier(self) -> str:
        return self._tiers[-1][0]

    def rank(self, tier: str) -> int:
        """Return 0 for the lowest tier, increasing towards the highest.

        Raises:
            KeyError: If tier is not in the table.
        """
        return self._ranks[tier]

    def is_known(self, tier: str) -> bool:
        return tier in self._ranks

    def classify(self, score: int) -> str:
        """Return the tier for score.

        Raises:
            ValidationError: If score is not an integer in [0, 100].
        """
        if not isinstance(score, int) or isinstance(score, bool):
            raise ValidationError(f"Score must be an integer, got {score!r}")
        if score < SCORE_MIN or score > SCORE_MAX:
            raise ValidationError(f"Score must be in [{SCORE_MIN}, {SCORE_MAX}], got {score}")
        for tier, threshold in self._tiers:
            if score >= threshold:
                return tier
        # Unreachable: the last threshold is 0.
        return self.lowest_tier


def _validate_tiers(tiers: tuple[tuple[str, int], ...]) -> None:
    if not tiers:
        raise ConfigurationError("classification table must define at least one tier")
    seen: set[str] = set()
    previous: int | None = None
    for tier, threshold in tiers:
        if not tier.strip():
            raise ConfigurationError("classification tier labels must be non-empty")
        if tier in seen:
            raise ConfigurationError(f"classification tier '{tier}' is defined twice")
        seen.add(tier)
        if not isinstance(threshold, int) or isinstance(threshold, bool):
            raise ConfigurationError(f"classification threshold for '{tier}' must be an integer")
        if threshold < SCORE_MIN or threshold > SCORE_MAX:
            raise ConfigurationError(
                f"classification threshold for '{tier}' must be in [{SCORE_MIN}, {SCORE_MAX}], got {threshold}"
            )
        if previous is not None and threshold >= previous:
            raise ConfigurationError(
                f"classification thresholds must be strictly descending: '{tier}' ({threshold}) "
                f"is not below {previous}"
            )
        previous = threshold
    if tiers[-1][1] != SCORE_MIN:
        raise ConfigurationError(
            f"classification thresholds must end at {SCORE_MIN}; lowest tier "
            f"'{tiers[-1][0]}' has {tiers[-1][1]}"
        )


@lru_cache(maxsize=1)
def get_classification_policy() -> ClassificationPolicy:
    """Return the configured policy (cached after first call).

    Precedence: CLASSIFICATION_THRESHOLDS setting, then questionnaire
    classification.tiers, then DEFAULT_TIERS.

    Raises:
        ConfigurationError: If the configured table is invalid.
    """
    from app.config import get_settings
    from app.qualification.loader import load_questionnaire

    configured = get_settings().classification_thresholds
    if configured:
        return ClassificationPolicy(configured)
    tiers = load_questionnaire().tiers
    return ClassificationPolicy(tiers or DEFAULT_TIERS)
