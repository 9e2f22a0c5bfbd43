"""Score calculator — questionnaire answers → lead score 0–100.

Deterministic and total on valid input: every question contributes
weight × points (capped at its max_contribution), per-component caps apply,
and the rounded sum is clamped to [0, 100]. Only a missing required answer
or a value of the wrong shape raises ValidationError.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from app.qualification.loader import Question, Questionnaire, load_questionnaire
from app.services.errors import ValidationError

logger = logging.getLogger(__name__)

SCORE_MIN: int = 0
SCORE_MAX: int = 100


@dataclass(frozen=True)
class ScoreBreakdown:
    """Score plus the per-component and per-question contributions behind it."""

    score: int
    components: dict[str, float] = field(default_factory=dict)
    contributions: dict[str, float] = field(default_factory=dict)


def is_answered(value: Any) -> bool:
    """Return False for None, blank strings and empty selections."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) > 0
    return True


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _check_shape(question: Question, value: Any) -> str | None:
    """Return an error message when value does not fit the question type."""
    if question.type == "multiple_choice":
        if not isinstance(value, (list, tuple, set, frozenset)):
            return "expected a list of choices"
        if not all(isinstance(v, str) for v in value):
            return "choices must be strings"
        return None
    if not isinstance(value, str):
        return "expected a string"
    return None


def _question_points(question: Question, value: Any) -> float:
    if question.type == "single_choice":
        points = question.options.get(value.strip())
        if points is None:
            logger.debug("Unknown choice %r for question %s scores 0", value, question.id)
            return 0.0
        return points
    if question.type == "multiple_choice":
        return sum(question.options.get(v.strip(), 0.0) for v in set(value))
    # text
    text = value.strip()
    points = 0.0
    for rule in question.text_bonus:
        if len(text) >= rule.min_length:
            points = rule.points
    lowered = text.lower()
    points += sum(p for keyword, p in question.keywords.items() if keyword in lowered)
    return points


def _contribution(question: Question, value: Any) -> float:
    contribution = question.weight * _question_points(question, value)
    if question.max_contribution is not None:
        contribution = min(contribution, question.max_contribution)
    return contribution


def compute_score_breakdown(
    answers: Mapping[str, Any],
    questionnaire: Questionnaire | None = None,
) -> ScoreBreakdown:
    """Compute the lead score and its component breakdown.

    Args:
        answers: Mapping of question id → response (choice string, free text,
            or list of choices). Unknown question ids are ignored.
        questionnaire: Scoring configuration; defaults to the configured
            questionnaire.

    Returns:
        ScoreBreakdown with score in [0, 100].

    Raises:
        ValidationError: If a required question is unanswered or a value has
            the wrong shape for its question type.
    """
    if not isinstance(answers, Mapping):
        raise ValidationError("Questionnaire answers must be a mapping")
    questionnaire = questionnaire or load_questionnaire()

    errors: dict[str, str] = {}
    components: dict[str, float] = {c: 0.0 for c in questionnaire.components}
    contributions: dict[str, float] = {}
    for question in questionnaire.questions:
        value = answers.get(question.id)
        if not is_answered(value):
            if question.required:
                errors[question.id] = "answer is required"
            continue
        shape_error = _check_shape(question, value)
        if shape_error:
            errors[question.id] = shape_error
            continue
        contribution = _contribution(question, value)
        contributions[question.id] = round(contribution, 2)
        components[question.component] = components.get(question.component, 0.0) + contribution
        if not question.required and questionnaire.optional_answer_bonus:
            bonus_component = questionnaire.optional_answer_component
            components[bonus_component] = (
                components.get(bonus_component, 0.0) + questionnaire.optional_answer_bonus
            )

    if errors:
        raise ValidationError(
            f"Invalid questionnaire answers: {', '.join(sorted(errors))}",
            errors=errors,
        )

    for component, cap in questionnaire.component_caps.items():
        if component in components:
            components[component] = min(components[component], cap)

    total = _round_half_up(sum(components.values()))
    score = max(SCORE_MIN, min(SCORE_MAX, total))
    if score != total:
        logger.debug("Raw score %d clamped to %d", total, score)
    return ScoreBreakdown(
        score=score,
        components={c: round(v, 2) for c, v in components.items()},
        contributions=contributions,
    )


def compute_score(
    answers: Mapping[str, Any],
    questionnaire: Questionnaire | None = None,
) -> int:
    """Compute the lead score (0–100) for answers. See compute_score_breakdown."""
    return compute_score_breakdown(answers, questionnaire).score
