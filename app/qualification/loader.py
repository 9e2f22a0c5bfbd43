"""Questionnaire loader.

Reads the questionnaire YAML (questions, per-choice points, weights and the
classification tier table) into immutable dataclasses. Loaded once per path
and validated eagerly at application startup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from app.qualification.validator import validate_questionnaire
from app.services.errors import ConfigurationError


@dataclass(frozen=True)
class TextBonusRule:
    """Points awarded when a free-text answer reaches min_length characters."""

    min_length: int
    points: float


@dataclass(frozen=True)
class Question:
    """A single scored question."""

    id: str
    type: str
    component: str
    required: bool = False
    weight: float = 1.0
    options: dict[str, float] = field(default_factory=dict)
    max_contribution: float | None = None
    text_bonus: tuple[TextBonusRule, ...] = ()
    keywords: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class Questionnaire:
    """Parsed questionnaire configuration."""

    version: int
    questions: tuple[Question, ...]
    optional_answer_bonus: float = 0.0
    optional_answer_component: str = "engagement"
    component_caps: dict[str, float] = field(default_factory=dict)
    tiers: tuple[tuple[str, int], ...] = ()

    @property
    def required_ids(self) -> frozenset[str]:
        return frozenset(q.id for q in self.questions if q.required)

    @property
    def components(self) -> tuple[str, ...]:
        """Component names in first-seen order."""
        seen: dict[str, None] = {}
        for q in self.questions:
            seen.setdefault(q.component, None)
        return tuple(seen)


def parse_questionnaire(data: dict[str, Any]) -> Questionnaire:
    """Validate and convert raw questionnaire content.

    Raises:
        ConfigurationError: If the content is structurally invalid.
    """
    validate_questionnaire(data)
    questions = []
    for q in data["questions"]:
        rules = sorted(
            (TextBonusRule(int(r["min_length"]), float(r["points"])) for r in q.get("text_bonus") or []),
            key=lambda r: r.min_length,
        )
        max_contribution = q.get("max_contribution")
        questions.append(
            Question(
                id=q["id"],
                type=q["type"],
                component=q["component"],
                required=bool(q.get("required", False)),
                weight=float(q.get("weight", 1.0)),
                options={str(k): float(v) for k, v in (q.get("options") or {}).items()},
                max_contribution=float(max_contribution) if max_contribution is not None else None,
                text_bonus=tuple(rules),
                keywords={str(k).lower(): float(v) for k, v in (q.get("keywords") or {}).items()},
            )
        )
    scoring = data.get("scoring") or {}
    classification = data.get("classification") or {}
    return Questionnaire(
        version=int(data.get("version") or 1),
        questions=tuple(questions),
        optional_answer_bonus=float(scoring.get("optional_answer_bonus", 0)),
        optional_answer_component=str(scoring.get("optional_answer_component") or "engagement"),
        component_caps={str(k): float(v) for k, v in (scoring.get("component_caps") or {}).items()},
        tiers=tuple(
            (str(t["tier"]), int(t["threshold"])) for t in classification.get("tiers") or []
        ),
    )


@lru_cache(maxsize=4)
def load_questionnaire(path: str | None = None) -> Questionnaire:
    """Load and return the questionnaire at path (default: QUESTIONNAIRE_PATH setting).

    Raises:
        FileNotFoundError: If the file is missing.
        ConfigurationError: If the YAML is malformed or structurally invalid.
    """
    if path is None:
        from app.config import get_settings

        path = get_settings().questionnaire_path
    try:
        with Path(path).open() as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Questionnaire YAML is malformed: {exc}") from exc
    return parse_questionnaire(data)
