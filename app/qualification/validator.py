"""Questionnaire configuration validation.

Validates that questionnaire.yaml has the required structure:
- questions: non-empty list of unique ids with a known type
- choice questions: options mapping value -> non-negative number
- text questions: text_bonus rules and keywords with non-negative points
- weight / max_contribution: non-negative numbers
- classification.tiers: list of {tier, threshold} (ordering checked by ClassificationPolicy)
"""

from __future__ import annotations

from typing import Any

from app.services.errors import ConfigurationError

QUESTION_TYPES: frozenset[str] = frozenset({"single_choice", "multiple_choice", "text"})


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_non_negative(value: Any, where: str) -> None:
    if not _is_number(value) or value < 0:
        raise ConfigurationError(f"questionnaire {where} must be a non-negative number, got {value!r}")


def validate_questionnaire(data: dict[str, Any]) -> None:
    """Validate questionnaire structure.

    Args:
        data: Loaded questionnaire.yaml content.

    Raises:
        ConfigurationError: When structure or value types are invalid.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("questionnaire must be a dict")

    questions = data.get("questions")
    if not isinstance(questions, list) or not questions:
        raise ConfigurationError("questionnaire 'questions' must be a non-empty list")

    seen: set[str] = set()
    for q in questions:
        if not isinstance(q, dict):
            raise ConfigurationError(f"questionnaire question must be a dict, got {q!r}")
        qid = q.get("id")
        if not isinstance(qid, str) or not qid.strip():
            raise ConfigurationError(f"questionnaire question id must be a non-empty string, got {qid!r}")
        if qid in seen:
            raise ConfigurationError(f"questionnaire contains duplicate question id: '{qid}'")
        seen.add(qid)

        qtype = q.get("type")
        if qtype not in QUESTION_TYPES:
            raise ConfigurationError(
                f"questionnaire question '{qid}' has unknown type {qtype!r}; "
                f"expected one of {sorted(QUESTION_TYPES)}"
            )
        if "required" in q and not isinstance(q["required"], bool):
            raise ConfigurationError(f"questionnaire question '{qid}' 'required' must be a boolean")
        component = q.get("component")
        if not isinstance(component, str) or not component.strip():
            raise ConfigurationError(f"questionnaire question '{qid}' must name a component")
        if "weight" in q:
            _require_non_negative(q["weight"], f"questions.{qid}.weight")
        if q.get("max_contribution") is not None:
            _require_non_negative(q["max_contribution"], f"questions.{qid}.max_contribution")
        elif qtype == "multiple_choice":
            raise ConfigurationError(
                f"questionnaire question '{qid}' is multiple_choice and must set max_contribution"
            )

        if qtype == "text":
            _validate_text_rules(qid, q)
        else:
            options = q.get("options")
            if options is None:
                options = {}
            if not isinstance(options, dict):
                raise ConfigurationError(f"questionnaire question '{qid}' options must be a mapping")
            for value, points in options.items():
                _require_non_negative(points, f"questions.{qid}.options.{value}")

    scoring = data.get("scoring") or {}
    if not isinstance(scoring, dict):
        raise ConfigurationError("questionnaire 'scoring' must be a dict")
    if "optional_answer_bonus" in scoring:
        _require_non_negative(scoring["optional_answer_bonus"], "scoring.optional_answer_bonus")
    component = scoring.get("optional_answer_component")
    if component is not None and (not isinstance(component, str) or not component.strip()):
        raise ConfigurationError("questionnaire 'scoring.optional_answer_component' must be a non-empty string")
    caps = scoring.get("component_caps") or {}
    if not isinstance(caps, dict):
        raise ConfigurationError("questionnaire 'scoring.component_caps' must be a mapping")
    for component, cap in caps.items():
        _require_non_negative(cap, f"scoring.component_caps.{component}")

    classification = data.get("classification")
    if classification is not None:
        if not isinstance(classification, dict):
            raise ConfigurationError("questionnaire 'classification' must be a dict")
        tiers = classification.get("tiers")
        if not isinstance(tiers, list) or not tiers:
            raise ConfigurationError("questionnaire 'classification.tiers' must be a non-empty list")
        for entry in tiers:
            if not isinstance(entry, dict) or "tier" not in entry or "threshold" not in entry:
                raise ConfigurationError(
                    f"questionnaire classification tier must have 'tier' and 'threshold', got {entry!r}"
                )
            if not isinstance(entry["threshold"], int) or isinstance(entry["threshold"], bool):
                raise ConfigurationError(
                    f"questionnaire classification threshold for {entry['tier']!r} must be an integer"
                )


def _validate_text_rules(qid: str, q: dict[str, Any]) -> None:
    rules = q.get("text_bonus") or []
    if not isinstance(rules, list):
        raise ConfigurationError(f"questionnaire question '{qid}' text_bonus must be a list")
    for rule in rules:
        if not isinstance(rule, dict):
            raise ConfigurationError(f"questionnaire question '{qid}' text_bonus entries must be dicts")
        min_length = rule.get("min_length")
        if not isinstance(min_length, int) or isinstance(min_length, bool) or min_length < 0:
            raise ConfigurationError(
                f"questionnaire question '{qid}' text_bonus min_length must be a non-negative integer"
            )
        _require_non_negative(rule.get("points"), f"questions.{qid}.text_bonus.points")
    keywords = q.get("keywords") or {}
    if not isinstance(keywords, dict):
        raise ConfigurationError(f"questionnaire question '{qid}' keywords must be a mapping")
    for keyword, points in keywords.items():
        _require_non_negative(points, f"questions.{qid}.keywords.{keyword}")
