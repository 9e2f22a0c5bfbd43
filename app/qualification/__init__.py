"""Qualification questionnaire package.

Questions, per-choice points, weights and the classification tier table live
in questionnaire.yaml so they can change without code changes.
"""

from __future__ import annotations

from app.qualification.loader import Question, Questionnaire, load_questionnaire, parse_questionnaire

__all__ = ["Question", "Questionnaire", "load_questionnaire", "parse_questionnaire"]
