# assess_core/integrity.py
from __future__ import annotations
from typing import Optional, Tuple

from .types import FraudAnalysis
from . import config


def detect_guesswork(answered: int, total_questions: int, score_total: float) -> Tuple[bool, str]:
    """
    Guess-work pattern: nearly every question attempted, almost nothing scored.
    accuracy uses score / question count, not score / max marks.
    """
    if total_questions <= 0:
        return False, ""
    attempt_rate = answered / total_questions
    accuracy_rate = score_total / total_questions
    if attempt_rate > config.GUESS_ATTEMPT_RATE and accuracy_rate < config.GUESS_ACCURACY_RATE:
        return True, config.GUESS_REASON
    return False, ""


def from_fraud_analysis(fa: Optional[FraudAnalysis]) -> Tuple[bool, str]:
    if fa is None or fa.risk_level != "high":
        return False, ""
    return True, fa.recommendation or ""
