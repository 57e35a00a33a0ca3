from __future__ import annotations

from assess_core.integrity import detect_guesswork, from_fraud_analysis
from assess_core.types import FraudAnalysis


def test_high_attempt_low_accuracy_is_flagged():
    flag, reason = detect_guesswork(answered=9, total_questions=10, score_total=1)
    assert flag is True
    assert "high attempt rate with very low accuracy" in reason


def test_reasonable_accuracy_is_not_flagged():
    assert detect_guesswork(answered=9, total_questions=10, score_total=5) == (False, "")


def test_zero_questions_is_not_flagged():
    assert detect_guesswork(answered=0, total_questions=0, score_total=0) == (False, "")


def test_thresholds_are_strict():
    # attempt rate exactly 0.8 does not trip
    assert detect_guesswork(answered=8, total_questions=10, score_total=0)[0] is False
    # accuracy exactly 0.15 does not trip
    assert detect_guesswork(answered=20, total_questions=20, score_total=3)[0] is False


def test_accuracy_is_total_over_question_count_not_max_marks():
    # 10 coding questions worth 5 marks each: 1.0 point of 50 is 2% of max
    # marks, but 1.0 / 10 questions = 0.10 is what the rule compares.
    assert detect_guesswork(answered=10, total_questions=10, score_total=1.0)[0] is True
    # 2.0 points of 50 (4% of max marks) clears the rule because 2.0 / 10 = 0.2.
    assert detect_guesswork(answered=10, total_questions=10, score_total=2.0)[0] is False


def test_fraud_analysis_mapping():
    assert from_fraud_analysis(None) == (False, "")
    assert from_fraud_analysis(FraudAnalysis("medium", "watch")) == (False, "")
    assert from_fraud_analysis(FraudAnalysis("high", "Answers pasted")) == (True, "Answers pasted")
