"""Client for the remote AI evaluation service.

The service is a black box: it registers candidates, serves generated
questions for a job, and grades a candidate's full answer set. Every failure
mode (network, timeout, non-2xx, malformed body) surfaces as
``EvaluatorError`` so callers can fall back to local scoring.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .types import FraudAnalysis, Question, RemoteEvaluation, TestCase
from . import config

logger = logging.getLogger(__name__)


class EvaluatorError(RuntimeError):
    """Raised when the remote evaluator cannot produce a usable answer."""


class _FraudPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    risk_level: Literal["low", "medium", "high"] = Field(alias="riskLevel")
    recommendation: str = ""

    @field_validator("risk_level", mode="before")
    @classmethod
    def _lower(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class _EvaluationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_score: float = Field(alias="totalScore", allow_inf_nan=False)
    qualified: bool
    time_taken_minutes: Optional[float] = Field(default=None, alias="timeTakenMinutes", allow_inf_nan=False)
    fraud_analysis: Optional[_FraudPayload] = Field(default=None, alias="fraudAnalysis")


def _normalize_question(raw: Dict[str, Any], fallback_difficulty: str = "Medium") -> Question:
    """Coerce the generator's loosely-shaped question payload into a Question."""
    qtype = str(raw.get("type") or "mcq").upper()
    options = raw.get("options") or None
    correct = None
    if qtype == "MCQ":
        correct = str(raw.get("correct_answer") or raw.get("correctAnswer") or raw.get("answer") or "A").upper()
    cases = raw.get("test_cases") or raw.get("testCases")
    return Question(
        id=str(raw.get("id") or uuid.uuid4().hex[:9]),
        type=qtype,  # type: ignore[arg-type]
        text=str(raw.get("question_text") or raw.get("text") or ""),
        marks=float(raw.get("marks") or 1),
        difficulty=str(raw.get("difficulty") or fallback_difficulty),
        options=options if qtype == "MCQ" else None,
        correct_answer=correct,
        rubric=raw.get("rubric") if qtype == "SUBJECTIVE" else None,
        test_cases=(
            [TestCase(input=str(c.get("input", "")),
                      expected_output=str(c.get("expectedOutput", c.get("expected_output", ""))))
             for c in cases if isinstance(c, dict)]
            if qtype == "CODING" and isinstance(cases, list) else None
        ),
    )


class EvaluatorClient:
    """Thin httpx wrapper around the evaluation service."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = None,
        api_key: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = config.EVALUATOR_TIMEOUT_SEC if timeout is None else float(timeout)
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
        self._transport = transport

    @classmethod
    def from_config(cls, cfg: dict) -> "EvaluatorClient | None":
        base = str(cfg.get("EVALUATOR_BASE_URL") or "")
        if not base:
            return None
        return cls(
            base,
            timeout=float(cfg.get("EVALUATOR_TIMEOUT_SEC") or config.EVALUATOR_TIMEOUT_SEC),
            api_key=cfg.get("EVALUATOR_API_KEY") or None,
        )

    def _request(self, method: str, path: str, *, json: dict | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.request(method, url, json=json, headers=self.headers)
            logger.debug("evaluator %s %s -> %s", method, path, response.status_code)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise EvaluatorError(f"{method} {path} returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise EvaluatorError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise EvaluatorError(f"{method} {path} returned a non-JSON body") from exc

    def register_candidate(self, job_id: str, name: str, email: str) -> str:
        body = self._request("POST", "/candidates/register", json={"jobId": job_id, "name": name, "email": email})
        cid = None
        if isinstance(body, dict):
            cid = body.get("candidateId") or body.get("candidate_id") or body.get("id")
        if not cid:
            raise EvaluatorError("register response missing candidateId")
        return str(cid)

    def fetch_questions(self, job_id: str) -> List[Question]:
        body = self._request("GET", f"/jobs/{job_id}/questions")
        if isinstance(body, dict):
            body = body.get("questions")
        if not isinstance(body, list):
            raise EvaluatorError("questions response is not a list")
        return [_normalize_question(q) for q in body if isinstance(q, dict)]

    def submit_answers(self, candidate_id: str, answers: List[Dict[str, Any]]) -> RemoteEvaluation:
        """
        answers: [{"questionId", "answerText", "timeTakenSeconds"}].
        Called at most once per submission; no retry.
        """
        body = self._request("POST", "/candidates/submit", json={"candidateId": candidate_id, "answers": answers})
        try:
            payload = _EvaluationPayload.model_validate(body)
        except ValidationError as exc:
            raise EvaluatorError(f"malformed evaluation payload: {exc.error_count()} error(s)") from exc
        fa = payload.fraud_analysis
        return RemoteEvaluation(
            total_score=payload.total_score,
            qualified=payload.qualified,
            time_taken_minutes=int(payload.time_taken_minutes) if payload.time_taken_minutes is not None else None,
            fraud_analysis=FraudAnalysis(risk_level=fa.risk_level, recommendation=fa.recommendation) if fa else None,
        )


__all__ = ["EvaluatorClient", "EvaluatorError"]
