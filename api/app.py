from __future__ import annotations
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import logging, os, uuid, typing as t

if os.getenv("LOG_LEVEL"):
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

# ---- Engine imports ----
from assess_core.engine import AssessmentSession, FINALIZED, SUBMIT_TRIGGERS, rank_applications
from assess_core.evaluator_client import EvaluatorClient
from assess_core.types import Application, AssessmentDataError, Job, SessionClosedError
from assess_core.validators import is_open
from assess_core import config
from .storage import (
    find_application,
    list_applications,
    list_jobs,
    load_application,
    load_job,
    save_application,
    utcnow_iso,
)

log = logging.getLogger(__name__)

SESS: dict[str, AssessmentSession] = {}
ACTIVE_BY_APP: dict[str, str] = {}  # application id -> live session id
FINISHED: dict[str, str] = {}  # session id -> application id

app = FastAPI(title="Assessment Scoring API")

ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


@app.get("/")
def root():
    return {"status": "ok", "service": "assessment-scoring-api"}


# ---- Schemas ----
class StartReq(BaseModel):
    job_id: str
    student_id: str
    name: str = ""
    email: str = ""

class ViewReq(BaseModel):
    session_id: str
    question_id: str

class AnswerReq(BaseModel):
    session_id: str
    question_id: str
    answer: t.Any = None
    last: bool = False  # candidate finished the last question

class FinishReq(BaseModel):
    session_id: str
    trigger: str = "finish"

# ---- Helpers ----
def _job_or_404(job_id: str) -> Job:
    raw = load_job(job_id)
    if not raw:
        raise HTTPException(404, "job not found")
    return Job.from_dict(raw, default_duration=config.DEFAULT_DURATION_MINUTES,
                         default_threshold=config.DEFAULT_THRESHOLD)


def _session_or_404(sid: str) -> AssessmentSession:
    if sid in FINISHED:
        raise HTTPException(409, "assessment already submitted")
    sess = SESS.get(sid)
    if not sess:
        raise HTTPException(404, "session not found")
    return sess


def _persist_if_final(sid: str, sess: AssessmentSession) -> dict[str, t.Any] | None:
    if sess.state != FINALIZED or sess.result is None:
        return None
    if sid not in FINISHED:
        save_application(sess.application.to_dict())
        FINISHED[sid] = sess.application.id
        ACTIVE_BY_APP.pop(sess.application.id, None)
        SESS.pop(sid, None)
    return sess.result.to_dict()


def _expired(sid: str, sess: AssessmentSession) -> bool:
    """Submit on timer expiry; True once the session is finalized and stored."""
    sess.expire_if_due()
    return _persist_if_final(sid, sess) is not None


def _stored_result(sid: str) -> dict[str, t.Any] | None:
    app_id = FINISHED.get(sid)
    if not app_id:
        return None
    rec = load_application(app_id) or {}
    return rec.get("result")


# ---- Health ----
@app.get("/health")
def health():
    cfg = config.load_config()
    return {
        "evaluator_configured": bool(cfg.get("EVALUATOR_BASE_URL")),
        "evaluator_timeout_sec": cfg.get("EVALUATOR_TIMEOUT_SEC"),
        "active_sessions": len(SESS),
    }

# ---- Jobs ----
@app.get("/jobs")
def open_jobs():
    """Jobs still accepting candidates; answer keys are never listed."""
    out = []
    for raw in list_jobs():
        job = Job.from_dict(raw, default_duration=config.DEFAULT_DURATION_MINUTES,
                            default_threshold=config.DEFAULT_THRESHOLD)
        if not is_open(job):
            continue
        out.append({
            "id": job.id,
            "title": job.title,
            "durationMinutes": job.duration_minutes,
            "threshold": job.threshold,
            "deadline": job.deadline,
            "questionCount": len(job.questions),
        })
    return out


@app.get("/jobs/{job_id}/ranking")
def job_ranking(job_id: str):
    job = _job_or_404(job_id)
    apps = [Application.from_dict(rec) for rec in list_applications()]
    return [
        {
            "rank": i,
            "applicationId": a.id,
            "studentId": a.student_id,
            "total": a.result.scores.total,
            "status": a.result.status,
            "suspiciousFlag": a.result.suspicious_flag,
            "timeTakenMinutes": a.result.time_taken_minutes,
        }
        for i, a in enumerate(rank_applications(job, apps), start=1)
    ]


# ---- Session endpoints ----
@app.post("/session/start")
def start(req: StartReq):
    job = _job_or_404(req.job_id)
    if not is_open(job):
        raise HTTPException(410, "job deadline has passed")

    raw_app = find_application(req.job_id, req.student_id)
    application = Application.from_dict(raw_app) if raw_app else Application(
        id=str(uuid.uuid4()), job_id=req.job_id, student_id=req.student_id
    )
    if application.status != "APPLIED":
        raise HTTPException(409, "assessment already completed for this application")

    existing = ACTIVE_BY_APP.get(application.id)
    if existing and existing in SESS:
        sess = SESS[existing]
        sid = existing
        if _expired(sid, sess):
            raise HTTPException(409, "time is up; assessment submitted")
    else:
        cfg = config.load_config()
        try:
            sess = AssessmentSession.start(
                job,
                application,
                evaluator=EvaluatorClient.from_config(cfg),
                name=req.name,
                email=req.email,
                register=bool(cfg.get("REGISTER_CANDIDATES", True)),
            )
        except AssessmentDataError as exc:
            raise HTTPException(422, str(exc))
        sid = str(uuid.uuid4())
        SESS[sid] = sess
        ACTIVE_BY_APP[application.id] = sid
        save_application(application.to_dict())
        log.info("session %s started for application %s (job %s, remote=%s)",
                 sid, application.id, job.id, bool(sess.candidate_id))

    return {
        "session_id": sid,
        "application_id": application.id,
        "started_at": utcnow_iso(),
        "seconds_remaining": sess.seconds_remaining(),
        "questions": [q.to_dict(include_key=False) for q in sess.job.questions],
    }


@app.get("/session/{sid}/status")
def status(sid: str):
    if sid in FINISHED:
        return {"state": FINALIZED, "result": _stored_result(sid)}
    sess = _session_or_404(sid)
    sess.expire_if_due()
    out = sess.status()
    out["result"] = _persist_if_final(sid, sess)
    return out


@app.post("/api/test/view")
def test_view(payload: ViewReq):
    sess = _session_or_404(payload.session_id)
    if _expired(payload.session_id, sess):
        raise HTTPException(409, "time is up; assessment submitted")
    try:
        sess.view(payload.question_id)
    except SessionClosedError as exc:
        raise HTTPException(409, str(exc))
    except AssessmentDataError as exc:
        raise HTTPException(422, str(exc))
    return {"ok": True, "seconds_remaining": sess.seconds_remaining()}


@app.post("/api/test/answer")
def test_answer(payload: AnswerReq):
    sess = _session_or_404(payload.session_id)
    if _expired(payload.session_id, sess):
        raise HTTPException(409, "time is up; assessment submitted")
    try:
        sess.answer(payload.question_id, payload.answer)
    except SessionClosedError as exc:
        raise HTTPException(409, str(exc))
    except AssessmentDataError as exc:
        raise HTTPException(422, str(exc))
    result = None
    if payload.last:
        sess.submit("last_question")
        result = _persist_if_final(payload.session_id, sess)
    return {"ok": True, "seconds_remaining": sess.seconds_remaining(), "result": result}


@app.post("/api/test/finish")
def test_finish(payload: FinishReq):
    if payload.trigger not in SUBMIT_TRIGGERS:
        raise HTTPException(422, f"trigger must be one of {', '.join(SUBMIT_TRIGGERS)}")
    sess = SESS.get(payload.session_id)
    if sess is None:
        stored = _stored_result(payload.session_id)
        if stored is None:
            raise HTTPException(404, "session not found")
        return stored
    sess.submit(payload.trigger)
    result = _persist_if_final(payload.session_id, sess)
    if result is None:
        return JSONResponse(status_code=202, content={"state": sess.state})
    return result


@app.get("/applications/{application_id}")
def get_application(application_id: str):
    sid = ACTIVE_BY_APP.get(application_id)
    if sid and sid in SESS:
        _expired(sid, SESS[sid])
    rec = load_application(application_id)
    if not rec:
        raise HTTPException(404, "application not found")
    return rec
