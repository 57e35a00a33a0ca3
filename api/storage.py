"""Key-value persistence for jobs and applications.

Records are JSON files keyed by entity id. Callers only get "find by id"
and "list all"; writes are last-writer-wins per id.
"""

from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
JOBS_DIR = DATA_ROOT / "jobs"
APPLICATIONS_DIR = DATA_ROOT / "applications"

_LOCK = threading.Lock()


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def _key_path(root: Path, key: str) -> Path:
    safe = "".join(ch for ch in str(key) if ch.isalnum() or ch in "-_.")
    if not safe or safe.startswith("."):
        raise ValueError(f"invalid key {key!r}")
    return root / f"{safe}.json"


def _list(root: Path) -> List[Dict[str, Any]]:
    if not root.exists():
        return []
    out: List[Dict[str, Any]] = []
    for path in sorted(root.glob("*.json")):
        rec = _read_json(path, None)
        if isinstance(rec, dict):
            out.append(rec)
    return out


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def save_job(job: Dict[str, Any]) -> None:
    with _LOCK:
        _write_json(_key_path(JOBS_DIR, job["id"]), job)


def load_job(job_id: str) -> Optional[Dict[str, Any]]:
    try:
        return _read_json(_key_path(JOBS_DIR, job_id), None)
    except ValueError:
        return None


def list_jobs() -> List[Dict[str, Any]]:
    return _list(JOBS_DIR)


def save_application(application: Dict[str, Any]) -> None:
    """Persist an application record, overwriting any previous version."""

    with _LOCK:
        _write_json(_key_path(APPLICATIONS_DIR, application["id"]), application)


def load_application(application_id: str) -> Optional[Dict[str, Any]]:
    try:
        return _read_json(_key_path(APPLICATIONS_DIR, application_id), None)
    except ValueError:
        return None


def list_applications() -> List[Dict[str, Any]]:
    return _list(APPLICATIONS_DIR)


def find_application(job_id: str, student_id: str) -> Optional[Dict[str, Any]]:
    for rec in list_applications():
        if rec.get("jobId") == job_id and rec.get("studentId") == student_id:
            return rec
    return None
