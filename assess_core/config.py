from __future__ import annotations
import os, json, pathlib


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


SUBJECTIVE_FALLBACK_FRACTION: float = 0.5
CODING_FALLBACK_FRACTION: float = 0.5
CODING_REVIEW_NOTE: str = "Manual review required for full credit."
SUBJECTIVE_REVIEW_NOTE: str = "Provisional score: AI evaluation unavailable, awarded fallback credit."

GUESS_ATTEMPT_RATE: float = 0.8
GUESS_ACCURACY_RATE: float = 0.15
GUESS_REASON: str = "Guess work detected: high attempt rate with very low accuracy (less than 15%)."

DEFAULT_DURATION_MINUTES: int = 60
DEFAULT_THRESHOLD: int = 30

EVALUATOR_BASE_URL: str = ""
EVALUATOR_TIMEOUT_SEC: float = 5.0
EVALUATOR_API_KEY: str = ""
REGISTER_CANDIDATES: bool = True

# // env overrides for staging/ops; defaults remain conservative.
SUBJECTIVE_FALLBACK_FRACTION = _env_float("SUBJECTIVE_FALLBACK_FRACTION", SUBJECTIVE_FALLBACK_FRACTION)
CODING_FALLBACK_FRACTION = _env_float("CODING_FALLBACK_FRACTION", CODING_FALLBACK_FRACTION)
DEFAULT_DURATION_MINUTES = _env_int("DEFAULT_DURATION_MINUTES", DEFAULT_DURATION_MINUTES)
DEFAULT_THRESHOLD = _env_int("DEFAULT_THRESHOLD", DEFAULT_THRESHOLD)
EVALUATOR_BASE_URL = os.getenv("EVALUATOR_BASE_URL", EVALUATOR_BASE_URL).strip().rstrip("/")
EVALUATOR_TIMEOUT_SEC = _env_float("EVALUATOR_TIMEOUT_SEC", EVALUATOR_TIMEOUT_SEC)
EVALUATOR_API_KEY = os.getenv("EVALUATOR_API_KEY", EVALUATOR_API_KEY)
REGISTER_CANDIDATES = _env_bool("REGISTER_CANDIDATES", REGISTER_CANDIDATES)


def load_config() -> dict:
    """Settings from ./config.json (if any) overlaid by environment variables."""
    cfg: dict = {}
    p = pathlib.Path(os.getenv("ASSESS_CONFIG", "config.json"))
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError): cfg = {}
    cfg.setdefault("EVALUATOR_BASE_URL", EVALUATOR_BASE_URL)
    cfg.setdefault("EVALUATOR_TIMEOUT_SEC", EVALUATOR_TIMEOUT_SEC)
    cfg.setdefault("EVALUATOR_API_KEY", EVALUATOR_API_KEY)
    cfg.setdefault("REGISTER_CANDIDATES", REGISTER_CANDIDATES)
    e = os.environ
    if e.get("EVALUATOR_BASE_URL"): cfg["EVALUATOR_BASE_URL"] = EVALUATOR_BASE_URL
    if e.get("EVALUATOR_TIMEOUT_SEC"): cfg["EVALUATOR_TIMEOUT_SEC"] = EVALUATOR_TIMEOUT_SEC
    if e.get("EVALUATOR_API_KEY"): cfg["EVALUATOR_API_KEY"] = EVALUATOR_API_KEY
    if e.get("REGISTER_CANDIDATES"): cfg["REGISTER_CANDIDATES"] = REGISTER_CANDIDATES
    cfg["EVALUATOR_BASE_URL"] = str(cfg.get("EVALUATOR_BASE_URL") or "").rstrip("/")
    return cfg
