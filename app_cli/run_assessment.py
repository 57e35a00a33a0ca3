from __future__ import annotations
import json, logging, os, sys, uuid, pathlib
from assess_core.config import load_config, DEFAULT_DURATION_MINUTES, DEFAULT_THRESHOLD
from assess_core.engine import AssessmentSession
from assess_core.evaluator_client import EvaluatorClient
from assess_core.types import Application, AssessmentDataError, Job
def ask(prompt: str, options=None) -> str:
    if options:
        print(prompt)
        keys = list(options.keys()) if isinstance(options, dict) else [str(i) for i in range(len(options))]
        labels = list(options.values()) if isinstance(options, dict) else list(options)
        for k, label in zip(keys, labels): print(f"  [{k}] {label}")
        v = input("Your choice (blank to skip): ").strip()
        return v
    lines = []
    print(prompt + "  (finish with an empty line)")
    while True:
        line = input()
        if not line: break
        lines.append(line)
    return "\n".join(lines)
def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("usage: python -m app_cli.run_assessment JOB.json [STUDENT_ID]"); return 2
    if os.getenv("LOG_LEVEL"): logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    job = Job.from_dict(json.loads(pathlib.Path(argv[0]).read_text(encoding="utf-8")),
                        default_duration=DEFAULT_DURATION_MINUTES, default_threshold=DEFAULT_THRESHOLD)
    student = argv[1] if len(argv) > 1 else "console"
    application = Application(id=str(uuid.uuid4()), job_id=job.id, student_id=student)
    try:
        session = AssessmentSession.start(job, application, evaluator=EvaluatorClient.from_config(load_config()))
    except AssessmentDataError as exc:
        print(f"Cannot run assessment: {exc}"); return 1
    print(f"{session.job.title}: {len(session.job.questions)} questions, {session.job.duration_minutes} min")
    for i, q in enumerate(session.job.questions, 1):
        if session.expire_if_due() is not None:
            print("Time is up."); break
        session.view(q.id)
        v = ask(f"\nQ{i} [{q.type}, {q.marks:g} marks] {q.text}", q.options if q.type == "MCQ" else None)
        if v: session.answer(q.id, v)
    res = session.submit("last_question") or session.result
    print(json.dumps(res.to_dict() if res else {"state": session.state}, indent=2))
    return 0
if __name__ == "__main__": sys.exit(main())
