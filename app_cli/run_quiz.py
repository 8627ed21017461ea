from __future__ import annotations
import argparse, datetime, logging, os
from assess_core.attempt import Attempt, AttemptState
from assess_core.errors import AlreadySubmitted, AttemptClosed, ProviderUnavailable
from assess_core.providers import GenerationRequest, default_chain
from assess_core.report_html import export_report_html

def ask(prompt: str, options) -> int | None:
    print(prompt)
    for i, opt in enumerate(options): print(f"  [{i}] {opt}")
    while True:
        v = input("Your choice (index, blank to skip): ").strip()
        if not v: return None
        if v.isdigit(): return int(v)
        print("Enter a number index.")

def _fmt(seconds: int) -> str:
    m, s = divmod(max(0, int(seconds)), 60)
    return f"{m:02d}:{s:02d}"

def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Take a timed skill assessment in the terminal.")
    ap.add_argument("--role", action="append", default=[], help="job role, repeatable")
    ap.add_argument("--skill", action="append", default=[], help="skill, repeatable")
    ap.add_argument("--count", type=int, default=15)
    ap.add_argument("--minutes", type=float, default=45.0)
    ap.add_argument("--out", default="reports")
    args = ap.parse_args(argv)
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        questions = default_chain().generate(
            GenerationRequest(job_roles=args.role, skills=args.skill, count=args.count)
        )
    except ProviderUnavailable as e:
        print(f"No questions available: {e}")
        return 1

    attempt = Attempt(questions, time_limit_sec=int(args.minutes * 60))
    attempt.start()
    attempt.arm_timer(lambda _res: print("\nTime is up - your answers were submitted."))
    print(f"Skill Assessment: {len(questions)} questions, {_fmt(attempt.remaining())} on the clock\n")

    for n, q in enumerate(questions, 1):
        if attempt.state is not AttemptState.IN_PROGRESS: break
        choice = ask(f"[{_fmt(attempt.remaining())}] Q{n}. {q.text}", q.options)
        if choice is None: continue
        try:
            attempt.set_answer(q.id, choice)
        except AttemptClosed:
            break

    try:
        res = attempt.submit()
    except AlreadySubmitted:
        res = attempt.result
    attempt.cancel_timer()

    print(f"\nScore: {res.score}% ({res.correct_answers}/{res.total_questions})")
    for c in res.category_scores:
        print(f"  {c.category:<28} {c.score:3d}%  {c.competency_level}")
    for g in res.skill_gaps:
        print(f"  gap: {g.skill} ({g.score}%) review: {', '.join(g.topics)}")
    for r in res.recommendations:
        print(f"  - {r}")

    os.makedirs(args.out, exist_ok=True)
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    path = export_report_html(res, os.path.join(args.out, f"assessment_{ts}.html"))
    print(f"Done. Report saved to: {path}")
    return 0

if __name__ == "__main__": raise SystemExit(main())
