from __future__ import annotations
from html import escape
from typing import Dict, Any, List

from .config import AUDIT_EXPORT_ENABLED
from .recommend import course_link


def _as_dict(result: Any) -> Dict[str, Any]:
    if isinstance(result, dict):
        return result
    if hasattr(result, "to_dict"):
        return result.to_dict()
    return dict(result.__dict__)


def _row(c: Dict[str, Any]) -> str:
    return (f"<tr><td>{escape(str(c.get('category')))}</td><td>{c.get('correct')}/{c.get('total')}</td>"
            f"<td>{c.get('score')}%</td><td>{escape(str(c.get('competency_level')))}</td></tr>")


def _gap_block(g: Dict[str, Any]) -> str:
    skill = str(g.get("skill"))
    topics = ", ".join(escape(str(t)) for t in g.get("topics") or [])
    topic_txt = f"<div class=\"topics\">Topics: {topics}</div>" if topics else ""
    return (f"<li><b>{escape(skill)}</b> ({g.get('score')}%){topic_txt}"
            f" <a href=\"{escape(course_link(skill))}\">View Courses</a></li>")


def render_report_html(result: Any) -> str:
    d = _as_dict(result)
    cats: List[Dict[str, Any]] = d.get("category_scores") or []
    gaps: List[Dict[str, Any]] = d.get("skill_gaps") or []
    strengths: List[Dict[str, Any]] = d.get("strengths") or []
    diffs: List[Dict[str, Any]] = d.get("difficulty_stats") or []
    recs: List[str] = d.get("recommendations") or []

    rows = "\n".join(_row(c) for c in cats)
    gap_html = (
        "<ul>" + "".join(_gap_block(g) for g in gaps) + "</ul>"
        if gaps else "<p>No major skill gaps detected. Explore more courses to upskill!</p>"
    )
    strength_html = ""
    if strengths:
        strength_html = "<h3>Strengths</h3><ul>" + "".join(
            f"<li>{escape(str(s.get('category')))} ({s.get('score')}%)</li>" for s in strengths
        ) + "</ul>"

    diff_items: List[str] = []
    for ds in diffs:
        if not ds.get("total"):
            continue
        missed = ds.get("topics") or []
        missed_txt = f" · missed: {escape(', '.join(map(str, missed)))}" if missed else ""
        diff_items.append(
            f"<li>{escape(str(ds.get('difficulty')).capitalize())}: {ds.get('correct')}/{ds.get('total')}{missed_txt}</li>"
        )
    diff_html = "<h3>By difficulty</h3><ul>" + "".join(diff_items) + "</ul>" if diff_items else ""

    rec_html = "<h3>Next steps</h3><ul>" + "".join(f"<li>{escape(r)}</li>" for r in recs) + "</ul>" if recs else ""

    invalid = d.get("invalid_questions") or []
    invalid_html = ""
    if invalid:
        invalid_html = (
            "<div class=\"banner warning\">"
            f"{len(invalid)} question(s) could not be scored and were left out of the totals."
            "</div>"
        )

    audit_links = ""
    rid = d.get("result_id") or d.get("id")
    if AUDIT_EXPORT_ENABLED and rid:
        rid = escape(str(rid))
        audit_links = (
            "<p class=\"audit-links\">"
            f"<a href=\"/results/{rid}/audit.json\">Download answers (JSON)</a> · "
            f"<a href=\"/results/{rid}/audit.csv\">Download answers (CSV)</a>"
            "</p>"
        )

    verdict = "Passed" if d.get("passed") else "Not passed"
    minutes, seconds = divmod(int(d.get("time_spent") or 0), 60)

    return f"""<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8"/>
<title>Assessment Report</title>
<style>
 body{{font-family:system-ui,-apple-system,Segoe UI,Roboto,Ubuntu,'Helvetica Neue',Arial}}
 .wrap{{max-width:960px;margin:40px auto;padding:0 16px}}
 h1{{margin:0 0 16px}}
 .overall{{font-size:1.1rem;margin:8px 0 16px}}
 .banner{{padding:12px 16px;border-radius:6px;margin:16px 0}}
 .banner.warning{{background:#ffe7d9;border:1px solid #f5a623;color:#7a2d00}}
 .topics{{font-size:.85rem;color:#7c3aed}}
 table{{border-collapse:collapse;width:100%}}
 th,td{{text-align:left}}
</style>
</head>
<body>
<div class="wrap">
  <h1>Assessment Report</h1>
  <div class="overall"><b>Overall:</b> {d.get('score', 0)}% ({d.get('correct_answers', 0)}/{d.get('total_questions', 0)}) · {verdict} · {minutes:02d}:{seconds:02d}</div>
  {invalid_html}

  <table border='1' cellpadding='6' cellspacing='0'>
    <thead><tr><th>Category</th><th>Correct</th><th>Score</th><th>Competency</th></tr></thead>
    <tbody>{rows}</tbody>
  </table>

  <h3>Skill gaps</h3>
  {gap_html}
  {strength_html}
  {diff_html}
  {rec_html}
  {audit_links}
</div>
</body>
</html>"""


def export_report_html(result: Any, path: str) -> str:
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_report_html(result))
    return path
