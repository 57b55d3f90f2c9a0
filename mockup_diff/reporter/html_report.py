"""HTML report generator: a static summary page with one card per matrix cell."""

from __future__ import annotations

import html
import logging
import os
from pathlib import Path

from mockup_diff.models.comparison import ComparisonResult
from mockup_diff.models.report import ReportEntry, RunReport

logger = logging.getLogger(__name__)


def _relative_link(path: str | None, report_dir: Path) -> str:
    """Path of an artifact relative to the report so the page survives being moved with it."""
    if not path:
        return ""
    try:
        return Path(os.path.relpath(Path(path).resolve(), report_dir.resolve())).as_posix()
    except ValueError:
        # Different drive on Windows
        return Path(path).resolve().as_uri()


def _status_class(r: ReportEntry) -> str:
    if r.passed:
        return "pass"
    if isinstance(r, ComparisonResult) and r.compared:
        return "fail"
    return "error"


def _build_result_card(r: ReportEntry, report_dir: Path) -> str:
    """Build the HTML card for a single result."""
    status = _status_class(r)
    task = r.task
    label = {"pass": "PASSED", "fail": "FAILED", "error": "ERROR"}[status]

    card = f'''
    <div class="result-card {status}" data-status="{status}">
      <div class="result-header {status}">
        <span class="badge {status}">{label}</span>
        <strong>{html.escape(task.page_id)}</strong>
        <span class="viewport">{html.escape(task.viewport.name)} &middot; {task.viewport.width}&times;{task.viewport.height}</span>
      </div>
      <div class="result-body">
    '''

    if isinstance(r, ComparisonResult) and r.compared:
        card += f'''
        <p class="match"><strong>Match:</strong> {r.match_percentage:.2f}%</p>
        <p><strong>Mismatched pixels:</strong> {r.mismatched_pixels:,} / {r.total_pixels:,}</p>'''
    if r.failure_reason:
        category = html.escape(r.failure_category.value) if r.failure_category else "error"
        card += f'<div class="failure-banner"><strong>{category}:</strong> {html.escape(r.failure_reason)}</div>'

    card += f'<p><strong>URL:</strong> <a href="{html.escape(task.url)}">{html.escape(task.url)}</a></p>'
    if task.reference_image_path:
        card += f'<p><strong>Mock-up:</strong> {html.escape(Path(task.reference_image_path).name)}</p>'

    diff_path = r.diff_image_path if isinstance(r, ComparisonResult) else None
    if diff_path:
        link = html.escape(_relative_link(diff_path, report_dir))
        card += f'''
        <a class="diff-link" href="{link}" target="_blank">
          <img class="diff-thumb" src="{link}" alt="diff {html.escape(task.label)}" loading="lazy"/>
          <span>View diff image</span>
        </a>'''

    if r.layout_findings:
        card += '<div class="section"><h4>Layout findings</h4><ul class="findings">'
        for f in r.layout_findings:
            card += (f'<li class="{html.escape(f.severity)}"><code>{html.escape(f.rule_id)}</code> '
                     f'{html.escape(f.message)}</li>')
        card += '</ul></div>'

    errors = r.console_errors + r.page_errors
    if errors:
        card += '<div class="section"><h4>Console errors</h4><pre class="console-log">'
        for err in errors[:20]:
            card += html.escape(err) + "\n"
        card += '</pre></div>'

    card += '</div></div>'
    return card


def generate_html_report(report: RunReport, output_path: Path) -> None:
    """Generate a static HTML summary next to the JSON report."""
    summary = report.summary
    average = (
        f"{summary.average_match_percentage:.2f}%"
        if summary.average_match_percentage is not None else "n/a"
    )
    report_dir = output_path.parent
    cards = "".join(_build_result_card(r, report_dir) for r in report.results)
    json_name = html.escape(output_path.with_suffix(".json").name)

    report_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Visual Comparison Report &mdash; {html.escape(report.timestamp)}</title>
<style>
  :root {{ --pass: #22c55e; --fail: #ef4444; --error: #f97316; --bg: #f8fafc; --card: white; --border: #e2e8f0; --text: #1e293b; --muted: #64748b; --accent: #BD572B; }}
  * {{ margin: 0; padding: 0; box-sizing: border-box; }}
  body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--text); line-height: 1.6; padding: 1.5rem; }}
  .container {{ max-width: 1400px; margin: 0 auto; }}
  h1 {{ font-size: 1.8rem; margin-bottom: 0.3rem; }}
  .meta {{ color: var(--muted); margin-bottom: 1.5rem; font-size: 0.9rem; border-bottom: 2px solid var(--accent); padding-bottom: 1rem; }}
  .summary {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(160px, 1fr)); gap: 0.8rem; margin-bottom: 1.5rem; }}
  .stat {{ background: var(--card); border-radius: 8px; padding: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); text-align: center; }}
  .stat .value {{ font-size: 1.8rem; font-weight: 700; }}
  .stat .label {{ font-size: 0.8rem; color: var(--muted); }}
  .stat.pass .value {{ color: var(--pass); }}
  .stat.fail .value {{ color: var(--fail); }}
  .badge {{ display: inline-block; padding: 0.15rem 0.55rem; border-radius: 9999px; font-size: 0.7rem; font-weight: 600; }}
  .badge.pass {{ background: #dcfce7; color: #166534; }}
  .badge.fail {{ background: #fecaca; color: #991b1b; }}
  .badge.error {{ background: #fed7aa; color: #9a3412; }}
  .results {{ display: grid; grid-template-columns: repeat(auto-fill, minmax(380px, 1fr)); gap: 1rem; }}
  .result-card {{ background: var(--card); border-radius: 8px; box-shadow: 0 1px 3px rgba(0,0,0,0.08); overflow: hidden; }}
  .result-header {{ display: flex; align-items: center; gap: 0.5rem; padding: 0.7rem 1rem; flex-wrap: wrap; }}
  .result-header.pass {{ background: #d4edda; }}
  .result-header.fail {{ background: #f8d7da; }}
  .result-header.error {{ background: #ffedd5; }}
  .viewport {{ font-size: 0.8rem; color: var(--muted); }}
  .result-body {{ padding: 0.8rem 1rem 1rem 1rem; font-size: 0.88rem; }}
  .result-body p {{ margin: 0.2rem 0; word-break: break-all; }}
  .match {{ font-size: 1.1rem; }}
  .failure-banner {{ background: #fef2f2; border: 1px solid #fecaca; color: #991b1b; border-radius: 6px; padding: 0.6rem 0.8rem; margin: 0.5rem 0; }}
  .diff-link {{ display: block; margin-top: 0.6rem; color: var(--accent); }}
  .diff-thumb {{ width: 100%; max-height: 240px; object-fit: cover; object-position: top; border: 1px solid var(--border); border-radius: 6px; }}
  .section {{ margin-top: 0.8rem; }}
  .section h4 {{ font-size: 0.8rem; color: var(--muted); text-transform: uppercase; letter-spacing: 0.05em; border-bottom: 1px solid var(--border); margin-bottom: 0.3rem; }}
  .findings {{ margin-left: 1.2rem; }}
  .findings code {{ background: #f1f5f9; padding: 0.1rem 0.3rem; border-radius: 3px; font-size: 0.78rem; }}
  .console-log {{ background: #1e293b; color: #f1f5f9; padding: 0.8rem; border-radius: 6px; font-size: 0.78rem; overflow-x: auto; max-height: 200px; overflow-y: auto; }}
  .filter-bar {{ display: flex; gap: 0.5rem; margin-bottom: 1rem; flex-wrap: wrap; }}
  .filter-btn {{ padding: 0.3rem 0.8rem; border-radius: 6px; border: 1px solid var(--border); background: var(--card); cursor: pointer; font-size: 0.82rem; }}
  .filter-btn.active {{ background: var(--accent); color: white; border-color: var(--accent); }}
</style>
</head>
<body>
<div class="container">
  <h1>Visual Comparison Report</h1>
  <p class="meta">Generated: {html.escape(report.timestamp)} &middot; Target: {html.escape(report.base_url)} &middot; Pass threshold: {report.pass_threshold:.2f}% &middot; Data: <a href="{json_name}">{json_name}</a></p>

  <div class="summary">
    <div class="stat"><div class="value">{summary.total_comparisons}</div><div class="label">Total Comparisons</div></div>
    <div class="stat pass"><div class="value">{summary.passed}</div><div class="label">Passed</div></div>
    <div class="stat fail"><div class="value">{summary.failed}</div><div class="label">Failed</div></div>
    <div class="stat"><div class="value">{average}</div><div class="label">Average Match</div></div>
  </div>

  <div class="filter-bar">
    <button class="filter-btn active" onclick="filterResults('all')">All</button>
    <button class="filter-btn" onclick="filterResults('fail')">Failed</button>
    <button class="filter-btn" onclick="filterResults('error')">Errors</button>
    <button class="filter-btn" onclick="filterResults('pass')">Passed</button>
  </div>

  <h2>Comparison Results</h2>
  <div class="results" id="result-list">
    {cards}
  </div>
</div>

<script>
function filterResults(status) {{
  document.querySelectorAll('.filter-btn').forEach(b => b.classList.remove('active'));
  event.target.classList.add('active');
  document.querySelectorAll('.result-card').forEach(card => {{
    card.style.display = status === 'all' || card.dataset.status === status ? '' : 'none';
  }});
}}
</script>
</body>
</html>'''

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_html)
    logger.debug("Wrote HTML report with %d cards", len(report.results))
