import html
import json
import zipfile
from pathlib import Path

from e2e_runner.steps import Status


def summarize(results: list) -> dict:
    return {
        "total": len(results),
        "passed": sum(1 for r in results if r.status == Status.PASSED),
        "failed": sum(1 for r in results if r.status == Status.FAILED),
        "errored": sum(1 for r in results if r.status == Status.ERRORED),
    }


def results_to_json(results: list) -> dict:
    return {"summary": summarize(results), "tests": [r.to_dict() for r in results]}


def write_results_json(results: list, path: Path) -> Path:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(results_to_json(results), f, indent=2, default=str)
    return path


def write_html_report(results: list, html_path: Path, title: str = "End-to-End Test Report") -> Path:
    counts = summarize(results)
    page = f"""
<html><head><title>{html.escape(title)}</title>
<style>
body {{ font-family: Arial, sans-serif; padding: 20px; }}
.summary {{ margin-bottom: 16px; }}
.pass {{ color: #0a7b44; }}
.fail {{ color: #b00020; }}
.error {{ color: #8a4b00; }}
pre {{ background: #f6f8fa; padding: 12px; border-radius: 6px; overflow: auto; }}
</style>
</head><body>
  <h1>{html.escape(title)}</h1>
  <div class="summary">
    <strong>Total:</strong> {counts['total']} &nbsp; <strong class="pass">Passed:</strong> {counts['passed']} &nbsp; <strong class="fail">Failed:</strong> {counts['failed']} &nbsp; <strong class="error">Errored:</strong> {counts['errored']}
  </div>
  <hr />
  {''.join(render_test_result(r) for r in results)}
</body></html>
"""
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(page)
    return html_path


def render_test_result(result) -> str:
    status_class = {Status.PASSED: "pass", Status.FAILED: "fail"}.get(result.status, "error")
    name = html.escape(result.name)
    img_tag = ""
    if result.screenshot:
        src = html.escape(Path(result.screenshot).as_posix())
        img_tag = f"<div><img src=\"{src}\" style=\"max-width: 100%; border: 1px solid #ddd;\" /></div>"
    if result.status == Status.PASSED:
        body = f"<p>{result.duration_ms} ms</p>"
    else:
        where = f"<p>Step {result.step_index} &middot; {html.escape(result.timestamp)}</p>" if result.step_index is not None \
            else f"<p>{html.escape(result.timestamp)}</p>"
        details = ""
        if result.details:
            details = f"<details><summary>Details</summary><pre>{html.escape(json.dumps(result.details, indent=2, default=str))}</pre></details>"
        body = f"{where}<pre>{html.escape(result.error_type + ': ' if result.error_type else '')}{html.escape(result.reason)}</pre>{details}"
    return f"""
  <section>
    <h3 class="{status_class}">{name} — {result.status.value.upper()}</h3>
    {body}
    {img_tag}
  </section>
  <hr />
"""


def archive_files(zip_path: Path, files: list[Path], root: Path | None = None) -> Path:
    with zipfile.ZipFile(zip_path, "w") as zf:
        for f in files:
            if f.exists():
                zf.write(f, arcname=f.relative_to(root).as_posix() if root else f.name)
    return zip_path
