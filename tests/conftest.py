"""
Pytest Configuration and HTML Report Hooks

Puts the project root on the import path and, when pytest-html is installed,
writes the scan simulator report into tests/test_reports/ with two extra
columns: the test_meta block (description, goal, passing criteria) and any
plots a test attached through helpers.attach_plot_to_html_report.
"""

import sys
from html import escape
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

REPORT_DIR = ROOT / "tests" / "test_reports"

# (marker kwarg, label shown in the report)
META_FIELDS = (
    ("description", "Test Description"),
    ("goal", "Test Goal"),
    ("passing_criteria", "Passing Criteria"),
)


def _report_name(args):
    """
    report_<stage>.html when exactly one pipeline stage module is selected
    (tests/test_mid360/test_noise.py -> report_noise.html), else report_all.html.
    """
    stages = set()
    for arg in map(str, args):
        if arg.startswith("-"):
            continue
        module = Path(arg.partition("::")[0])
        if module.suffix == ".py" and module.stem.startswith("test_"):
            stages.add(module.stem[len("test_"):].lower())

    if len(stages) == 1:
        (stage,) = stages
        if stage:
            return f"report_{stage}.html"
    return "report_all.html"


@pytest.hookimpl(tryfirst=True)
def pytest_configure(config):
    config.addinivalue_line("markers", "test_meta(description, goal, passing_criteria): report metadata")

    args = config.invocation_params.args
    if not config.pluginmanager.hasplugin("html") or any(str(arg).startswith("--html") for arg in args):
        return
    REPORT_DIR.mkdir(parents=True, exist_ok=True)
    config.option.htmlpath = str(REPORT_DIR / _report_name(args))


@pytest.hookimpl(optionalhook=True)
def pytest_html_results_table_header(cells):
    cells.insert(3, '<th class="col-testmeta">Test Description</th>')
    cells.insert(4, '<th class="col-plot">Plot</th>')


def _meta_cell(report):
    meta = getattr(report, "test_meta", None)
    if not meta:
        return '<td class="col-testmeta"><div style="color:#666;">n/a</div></td>'

    lines = "".join(
        f"<div><strong>{label}:</strong> {escape(str(meta.get(key, '')))}</div>" for key, label in META_FIELDS
    )
    return f'<td class="col-testmeta"><div style="min-width:340px;max-width:520px;line-height:1.35;">{lines}</div></td>'


def _plot_cell(report):
    sources = [
        extra["content"]
        for extra in getattr(report, "extras", [])
        if extra.get("format_type") == "image" and extra.get("content")
    ]
    images = "".join(
        f'<a href="{src}" target="_blank" rel="noopener noreferrer">'
        f'<img src="{src}" alt="plot" style="max-width:320px;height:auto;display:block;margin:4px 0;" /></a>'
        for src in sources
    )
    return f'<td class="col-plot">{images}</td>'


@pytest.hookimpl(optionalhook=True)
def pytest_html_results_table_row(report, cells):
    cells.insert(3, _meta_cell(report))
    cells.insert(4, _plot_cell(report))


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    if report.when != "call":
        return

    marker = item.get_closest_marker("test_meta")
    if marker:
        report.test_meta = {key: marker.kwargs.get(key, "") for key, _ in META_FIELDS}

    attached = getattr(item, "extra", None)
    if attached:
        report.extras = list(getattr(report, "extras", [])) + [dict(extra) for extra in attached]
