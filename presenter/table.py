"""
Results presentation: sorting, CSV export and HTML rendering of verdict rows.

Nothing here mutates the rows it is given; sorting returns a new list so the
order returned by the model stays available to every other consumer.
"""

from __future__ import annotations

import csv
import html
import io
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from checkers.base_checker import AnalysisResult, FailureKind

from .labels import THAI_LABELS, TableLabels

SORT_KEYS: Tuple[str, ...] = (
    "condition",
    "calculation",
    "actual_result",
    "expected_value",
    "status",
    "reason",
)

CSV_MIME = "text/csv;charset=utf-8"
EXPORT_PREFIX = "analysis-results"


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SortState:
    """Single-key sort. ``key=None`` keeps the order returned by the model."""

    key: Optional[str] = None
    ascending: bool = True

    def request(self, key: str) -> "SortState":
        """Clicking the active key flips direction; a new key starts ascending."""
        if key not in SORT_KEYS:
            raise ValueError(f"Unknown sort key: {key!r}. Available: {', '.join(SORT_KEYS)}")
        if key == self.key:
            return SortState(key=key, ascending=not self.ascending)
        return SortState(key=key, ascending=True)

    def direction_for(self, key: str) -> str:
        if key != self.key:
            return "none"
        return "asc" if self.ascending else "desc"


def _is_absent(value: Any) -> bool:
    return value is None


def _sort_value(value: Any) -> Tuple[int, Any]:
    # Numbers (and booleans) compare numerically and come before strings.
    if isinstance(value, (bool, int, float)):
        return (0, value)
    return (1, str(value))


def sort_results(results: Iterable[AnalysisResult], state: SortState) -> List[AnalysisResult]:
    """
    Return a sorted copy of ``results``. Rows whose value for the key is
    absent go last in both directions. The sort is stable.
    """
    rows = list(results)
    if state.key is None:
        return rows

    key = state.key
    present = [r for r in rows if not _is_absent(getattr(r, key))]
    absent = [r for r in rows if _is_absent(getattr(r, key))]
    present.sort(key=lambda r: _sort_value(getattr(r, key)), reverse=not state.ascending)
    return present + absent


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def summarize(results: Sequence[AnalysisResult]) -> Dict[str, int]:
    kinds = [r.failure_kind for r in results]
    return {
        "total": len(kinds),
        "passed": kinds.count(FailureKind.PASSED),
        "failed": len(kinds) - kinds.count(FailureKind.PASSED),
        "unreadable": kinds.count(FailureKind.UNREADABLE),
    }


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------

def results_to_csv(results: Iterable[AnalysisResult], labels: TableLabels = THAI_LABELS) -> bytes:
    """
    UTF-8 CSV with a byte-order mark so spreadsheet tools pick up Thai text.
    Every field is quoted and embedded quotes are doubled.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(labels.csv_header())
    for r in results:
        writer.writerow([
            r.condition,
            r.calculation,
            _cell_text(r.actual_result),
            _cell_text(r.expected_value),
            labels.status_token(r.status),
            r.reason or "",
        ])
    return buf.getvalue().encode("utf-8-sig")


def default_export_name(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{EXPORT_PREFIX}-{today.isoformat()}"


def export_filename(name: str, extension: str = "csv") -> str:
    """User-confirmed download name: trimmed, path separators replaced, one extension."""
    name = name.strip().replace("/", "-").replace("\\", "-")
    suffix = f".{extension}"
    if name.lower().endswith(suffix):
        name = name[: -len(suffix)].rstrip()
    if not name:
        raise ValueError("File name must not be empty")
    return name + suffix


# ---------------------------------------------------------------------------
# HTML rendering
# ---------------------------------------------------------------------------

TABLE_CSS = """
.verdicts { border-collapse: collapse; width: 100%; font-size: 0.95rem; }
.verdicts th { background: #f9fafb; color: #6b7280; text-align: left; padding: 0.6rem 1rem; }
.verdicts td { padding: 0.6rem 1rem; border-top: 1px solid #e5e7eb; }
.verdicts td.mono { font-family: ui-monospace, monospace; color: #4b5563; }
.verdicts tr.pass { background: #f0fdf4; }
.verdicts tr.fail { background: #fef2f2; }
.verdicts .badge { font-weight: 600; }
.verdicts tr.pass .badge { color: #16a34a; }
.verdicts tr.fail .badge { color: #dc2626; }
.verdicts .reason { color: #ef4444; font-size: 0.75rem; margin: 0.25rem 0 0 0; }
""".strip()

PRINT_CSS = """
body { font-family: sans-serif; margin: 2rem; color: #1f2937; }
.toolbar { margin-bottom: 1rem; }
.disclaimer { color: #6b7280; font-size: 0.8rem; margin-top: 1rem; }
@media print {
  .no-print { display: none !important; }
  body { margin: 0; }
}
""".strip()


def render_table_html(
    results: Iterable[AnalysisResult],
    labels: TableLabels = THAI_LABELS,
    sort_state: Optional[SortState] = None,
) -> str:
    """Verdict table markup (no surrounding document)."""
    arrows = {"asc": " ▲", "desc": " ▼", "none": ""}
    state = sort_state or SortState()

    def th(key: str, text: str) -> str:
        return f"<th>{html.escape(text)}{arrows[state.direction_for(key)]}</th>"

    head = "".join([
        th("condition", labels.condition),
        th("calculation", labels.calculation),
        th("actual_result", labels.actual_result),
        th("expected_value", labels.expected_value),
        th("status", labels.status),
    ])

    rows: List[str] = []
    for r in results:
        css = "pass" if r.status else "fail"
        status_cell = f'<span class="badge">{html.escape(labels.status_token(r.status))}</span>'
        if not r.status and r.reason:
            status_cell += f'<p class="reason">{html.escape(r.reason)}</p>'
        rows.append(
            f'<tr class="{css}">'
            f"<td>{html.escape(r.condition)}</td>"
            f'<td class="mono">{html.escape(r.calculation)}</td>'
            f'<td class="mono">{html.escape(_cell_text(r.actual_result))}</td>'
            f'<td class="mono">{html.escape(_cell_text(r.expected_value))}</td>'
            f"<td>{status_cell}</td>"
            "</tr>"
        )

    return (
        '<table class="verdicts">'
        f"<thead><tr>{head}</tr></thead>"
        f"<tbody>{''.join(rows)}</tbody>"
        "</table>"
    )


def render_print_html(
    results: Sequence[AnalysisResult],
    title: Optional[str] = None,
    labels: TableLabels = THAI_LABELS,
    sort_state: Optional[SortState] = None,
    auto_print: bool = True,
) -> str:
    """
    Standalone printable document. Anything marked ``no-print`` (the toolbar)
    is hidden by the print stylesheet.
    """
    title = title or labels.title
    counts = summarize(results)
    summary = (
        f"<p>{html.escape(labels.passed)} {counts['passed']} / {counts['total']}"
        f" &middot; {html.escape(labels.failed)} {counts['failed']}</p>"
    )
    script = "<script>window.addEventListener('load', function () { window.print(); });</script>"
    return (
        "<!DOCTYPE html>"
        '<html lang="th"><head><meta charset="utf-8">'
        f"<title>{html.escape(title)}</title>"
        f"<style>{TABLE_CSS}\n{PRINT_CSS}</style>"
        "</head><body>"
        '<div class="toolbar no-print">'
        f'<button onclick="window.print()">{html.escape(labels.print_button)}</button>'
        "</div>"
        f"<h2>{html.escape(title)}</h2>"
        f"{summary}"
        f"{render_table_html(results, labels, sort_state)}"
        f'<p class="disclaimer">{html.escape(labels.disclaimer)}</p>'
        f"{script if auto_print else ''}"
        "</body></html>"
    )


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
