from .labels import ENGLISH_LABELS, THAI_LABELS, TableLabels, labels_for
from .table import (
    CSV_MIME,
    SORT_KEYS,
    SortState,
    default_export_name,
    export_filename,
    render_print_html,
    render_table_html,
    results_to_csv,
    sort_results,
    summarize,
)

__all__ = [
    "CSV_MIME",
    "ENGLISH_LABELS",
    "SORT_KEYS",
    "SortState",
    "THAI_LABELS",
    "TableLabels",
    "default_export_name",
    "export_filename",
    "labels_for",
    "render_print_html",
    "render_table_html",
    "results_to_csv",
    "sort_results",
    "summarize",
]
