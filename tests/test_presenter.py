import csv
import io
from datetime import date

import pytest

from checkers import AnalysisResult
from presenter import (
    ENGLISH_LABELS,
    THAI_LABELS,
    SortState,
    default_export_name,
    export_filename,
    labels_for,
    render_print_html,
    render_table_html,
    results_to_csv,
    sort_results,
    summarize,
)

SENTINEL = "ไม่สามารถอ่านค่าได้"


def _rows():
    return [
        AnalysisResult("013 = 010", "8812-8410", "402", "412", False),
        AnalysisResult("007+008+009 = 006", "402+396+559", "1357", "1357", True),
        AnalysisResult("014 = 011", "?-7001", "", "396", False, reason=SENTINEL),
        AnalysisResult("015 = 012", "9100-8541", 559, 559, True),
    ]


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------

def test_no_sort_key_keeps_model_order():
    rows = _rows()
    assert sort_results(rows, SortState()) == rows


def test_sort_by_status_both_directions():
    rows = _rows()
    asc = sort_results(rows, SortState("status", True))
    assert [r.status for r in asc] == [False, False, True, True]
    desc = sort_results(rows, SortState("status", False))
    assert [r.status for r in desc] == [True, True, False, False]


def test_sort_is_stable():
    asc = sort_results(_rows(), SortState("status", True))
    assert [r.condition for r in asc] == [
        "013 = 010", "014 = 011", "007+008+009 = 006", "015 = 012",
    ]


def test_absent_values_last_in_both_directions():
    rows = _rows() + [AnalysisResult("012 = 015", "?", None, "10", False)]
    for ascending in (True, False):
        ordered = sort_results(rows, SortState("actual_result", ascending))
        assert ordered[-1].condition == "012 = 015"
    for ascending in (True, False):
        ordered = sort_results(rows, SortState("reason", ascending))
        assert ordered[0].reason == SENTINEL


def test_empty_string_sorts_as_ordinary_string():
    rows = _rows()
    asc = sort_results(rows, SortState("actual_result", True))
    assert [r.actual_result for r in asc] == [559, "", "1357", "402"]
    desc = sort_results(rows, SortState("actual_result", False))
    assert [r.actual_result for r in desc] == ["402", "1357", "", 559]


def test_numbers_before_strings():
    ordered = sort_results(_rows(), SortState("expected_value", True))
    assert ordered[0].expected_value == 559


def test_sort_does_not_mutate_input():
    rows = _rows()
    snapshot = list(rows)
    sort_results(rows, SortState("condition", False))
    assert rows == snapshot


def test_request_toggles_direction():
    state = SortState().request("condition")
    assert (state.key, state.ascending) == ("condition", True)
    state = state.request("condition")
    assert (state.key, state.ascending) == ("condition", False)
    state = state.request("status")
    assert (state.key, state.ascending) == ("status", True)
    assert state.direction_for("status") == "asc"
    assert state.direction_for("condition") == "none"


def test_request_unknown_key():
    with pytest.raises(ValueError):
        SortState().request("colour")


def test_summarize():
    assert summarize(_rows()) == {"total": 4, "passed": 2, "failed": 2, "unreadable": 1}


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def _parse_csv(data: bytes):
    assert data.startswith(b"\xef\xbb\xbf")
    text = data.decode("utf-8-sig")
    return list(csv.reader(io.StringIO(text)))


def test_csv_header_and_status_tokens():
    table = _parse_csv(results_to_csv(_rows()))
    assert table[0] == list(THAI_LABELS.csv_header())
    assert [row[4] for row in table[1:]] == ["ไม่ผ่าน", "ผ่าน", "ไม่ผ่าน", "ผ่าน"]
    assert table[3][5] == SENTINEL
    assert table[4][2] == "559"


def test_csv_quotes_every_field_and_uses_lf():
    data = results_to_csv(_rows()[:1]).decode("utf-8-sig")
    lines = data.split("\n")
    assert lines[1] == '"013 = 010","8812-8410","402","412","ไม่ผ่าน",""'
    assert "\r" not in data


def test_csv_round_trips_embedded_quotes():
    tricky = AnalysisResult('row "A", 006', "1+2", "3", "3", False, reason=f'{SENTINEL} "007"')
    table = _parse_csv(results_to_csv([tricky]))
    assert table[1][0] == 'row "A", 006'
    assert table[1][5] == f'{SENTINEL} "007"'


def test_csv_english_labels():
    table = _parse_csv(results_to_csv(_rows(), ENGLISH_LABELS))
    assert table[0][0] == "Condition"
    assert table[2][4] == "Pass"


def test_default_export_name():
    assert default_export_name(date(2026, 10, 19)) == "analysis-results-2026-10-19"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("analysis-results-2026-10-19", "analysis-results-2026-10-19.csv"),
        ("  report.csv ", "report.csv"),
        ("a/b\\c", "a-b-c.csv"),
    ],
)
def test_export_filename(name, expected):
    assert export_filename(name) == expected


def test_export_filename_rejects_blank():
    with pytest.raises(ValueError):
        export_filename("   ")


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------

def test_table_html_escapes_and_marks_rows():
    rows = [AnalysisResult("<b>006</b>", "1+1", "2", "3", False, reason=SENTINEL)]
    markup = render_table_html(rows, sort_state=SortState("status", False))
    assert "&lt;b&gt;006&lt;/b&gt;" in markup
    assert 'class="fail"' in markup
    assert SENTINEL in markup
    assert "▼" in markup


def test_print_html_hides_controls_when_printing():
    doc = render_print_html(_rows())
    assert "@media print" in doc
    assert ".no-print { display: none !important; }" in doc
    assert 'class="toolbar no-print"' in doc
    assert "window.print()" in doc
    assert THAI_LABELS.disclaimer in doc


def test_print_html_without_auto_print():
    doc = render_print_html(_rows(), title="ตุลาคม", auto_print=False)
    assert "<title>ตุลาคม</title>" in doc
    assert "addEventListener" not in doc


def test_labels_for():
    assert labels_for("th") is THAI_LABELS
    assert labels_for("en-US") is ENGLISH_LABELS
