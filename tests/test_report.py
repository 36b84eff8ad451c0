"""
Tests for sorting, filtering and formatting rating reports.

Run with: pytest tests/test_report.py -v
"""

import io
import sys
from pathlib import Path

import pandas as pd
import pytest
from rich.console import Console

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from csvglicko.dataset import RatingTable
from csvglicko.glicko2 import Glicko2Rating
from csvglicko.report import (
    REPORT_COLUMNS,
    ReportOptions,
    SortKey,
    build_report,
    format_row,
    index_width,
    render_report,
    save_report,
)


def make_table(ratings: dict) -> RatingTable:
    """Build a table directly from name -> (rating, deviation, volatility)."""
    table = RatingTable()
    for name, (rating, deviation, volatility) in ratings.items():
        table._ratings[name] = Glicko2Rating(rating, deviation, volatility)
    return table


@pytest.fixture
def table() -> RatingTable:
    return make_table({
        "alice": (1650.0, 80.0, 0.059),
        "bob": (1420.0, 200.0, 0.071),
        "carol": (1720.0, 150.0, 0.050),
        "dave": (1510.0, 60.0, 0.064),
    })


# =============================================================================
# Tests for sorting
# =============================================================================

class TestSorting:
    """Tests for the three sort keys and reversing."""

    def test_default_sorts_by_rating_descending(self, table):
        report = build_report(table)
        assert list(report['player']) == ["carol", "alice", "dave", "bob"]
        assert list(report['rank']) == [1, 2, 3, 4]
        assert list(report.columns) == REPORT_COLUMNS

    def test_sort_by_deviation_ascending(self, table):
        report = build_report(table, ReportOptions(sort_by=SortKey.DEVIATION))
        assert list(report['player']) == ["dave", "alice", "carol", "bob"]

    def test_sort_by_volatility_descending(self, table):
        report = build_report(table, ReportOptions(sort_by=SortKey.VOLATILITY))
        assert list(report['player']) == ["bob", "dave", "alice", "carol"]

    @pytest.mark.parametrize("sort_by", list(SortKey))
    def test_reverse(self, table, sort_by):
        forward = build_report(table, ReportOptions(sort_by=sort_by))
        backward = build_report(table, ReportOptions(sort_by=sort_by, reverse=True))
        assert list(backward['player']) == list(forward['player'])[::-1]

    def test_sort_key_from_string(self, table):
        report = build_report(table, ReportOptions(sort_by="deviation"))
        assert report.loc[0, 'player'] == "dave"

    def test_empty_table(self):
        report = build_report(RatingTable())
        assert report.empty
        assert list(report.columns) == REPORT_COLUMNS


# =============================================================================
# Tests for filtering
# =============================================================================

class TestFiltering:
    """Tests for limits and deviation filters."""

    def test_limit(self, table):
        report = build_report(table, ReportOptions(limit=2))
        assert list(report['player']) == ["carol", "alice"]

    def test_maximum_deviation(self, table):
        report = build_report(table, ReportOptions(maximum_deviation=150))
        assert list(report['player']) == ["carol", "alice", "dave"]

    def test_minimum_deviation(self, table):
        report = build_report(table, ReportOptions(minimum_deviation=150))
        assert list(report['player']) == ["carol", "bob"]

    def test_filtered_rows_keep_their_rank(self, table):
        report = build_report(table, ReportOptions(maximum_deviation=100))
        assert list(report['player']) == ["alice", "dave"]
        assert list(report['rank']) == [2, 3]

    def test_limit_counts_filtered_rows(self, table):
        # carol is rank 1 but filtered out; the limit still stops at rank 2
        report = build_report(table, ReportOptions(maximum_deviation=100, limit=2))
        assert list(report['player']) == ["alice"]

    def test_provisional_flag(self, table):
        report = build_report(table, ReportOptions(provisional_threshold=150))
        flags = dict(zip(report['player'], report['provisional']))
        assert flags == {"carol": False, "alice": False, "dave": False, "bob": True}

    def test_filter_provisional(self, table):
        report = build_report(table, ReportOptions(filter_provisional=True))
        assert list(report['player']) == ["alice", "dave"]


# =============================================================================
# Tests for formatting
# =============================================================================

class TestFormatting:
    """Tests for text output."""

    def test_format_row(self):
        row = {
            'rank': 3,
            'player': "alice",
            'rating': 1523.414,
            'deviation': 187.2,
            'volatility': 0.059998123,
            'provisional': True,
        }
        line = format_row(row, 2)
        assert line.plain == "03. 1523.41? 187 0.05999812 alice"
        assert [span.style for span in line.spans] == ["red", "yellow", "cyan", "magenta", "blue"]

    def test_format_row_pads_small_values(self):
        row = {
            'rank': 1,
            'player': "bob",
            'rating': 999.5,
            'deviation': 45.0,
            'volatility': 0.06,
            'provisional': False,
        }
        assert format_row(row, 1).plain == "1. 0999.50  045 0.06000000 bob"

    def test_index_width(self):
        assert index_width(9) == 1
        assert index_width(10) == 2
        assert index_width(250) == 3

    def test_render_matches_format_row(self, table):
        report = build_report(table)
        output = io.StringIO()
        console = Console(file=output, force_terminal=False, no_color=True, width=200)

        render_report(report, index_width(len(table)), console)

        expected = [format_row(row, 1).plain for row in report.to_dict('records')]
        assert output.getvalue().splitlines() == expected

    def test_save_report(self, table, tmp_path):
        path = save_report(build_report(table), tmp_path / "ratings.csv")
        saved = pd.read_csv(path)
        assert list(saved.columns) == REPORT_COLUMNS
        assert list(saved['player']) == ["carol", "alice", "dave", "bob"]
