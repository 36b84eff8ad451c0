"""
Sorting, filtering and display of a finished rating table.

None of this changes ratings; it only decides which players are shown and how.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from rich.console import Console
from rich.text import Text

from .config import DEFAULT_PROVISIONAL_THRESHOLD
from .dataset import RatingTable

REPORT_COLUMNS = ['rank', 'player', 'rating', 'deviation', 'volatility', 'provisional']

# Output colors per field
STYLES = {
    'rating': 'red',
    'provisional': 'yellow',
    'deviation': 'cyan',
    'volatility': 'magenta',
    'player': 'blue',
}


class SortKey(str, Enum):
    """Field a report is sorted by."""
    RATING = "rating"  # Descending
    DEVIATION = "deviation"  # Ascending
    VOLATILITY = "volatility"  # Descending


@dataclass
class ReportOptions:
    """Which players to show, and in which order."""
    sort_by: SortKey = SortKey.RATING
    reverse: bool = False
    minimum_deviation: Optional[float] = None
    maximum_deviation: Optional[float] = None
    provisional_threshold: float = DEFAULT_PROVISIONAL_THRESHOLD
    filter_provisional: bool = False
    limit: Optional[int] = None


def index_width(player_count: int) -> int:
    """Number of digits needed to print any rank in a table of player_count players."""
    return len(str(player_count))


def build_report(table: RatingTable, options: Optional[ReportOptions] = None) -> pd.DataFrame:
    """
    Sort and filter a rating table for display.

    Ranks are positions in the full sorted table. The limit applies to ranks
    before any filter, so a filtered player leaves a gap in the ranks rather
    than letting a lower-ranked player in.

    Args:
        table: Ratings after a run
        options: Sorting and filtering options (default ReportOptions())

    Returns:
        DataFrame with columns rank, player, rating, deviation, volatility, provisional
    """
    if options is None:
        options = ReportOptions()

    df = table.to_dataframe()
    sort_by = SortKey(options.sort_by)

    ascending = sort_by == SortKey.DEVIATION
    if options.reverse:
        ascending = not ascending

    # mergesort is stable: ties keep first-appearance order
    df = df.sort_values(sort_by.value, ascending=ascending, kind='mergesort').reset_index(drop=True)
    df.insert(0, 'rank', np.arange(1, len(df) + 1))
    threshold = options.provisional_threshold
    df['provisional'] = df['player'].map(lambda name: table.get(name).is_provisional(threshold)).astype(bool)

    if options.limit is not None:
        df = df[df['rank'] <= options.limit]
    if options.maximum_deviation is not None:
        df = df[df['deviation'] <= options.maximum_deviation]
    if options.minimum_deviation is not None:
        df = df[df['deviation'] >= options.minimum_deviation]
    if options.filter_provisional:
        df = df[~df['provisional']]

    return df[REPORT_COLUMNS].reset_index(drop=True)


def _segments(row: dict, width: int) -> List[Tuple[str, Optional[str]]]:
    """Pieces of one report line with their styles, in output order."""
    return [
        (f"{int(row['rank']):0{width}d}. ", None),
        (f"{row['rating']:07.2f}", STYLES['rating']),
        ("?" if row['provisional'] else " ", STYLES['provisional']),
        (" ", None),
        (f"{row['deviation']:03.0f}", STYLES['deviation']),
        (" ", None),
        (f"{row['volatility']:.8f}", STYLES['volatility']),
        (" ", None),
        (str(row['player']), STYLES['player']),
    ]


def format_row(row: dict, width: int) -> Text:
    """
    Format one report row as a colored line.

    Example (plain text):
        "03. 1523.41? 187 0.05999812 alice"
    """
    line = Text()
    for text, style in _segments(row, width):
        line.append(text, style=style)
    return line


def render_report(report: pd.DataFrame, width: int, console: Optional[Console] = None) -> None:
    """Print a report with one colored line per player."""
    if console is None:
        console = Console(highlight=False)

    for row in report.to_dict('records'):
        console.print(format_row(row, width))


def save_report(report: pd.DataFrame, output_path: Path) -> Path:
    """Save a report as CSV."""
    output_path = Path(output_path)
    report.to_csv(output_path, index=False)
    return output_path
