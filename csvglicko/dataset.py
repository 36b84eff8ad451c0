"""
Game record ingestion and the player rating table.

This module provides:
- Reading pairwise game records from a CSV file
- RatingTable, the name -> Glicko2Rating aggregate for one processing run
- A single-pass fold that rates a sequence of games in order
"""

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import pandas as pd

from .exceptions import GameRecordError, VolatilityConvergenceError
from .glicko2 import Glicko2Config, Glicko2Rating, rate_game, validate_rating

logger = logging.getLogger(__name__)


# =============================================================================
# Data Structures
# =============================================================================

@dataclass(frozen=True)
class GameRecord:
    """One game between two players, scored from player_one's side."""
    player_one: str
    player_two: str
    outcome: float  # 1 = player_one won, 0.5 = draw, 0 = player_two won
    line: Optional[int] = None  # Line in the source file, header is line 1

    @property
    def is_self_play(self) -> bool:
        return self.player_one == self.player_two


@dataclass
class SkippedGame:
    """A game left out of the ratings because it could not be rated."""
    record: GameRecord
    reason: str


# =============================================================================
# Reading Game Records
# =============================================================================

def parse_outcome(value: str, line: Optional[int] = None) -> float:
    """
    Parse an outcome field.

    Args:
        value: Text of the outcome column
        line: Source line, for error messages

    Returns:
        Outcome as a float in [0, 1]

    Raises:
        GameRecordError: if the value is not a number or lies outside [0, 1]
    """
    try:
        outcome = float(value)
    except (TypeError, ValueError):
        raise GameRecordError(f"Line {line}: outcome {value!r} is not a number", line=line) from None

    if not (math.isfinite(outcome) and 0.0 <= outcome <= 1.0):
        raise GameRecordError(f"Line {line}: outcome {value!r} is outside [0, 1]", line=line)
    return outcome


def read_games(filepath: str | Path) -> Iterator[GameRecord]:
    """
    Read game records from a CSV file and yield them in file order.

    The first row is a header. Columns are read by position: player one,
    player two, outcome. Any further columns are ignored.

    Args:
        filepath: Path to the CSV file.

    Yields:
        GameRecord objects.

    Raises:
        OSError: if the file cannot be opened
        GameRecordError: on a malformed row
    """
    filepath = Path(filepath)
    try:
        df = pd.read_csv(filepath, header=0, index_col=False, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        return
    except pd.errors.ParserError as e:
        raise GameRecordError(f"Could not parse {filepath}: {e}") from e

    if df.shape[1] < 3:
        raise GameRecordError(
            f"Expected at least 3 columns (player one, player two, outcome), found {df.shape[1]}",
            line=1,
        )

    for offset, row in enumerate(df.itertuples(index=False, name=None)):
        line = offset + 2
        player_one, player_two, outcome = row[0], row[1], row[2]
        if pd.isna(player_one) or pd.isna(player_two) or pd.isna(outcome) or outcome == "":
            raise GameRecordError(f"Line {line}: expected player one, player two and outcome", line=line)
        yield GameRecord(
            player_one=str(player_one),
            player_two=str(player_two),
            outcome=parse_outcome(outcome, line),
            line=line,
        )


# =============================================================================
# Rating Table
# =============================================================================

class RatingTable:
    """
    Current rating of every player seen so far in a run.

    Players are kept in order of first appearance. A player that has not
    played yet is reported with the table's default rating.
    """

    def __init__(self, default: Optional[Glicko2Rating] = None):
        self.default = default if default is not None else Glicko2Rating()
        validate_rating(self.default)
        self._ratings: Dict[str, Glicko2Rating] = {}

    def get(self, name: str) -> Glicko2Rating:
        """Look up a player's rating, or the default if they have not played."""
        return self._ratings.get(name, self.default)

    def apply(self, record: GameRecord, config: Glicko2Config) -> Tuple[Glicko2Rating, Glicko2Rating]:
        """
        Rate one game and store both players' new ratings.

        Nothing is stored if the update raises.

        Returns:
            Tuple of (new player_one rating, new player_two rating)
        """
        if record.is_self_play:
            raise ValueError(f"Player {record.player_one!r} cannot play against themselves")

        new_one, new_two = rate_game(
            self.get(record.player_one),
            self.get(record.player_two),
            record.outcome,
            config,
        )
        self._ratings[record.player_one] = new_one
        self._ratings[record.player_two] = new_two
        return new_one, new_two

    def items(self):
        return self._ratings.items()

    def __contains__(self, name: str) -> bool:
        return name in self._ratings

    def __len__(self) -> int:
        return len(self._ratings)

    def __iter__(self):
        return iter(self._ratings)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert the table to a DataFrame, one row per player."""
        records = []
        for name, rating in self._ratings.items():
            records.append({
                'player': name,
                'rating': rating.rating,
                'deviation': rating.deviation,
                'volatility': rating.volatility,
            })

        return pd.DataFrame(records, columns=['player', 'rating', 'deviation', 'volatility'])


@dataclass
class RatingRun:
    """Outcome of rating a sequence of games."""
    table: RatingTable
    games_rated: int = 0
    self_play: int = 0
    skipped: List[SkippedGame] = field(default_factory=list)


# =============================================================================
# Rating Games
# =============================================================================

def rate_games(
    records: Iterable[GameRecord],
    config: Optional[Glicko2Config] = None,
    default_rating: Optional[Glicko2Rating] = None,
    table: Optional[RatingTable] = None,
) -> RatingRun:
    """
    Rate games one at a time, in order, against a shared rating table.

    A game whose volatility update fails is skipped and recorded; the
    ratings of both its players stay as they were before the game.

    Args:
        records: Game records in chronological order
        config: Glicko-2 configuration (default Glicko2Config())
        default_rating: Rating for a player's first appearance (ignored if table is given)
        table: Existing table to continue from

    Returns:
        RatingRun with the updated table and counts of rated and skipped games
    """
    if config is None:
        config = Glicko2Config()
    if table is None:
        table = RatingTable(default_rating)

    run = RatingRun(table=table)

    for record in records:
        # Skip game if a player is playing themselves
        if record.is_self_play:
            logger.debug("Line %s: skipping self-play by %r", record.line, record.player_one)
            run.self_play += 1
            continue

        try:
            table.apply(record, config)
        except VolatilityConvergenceError as e:
            logger.warning(
                "Line %s: skipping %r vs %r: %s",
                record.line, record.player_one, record.player_two, e,
            )
            run.skipped.append(SkippedGame(record=record, reason=str(e)))
            continue

        run.games_rated += 1

    return run


def rate_file(
    filepath: str | Path,
    config: Optional[Glicko2Config] = None,
    default_rating: Optional[Glicko2Rating] = None,
) -> RatingRun:
    """Rate every game in a CSV file. See read_games for the file format."""
    return rate_games(read_games(filepath), config=config, default_rating=default_rating)
