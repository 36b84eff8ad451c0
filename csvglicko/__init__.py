"""
csvglicko - Glicko-2 ratings from CSV files of pairwise games.
"""

from .exceptions import (
    CsvGlickoError,
    ConfigurationError,
    InvalidRatingError,
    VolatilityConvergenceError,
    GameRecordError,
)
from .glicko2 import (
    # Rating state and configuration
    Glicko2Rating,
    Glicko2Config,
    GLICKO2_SCALE,
    DEFAULT_RATING,
    DEFAULT_DEVIATION,
    DEFAULT_VOLATILITY,
    DEFAULT_TAU,
    CONVERGENCE_TOLERANCE,
    # Updates
    rate_game,
    rate_period,
    win_probability,
    validate_rating,
    compute_new_volatility,
    volatility_objective,
)
from .config import Settings, load_settings
from .dataset import (
    GameRecord,
    SkippedGame,
    RatingTable,
    RatingRun,
    read_games,
    rate_games,
    rate_file,
)
from .report import (
    SortKey,
    ReportOptions,
    build_report,
    format_row,
    render_report,
    save_report,
)

__version__ = "0.1.0"
