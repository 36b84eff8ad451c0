"""
Environment-driven defaults for csvglicko.

Values are read from the process environment (and a .env file, if present)
and can be overridden on the command line.
"""

import os
from dataclasses import dataclass
from typing import Callable, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .glicko2 import (
    CONVERGENCE_TOLERANCE,
    DEFAULT_DEVIATION,
    DEFAULT_RATING,
    DEFAULT_TAU,
    DEFAULT_VOLATILITY,
    MAX_BRACKET_ITERATIONS,
    MAX_ITERATIONS,
    Glicko2Config,
    Glicko2Rating,
)

# Load environment variables from .env file
load_dotenv()

ENV_PREFIX = "CSVGLICKO_"
DEFAULT_PROVISIONAL_THRESHOLD = 110.0


@dataclass
class Settings:
    """Resolved defaults for a rating run."""
    default_rating: float = DEFAULT_RATING
    default_deviation: float = DEFAULT_DEVIATION
    default_volatility: float = DEFAULT_VOLATILITY
    tau: float = DEFAULT_TAU
    convergence_tolerance: float = CONVERGENCE_TOLERANCE
    max_bracket_iterations: int = MAX_BRACKET_ITERATIONS
    max_iterations: int = MAX_ITERATIONS
    provisional_threshold: float = DEFAULT_PROVISIONAL_THRESHOLD

    def initial_rating(self) -> Glicko2Rating:
        """Rating given to a player the first time they appear."""
        return Glicko2Rating(
            rating=self.default_rating,
            deviation=self.default_deviation,
            volatility=self.default_volatility,
        )

    def glicko2_config(self) -> Glicko2Config:
        """Build the Glicko-2 configuration; raises ConfigurationError if invalid."""
        return Glicko2Config(
            tau=self.tau,
            convergence_tolerance=self.convergence_tolerance,
            max_bracket_iterations=self.max_bracket_iterations,
            max_iterations=self.max_iterations,
        )


def _read(name: str, parse: Callable[[str], float], default):
    key = ENV_PREFIX + name
    raw: Optional[str] = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {key}: {raw!r}") from e


def load_settings() -> Settings:
    """
    Read settings from CSVGLICKO_* environment variables.

    Unset variables fall back to the Glicko-2 defaults.

    Raises:
        ConfigurationError: if a variable is set but cannot be parsed.
    """
    return Settings(
        default_rating=_read("DEFAULT_RATING", float, DEFAULT_RATING),
        default_deviation=_read("DEFAULT_DEVIATION", float, DEFAULT_DEVIATION),
        default_volatility=_read("DEFAULT_VOLATILITY", float, DEFAULT_VOLATILITY),
        tau=_read("TAU", float, DEFAULT_TAU),
        convergence_tolerance=_read("TOLERANCE", float, CONVERGENCE_TOLERANCE),
        max_bracket_iterations=_read("MAX_BRACKET_ITERATIONS", int, MAX_BRACKET_ITERATIONS),
        max_iterations=_read("MAX_ITERATIONS", int, MAX_ITERATIONS),
        provisional_threshold=_read("PROVISIONAL_THRESHOLD", float, DEFAULT_PROVISIONAL_THRESHOLD),
    )
