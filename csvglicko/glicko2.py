"""
Glicko-2 Rating System Implementation

Based on Professor Mark Glickman's paper:
"Example of the Glicko-2 system" (2013)
http://www.glicko.net/glicko/glicko2.pdf

This module provides:
- Glicko-2 rating state with rating, deviation and volatility
- The pairwise (one game, two players) rating update
- The rating-period update for one player against several opponents
- A bounded volatility solver that reports non-convergence instead of hanging
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from .exceptions import ConfigurationError, InvalidRatingError, VolatilityConvergenceError

logger = logging.getLogger(__name__)


# Constants from Glickman paper
GLICKO2_SCALE = 173.7178  # 400 / ln(10), conversion between Glicko and Glicko-2 scales
DEFAULT_RATING = 1500.0
DEFAULT_DEVIATION = 350.0
DEFAULT_VOLATILITY = 0.06
DEFAULT_TAU = 0.5  # System constant - constrains volatility change
CONVERGENCE_TOLERANCE = 0.000001
MAX_BRACKET_ITERATIONS = 1000
MAX_ITERATIONS = 100


@dataclass(frozen=True)
class Glicko2Rating:
    """
    Represents a Glicko-2 rating with three components.

    Instances are never mutated; every update returns new ones.

    Attributes:
        rating: The player's skill estimate (μ on Glicko-2 scale = (rating-1500)/173.7178)
        deviation: Rating Deviation - uncertainty in the rating (φ = deviation/173.7178)
        volatility: σ - degree of expected fluctuation in rating (erratic vs consistent)
    """
    rating: float = DEFAULT_RATING
    deviation: float = DEFAULT_DEVIATION
    volatility: float = DEFAULT_VOLATILITY

    def to_glicko2_scale(self) -> Tuple[float, float, float]:
        """Convert to Glicko-2 internal scale (μ, φ, σ)."""
        mu = (self.rating - 1500) / GLICKO2_SCALE
        phi = self.deviation / GLICKO2_SCALE
        return mu, phi, self.volatility

    @classmethod
    def from_glicko2_scale(cls, mu: float, phi: float, sigma: float) -> 'Glicko2Rating':
        """Create from Glicko-2 internal scale values."""
        return cls(
            rating=mu * GLICKO2_SCALE + 1500,
            deviation=phi * GLICKO2_SCALE,
            volatility=sigma
        )

    def confidence_interval(self, z: float = 1.96) -> Tuple[float, float]:
        """
        Calculate confidence interval for the rating.

        Args:
            z: Z-score for confidence level (1.96 = 95%, 2.58 = 99%)

        Returns:
            Tuple of (lower_bound, upper_bound)
        """
        margin = z * self.deviation
        return (self.rating - margin, self.rating + margin)

    def is_provisional(self, threshold: float) -> bool:
        """A rating is provisional while its deviation stays above the threshold."""
        return self.deviation > threshold

    def __str__(self) -> str:
        ci_low, ci_high = self.confidence_interval()
        return f"Rating: {self.rating:.0f} ± {self.deviation:.0f} (95% CI: {ci_low:.0f}-{ci_high:.0f}), σ={self.volatility:.4f}"


@dataclass(frozen=True)
class Glicko2Config:
    """
    Tunable constants of the Glicko-2 update.

    Attributes:
        tau: System constant bounding how fast volatility may change (0.3-1.2 typical)
        convergence_tolerance: Stopping precision of the volatility solver
        max_bracket_iterations: Bound on the downward search for the lower bracket
        max_iterations: Bound on the Illinois refinement loop
    """
    tau: float = DEFAULT_TAU
    convergence_tolerance: float = CONVERGENCE_TOLERANCE
    max_bracket_iterations: int = MAX_BRACKET_ITERATIONS
    max_iterations: int = MAX_ITERATIONS

    def __post_init__(self):
        for name in ('tau', 'convergence_tolerance'):
            value = getattr(self, name)
            if not (isinstance(value, (int, float)) and math.isfinite(value) and value > 0):
                raise ConfigurationError(f"{name} must be a finite positive number, got {value!r}")
        for name in ('max_bracket_iterations', 'max_iterations'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")


def validate_rating(state: Glicko2Rating) -> None:
    """
    Check the preconditions of a rating state before it enters an update.

    Raises:
        InvalidRatingError: if the rating is not finite, or the deviation or
            volatility is not a finite positive number.
    """
    if not math.isfinite(state.rating):
        raise InvalidRatingError(f"Rating must be finite, got {state.rating!r}")
    if not (math.isfinite(state.deviation) and state.deviation > 0):
        raise InvalidRatingError(f"Deviation must be positive, got {state.deviation!r}")
    if not (math.isfinite(state.volatility) and state.volatility > 0):
        raise InvalidRatingError(f"Volatility must be positive, got {state.volatility!r}")


def g(phi: float) -> float:
    """
    The g function from Glicko-2.
    Reduces the impact of an opponent's rating based on their uncertainty.

    g(φ) = 1 / √(1 + 3φ²/π²)
    """
    return 1.0 / math.sqrt(1.0 + 3.0 * phi * phi / (math.pi * math.pi))


def expected_score(mu: float, mu_opponent: float, g_opponent: float) -> float:
    """
    Calculate expected score against an opponent, given the opponent's g.

    E(μ, μⱼ, gⱼ) = 1 / (1 + exp(-gⱼ(μ - μⱼ)))

    Saturates to exactly 0 or 1 for very large rating gaps instead of overflowing.
    """
    z = -g_opponent * (mu - mu_opponent)
    if z > 0:
        ez = math.exp(-z)
        return ez / (1.0 + ez)
    return 1.0 / (1.0 + math.exp(z))


def compute_variance(games: Sequence[Tuple[float, float, float]]) -> float:
    """
    Compute the variance v (Step 3 of Glicko-2 algorithm).

    v = [Σ gⱼ² × Eⱼ × (1 - Eⱼ)]⁻¹

    Args:
        games: List of (g, expected_score, score) tuples, one per game

    Returns:
        Variance v

    Raises:
        VolatilityConvergenceError: if every expected score is saturated at 0 or 1,
            which leaves the variance undefined.
    """
    variance_sum = 0.0
    for g_j, e, _ in games:
        variance_sum += g_j * g_j * e * (1.0 - e)

    v = 1.0 / variance_sum if variance_sum > 0 else math.inf
    if not math.isfinite(v):
        raise VolatilityConvergenceError(
            "Expected score saturated; rating gap too large to estimate variance",
            stage="variance",
            iterations=0,
        )
    return v


def compute_delta(games: Sequence[Tuple[float, float, float]], v: float) -> float:
    """
    Compute the estimated improvement delta (Step 4 of Glicko-2 algorithm).

    Δ = v × Σ gⱼ × (sⱼ - Eⱼ)
    """
    delta_sum = 0.0
    for g_j, e, score in games:
        delta_sum += g_j * (score - e)

    return v * delta_sum


def volatility_objective(
    x: float,
    delta: float,
    phi: float,
    v: float,
    sigma: float,
    tau: float
) -> float:
    """
    The function whose root gives the new volatility (Step 5 of Glicko-2).

    f(x) = eˣ(Δ² - φ² - v - eˣ) / 2(φ² + v + eˣ)² - (x - ln σ²) / τ²
    """
    ex = math.exp(x)
    phi_sq = phi * phi
    num = ex * (delta * delta - phi_sq - v - ex)
    denom = 2.0 * (phi_sq + v + ex) ** 2
    return num / denom - (x - 2.0 * math.log(sigma)) / (tau * tau)


def _evaluate(f: Callable[[float], float], x: float, stage: str, iteration: int) -> float:
    try:
        fx = f(x)
    except (OverflowError, ZeroDivisionError) as e:
        raise VolatilityConvergenceError(
            f"Volatility function cannot be evaluated at x={x!r}: {e}", stage=stage, iterations=iteration
        ) from e
    if not math.isfinite(fx):
        raise VolatilityConvergenceError(
            f"Volatility function is not finite at x={x!r}", stage=stage, iterations=iteration
        )
    return fx


def bracket_lower_bound(
    f: Callable[[float], float],
    a: float,
    tau: float,
    max_iterations: int = MAX_BRACKET_ITERATIONS
) -> Tuple[float, float]:
    """
    Search downward from a for the lower bracket B = a - kτ with f(B) >= 0.

    Returns:
        Tuple of (B, f(B))

    Raises:
        VolatilityConvergenceError: if no k <= max_iterations gives f(B) >= 0
    """
    for k in range(1, max_iterations + 1):
        x = a - k * tau
        fx = _evaluate(f, x, "bracket", k)
        if fx >= 0:
            return x, fx

    raise VolatilityConvergenceError(
        f"No lower bracket found within {max_iterations} steps",
        stage="bracket",
        iterations=max_iterations,
    )


def illinois(
    f: Callable[[float], float],
    a: float,
    b: float,
    tolerance: float = CONVERGENCE_TOLERANCE,
    max_iterations: int = MAX_ITERATIONS
) -> float:
    """
    Refine the bracket [a, b] to a root of f with the Illinois algorithm.

    A regula falsi step where the retained end's function value is halved
    whenever the same end is kept twice, so the method cannot stall.

    Returns:
        The refined end A once |B - A| <= tolerance

    Raises:
        VolatilityConvergenceError: on exhausting max_iterations, on a flat
            secant, or on a non-finite iterate
    """
    f_a = _evaluate(f, a, "refine", 0)
    f_b = _evaluate(f, b, "refine", 0)

    for iteration in range(max_iterations):
        if abs(b - a) <= tolerance:
            logger.debug("Illinois converged after %d iterations", iteration)
            return a

        if f_b == f_a:
            raise VolatilityConvergenceError(
                "Secant is flat; cannot refine volatility", stage="refine", iterations=iteration
            )
        c = a + (a - b) * f_a / (f_b - f_a)
        if not math.isfinite(c):
            raise VolatilityConvergenceError(
                "Secant step is not finite", stage="refine", iterations=iteration
            )
        f_c = _evaluate(f, c, "refine", iteration + 1)

        if f_c * f_b <= 0:
            a = b
            f_a = f_b
        else:
            f_a = f_a / 2.0

        b = c
        f_b = f_c

    if abs(b - a) <= tolerance:
        logger.debug("Illinois converged after %d iterations", max_iterations)
        return a

    raise VolatilityConvergenceError(
        f"Volatility did not converge within {max_iterations} iterations",
        stage="refine",
        iterations=max_iterations,
    )


def compute_new_volatility(
    sigma: float,
    phi: float,
    v: float,
    delta: float,
    config: Glicko2Config = Glicko2Config()
) -> float:
    """
    Compute new volatility using Illinois algorithm (Step 5 of Glicko-2).

    This finds σ' such that f(2 ln σ') = 0, with both the bracket search and
    the refinement bounded by the configured iteration counts.
    """
    tau = config.tau
    # ln σ², without squaring a volatility small enough to underflow
    a = 2.0 * math.log(sigma)
    phi_sq = phi * phi

    def f(x: float) -> float:
        return volatility_objective(x, delta, phi, v, sigma, tau)

    # Find initial bounds
    if delta * delta > phi_sq + v:
        b = math.log(delta * delta - phi_sq - v)
    else:
        b, _ = bracket_lower_bound(f, a, tau, config.max_bracket_iterations)

    a = illinois(f, a, b, config.convergence_tolerance, config.max_iterations)
    sigma_new = math.exp(a / 2.0)
    if sigma_new == 0:
        raise VolatilityConvergenceError(
            f"New volatility underflows to zero at x={a!r}", stage="refine", iterations=None
        )
    return sigma_new


def compute_new_deviation(phi: float, sigma_new: float, v: float) -> float:
    """
    Update the deviation (Step 6 of Glicko-2).

    φ* = √(φ² + σ'²), φ' = 1 / √(1/φ*² + 1/v)
    """
    phi_star = math.hypot(phi, sigma_new)
    return 1.0 / math.sqrt(1.0 / (phi_star * phi_star) + 1.0 / v)


def compute_new_rating(mu: float, phi_new: float, games: Sequence[Tuple[float, float, float]]) -> float:
    """
    Update the rating (Step 7 of Glicko-2).

    μ' = μ + φ'² Σ gⱼ(sⱼ - Eⱼ)
    """
    update_sum = 0.0
    for g_j, e, score in games:
        update_sum += g_j * (score - e)

    return mu + phi_new * phi_new * update_sum


def _update_player(
    mu: float,
    phi: float,
    sigma: float,
    games: Sequence[Tuple[float, float, float]],
    config: Glicko2Config
) -> Glicko2Rating:
    v = compute_variance(games)
    delta = compute_delta(games, v)
    sigma_new = compute_new_volatility(sigma, phi, v, delta, config)
    phi_new = compute_new_deviation(phi, sigma_new, v)
    mu_new = compute_new_rating(mu, phi_new, games)
    return Glicko2Rating.from_glicko2_scale(mu_new, phi_new, sigma_new)


def rate_game(
    player_one: Glicko2Rating,
    player_two: Glicko2Rating,
    outcome: float,
    config: Glicko2Config = Glicko2Config()
) -> Tuple[Glicko2Rating, Glicko2Rating]:
    """
    Rate a single game between two players.

    Each side is updated independently from the pre-game states, so the
    result does not depend on which player is passed first.

    Args:
        player_one: Current rating of the first player
        player_two: Current rating of the second player (a different player)
        outcome: Score from player_one's perspective
                 (1 for win, 0.5 for draw, 0 for loss); player_two gets 1 - outcome
        config: Glicko-2 configuration

    Returns:
        Tuple of (new player_one rating, new player_two rating)

    Raises:
        InvalidRatingError: if either state has a non-positive deviation or volatility
        VolatilityConvergenceError: if the volatility solver does not converge
    """
    validate_rating(player_one)
    validate_rating(player_two)

    # Step 1-2: Convert to Glicko-2 scale
    mu_one, phi_one, sigma_one = player_one.to_glicko2_scale()
    mu_two, phi_two, sigma_two = player_two.to_glicko2_scale()

    # Each side's g comes from the other side's deviation
    g_two = g(phi_two)
    g_one = g(phi_one)

    e_one = expected_score(mu_one, mu_two, g_two)
    e_two = expected_score(mu_two, mu_one, g_one)

    new_one = _update_player(mu_one, phi_one, sigma_one, [(g_two, e_one, outcome)], config)
    new_two = _update_player(mu_two, phi_two, sigma_two, [(g_one, e_two, 1.0 - outcome)], config)

    return new_one, new_two


def rate_period(
    current: Glicko2Rating,
    results: List[Tuple[Glicko2Rating, float]],
    config: Glicko2Config = Glicko2Config()
) -> Glicko2Rating:
    """
    Apply Glicko-2 algorithm for a single rating period.

    Implements the 8-step algorithm from Glickman's paper, with every game of
    the period treated as played simultaneously against the opponents'
    pre-period ratings.

    Args:
        current: Current Glicko2Rating
        results: List of (opponent_rating, score) tuples
                 Score is 1 for win, 0.5 for draw, 0 for loss
        config: Glicko-2 configuration

    Returns:
        New Glicko2Rating after the rating period
    """
    validate_rating(current)
    mu, phi, sigma = current.to_glicko2_scale()

    if not results:
        # No games played - only the deviation grows (Step 6 special case)
        return Glicko2Rating.from_glicko2_scale(mu, math.hypot(phi, sigma), sigma)

    games = []
    for opponent, score in results:
        validate_rating(opponent)
        mu_j, phi_j, _ = opponent.to_glicko2_scale()
        g_j = g(phi_j)
        games.append((g_j, expected_score(mu, mu_j, g_j), score))

    return _update_player(mu, phi, sigma, games, config)


def win_probability(player: Glicko2Rating, opponent: Glicko2Rating) -> float:
    """Calculate the expected score of player against opponent."""
    mu, _, _ = player.to_glicko2_scale()
    mu_j, phi_j, _ = opponent.to_glicko2_scale()
    return expected_score(mu, mu_j, g(phi_j))


# Export all public functions and classes
__all__ = [
    'Glicko2Rating',
    'Glicko2Config',
    'validate_rating',
    'g',
    'expected_score',
    'compute_variance',
    'compute_delta',
    'volatility_objective',
    'bracket_lower_bound',
    'illinois',
    'compute_new_volatility',
    'compute_new_deviation',
    'compute_new_rating',
    'rate_game',
    'rate_period',
    'win_probability',
    'GLICKO2_SCALE',
    'DEFAULT_RATING',
    'DEFAULT_DEVIATION',
    'DEFAULT_VOLATILITY',
    'DEFAULT_TAU',
    'CONVERGENCE_TOLERANCE',
]
