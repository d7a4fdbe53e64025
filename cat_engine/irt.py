"""
Item Response Theory (IRT) math and ability estimation.

Implements the 3-Parameter Logistic (3PL) model for adaptive testing.
Provides ability estimation via Newton-Raphson MLE or EAP quadrature, item
information for selection and standard errors, and the normal-distribution
helpers used for pass/fail reporting.
"""

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from scipy.stats import norm

from .models import IRTParameters

logger = logging.getLogger(__name__)

THETA_MIN, THETA_MAX = -4.0, 4.0
DEFAULT_THETA = 0.0
DEFAULT_SE = 1.0
CI_Z = 1.96

MAX_ITERATIONS = 20
TOLERANCE = 0.001
# |second derivative| below this is treated as degenerate
DEGENERATE_CURVATURE = 1e-4
# P * (1 - P) below this is treated as zero
DENOMINATOR_EPS = 1e-12

QUADRATURE_POINTS = 41
# Probabilities are kept this far from 0 and 1 inside logarithms
LOG_FLOOR = 1e-12

# Abramowitz & Stegun 7.1.26
_AS_P = 0.3275911
_AS_A = (0.254829592, -0.284496736, 1.421413741, -1.453152027, 1.061405429)


def clamp_theta(theta: float) -> float:
    return max(THETA_MIN, min(THETA_MAX, theta))


def probability(theta: float, params: IRTParameters) -> float:
    """Probability of a correct response under the 3PL model.

    P(theta) = c + (1 - c) / (1 + e^(-a(theta - b)))

    Args:
        theta: Examinee ability.
        params: Item parameters.

    Returns:
        Probability of a correct response, in [c, 1].
    """
    a, b, c = params.a, params.b, params.c
    exponent = -a * (theta - b)

    # Prevent overflow
    if exponent > 700:
        return c
    if exponent < -700:
        return 1.0

    return c + (1.0 - c) / (1.0 + math.exp(exponent))


def information(theta: float, params: IRTParameters) -> float:
    """Item information at a given ability level.

    I(theta) = a^2 (1-c)^2 (P-c)^2 / ((1-c)^2 P (1-P))

    Args:
        theta: Examinee ability.
        params: Item parameters.

    Returns:
        Information value, 0.0 where the denominator vanishes.
    """
    a, c = params.a, params.c
    p = probability(theta, params)
    one_minus_c_sq = (1.0 - c) ** 2

    denominator = one_minus_c_sq * p * (1.0 - p)
    if denominator < DENOMINATOR_EPS:
        return 0.0

    return (a**2) * one_minus_c_sq * (p - c) ** 2 / denominator


def confidence_interval(theta: float, standard_error: float) -> tuple[float, float]:
    """95% confidence interval around theta."""
    margin = CI_Z * standard_error
    return (theta - margin, theta + margin)


def normal_cdf(z: float) -> float:
    """Standard normal CDF via the Abramowitz-Stegun erf approximation.

    Absolute error is below 1e-7 over the whole real line.
    """
    sign = -1.0 if z < 0 else 1.0
    x = abs(z) / math.sqrt(2.0)

    t = 1.0 / (1.0 + _AS_P * x)
    a1, a2, a3, a4, a5 = _AS_A
    poly = ((((a5 * t + a4) * t + a3) * t + a2) * t + a1) * t
    erf = 1.0 - poly * math.exp(-x * x)

    return 0.5 * (1.0 + sign * erf)


def passing_probability(theta: float, standard_error: float, standard: float = 0.0) -> float:
    """Probability that true ability is at or above the passing standard.

    Phi((theta - standard) / SE). With no uncertainty left this is a step
    function of theta.
    """
    if standard_error <= 0:
        return 1.0 if theta >= standard else 0.0
    return normal_cdf((theta - standard) / standard_error)


def percentile(theta: float) -> float:
    """Population percentile of theta, assuming N(0, 1) ability."""
    return float(norm.cdf(theta) * 100)


def performance_level(theta: float) -> str:
    if theta >= 1.5:
        return "Advanced"
    elif theta >= 0.5:
        return "Proficient"
    elif theta >= -0.5:
        return "Basic"
    elif theta >= -1.5:
        return "Below Basic"
    return "Needs Support"


@dataclass(frozen=True)
class AbilityEstimate:
    """Current estimate of examinee ability.

    Attributes:
        theta: Estimated ability in logits, bounded to [-4, +4].
        standard_error: Uncertainty of the estimate. Lower = more precise.
    """

    theta: float = DEFAULT_THETA
    standard_error: float = DEFAULT_SE

    @property
    def confidence_interval(self) -> tuple[float, float]:
        """95% confidence interval for the ability estimate."""
        return confidence_interval(self.theta, self.standard_error)


class AbilityEstimator:
    """Maximum-likelihood ability estimation under the 3PL model.

    Responses are ``(params, score)`` pairs where score is in [0, 1];
    fractional scores are partial credit.

    Usage:
        estimator = AbilityEstimator()
        estimate = estimator.estimate([(item.params, 1.0), (other.params, 0.0)])
    """

    def __init__(
        self,
        max_iterations: int = MAX_ITERATIONS,
        tolerance: float = TOLERANCE,
    ) -> None:
        self.max_iterations = max_iterations
        self.tolerance = tolerance

    def estimate(
        self,
        responses: Sequence[tuple[IRTParameters, float]],
        start_theta: float = DEFAULT_THETA,
    ) -> AbilityEstimate:
        """Estimate ability and its standard error from a response pattern.

        Edge cases:
            - No responses: theta=0, SE=1 (average ability, max uncertainty)
            - All correct / all incorrect: theta runs to the +/-4 bound

        Args:
            responses: Administered items' parameters paired with scores.
            start_theta: Starting point for the Newton-Raphson iteration.

        Returns:
            AbilityEstimate with theta and SE evaluated at that theta.
        """
        if not responses:
            return AbilityEstimate()

        theta = self.newton_raphson(responses, start_theta)
        se = self.standard_error(theta, [params for params, _ in responses])
        return AbilityEstimate(theta=theta, standard_error=se)

    def newton_raphson(
        self,
        responses: Sequence[tuple[IRTParameters, float]],
        start_theta: float = DEFAULT_THETA,
    ) -> float:
        theta = clamp_theta(start_theta)

        for iteration in range(self.max_iterations):
            first = 0.0
            second = 0.0

            for params, score in responses:
                p = probability(theta, params)
                pq = p * (1.0 - p)
                if pq < DENOMINATOR_EPS:
                    continue

                p_star = (p - params.c) / (1.0 - params.c)
                first += params.a * (score - p) * p_star / pq
                second -= (params.a**2) * p_star * p_star / pq

            if abs(second) < DEGENERATE_CURVATURE:
                logger.debug("Degenerate curvature at theta=%.3f, keeping estimate", theta)
                break

            step = first / second
            theta = clamp_theta(theta - step)

            if abs(step) < self.tolerance:
                logger.debug("Converged after %d iterations: theta=%.4f", iteration + 1, theta)
                break

        return theta

    def standard_error(self, theta: float, params: Sequence[IRTParameters]) -> float:
        """SE = 1 / sqrt(total information), 1.0 when there is none."""
        total_info = sum(information(theta, p) for p in params)
        if total_info <= 0:
            return DEFAULT_SE
        return 1.0 / math.sqrt(total_info)


class EAPEstimator(AbilityEstimator):
    """Expected a posteriori ability estimation by fixed-grid quadrature.

    The posterior mean under a normal prior stays finite for all-correct
    and all-incorrect patterns, where the likelihood maximum sits on the
    theta bound. SE is still 1/sqrt(total information) at the estimate, so
    the stopping rule reads it the same way as for MLE.

    Usage:
        engine = CATEngine(pool, estimator=EAPEstimator())
    """

    def __init__(
        self,
        prior_mean: float = 0.0,
        prior_sd: float = 1.0,
        num_points: int = QUADRATURE_POINTS,
    ) -> None:
        super().__init__()
        if prior_sd <= 0:
            raise ValueError(f"prior_sd must be positive, got {prior_sd}")
        if num_points < 2:
            raise ValueError(f"num_points must be at least 2, got {num_points}")
        self.prior_mean = prior_mean
        self.prior_sd = prior_sd
        self.num_points = num_points

    @property
    def grid(self) -> list[float]:
        step = (THETA_MAX - THETA_MIN) / (self.num_points - 1)
        return [THETA_MIN + i * step for i in range(self.num_points)]

    def estimate(
        self,
        responses: Sequence[tuple[IRTParameters, float]],
        start_theta: float = DEFAULT_THETA,
    ) -> AbilityEstimate:
        """Posterior mean of theta; ``start_theta`` is unused.

        Returns:
            AbilityEstimate with the posterior mean, or the prior mean and
            SE=1 when there are no responses.
        """
        if not responses:
            return AbilityEstimate(theta=clamp_theta(self.prior_mean))

        theta = self.posterior_mean(responses)
        se = self.standard_error(theta, [params for params, _ in responses])
        return AbilityEstimate(theta=theta, standard_error=se)

    def posterior_mean(self, responses: Sequence[tuple[IRTParameters, float]]) -> float:
        grid = self.grid
        log_posterior = [
            self.log_likelihood(theta, responses)
            - 0.5 * ((theta - self.prior_mean) / self.prior_sd) ** 2
            for theta in grid
        ]

        # Shift by the max before exponentiating
        peak = max(log_posterior)
        weights = [math.exp(lp - peak) for lp in log_posterior]
        total = sum(weights)
        return sum(theta * w for theta, w in zip(grid, weights)) / total

    @staticmethod
    def log_likelihood(theta: float, responses: Sequence[tuple[IRTParameters, float]]) -> float:
        """Log-likelihood with partial credit: u*log(P) + (1-u)*log(1-P)."""
        total = 0.0
        for params, score in responses:
            p = min(max(probability(theta, params), LOG_FLOOR), 1.0 - LOG_FLOOR)
            total += score * math.log(p) + (1.0 - score) * math.log(1.0 - p)
        return total
