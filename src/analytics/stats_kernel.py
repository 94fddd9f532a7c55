"""
Statistics kernel — numeric primitives written from first principles.

Every function is total over real-world noisy input: degenerate cases
(too few samples, zero variance, zero standard error, mismatched
lengths) resolve to defined fallback values instead of raising.

    mean, sample_variance, std_dev     unbiased (n−1) estimators
    pearson, spearman                  product-moment / rank correlation
    welch_t_test                       t and Welch–Satterthwaite df
    cohens_d                           pooled-SD effect size
    t_distribution_cdf                 Student's t via I_x(a, b)
    two_tailed_p_value                 2·(1 − CDF(|t|, df))

The t-distribution is evaluated through the regularized incomplete beta
function (Lentz continued fraction) and a Lanczos log-gamma, so no
statistics library is needed at runtime.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

# Continued-fraction controls for the incomplete beta function
BETA_MAX_ITERATIONS = 200
BETA_EPSILON = 3e-14
BETA_FPMIN = 1e-300

# Lanczos approximation, g = 7, n = 9
_LANCZOS_G = 7
_LANCZOS_COEFFS = (
    0.99999999999980993,
    676.5203681218851,
    -1259.1392167224028,
    771.32342877765313,
    -176.61502916214059,
    12.507343278686905,
    -0.13857109526572012,
    9.9843695780195716e-6,
    1.5056327351493116e-7,
)


# ─── Descriptive ────────────────────────────────────────────

def mean(xs: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    values = list(xs)
    if not values:
        return 0.0
    return math.fsum(values) / len(values)


def sample_variance(xs: Sequence[float], mu: Optional[float] = None) -> float:
    """Unbiased variance (n−1 denominator). Defined as 0 when n < 2."""
    values = list(xs)
    n = len(values)
    if n < 2:
        return 0.0
    if mu is None:
        mu = mean(values)
    return math.fsum((x - mu) ** 2 for x in values) / (n - 1)


def std_dev(xs: Sequence[float], mu: Optional[float] = None) -> float:
    return math.sqrt(sample_variance(xs, mu))


# ─── Correlation ────────────────────────────────────────────

def pearson(x: Sequence[float], y: Sequence[float]) -> float:
    """Product-moment correlation.

    Returns 0 for mismatched or empty sequences and when either side has
    zero variance.
    """
    xs, ys = list(x), list(y)
    n = len(xs)
    if n == 0 or n != len(ys):
        return 0.0
    mx, my = mean(xs), mean(ys)
    sxy = math.fsum((a - mx) * (b - my) for a, b in zip(xs, ys))
    sxx = math.fsum((a - mx) ** 2 for a in xs)
    syy = math.fsum((b - my) ** 2 for b in ys)
    if sxx == 0 or syy == 0:
        return 0.0
    r = sxy / math.sqrt(sxx * syy)
    # Rounding can push |r| a hair past 1
    return max(-1.0, min(1.0, r))


def rank(xs: Sequence[float]) -> List[float]:
    """1-based ranks, ties receive the average of their positions."""
    values = list(xs)
    order = sorted(range(len(values)), key=lambda i: values[i])
    ranks = [0.0] * len(values)
    i = 0
    while i < len(order):
        j = i
        while j + 1 < len(order) and values[order[j + 1]] == values[order[i]]:
            j += 1
        avg = (i + j) / 2 + 1
        for k in range(i, j + 1):
            ranks[order[k]] = avg
        i = j + 1
    return ranks


def spearman(x: Sequence[float], y: Sequence[float]) -> float:
    """Rank correlation: Pearson over average ranks."""
    xs, ys = list(x), list(y)
    if not xs or len(xs) != len(ys):
        return 0.0
    return pearson(rank(xs), rank(ys))


def correlation_p_value(r: float, n: int) -> float:
    """Two-tailed p-value for H0: ρ = 0 with df = n − 2."""
    if n < 3:
        return 1.0
    if abs(r) >= 1.0:
        return 0.0
    t = r * math.sqrt((n - 2) / (1 - r * r))
    return two_tailed_p_value(t, n - 2)


# ─── Hypothesis tests ───────────────────────────────────────

def welch_t_test(mean1: float, mean2: float, var1: float, var2: float,
                 n1: int, n2: int) -> Tuple[float, float]:
    """Welch's t statistic and Welch–Satterthwaite degrees of freedom.

    Zero standard error gives (0, 1). Degrees of freedom are floored at 1.
    """
    if n1 <= 0 or n2 <= 0:
        return 0.0, 1.0
    a = var1 / n1
    b = var2 / n2
    se2 = a + b
    if se2 <= 0:
        return 0.0, 1.0
    t = (mean1 - mean2) / math.sqrt(se2)

    denom = 0.0
    if n1 > 1:
        denom += a * a / (n1 - 1)
    if n2 > 1:
        denom += b * b / (n2 - 1)
    df = se2 * se2 / denom if denom > 0 else 1.0
    return t, max(1.0, df)


def cohens_d(mean1: float, mean2: float, var1: float, var2: float,
             n1: int, n2: int) -> float:
    """Standardised mean difference (mean1 − mean2) / pooled SD."""
    pooled_df = n1 + n2 - 2
    if pooled_df < 1:
        return 0.0
    pooled_var = ((n1 - 1) * var1 + (n2 - 1) * var2) / pooled_df
    if pooled_var <= 0:
        return 0.0
    return (mean1 - mean2) / math.sqrt(pooled_var)


# ─── Special functions ──────────────────────────────────────

def log_gamma(x: float) -> float:
    """ln Γ(x) for x > 0 (reflection below 0.5, Lanczos otherwise)."""
    if x < 0.5:
        # Γ(x)Γ(1−x) = π / sin(πx)
        return math.log(math.pi / abs(math.sin(math.pi * x))) - log_gamma(1 - x)
    x -= 1
    acc = _LANCZOS_COEFFS[0]
    for i in range(1, _LANCZOS_G + 2):
        acc += _LANCZOS_COEFFS[i] / (x + i)
    t = x + _LANCZOS_G + 0.5
    return 0.5 * math.log(2 * math.pi) + (x + 0.5) * math.log(t) - t + math.log(acc)


def _beta_continued_fraction(a: float, b: float, x: float) -> float:
    """Modified Lentz evaluation of the incomplete-beta continued fraction."""
    qab = a + b
    qap = a + 1
    qam = a - 1
    c = 1.0
    d = 1 - qab * x / qap
    if abs(d) < BETA_FPMIN:
        d = BETA_FPMIN
    d = 1 / d
    h = d
    for m in range(1, BETA_MAX_ITERATIONS + 1):
        m2 = 2 * m
        aa = m * (b - m) * x / ((qam + m2) * (a + m2))
        d = 1 + aa * d
        if abs(d) < BETA_FPMIN:
            d = BETA_FPMIN
        c = 1 + aa / c
        if abs(c) < BETA_FPMIN:
            c = BETA_FPMIN
        d = 1 / d
        h *= d * c

        aa = -(a + m) * (qab + m) * x / ((a + m2) * (qap + m2))
        d = 1 + aa * d
        if abs(d) < BETA_FPMIN:
            d = BETA_FPMIN
        c = 1 + aa / c
        if abs(c) < BETA_FPMIN:
            c = BETA_FPMIN
        d = 1 / d
        delta = d * c
        h *= delta
        if abs(delta - 1) < BETA_EPSILON:
            break
    return h


def regularized_incomplete_beta(x: float, a: float, b: float) -> float:
    """I_x(a, b) for 0 ≤ x ≤ 1, a, b > 0."""
    if x <= 0:
        return 0.0
    if x >= 1:
        return 1.0
    ln_front = (log_gamma(a + b) - log_gamma(a) - log_gamma(b)
                + a * math.log(x) + b * math.log(1 - x))
    front = math.exp(ln_front)
    # Use the symmetry relation where the fraction converges faster
    if x < (a + 1) / (a + b + 2):
        return front * _beta_continued_fraction(a, b, x) / a
    return 1 - front * _beta_continued_fraction(b, a, 1 - x) / b


def t_distribution_cdf(t: float, df: float) -> float:
    """P(T ≤ t) for Student's t with df degrees of freedom."""
    if df <= 0:
        raise ValueError(f"degrees of freedom must be positive, got {df}")
    if math.isinf(t):
        return 1.0 if t > 0 else 0.0
    x = df / (df + t * t)
    tail = 0.5 * regularized_incomplete_beta(x, df / 2, 0.5)
    cdf = 1 - tail if t >= 0 else tail
    return min(1.0, max(0.0, cdf))


def two_tailed_p_value(t: float, df: float) -> float:
    p = 2 * (1 - t_distribution_cdf(abs(t), df))
    return min(1.0, max(0.0, p))
