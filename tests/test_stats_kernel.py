"""
Tests for the hand-written statistics kernel.

scipy.stats is used only as a reference oracle for the t-distribution,
incomplete beta and log-gamma values.
"""
import math

import numpy as np
import pytest
from scipy import special as sp_special
from scipy import stats as sp_stats

from analytics import stats_kernel as sk


# ─── Descriptive ──────────────────────────────────────────────


class TestDescriptive:

    def test_mean(self):
        assert sk.mean([1.0, 2.0, 3.0, 4.0]) == 2.5

    def test_mean_empty_is_zero(self):
        assert sk.mean([]) == 0.0

    def test_sample_variance_matches_numpy_ddof1(self):
        xs = [2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]
        assert sk.sample_variance(xs) == pytest.approx(np.var(xs, ddof=1))

    def test_variance_uses_supplied_mean(self):
        xs = [1.0, 3.0]
        assert sk.sample_variance(xs, 2.0) == pytest.approx(2.0)

    @pytest.mark.parametrize("xs", [[], [5.0]])
    def test_variance_short_sequence_is_zero(self, xs):
        assert sk.sample_variance(xs) == 0.0

    def test_std_dev(self):
        assert sk.std_dev([1.0, 3.0]) == pytest.approx(math.sqrt(2.0))


# ─── Correlation ──────────────────────────────────────────────


class TestPearson:

    def test_perfect_positive(self):
        assert sk.pearson([1, 2, 3, 4], [2, 4, 6, 8]) == pytest.approx(1.0)

    def test_perfect_negative(self):
        assert sk.pearson([1, 2, 3, 4], [8, 6, 4, 2]) == pytest.approx(-1.0)

    def test_matches_numpy(self):
        rng = np.random.default_rng(42)
        x = rng.normal(size=40)
        y = 0.5 * x + rng.normal(size=40)
        assert sk.pearson(x, y) == pytest.approx(np.corrcoef(x, y)[0, 1], abs=1e-12)

    def test_zero_variance_weight_gives_zero(self):
        """Flat weight never correlates with anything."""
        rng = np.random.default_rng(7)
        flat = [80.0] * 25
        for _ in range(5):
            other = rng.normal(size=25)
            assert sk.pearson(flat, other) == 0.0
            assert sk.pearson(other, flat) == 0.0

    def test_mismatched_lengths_gives_zero(self):
        assert sk.pearson([1, 2, 3], [1, 2]) == 0.0

    def test_empty_gives_zero(self):
        assert sk.pearson([], []) == 0.0


class TestSpearman:

    def test_average_ranks_for_ties(self):
        assert sk.rank([10, 20, 20, 30]) == [1.0, 2.5, 2.5, 4.0]

    def test_monotonic_nonlinear_is_one(self):
        x = [1, 2, 3, 4, 5, 6]
        y = [v ** 3 for v in x]
        assert sk.spearman(x, y) == pytest.approx(1.0)

    def test_matches_scipy_with_ties(self):
        x = [1, 2, 2, 3, 5, 5, 5, 8, 9, 10]
        y = [3, 1, 4, 1, 5, 9, 2, 6, 5, 3]
        expected = sp_stats.spearmanr(x, y)[0]
        assert sk.spearman(x, y) == pytest.approx(expected, abs=1e-12)


class TestCorrelationPValue:

    def test_matches_scipy_pearsonr(self):
        rng = np.random.default_rng(3)
        x = rng.normal(size=20)
        y = 0.4 * x + rng.normal(size=20)
        r, p = sp_stats.pearsonr(x, y)
        assert sk.correlation_p_value(sk.pearson(x, y), 20) == pytest.approx(p, rel=1e-6)

    def test_perfect_correlation_p_zero(self):
        assert sk.correlation_p_value(1.0, 10) == 0.0

    def test_too_few_samples_p_one(self):
        assert sk.correlation_p_value(0.9, 2) == 1.0


# ─── Welch / Cohen ────────────────────────────────────────────


class TestWelch:

    def test_identical_groups_t_zero(self):
        t, df = sk.welch_t_test(5.0, 5.0, 2.0, 2.0, 10, 10)
        assert t == pytest.approx(0.0)
        assert df == pytest.approx(18.0)

    def test_zero_standard_error(self):
        assert sk.welch_t_test(5.0, 3.0, 0.0, 0.0, 10, 10) == (0.0, 1.0)

    def test_df_floored_at_one(self):
        _, df = sk.welch_t_test(1.0, 0.0, 1e-12, 50.0, 50, 2)
        assert df >= 1.0

    def test_matches_scipy_welch(self):
        a = [0.2, -0.1, 0.4, 0.3, 0.0, 0.5, 0.1]
        b = [-0.3, -0.4, -0.1, -0.6, -0.2]
        ma, mb = sk.mean(a), sk.mean(b)
        t, df = sk.welch_t_test(ma, mb, sk.sample_variance(a), sk.sample_variance(b), len(a), len(b))
        ref = sp_stats.ttest_ind(a, b, equal_var=False)
        assert t == pytest.approx(ref.statistic, rel=1e-9)
        assert sk.two_tailed_p_value(t, df) == pytest.approx(ref.pvalue, rel=1e-6)


class TestCohensD:

    def test_known_value(self):
        # Pooled SD = 1 → d equals the mean difference
        assert sk.cohens_d(1.5, 1.0, 1.0, 1.0, 10, 10) == pytest.approx(0.5)

    def test_zero_pooled_sd(self):
        assert sk.cohens_d(2.0, 1.0, 0.0, 0.0, 5, 5) == 0.0

    def test_too_few_samples(self):
        assert sk.cohens_d(2.0, 1.0, 1.0, 1.0, 1, 1) == 0.0


# ─── Special functions ────────────────────────────────────────


class TestLogGamma:

    @pytest.mark.parametrize("x", [0.1, 0.3, 0.5, 1.0, 1.5, 2.0, 5.0, 10.5, 50.0])
    def test_matches_math_lgamma(self, x):
        assert sk.log_gamma(x) == pytest.approx(math.lgamma(x), abs=1e-10)


class TestIncompleteBeta:

    @pytest.mark.parametrize("x,a,b", [
        (0.2, 2.0, 3.0), (0.5, 0.5, 0.5), (0.714, 5.0, 0.5), (0.95, 15.0, 0.5), (0.01, 1.0, 4.0),
    ])
    def test_matches_scipy_betainc(self, x, a, b):
        assert sk.regularized_incomplete_beta(x, a, b) == pytest.approx(
            sp_special.betainc(a, b, x), abs=1e-10)

    def test_bounds(self):
        assert sk.regularized_incomplete_beta(0.0, 2, 3) == 0.0
        assert sk.regularized_incomplete_beta(1.0, 2, 3) == 1.0


class TestTDistribution:

    @pytest.mark.parametrize("df", [1, 2, 5, 10, 30, 100, 7.3])
    def test_cdf_at_zero_is_half(self, df):
        assert sk.t_distribution_cdf(0.0, df) == pytest.approx(0.5, abs=1e-12)

    @pytest.mark.parametrize("df", [1, 4, 10, 25.5])
    def test_cdf_monotonic_in_t(self, df):
        prev = -1.0
        for t in np.linspace(-8, 8, 161):
            cur = sk.t_distribution_cdf(float(t), df)
            assert cur >= prev - 1e-15
            prev = cur

    def test_reference_p_value_t2_df10(self):
        """Standard t-table: two-tailed p for t=2, df=10 is 0.0734."""
        assert sk.two_tailed_p_value(2.0, 10) == pytest.approx(0.0734, abs=1e-3)

    @pytest.mark.parametrize("df", [1, 3, 10, 50])
    def test_t_zero_gives_p_one(self, df):
        assert sk.two_tailed_p_value(0.0, df) == pytest.approx(1.0)

    @pytest.mark.parametrize("t,df", [
        (1.0, 1), (2.228, 10), (-2.5, 4), (3.5, 20), (0.7, 7.5), (6.0, 3), (1.96, 1000),
    ])
    def test_matches_scipy_to_four_significant_digits(self, t, df):
        expected = 2 * sp_stats.t.sf(abs(t), df)
        assert sk.two_tailed_p_value(t, df) == pytest.approx(expected, rel=1e-4)
        assert sk.t_distribution_cdf(t, df) == pytest.approx(sp_stats.t.cdf(t, df), rel=1e-4)

    def test_symmetry(self):
        assert sk.t_distribution_cdf(-1.3, 9) == pytest.approx(1 - sk.t_distribution_cdf(1.3, 9))

    def test_invalid_df_raises(self):
        with pytest.raises(ValueError):
            sk.t_distribution_cdf(1.0, 0)
