"""
Unit Tests for Options Pricing Module

This module contains tests for the Black-Scholes pricing functions, Greeks,
implied volatility, expected move and strike ladder.

Test Categories:
    1. Normal Distribution Tests
        - CDF approximation against scipy
        - Symmetry and bounds

    2. Black-Scholes Pricing Tests
        - Known analytical solutions
        - Put-call parity verification
        - Expiration day (T=0) behaviour

    3. Greeks Tests
        - Bounds and call/put relationships
        - Unit conventions (theta per day, vega and rho per 1%)

    4. Vectorized Pricing Tests
        - Agreement with the scalar path
        - Mixed call/put arrays

    5. Implied Volatility, Expected Move and Strike Ladder Tests

References:
    - Hull, J.C. (2018). Options, Futures, and Other Derivatives
    - Abramowitz & Stegun (1964), formula 26.2.17
"""

import math

import numpy as np
import pytest
from scipy.stats import norm

from optionscan.core.pricing import (
    DAYS_PER_YEAR,
    ImpliedVolatilityError,
    black_scholes_price,
    calculate_expected_move,
    calculate_greeks,
    calculate_greeks_vectorized,
    calculate_implied_volatility,
    norm_cdf,
    norm_pdf,
    suggest_strikes,
)


# =============================================================================
# Test Fixtures and Constants
# =============================================================================

# Standard test parameters (1 year ATM)
SPOT = 100.0
STRIKE = 100.0
TIME = 1.0
RATE = 0.05
SIGMA = 0.25

# Tolerances
CDF_TOL = 1e-6
PRICE_TOL = 1e-4
IV_TOL = 1e-4


@pytest.fixture
def standard_params():
    """Standard option parameters for testing."""
    return {
        'S': SPOT,
        'K': STRIKE,
        'T': TIME,
        'r': RATE,
        'sigma': SIGMA
    }


def reference_call(S, K, T, r, sigma):
    """Black-Scholes call using scipy's exact normal CDF."""
    d1 = (np.log(S / K) + (r + 0.5 * sigma ** 2) * T) / (sigma * np.sqrt(T))
    d2 = d1 - sigma * np.sqrt(T)
    return S * norm.cdf(d1) - K * np.exp(-r * T) * norm.cdf(d2)


# =============================================================================
# Normal Distribution Tests
# =============================================================================

class TestNormalDistribution:
    """Tests for norm_cdf and norm_pdf."""

    @pytest.mark.parametrize("x", [-6.0, -3.0, -1.5, -0.325, 0.0, 0.075, 0.5, 1.0, 2.5, 6.0])
    def test_cdf_matches_scipy(self, x):
        """Approximation error stays below 1e-6."""
        assert abs(norm_cdf(x) - norm.cdf(x)) < CDF_TOL

    def test_cdf_at_zero(self):
        """N(0) is one half."""
        assert abs(norm_cdf(0.0) - 0.5) < CDF_TOL

    def test_cdf_symmetry(self):
        """N(x) + N(-x) = 1."""
        for x in (0.1, 0.7, 1.9, 3.3):
            assert abs(norm_cdf(x) + norm_cdf(-x) - 1.0) < 1e-12

    def test_cdf_vectorized(self):
        """Array input returns an array of the same shape."""
        x = np.array([-1.0, 0.0, 1.0])
        result = norm_cdf(x)
        assert isinstance(result, np.ndarray)
        assert result.shape == (3,)
        np.testing.assert_allclose(result, norm.cdf(x), atol=CDF_TOL)

    def test_cdf_scalar_returns_float(self):
        assert isinstance(norm_cdf(0.3), float)

    def test_pdf_matches_scipy(self):
        for x in (-2.0, 0.0, 0.325, 1.7):
            assert abs(norm_pdf(x) - norm.pdf(x)) < 1e-12


# =============================================================================
# Black-Scholes Pricing Tests
# =============================================================================

class TestBlackScholesPrice:
    """Tests for black_scholes_price and calculate_greeks prices."""

    def test_atm_one_year_call(self, standard_params):
        """ATM 1-year 25% vol call at 5% rate prices at about $12.34."""
        # d1 = 0.325, d2 = 0.075
        greeks = calculate_greeks(**standard_params, option_type='call')

        assert abs(greeks['price'] - 12.34) < 0.05
        assert 0.60 <= greeks['delta'] <= 0.64
        assert round(greeks['delta'], 3) == 0.627

    def test_call_matches_reference(self, standard_params):
        """Price agrees with the scipy-based closed form."""
        price = black_scholes_price(**standard_params, option_type='call')
        assert abs(price - reference_call(SPOT, STRIKE, TIME, RATE, SIGMA)) < PRICE_TOL

    def test_option_type_case_insensitive(self, standard_params):
        upper = black_scholes_price(**standard_params, option_type='CALL')
        lower = black_scholes_price(**standard_params, option_type='call')
        assert upper == lower

    def test_invalid_option_type(self, standard_params):
        with pytest.raises(ValueError):
            black_scholes_price(**standard_params, option_type='straddle')

    def test_call_otm_small_positive(self):
        price = black_scholes_price(S=80, K=100, T=0.25, r=0.05, sigma=0.20)
        assert 0 < price < 5

    def test_call_itm_above_intrinsic(self):
        price = black_scholes_price(S=120, K=100, T=0.25, r=0.05, sigma=0.20)
        assert price >= 20 - PRICE_TOL

    @pytest.mark.parametrize("S,K,expected_call,expected_put", [
        (110, 100, 10.0, 0.0),
        (90, 100, 0.0, 10.0),
        (100, 100, 0.0, 0.0),
    ])
    def test_expiration_day_is_intrinsic(self, S, K, expected_call, expected_put):
        """At T=0 prices equal intrinsic value."""
        call = black_scholes_price(S=S, K=K, T=0.0, r=RATE, sigma=SIGMA, option_type='call')
        put = black_scholes_price(S=S, K=K, T=0.0, r=RATE, sigma=SIGMA, option_type='put')
        assert abs(call - expected_call) < PRICE_TOL
        assert abs(put - expected_put) < PRICE_TOL


class TestPutCallParity:
    """C - P = S - K*e^(-rT)."""

    @pytest.mark.parametrize("spot,strike,time,rate,sigma", [
        (100, 100, 1.0, 0.05, 0.25),
        (50, 60, 0.5, 0.03, 0.40),
        (200, 180, 2.0, 0.01, 0.15),
        (15, 17, 30 / 365, 0.05, 0.60),
    ])
    def test_put_call_parity(self, spot, strike, time, rate, sigma):
        call = black_scholes_price(spot, strike, time, rate, sigma, 'call')
        put = black_scholes_price(spot, strike, time, rate, sigma, 'put')

        parity = spot - strike * math.exp(-rate * time)
        assert abs((call - put) - parity) < 1e-3


# =============================================================================
# Greeks Tests
# =============================================================================

class TestGreeks:
    """Tests for calculate_greeks."""

    def test_returns_all_greeks(self, standard_params):
        greeks = calculate_greeks(**standard_params)
        assert set(greeks) == {'price', 'delta', 'gamma', 'theta', 'vega', 'rho'}

    def test_delta_bounds(self):
        """Call delta in [0, 1], put delta in [-1, 0]."""
        for S in (50, 90, 100, 110, 200):
            call = calculate_greeks(S, 100, 0.5, 0.05, 0.3, 'call')
            put = calculate_greeks(S, 100, 0.5, 0.05, 0.3, 'put')
            assert 0.0 <= call['delta'] <= 1.0
            assert -1.0 <= put['delta'] <= 0.0

    @pytest.mark.parametrize("S,K,T,sigma", [
        (1e6, 0.01, 1.0, 0.25),          # deep in the money call
        (0.01, 1e6, 1.0, 0.25),          # deep out of the money call
        (100.0, 100.0, 1.0, 5.0),        # maximum volatility
        (100.0, 120.0, 1825 / DAYS_PER_YEAR, 0.8),
        (100.0, 100.0, 1 / DAYS_PER_YEAR, 1e-4),
        (100.0, 90.0, 1 / DAYS_PER_YEAR, 1e-4),
    ])
    @pytest.mark.parametrize("option_type", ['call', 'put'])
    def test_delta_bounds_extreme_inputs(self, S, K, T, sigma, option_type):
        greeks = calculate_greeks(S, K, T, RATE, sigma, option_type)
        vectorized = calculate_greeks_vectorized(
            np.array([S]), np.array([K]), np.array([T]), RATE, sigma, option_type
        )

        for delta in (greeks['delta'], float(vectorized['delta'][0])):
            assert math.isfinite(delta)
            if option_type == 'call':
                assert 0.0 <= delta <= 1.0
            else:
                assert -1.0 <= delta <= 0.0
        assert all(math.isfinite(v) for v in greeks.values())

    def test_call_put_delta_relationship(self, standard_params):
        """Call delta - put delta = 1."""
        call = calculate_greeks(**standard_params, option_type='call')
        put = calculate_greeks(**standard_params, option_type='put')
        assert abs(call['delta'] - put['delta'] - 1.0) < 1e-9

    def test_gamma_and_vega_same_for_call_put(self, standard_params):
        call = calculate_greeks(**standard_params, option_type='call')
        put = calculate_greeks(**standard_params, option_type='put')
        assert abs(call['gamma'] - put['gamma']) < 1e-12
        assert abs(call['vega'] - put['vega']) < 1e-12

    def test_theta_is_per_day(self, standard_params):
        """Theta is the annual decay divided by 365."""
        greeks = calculate_greeks(**standard_params, option_type='call')
        d1 = 0.325
        d2 = 0.075
        annual = (-(SPOT * norm.pdf(d1) * SIGMA) / (2 * math.sqrt(TIME))
                  - RATE * STRIKE * math.exp(-RATE * TIME) * norm.cdf(d2))
        assert abs(greeks['theta'] - annual / DAYS_PER_YEAR) < 1e-4
        assert greeks['theta'] < 0

    def test_vega_is_per_percent(self, standard_params):
        """A 1 point vol move changes the price by about vega."""
        greeks = calculate_greeks(**standard_params)
        bumped = black_scholes_price(SPOT, STRIKE, TIME, RATE, SIGMA + 0.01)
        assert abs((bumped - greeks['price']) - greeks['vega']) < 0.01

    def test_rho_is_per_percent(self, standard_params):
        greeks = calculate_greeks(**standard_params)
        bumped = black_scholes_price(SPOT, STRIKE, TIME, RATE + 0.01, SIGMA)
        assert abs((bumped - greeks['price']) - greeks['rho']) < 0.01

    def test_call_price_decreases_with_strike(self):
        prices = [black_scholes_price(100, K, 0.5, 0.05, 0.3, 'call') for K in (80, 90, 100, 110, 120)]
        assert all(a > b for a, b in zip(prices, prices[1:]))

    def test_put_price_increases_with_strike(self):
        prices = [black_scholes_price(100, K, 0.5, 0.05, 0.3, 'put') for K in (80, 90, 100, 110, 120)]
        assert all(a < b for a, b in zip(prices, prices[1:]))

    def test_price_increases_with_volatility(self):
        prices = [black_scholes_price(100, 105, 0.5, 0.05, v) for v in (0.1, 0.2, 0.4, 0.8)]
        assert all(a < b for a, b in zip(prices, prices[1:]))


class TestExpirationGreeks:
    """Greeks on expiration day (T=0)."""

    def test_itm_call(self):
        greeks = calculate_greeks(110, 100, 0.0, RATE, SIGMA, 'call')
        assert greeks['delta'] == 1.0
        assert greeks['gamma'] == 0.0
        assert greeks['theta'] == 0.0
        assert greeks['vega'] == 0.0
        assert greeks['rho'] == 0.0

    def test_otm_call(self):
        assert calculate_greeks(90, 100, 0.0, RATE, SIGMA, 'call')['delta'] == 0.0

    def test_itm_put(self):
        assert calculate_greeks(90, 100, 0.0, RATE, SIGMA, 'put')['delta'] == -1.0

    def test_otm_put(self):
        assert calculate_greeks(110, 100, 0.0, RATE, SIGMA, 'put')['delta'] == 0.0

    def test_at_the_money(self):
        """Exactly at the money delta is +/-0.5."""
        assert calculate_greeks(100, 100, 0.0, RATE, SIGMA, 'call')['delta'] == 0.5
        assert calculate_greeks(100, 100, 0.0, RATE, SIGMA, 'put')['delta'] == -0.5

    def test_no_nan_or_inf(self):
        greeks = calculate_greeks(100, 100, 0.0, RATE, SIGMA, 'call')
        assert all(math.isfinite(v) for v in greeks.values())


# =============================================================================
# Vectorized Pricing Tests
# =============================================================================

class TestVectorizedGreeks:
    """Tests for calculate_greeks_vectorized."""

    def test_matches_scalar(self):
        spots = np.array([90.0, 100.0, 110.0])
        strikes = np.array([100.0, 100.0, 100.0])
        times = np.array([0.25, 0.5, 1.0])

        result = calculate_greeks_vectorized(spots, strikes, times, RATE, SIGMA, 'call')

        for i in range(3):
            scalar = calculate_greeks(spots[i], strikes[i], times[i], RATE, SIGMA, 'call')
            for name, value in scalar.items():
                assert abs(result[name][i] - value) < 1e-12

    def test_mixed_option_types(self):
        types = np.array(['call', 'put', 'C', 'p'])
        result = calculate_greeks_vectorized(100.0, 100.0, 0.5, RATE, SIGMA, types)

        assert result['delta'][0] > 0
        assert result['delta'][1] < 0
        assert result['delta'][2] == result['delta'][0]
        assert result['delta'][3] == result['delta'][1]

    def test_mixed_expired_and_live(self):
        result = calculate_greeks_vectorized(
            np.array([110.0, 110.0]), 100.0, np.array([0.0, 0.5]), RATE, SIGMA, 'call'
        )
        assert result['price'][0] == pytest.approx(10.0)
        assert result['delta'][0] == 1.0
        assert result['price'][1] > 10.0
        assert 0.5 < result['delta'][1] < 1.0

    def test_invalid_type_in_array(self):
        with pytest.raises(ValueError):
            calculate_greeks_vectorized(100.0, 100.0, 0.5, RATE, SIGMA, np.array(['call', 'x']))


# =============================================================================
# Implied Volatility Tests
# =============================================================================

class TestImpliedVolatility:
    """Tests for calculate_implied_volatility."""

    @pytest.mark.parametrize("sigma", [0.15, 0.25, 0.6, 1.2])
    @pytest.mark.parametrize("option_type", ['call', 'put'])
    def test_round_trip(self, sigma, option_type):
        """price -> IV -> price recovers the volatility."""
        price = black_scholes_price(100, 105, 0.5, RATE, sigma, option_type)
        iv = calculate_implied_volatility(price, 100, 105, 0.5, RATE, option_type)
        assert abs(iv - sigma) < IV_TOL

    def test_zero_price_rejected(self):
        with pytest.raises(ImpliedVolatilityError):
            calculate_implied_volatility(0.0, 100, 100, 0.5, RATE)

    def test_expired_rejected(self):
        with pytest.raises(ImpliedVolatilityError):
            calculate_implied_volatility(1.0, 100, 100, 0.0, RATE)

    def test_price_below_intrinsic_rejected(self):
        """A deep ITM call priced below intrinsic has no solution."""
        with pytest.raises(ImpliedVolatilityError):
            calculate_implied_volatility(5.0, 150, 100, 0.5, RATE, 'call')

    def test_price_above_spot_rejected(self):
        with pytest.raises(ImpliedVolatilityError):
            calculate_implied_volatility(150.0, 100, 100, 0.5, RATE, 'call')


# =============================================================================
# Expected Move and Strike Ladder Tests
# =============================================================================

class TestExpectedMove:
    """Tests for calculate_expected_move."""

    def test_one_year(self):
        move = calculate_expected_move(100, 0.25, 365)
        assert move.amount == 25.0
        assert move.percent == 25.0
        assert move.upper_bound == 125.0
        assert move.lower_bound == 75.0

    def test_scales_with_sqrt_time(self):
        move = calculate_expected_move(100, 0.25, 365 / 4)
        assert move.amount == 12.5

    def test_expiration_day(self):
        move = calculate_expected_move(100, 0.25, 0)
        assert move.amount == 0.0
        assert move.upper_bound == move.lower_bound == 100.0

    def test_to_dict_keys(self):
        data = calculate_expected_move(100, 0.25, 30).to_dict()
        assert set(data) == {'amount', 'percent', 'upperBound', 'lowerBound'}


class TestSuggestStrikes:
    """Tests for suggest_strikes."""

    def test_spot_100(self):
        """$3 rungs (2.5% of spot) snapped to $5 collapse to seven strikes."""
        assert suggest_strikes(100) == [85.0, 90.0, 95.0, 100.0, 105.0, 110.0, 115.0]

    def test_spacing_follows_spot_not_increment(self):
        """Rungs stay about 2.5% apart: the ladder spans roughly +/-12.5%."""
        for spot in (100, 160, 240):
            strikes = suggest_strikes(spot)
            assert strikes[0] >= spot * 0.84
            assert strikes[-1] <= spot * 1.16

    def test_low_price_uses_dollar_increment(self):
        strikes = suggest_strikes(20)
        assert strikes == [float(s) for s in range(15, 26)]

    def test_sorted_unique_positive(self):
        for spot in (1.5, 8.0, 49.99, 50.0, 437.25, 3000.0):
            strikes = suggest_strikes(spot)
            assert strikes == sorted(set(strikes))
            assert all(s > 0 for s in strikes)

    def test_very_low_price_drops_non_positive(self):
        strikes = suggest_strikes(2.0)
        assert min(strikes) > 0
        assert 2.0 in strikes

    def test_high_price_interval(self):
        """At $400 the 2.5% interval ($10) exceeds the $5 increment."""
        strikes = suggest_strikes(400)
        assert strikes[0] == 350.0
        assert strikes[-1] == 450.0
        assert len(strikes) == 11
