"""
Tests for the Market Data Layer

Tests the chain models, the static provider and the Finnhub provider. HTTP
is served by httpx.MockTransport so no network access is needed.
"""

import json
from datetime import date

import httpx
import numpy as np
import pytest

from optionscan.data.data_manager import (
    MarketDataError,
    QuotaExceededError,
    RateLimitedError,
    StaticMarketDataProvider,
    UpstreamDataUnavailable,
    UpstreamRateLimitError,
)
from optionscan.data.finnhub_client import FinnhubProvider, compute_backoff
from optionscan.data.market_data import (
    CHAIN_COLUMNS,
    ExpirationChain,
    OptionContract,
    Quote,
    chain_to_frame,
    parse_date,
)
from optionscan.data.rate_limiter import TokenBucketRateLimiter
from tests.test_rate_limiter import FakeClock


CHAIN_PAYLOAD = {
    "code": "SOFI",
    "data": [
        {
            "expirationDate": "2025-01-31",
            "options": {
                "CALL": [
                    {"strike": 9, "bid": 0.30, "ask": 0.35, "lastPrice": 0.32,
                     "impliedVolatility": 0.55, "openInterest": 1200, "volume": 80},
                    {"strike": 10, "bid": 0.10, "ask": 0.12, "lastPrice": 0.11},
                ],
                "PUT": [
                    {"strike": 8, "bid": 0.20, "ask": 0.25, "lastPrice": 0.22},
                ],
            },
        },
        {"expirationDate": "2025-02-21", "options": {"CALL": [], "PUT": []}},
    ],
}


# =============================================================================
# Models
# =============================================================================

class TestModels:
    def test_parse_date(self):
        assert parse_date("2025-01-31") == date(2025, 1, 31)
        assert parse_date("2025-01-31T00:00:00") == date(2025, 1, 31)
        assert parse_date(date(2025, 1, 31)) == date(2025, 1, 31)
        with pytest.raises(ValueError):
            parse_date(None)

    def test_quote_has_price(self):
        assert Quote("SOFI", 8.5).has_price
        assert not Quote("SOFI", None).has_price
        assert not Quote("SOFI", 0.0).has_price

    def test_contract_from_camel_case(self):
        contract = OptionContract.from_dict({
            "strike": "9.5", "bid": 0.3, "lastPrice": 0.32,
            "impliedVolatility": 0.5, "openInterest": "1200",
        })
        assert contract.strike == 9.5
        assert contract.last_price == 0.32
        assert contract.implied_volatility == 0.5
        assert contract.open_interest == 1200
        assert contract.ask is None

    def test_contract_bad_numbers_become_none(self):
        contract = OptionContract.from_dict({"strike": 9, "bid": "n/a", "ask": float("inf")})
        assert contract.bid is None
        assert contract.ask is None

    def test_expiration_chain(self):
        chain = ExpirationChain.from_dict(CHAIN_PAYLOAD["data"][0])
        assert chain.expiration_date == date(2025, 1, 31)
        assert len(chain.calls) == 2
        assert len(chain.puts) == 1
        assert chain.days_to_expiry(date(2025, 1, 2)) == 29
        assert not chain.is_empty
        assert ExpirationChain.from_dict(CHAIN_PAYLOAD["data"][1]).is_empty

    def test_chain_to_frame(self):
        chain = [ExpirationChain.from_dict(e) for e in CHAIN_PAYLOAD["data"]]
        df = chain_to_frame("SOFI", chain, as_of=date(2025, 1, 2))

        assert list(df.columns) == CHAIN_COLUMNS
        assert len(df) == 3
        assert set(df["option_type"]) == {"call", "put"}
        assert (df["days_to_expiry"] == 29).all()
        assert df["expiration"].iloc[0] == date(2025, 1, 31)
        assert np.isnan(df.loc[df["strike"] == 10, "implied_volatility"].iloc[0])

    def test_chain_to_frame_empty(self):
        df = chain_to_frame("SOFI", [], as_of=date(2025, 1, 2))
        assert df.empty
        assert list(df.columns) == CHAIN_COLUMNS


# =============================================================================
# Static Provider
# =============================================================================

class TestStaticProvider:
    @pytest.fixture
    def provider(self):
        return StaticMarketDataProvider({
            "sofi": {"quote": {"c": 8.5, "h": 8.7, "l": 8.3, "pc": 8.4, "dp": 1.19},
                     "chain": CHAIN_PAYLOAD["data"]},
            "F": {"quote": {"price": 12.8}},
            "BAD": {"error": "delisted"},
        })

    def test_quote(self, provider):
        quote = provider.get_quote("SOFI")
        assert quote.symbol == "SOFI"
        assert quote.price == 8.5
        assert quote.previous_close == 8.4
        assert quote.change_percent == 1.19

    def test_quote_price_alias(self, provider):
        assert provider.get_quote("f").price == 12.8

    def test_chain(self, provider):
        chain = provider.get_option_chain("SOFI")
        assert len(chain) == 2
        assert provider.get_option_chain("F") == []

    def test_unknown_symbol(self, provider):
        with pytest.raises(UpstreamDataUnavailable) as exc:
            provider.get_quote("XYZ")
        assert exc.value.symbol == "XYZ"

    def test_error_entry(self, provider):
        with pytest.raises(UpstreamDataUnavailable) as exc:
            provider.get_quote("BAD")
        assert exc.value.reason == "delisted"

    def test_malformed_quote_field(self):
        provider = StaticMarketDataProvider({"SOFI": {"quote": {"c": "n/a"}}})
        with pytest.raises(UpstreamDataUnavailable) as exc:
            provider.get_quote("SOFI")
        assert exc.value.symbol == "SOFI"
        assert "malformed" in exc.value.reason

    def test_request_count(self, provider):
        provider.get_quote("SOFI")
        provider.get_option_chain("SOFI")
        assert provider.request_count == 2

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "market.yaml"
        path.write_text("SOFI:\n  quote: {c: 8.5}\n  chain: []\n")
        provider = StaticMarketDataProvider.from_file(path)
        assert provider.symbols == ["SOFI"]
        assert provider.source_name == "static:market.yaml"

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "market.json"
        path.write_text(json.dumps({"F": {"quote": {"c": 12.8}}}))
        assert StaticMarketDataProvider.from_file(path).get_quote("F").price == 12.8

    def test_from_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            StaticMarketDataProvider.from_file(tmp_path / "missing.yaml")

    def test_from_file_not_mapping(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- SOFI\n- F\n")
        with pytest.raises(MarketDataError):
            StaticMarketDataProvider.from_file(path)


# =============================================================================
# Finnhub Provider
# =============================================================================

def make_provider(handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    sleeps = []
    provider = FinnhubProvider(
        api_key="test-key",
        client=client,
        sleep=sleeps.append,
        **kwargs,
    )
    return provider, sleeps


class TestFinnhubProvider:
    def test_quote_request(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"c": 8.5, "h": 8.7, "l": 8.3, "pc": 8.4, "dp": 1.19})

        provider, _ = make_provider(handler)
        quote = provider.get_quote("sofi")

        assert quote.price == 8.5
        assert quote.symbol == "SOFI"
        assert seen[0].url.path.endswith("/quote")
        assert seen[0].url.params["symbol"] == "SOFI"
        assert seen[0].headers["X-Finnhub-Token"] == "test-key"

    def test_quote_without_price(self):
        provider, _ = make_provider(lambda r: httpx.Response(200, json={"c": 0, "d": None}))
        assert not provider.get_quote("ZZZ").has_price

    def test_option_chain(self):
        def handler(request):
            assert request.url.path.endswith("/stock/option-chain")
            return httpx.Response(200, json=CHAIN_PAYLOAD)

        provider, _ = make_provider(handler)
        chain = provider.get_option_chain("SOFI")
        assert [c.expiration_date for c in chain] == [date(2025, 1, 31), date(2025, 2, 21)]

    def test_option_chain_missing_data(self):
        provider, _ = make_provider(lambda r: httpx.Response(200, json={}))
        assert provider.get_option_chain("SOFI") == []

    def test_malformed_expiration_skipped(self):
        payload = {"data": [{"expirationDate": "not-a-date"}, CHAIN_PAYLOAD["data"][0]]}
        provider, _ = make_provider(lambda r: httpx.Response(200, json=payload))
        assert len(provider.get_option_chain("SOFI")) == 1

    def test_429_raises_rate_limited(self):
        provider, sleeps = make_provider(
            lambda r: httpx.Response(429, headers={"Retry-After": "30"})
        )
        with pytest.raises(RateLimitedError) as exc:
            provider.get_quote("SOFI")
        assert exc.value.retry_after == 30.0
        assert exc.value.status_code == 429
        assert sleeps == []

    def test_402_raises_quota_exceeded(self):
        provider, _ = make_provider(lambda r: httpx.Response(402))
        with pytest.raises(QuotaExceededError) as exc:
            provider.get_option_chain("SOFI")
        assert isinstance(exc.value, UpstreamRateLimitError)
        assert "try again later" in str(exc.value)

    def test_404_is_symbol_unavailable(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        provider, _ = make_provider(handler)
        with pytest.raises(UpstreamDataUnavailable) as exc:
            provider.get_quote("NOPE")
        assert "404" in exc.value.reason
        assert len(calls) == 1

    def test_5xx_retried_then_succeeds(self):
        responses = iter([httpx.Response(503), httpx.Response(502), httpx.Response(200, json={"c": 3.2})])
        provider, sleeps = make_provider(lambda r: next(responses))

        assert provider.get_quote("PLUG").price == 3.2
        assert sleeps == [0.5, 1.0]

    def test_5xx_exhausts_attempts(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        provider, sleeps = make_provider(handler)
        with pytest.raises(UpstreamDataUnavailable):
            provider.get_quote("PLUG")
        assert len(calls) == 3
        assert sleeps == [0.5, 1.0]

    def test_transport_error_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"c": 12.8})

        provider, sleeps = make_provider(handler)
        assert provider.get_quote("F").price == 12.8
        assert sleeps == [0.5]

    def test_invalid_json(self):
        provider, _ = make_provider(lambda r: httpx.Response(200, content=b"<html>"))
        with pytest.raises(UpstreamDataUnavailable):
            provider.get_quote("F")

    def test_context_manager_keeps_injected_client_open(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
        with FinnhubProvider(api_key="k", client=client) as provider:
            assert provider.source_name == "finnhub"
        assert not client.is_closed

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("FINNHUB_API_KEY", "env-key")
        provider = FinnhubProvider(client=httpx.Client())
        assert provider.is_configured
        assert provider._api_key == "env-key"

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("FINNHUB_API_KEY", raising=False)
        assert not FinnhubProvider(client=httpx.Client()).is_configured

    def test_rate_limiter_wait_is_bounded(self):
        clock = FakeClock()
        limiter = TokenBucketRateLimiter(rate=1, capacity=1, clock=clock, sleep=clock.sleep)
        assert limiter.try_acquire()
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"c": 8.5})

        provider, _ = make_provider(handler, rate_limiter=limiter, acquire_timeout=0.1)
        with pytest.raises(UpstreamDataUnavailable) as exc:
            provider.get_quote("SOFI")
        assert "rate limit" in exc.value.reason
        assert calls == []
        assert clock.sleeps == []

    def test_rate_limiter_waits_without_timeout(self):
        clock = FakeClock()
        limiter = TokenBucketRateLimiter(rate=1, capacity=1, clock=clock, sleep=clock.sleep)
        assert limiter.try_acquire()

        provider, _ = make_provider(lambda r: httpx.Response(200, json={"c": 8.5}), rate_limiter=limiter)
        assert provider.get_quote("SOFI").price == 8.5
        assert clock.sleeps == [1.0]


class TestBackoff:
    def test_exponential(self):
        assert [compute_backoff(n) for n in (1, 2, 3, 4)] == [0.5, 1.0, 2.0, 4.0]

    def test_capped(self):
        assert compute_backoff(10) == 10.0
