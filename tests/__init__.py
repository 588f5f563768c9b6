"""
Test Suite for optionscan

This package contains unit tests for the pricing engine, market data layer,
opportunity screener and CLI, organized by module.

Test modules:
    - test_pricing: Black-Scholes pricing, Greeks, IV, expected move, strikes
    - test_quote: Quote request validation and response shape
    - test_risk: Position risk flag
    - test_rate_limiter: Token bucket limiter
    - test_market_data: Market data models, static and Finnhub providers
    - test_chain_validator: Option chain hygiene
    - test_screener: Candidate metrics, filtering, ranking and full scans
    - test_cli: Configuration, environment and CLI commands

Run all tests:
    pytest tests/ -v

Run with coverage:
    pytest tests/ --cov=optionscan --cov-report=term-missing
"""
