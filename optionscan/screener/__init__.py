"""
Opportunity Screener Module

Scans a universe of underlyings for covered-call and LEAPS opportunities,
scores each contract by annualized return and returns the best matches.

Components:
    - criteria: ScanMode, ScreenerCriteria, ModeSettings and default universes
    - candidates: vectorized candidate selection, pricing, metrics and ranking
    - results: ScreenerCandidate, ScreenerResult and the ScanResult envelope
    - sample_data: seeded synthetic fallback
    - scanner: OpportunityScreener and scan_opportunities()

Usage:
    from optionscan.screener import scan_opportunities

    result = scan_opportunities(
        'covered_calls',
        universe=['SOFI', 'F', 'NIO'],
        criteria={'maxDelta': 0.30, 'minPremium': 0.10, 'minAnnualizedReturn': 15},
        provider=provider,
    )
    if result.is_synthetic:
        print("No live data; showing sample output")
"""

from optionscan.screener.criteria import (
    CriteriaError,
    ScanMode,
    ScreenerCriteria,
    ModeSettings,
    MODE_SETTINGS,
    get_mode_settings,
    LOW_PRICE_UNIVERSE,
    LEAPS_UNIVERSE,
)

from optionscan.screener.results import (
    ScreenerCandidate,
    ScreenerResult,
    ScanResult,
)

from optionscan.screener.sample_data import (
    SyntheticSampleGenerator,
    DEFAULT_SAMPLE_SEED,
)

from optionscan.screener.scanner import (
    OpportunityScreener,
    scan_opportunities,
)

__all__ = [
    # Criteria and modes
    "CriteriaError",
    "ScanMode",
    "ScreenerCriteria",
    "ModeSettings",
    "MODE_SETTINGS",
    "get_mode_settings",
    "LOW_PRICE_UNIVERSE",
    "LEAPS_UNIVERSE",
    # Results
    "ScreenerCandidate",
    "ScreenerResult",
    "ScanResult",
    # Synthetic fallback
    "SyntheticSampleGenerator",
    "DEFAULT_SAMPLE_SEED",
    # Scanning
    "OpportunityScreener",
    "scan_opportunities",
]
