"""
Command-Line Interface for optionscan

Provides CLI commands for pricing a single option, scanning for covered-call
and LEAPS opportunities, validating scanner configurations and inspecting
the environment.

Usage:
    optionscan price --spot 100 --strike 105 --days 30 --vol 0.3
    optionscan scan covered_calls --symbols SOFI,F,NIO --min-return 15
    optionscan scan leaps --config scanner.yaml --json
    optionscan validate --config scanner.yaml
    optionscan universe leaps

Exit codes:
    0  success
    1  unexpected failure
    2  invalid input (validation or configuration)
    3  market data provider refused service (try again later)
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
import yaml

from optionscan import __version__
from optionscan.cli.config_loader import load_config
from optionscan.cli.config_schema import (
    ConfigValidationError,
    ConfigValidator,
    ProviderType,
    ScannerConfig,
)
from optionscan.cli.environment import (
    Environment,
    EnvironmentSettings,
    configure_logging,
    get_settings,
    set_environment,
)
from optionscan.core.quote import OptionQuoteRequest, ValidationError, quote_option
from optionscan.core.risk import assess_position_risk
from optionscan.data.data_manager import (
    BaseMarketDataProvider,
    MarketDataError,
    StaticMarketDataProvider,
    UpstreamRateLimitError,
)
from optionscan.data.finnhub_client import FinnhubProvider
from optionscan.data.rate_limiter import TokenBucketRateLimiter
from optionscan.screener.criteria import (
    CriteriaError,
    ScanMode,
    ScreenerCriteria,
    get_mode_settings,
)
from optionscan.screener.results import ScanResult
from optionscan.screener.scanner import OpportunityScreener

EXIT_ERROR = 1
EXIT_INVALID_INPUT = 2
EXIT_RATE_LIMITED = 3

MODE_CHOICES = [m.value for m in ScanMode]

console = Console()


def echo(message: str, style: Optional[str] = None, err: bool = False) -> None:
    """Output message using rich."""
    if err:
        Console(stderr=True).print(message, style=style)
    else:
        console.print(message, style=style)


def echo_error(message: str) -> None:
    """Output error message."""
    echo(f"[red]Error:[/red] {message}", err=True)


def echo_success(message: str) -> None:
    """Output success message."""
    echo(f"[green]{message}[/green]")


def echo_warning(message: str) -> None:
    """Output warning message."""
    echo(f"[yellow]Warning:[/yellow] {message}")


@click.group()
@click.option(
    "--env",
    "-e",
    type=click.Choice([e.value for e in Environment]),
    default=None,
    help="Environment to use (default: $OPTIONSCAN_ENV or development)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.version_option(version=__version__, prog_name="optionscan")
@click.pass_context
def cli(ctx: click.Context, env: Optional[str], verbose: bool, quiet: bool) -> None:
    """optionscan - Price options and screen for covered-call and LEAPS trades."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    if env is not None:
        set_environment(Environment(env))
    if verbose:
        configure_logging("DEBUG")


@cli.command()
@click.option("--spot", type=float, required=True, help="Underlying price")
@click.option("--strike", type=float, required=True, help="Strike price")
@click.option("--days", type=int, required=True, help="Calendar days to expiry (0-1825)")
@click.option("--vol", type=float, default=None, help="Annualized volatility, e.g. 0.25 (default: environment setting)")
@click.option("--rate", type=float, default=None, help="Risk-free rate, e.g. 0.05")
@click.option(
    "--type",
    "option_type",
    type=click.Choice(["call", "put"], case_sensitive=False),
    default="call",
    help="Option type",
)
@click.option("--symbol", default=None, help="Ticker symbol (informational)")
@click.option("--json", "as_json", is_flag=True, help="Print the quote as JSON")
@click.pass_context
def price(
    ctx: click.Context,
    spot: float,
    strike: float,
    days: int,
    vol: Optional[float],
    rate: Optional[float],
    option_type: str,
    symbol: Optional[str],
    as_json: bool,
) -> None:
    """Price one option: Greeks, expected move and suggested strikes."""
    settings = get_settings()
    request = OptionQuoteRequest(
        spot_price=spot,
        strike_price=strike,
        days_to_expiry=days,
        option_type=option_type,
        volatility=settings.default_volatility if vol is None else vol,
        risk_free_rate=settings.risk_free_rate if rate is None else rate,
        symbol=symbol,
    )

    try:
        quote = quote_option(request)
    except ValidationError as e:
        if as_json:
            click.echo(json.dumps({"success": False, **e.to_dict()}))
        else:
            echo_error(f"{e} [{e.kind.value}: {e.field}]")
        sys.exit(EXIT_INVALID_INPUT)

    risk = assess_position_risk(option_type, spot, strike, quote.greeks.delta)

    if as_json:
        payload = {"success": True, **quote.to_dict(), "risk": risk.to_dict()}
        click.echo(json.dumps(payload, indent=2))
        return

    _display_quote(quote, risk)


@cli.command()
@click.argument("mode", type=click.Choice(MODE_CHOICES, case_sensitive=False))
@click.option("--symbols", "-s", default=None, help="Comma-separated symbols to scan")
@click.option("--max-delta", type=float, default=None, help="Maximum |delta|")
@click.option("--min-premium", type=float, default=None, help="Minimum premium ($/share)")
@click.option("--min-return", type=float, default=None, help="Minimum annualized return (%)")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Scanner configuration file (YAML or JSON)",
)
@click.option(
    "--data-file",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Use a static market data file instead of the live provider",
)
@click.option("--seed", type=int, default=None, help="Seed for the synthetic fallback")
@click.option("--timeout", type=float, default=None, help="Scan timeout in seconds")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Maximum results")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.option(
    "--csv",
    "csv_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Write results to a CSV file",
)
@click.pass_context
def scan(
    ctx: click.Context,
    mode: str,
    symbols: Optional[str],
    max_delta: Optional[float],
    min_premium: Optional[float],
    min_return: Optional[float],
    config_path: Optional[Path],
    data_file: Optional[Path],
    seed: Optional[int],
    timeout: Optional[float],
    limit: Optional[int],
    as_json: bool,
    csv_path: Optional[Path],
) -> None:
    """Scan for covered-call or LEAPS opportunities."""
    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False) or as_json
    settings = get_settings()
    scan_mode = ScanMode.parse(mode)

    try:
        config = load_config(config_path) if config_path else None

        universe = [s.strip() for s in symbols.split(",") if s.strip()] if symbols else None
        if universe is None and config is not None and config.universe:
            universe = list(config.universe)

        criteria = _build_criteria(scan_mode, config, max_delta, min_premium, min_return)

        overrides: Dict[str, Any] = {}
        if config is not None and config.mode_overrides is not None:
            overrides.update(config.mode_overrides.to_dict())
        if limit is not None:
            overrides["result_cap"] = limit
        # Reject bad overrides before any provider is created
        get_mode_settings(scan_mode).with_overrides(overrides)

        if timeout is None:
            timeout = config.timeout if config is not None and config.timeout else settings.scan_timeout
        if seed is None:
            seed = config.sample_seed if config is not None else settings.sample_seed

        risk_free_rate = config.pricing.risk_free_rate if config else settings.risk_free_rate
        default_volatility = (
            config.pricing.default_volatility if config else settings.default_volatility
        )

        provider, limiter = _build_provider(settings, config, data_file)

        if not quiet:
            echo(f"Scanning [cyan]{scan_mode.value}[/cyan] via {provider.source_name}...")

        with provider:
            screener = OpportunityScreener(
                provider,
                rate_limiter=limiter,
                risk_free_rate=risk_free_rate,
                default_volatility=default_volatility,
                sample_seed=seed,
                mode_overrides=overrides,
            )
            result = screener.scan(scan_mode, criteria, universe=universe, timeout=timeout)

    except (ConfigValidationError, CriteriaError) as e:
        echo_error(str(e))
        for error in getattr(e, "errors", []):
            echo(f"  - {error}", err=True)
        sys.exit(EXIT_INVALID_INPUT)
    except UpstreamRateLimitError as e:
        echo_error(f"{e}")
        sys.exit(EXIT_RATE_LIMITED)
    except (MarketDataError, FileNotFoundError) as e:
        echo_error(f"Scan failed: {e}")
        sys.exit(EXIT_ERROR)

    if csv_path is not None:
        result.to_frame().to_csv(csv_path, index=False)
        if not quiet:
            echo_success(f"Wrote {len(result)} results to {csv_path}")

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    _display_scan(result, verbose=verbose)


@cli.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to scanner configuration file",
)
@click.pass_context
def validate(ctx: click.Context, config: Path) -> None:
    """Validate a scanner configuration file."""
    verbose = ctx.obj.get("verbose", False)

    try:
        echo(f"Validating [cyan]{config}[/cyan]...")

        scanner_config = load_config(config)
        errors = ConfigValidator.validate(scanner_config)

        if errors:
            echo_error("Validation failed with the following errors:")
            for error in errors:
                echo(f"  [red]x[/red] {error}")
            sys.exit(EXIT_INVALID_INPUT)

        echo_success(f"Configuration '{scanner_config.name}' is valid!")

        if verbose:
            _display_config_summary(scanner_config)

    except ConfigValidationError as e:
        echo_error(str(e))
        for error in e.errors:
            echo(f"  - {error}")
        sys.exit(EXIT_INVALID_INPUT)
    except ValueError as e:
        echo_error(f"Validation error: {e}")
        sys.exit(EXIT_INVALID_INPUT)


@cli.command()
def env() -> None:
    """Show current environment configuration."""
    settings = get_settings()

    table = Table(title=f"Environment: {settings.name.value}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Provider", settings.provider_type)
    table.add_row("Data File", settings.data_file or "Not set")
    table.add_row("API Key Variable", settings.api_key_env)
    table.add_row("API Key Set", str(bool(os.environ.get(settings.api_key_env))))
    table.add_row("Requests / Second", f"{settings.requests_per_second:g}")
    table.add_row("Scan Timeout", f"{settings.scan_timeout:g}s" if settings.scan_timeout else "None")
    table.add_row("Risk-Free Rate", f"{settings.risk_free_rate:.2%}")
    table.add_row("Default Volatility", f"{settings.default_volatility:.0%}")
    table.add_row("Log Level", settings.log_level)

    console.print(table)


@cli.command()
@click.argument("mode", type=click.Choice(MODE_CHOICES, case_sensitive=False))
def universe(mode: str) -> None:
    """Show the default universe and constraints of a scan mode."""
    settings = get_mode_settings(mode)
    scanned = settings.default_universe[:settings.max_symbols]

    table = Table(title=f"{ScanMode.parse(mode).value} settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    max_days = "none" if settings.max_days is None else str(settings.max_days)
    table.add_row("Expiry Band (days)", f"{settings.min_days} - {max_days}")
    table.add_row(
        "Price Ceiling",
        "none" if settings.max_stock_price is None else f"${settings.max_stock_price:,.2f}",
    )
    table.add_row("Option Types", ", ".join(settings.option_types))
    table.add_row("Default Max Delta", f"{settings.default_max_delta:g}")
    table.add_row("Result Cap", str(settings.result_cap))
    table.add_row("Symbols Scanned", f"{len(scanned)} of {len(settings.default_universe)}")
    table.add_row("Universe", ", ".join(scanned))

    console.print(table)


def _build_criteria(
    mode: ScanMode,
    config: Optional[ScannerConfig],
    max_delta: Optional[float],
    min_premium: Optional[float],
    min_return: Optional[float],
) -> ScreenerCriteria:
    """Merge command line thresholds over the config file's."""
    values: Dict[str, Any] = {}
    if config is not None:
        values = {
            "max_delta": config.criteria.max_delta,
            "min_premium": config.criteria.min_premium,
            "min_annualized_return": config.criteria.min_annualized_return,
            "max_stock_price": config.criteria.max_stock_price,
        }
    for name, value in (
        ("max_delta", max_delta),
        ("min_premium", min_premium),
        ("min_annualized_return", min_return),
    ):
        if value is not None:
            values[name] = value

    criteria = ScreenerCriteria.for_mode(mode, **values)
    criteria.validate()
    return criteria


def _build_provider(
    settings: EnvironmentSettings,
    config: Optional[ScannerConfig],
    data_file: Optional[Path],
):
    """Create the market data provider and its shared rate limiter."""
    provider_config = config.provider if config is not None else None

    rate = provider_config.requests_per_second if provider_config else settings.requests_per_second
    burst = provider_config.burst if provider_config else settings.burst
    limiter = TokenBucketRateLimiter(rate=rate, capacity=burst)

    if data_file is None:
        if provider_config is not None and provider_config.type == ProviderType.STATIC:
            data_file = Path(provider_config.data_file)
        elif provider_config is None and settings.provider_type == ProviderType.STATIC.value:
            if not settings.data_file:
                raise ConfigValidationError(
                    "Static provider requires a data file",
                    errors=["Pass --data-file or set data_file in the environment config"],
                )
            data_file = Path(settings.data_file)

    provider: BaseMarketDataProvider
    if data_file is not None:
        try:
            provider = StaticMarketDataProvider.from_file(data_file)
        except (ValueError, yaml.YAMLError) as e:
            raise click.BadParameter(f"cannot parse {data_file}: {e}", param_hint="data file")
    else:
        api_key_env = provider_config.api_key_env if provider_config else settings.api_key_env
        base_url = (provider_config.base_url if provider_config else None) or settings.base_url
        timeout = provider_config.timeout if provider_config else settings.request_timeout
        provider = FinnhubProvider(
            api_key=os.environ.get(api_key_env, ""),
            base_url=base_url,
            timeout=timeout,
        )

    return provider, limiter


def _display_quote(quote, risk) -> None:
    """Display a priced option."""
    request = quote.request
    title = f"{request.symbol or 'Option'} {request.option_type.value.upper()} " \
            f"${request.strike_price:g} / {request.days_to_expiry}d"
    console.print(Panel(f"[bold]{title}[/bold]  spot ${request.spot_price:,.2f}  "
                        f"vol {quote.volatility:.0%}"))

    table = Table()
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    greeks = quote.greeks
    table.add_row("Price", f"${greeks.price:,.2f}")
    table.add_row("Delta", f"{greeks.delta:.3f}")
    table.add_row("Gamma", f"{greeks.gamma:.4f}")
    table.add_row("Theta / day", f"{greeks.theta:.2f}")
    table.add_row("Vega / 1%", f"{greeks.vega:.2f}")
    table.add_row("Rho / 1%", f"{greeks.rho:.2f}")

    move = quote.expected_move
    table.add_row("Expected Move", f"±${move.amount:,.2f} ({move.percent:.2f}%)")
    table.add_row("Expected Range", f"${move.lower_bound:,.2f} - ${move.upper_bound:,.2f}")
    table.add_row("Risk", f"{risk.flag.value} (P(ITM) ~ {risk.probability_itm:.0%})")

    console.print(table)
    console.print("Suggested strikes: " + ", ".join(f"{s:g}" for s in quote.suggested_strikes))


def _display_scan(result: ScanResult, verbose: bool = False) -> None:
    """Display ranked scan results."""
    if result.is_synthetic:
        console.print(Panel(
            "[bold yellow]SAMPLE DATA[/bold yellow] - no live market data was available; "
            "these results are synthetic and for illustration only.",
            border_style="yellow",
        ))
    if result.incomplete:
        echo_warning("Scan stopped early (timeout or cancellation); results are partial.")

    covered = result.mode == ScanMode.COVERED_CALLS.value
    table = Table(title=f"{result.mode} - {len(result)} results")
    table.add_column("Symbol", style="cyan")
    table.add_column("Type")
    table.add_column("Stock", justify="right")
    table.add_column("Strike", justify="right")
    table.add_column("Expiry")
    table.add_column("Days", justify="right")
    table.add_column("Premium", justify="right")
    table.add_column("Delta", justify="right")
    table.add_column("IV", justify="right")
    table.add_column("Ann. Return", justify="right", style="green")
    table.add_column("Protection" if covered else "Breakeven", justify="right")

    for r in result.results:
        last = (
            f"{r.downside_protection:.2f}%" if covered and r.downside_protection is not None
            else f"${r.breakeven:,.2f}" if r.breakeven is not None else "-"
        )
        table.add_row(
            r.symbol,
            r.option_type,
            f"${r.stock_price:,.2f}",
            f"${r.strike_price:,.2f}",
            r.expiration_date.isoformat(),
            str(r.days_to_expiry),
            f"${r.premium:,.2f}",
            f"{r.delta:.3f}",
            f"{r.implied_volatility * 100:.1f}%" if r.implied_volatility is not None else "-",
            f"{r.annualized_return:.2f}%",
            last,
        )

    console.print(table)

    if verbose and result.symbols_skipped:
        for symbol, reason in result.symbols_skipped.items():
            echo(f"  skipped {symbol}: {reason}")


def _display_config_summary(config: ScannerConfig) -> None:
    """Display configuration summary."""
    table = Table(title="Configuration Summary")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Name", config.name)
    table.add_row("Mode", config.mode.value)
    table.add_row("Universe", ", ".join(config.universe) or "mode default")
    table.add_row("Max Delta", "mode default" if config.criteria.max_delta is None
                  else f"{config.criteria.max_delta:g}")
    table.add_row("Min Premium", f"${config.criteria.min_premium:,.2f}")
    table.add_row("Min Annualized Return", f"{config.criteria.min_annualized_return:g}%")
    table.add_row("Provider", config.provider.type.value)

    console.print(table)


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
