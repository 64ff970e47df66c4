"""CLI interface for httpbackoff"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
import requests

from httpbackoff.domain.policies.factory import PolicyFactory, preview_schedule
from httpbackoff.infrastructure.config.config_manager import ConfigManager, ConfigurationError
from httpbackoff.infrastructure.http_client import create_session

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)
    # urllib3 is chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.INFO if verbose else logging.WARNING)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _load_config(ctx: click.Context, max_attempts: Optional[int] = None) -> ConfigManager:
    """Load configuration and apply CLI overrides

    Args:
        ctx: Click context holding config_path and verbose
        max_attempts: Optional max_attempts override from CLI

    Returns:
        Configuration manager holding the validated configuration
    """
    verbose = ctx.obj.get("verbose", False)
    try:
        config_manager = ConfigManager(config_path=ctx.obj.get("config_path"))
    except ConfigurationError as e:
        _die(str(e), verbose=verbose, exc=e)
    if max_attempts is not None:
        config_manager.get_backoff_config().max_attempts = max_attempts
    return config_manager


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .httpbackoff.yml config file",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path):
    """httpbackoff - HTTP requests with exponential back off"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("url", type=str)
@click.option("--max-attempts", type=click.IntRange(min=0), help="Retry attempts. Overrides config.")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Per-attempt timeout in seconds.")
@click.pass_context
def get(ctx, url: str, max_attempts: Optional[int], timeout: Optional[float]):
    """GET a URL, retrying with back off.

    URL: The URL to fetch
    """
    verbose = ctx.obj.get("verbose", False)
    config_manager = _load_config(ctx, max_attempts)
    if timeout is not None:
        config_manager.get_http_config().timeout = timeout

    try:
        with create_session(config=config_manager.config) as session:
            response = session.get(url)
    except requests.exceptions.RequestException as e:
        _die(f"Request failed: {e}", verbose=verbose, exc=e)

    click.echo(f"HTTP {response.status_code} {response.reason}")
    click.echo(response.text)
    if not 200 <= response.status_code < 300:
        sys.exit(1)


@cli.command()
@click.option("--attempts", type=click.IntRange(min=1), default=9, show_default=True)
@click.option("--seed", type=int, help="Seed for reproducible jitter")
@click.pass_context
def schedule(ctx, attempts: int, seed: Optional[int]):
    """Show the back off intervals of the configured policy."""
    config_manager = _load_config(ctx)
    policy = PolicyFactory.from_config(config_manager.get_backoff_config())

    click.echo(f"Policy: {config_manager.get('backoff.policy')} (max_attempts={policy.max_attempts})")
    click.echo(f"{'retry#':>6}  {'midpoint (ms)':>13}  {'back off (ms)':>13}")
    for interval in preview_schedule(policy, attempts, seed=seed):
        marker = "" if interval.attempts <= policy.max_attempts else "  (beyond max_attempts)"
        click.echo(
            f"{interval.attempts:>6}  {interval.current_interval_midpoint_millis:>13}  "
            f"{interval.backoff_millis:>13}{marker}"
        )


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
