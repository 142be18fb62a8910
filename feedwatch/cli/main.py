"""Command line interface for running and inspecting the monitoring pipeline."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import click

from ..exceptions import FeedWatchError
from ..orchestrator.factory import build_orchestrator
from ..orchestrator.service import ReliabilityOrchestrator
from ..schemas.reports import MonitoringCycleMetrics
from ..utils.logging import configure_logging
from ..utils.signals import GracefulShutdown, install_signal_handlers

OrchestratorFactory = Callable[[], ReliabilityOrchestrator]


def _orchestrator(ctx: click.Context) -> ReliabilityOrchestrator:
    obj = ctx.ensure_object(dict)
    if "orchestrator" not in obj:
        factory: OrchestratorFactory = obj.get("factory", build_orchestrator)
        try:
            orchestrator = factory()
        except FeedWatchError as e:
            click.echo(f"❌ Failed to configure FeedWatch: {e}", err=True)
            raise click.Abort()
        orchestrator.load_state()
        obj["orchestrator"] = orchestrator
    return obj["orchestrator"]


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def print_cycle_summary(metrics: MonitoringCycleMetrics) -> None:
    """Print a human readable summary of one monitoring cycle."""
    click.echo("\n" + "=" * 70)
    click.echo(f"MONITORING CYCLE {metrics.cycle_id or '-'}")
    click.echo("=" * 70)
    click.echo(f"  Timestamp:            {metrics.timestamp.isoformat()}")
    click.echo(f"  Duration:             {metrics.duration_ms} ms")
    click.echo(f"  Sources:              {metrics.total_sources}")
    click.echo(f"    active:             {metrics.active_sources}")
    click.echo(f"    degraded:           {metrics.degraded_sources}")
    click.echo(f"    inactive:           {metrics.inactive_sources}")
    click.echo(f"    unknown:            {metrics.unknown_sources}")
    click.echo(f"  Average reliability:  {metrics.average_reliability * 100:.1f}%")
    click.echo(f"  Alerts emitted:       {metrics.alerts_emitted}")
    if metrics.upstream_results:
        click.echo("\n  Upstreams:")
        for name, source in metrics.upstream_results.items():
            click.echo(f"    {name}: {source}")
    click.echo("=" * 70 + "\n")


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the configured log level",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """FeedWatch data reliability monitor."""
    ctx.ensure_object(dict)
    if log_level:
        configure_logging(log_level, force=True)


@cli.command()
@click.option("--once", is_flag=True, help="Run a single monitoring cycle and exit")
@click.option("--json", "as_json", is_flag=True, help="Print the cycle metrics as JSON")
@click.pass_context
def run(ctx: click.Context, once: bool, as_json: bool) -> None:
    """Run monitoring cycles until SIGTERM/SIGINT (or once with --once)."""
    orchestrator = _orchestrator(ctx)

    if once:
        try:
            metrics = asyncio.run(_run_once(orchestrator))
        except FeedWatchError as e:
            click.echo(f"❌ Failed to save monitoring state: {e}", err=True)
            raise click.Abort()
        if metrics is None:
            click.echo("❌ Monitoring cycle failed; see the monitoring error log", err=True)
            raise click.Abort()
        if as_json:
            _echo_json(metrics.model_dump(mode="json"))
        else:
            print_cycle_summary(metrics)
        return

    click.echo(
        f"Monitoring {len(orchestrator.upstreams)} upstreams every "
        f"{orchestrator.interval_seconds:.0f}s (Ctrl+C to stop)"
    )
    asyncio.run(_run_forever(orchestrator))


async def _run_once(orchestrator: ReliabilityOrchestrator) -> MonitoringCycleMetrics | None:
    metrics = await orchestrator.run_cycle()
    orchestrator.persist_state()
    return metrics


async def _run_forever(orchestrator: ReliabilityOrchestrator) -> None:
    shutdown = GracefulShutdown()
    shutdown.register_handler(orchestrator.stop)
    install_signal_handlers(shutdown, asyncio.get_running_loop())
    await orchestrator.start()
    await shutdown.wait_for_shutdown()


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show aggregate source health from the persisted state."""
    data = _orchestrator(ctx).get_monitoring_status()
    if as_json:
        _echo_json(data)
        return

    click.echo(f"Sources:             {data['total_sources']}")
    click.echo(f"  active:            {data['active_sources']}")
    click.echo(f"  degraded:          {data['degraded_sources']}")
    click.echo(f"  inactive:          {data['inactive_sources']}")
    click.echo(f"  unknown:           {data['unknown_sources']}")
    click.echo(f"Average reliability: {data['average_reliability'] * 100:.1f}%")
    click.echo(f"Recent alerts:       {len(data['recent_alerts'])}")
    coverage = data["data_type_coverage"]
    if coverage:
        click.echo("Data type coverage:")
        for data_type, count in coverage.items():
            click.echo(f"  {data_type}: {count}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def report(ctx: click.Context, as_json: bool) -> None:
    """Print the per-source reliability report."""
    data = _orchestrator(ctx).get_station_reliability_report()
    if as_json:
        _echo_json(data)
        return

    summary = data["summary"]
    click.echo(
        f"{data['total_stations']} sources | excellent {summary['excellent']} | "
        f"good {summary['good']} | fair {summary['fair']} | poor {summary['poor']}"
    )
    for station in data["stations"]:
        click.echo(
            f"  {station['source_id']:<24} {station['state']:<9} "
            f"{station['reliability_score'] * 100:6.1f}%  "
            f"failures={station['consecutive_failures']}"
        )


@cli.command()
@click.option("--hours", default=24.0, show_default=True, type=click.FloatRange(min=0, min_open=True))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def alerts(ctx: click.Context, hours: float, as_json: bool) -> None:
    """List alerts raised in the last HOURS."""
    recent = _orchestrator(ctx).get_recent_alerts(hours)
    if as_json:
        _echo_json([alert.model_dump(mode="json") for alert in recent])
        return
    if not recent:
        click.echo(f"No alerts in the last {hours:g} hours")
        return
    for alert in recent:
        click.echo(
            f"[{alert.severity.value.upper():<7}] {alert.timestamp.isoformat()} "
            f"{alert.type.value}: {alert.message}"
        )


@cli.command()
@click.confirmation_option(prompt="Delete all stored monitoring data?")
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Delete tracked sources, alerts and errors from memory and the state store."""
    _orchestrator(ctx).clear_monitoring_data()
    click.echo("Monitoring data cleared")


if __name__ == "__main__":
    cli()
