#!/usr/bin/env python3
"""Alert & Incident Engine - CLI Entry Point."""
import sys
import json
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__
from utils.errors import EngineError
from utils.formatters import colorize, format_duration, format_pct, format_usd, time_ago, STATUS_COLORS

console = Console()


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from alerts.rules_manager import RulesManager, DEFAULT_RULES_PATH
    from alerts.manager import AlertManager
    from alerts.channels import ChannelDispatcher, build_transports
    from alerts.engine import RuleEvaluator
    from intelligence.service import IntelligenceService
    from monitor.sources import SimulatedMetricSource

    config = load_config(config_path)
    setup_logging("DEBUG" if verbose else config["logging"]["level"], config["logging"].get("file"))

    rules = RulesManager(config["alerts"].get("rules_file") or DEFAULT_RULES_PATH)
    dispatcher = ChannelDispatcher(
        build_transports(config),
        max_workers=config["notifications"].get("max_workers", 8),
    )
    manager = AlertManager.from_rules_manager(rules, dispatcher=dispatcher, config=config)
    source = SimulatedMetricSource()
    intelligence = IntelligenceService(manager, config)

    return {
        "config": config, "rules": rules, "manager": manager, "source": source,
        "evaluator": RuleEvaluator(manager, source), "intelligence": intelligence,
    }


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="alertengine")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Alert & Incident Engine - rules, alerts, incidents and predictive intelligence."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        ctx.obj["_components"] = _init_components(ctx.obj.get("config_path"), ctx.obj.get("verbose"))
    return ctx.obj["_components"]


def _fail(e):
    console.print(f"[red]Error:[/red] {e.message}")
    sys.exit(1)


def _alerts_table(title, alerts):
    table = Table(title=title, show_header=True)
    table.add_column("Rule")
    table.add_column("Status")
    table.add_column("Severity")
    table.add_column("Value", justify="right")
    table.add_column("Fired")
    table.add_column("Message")
    for a in alerts:
        table.add_row(a.rule_name, colorize(a.status, STATUS_COLORS), colorize(a.severity),
                      f"{a.value:g}", time_ago(a.starts_at), a.message[:60])
    return table


# ──────────────────────────────────────────────────────
# RULES
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def rules(ctx):
    """List all configured alert rules."""
    c = _get_components(ctx)
    snapshot = c["manager"].list_rules()
    table = Table(title="Alert Rules", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Condition")
    table.add_column("Severity")
    table.add_column("For")
    table.add_column("Enabled")
    for r in snapshot["rules"]:
        table.add_row(r.id, f"{r.metric} {r.threshold}", colorize(r.severity),
                      format_duration(r.duration_seconds),
                      "[green]✓[/green]" if r.enabled else "[red]✗[/red]")
    console.print(table)
    console.print(f"[dim]{snapshot['enabled_rules']}/{snapshot['total_rules']} enabled[/dim]")


# ──────────────────────────────────────────────────────
# ALERTS
# ──────────────────────────────────────────────────────
@cli.group()
def alerts():
    """Alert management."""
    pass


@alerts.command("fire")
@click.argument("rule", default="high-cpu-usage")
@click.option("--severity", default="critical", help="critical | high | medium | low")
@click.option("--value", default=None, type=float, help="Observed metric value")
@click.option("--message", default=None, help="Override the alert message")
@click.pass_context
def alerts_fire(ctx, rule, severity, value, message):
    """Fire a test alert for RULE (id or name)."""
    c = _get_components(ctx)
    try:
        alert = c["manager"].fire_alert(rule, severity=severity, value=value, message=message)
    except EngineError as e:
        _fail(e)
    console.print(f"[bold yellow]Alert firing:[/bold yellow] {alert.rule_name} "
                  f"({colorize(alert.severity)}) fire_count={alert.fire_count}")
    console.print(f"  id: [dim]{alert.id}[/dim]")
    incidents = c["manager"].list_incidents()
    if incidents:
        console.print(f"  [red]Incident opened:[/red] {incidents[-1].title} ({incidents[-1].id})")
    c["manager"].wait_for_notifications(timeout=c["config"]["notifications"].get("test_timeout", 5))


@alerts.command("resolve")
@click.argument("rule")
@click.pass_context
def alerts_resolve(ctx, rule):
    """Resolve the active alert for RULE."""
    c = _get_components(ctx)
    try:
        alert = c["manager"].resolve_alert(rule)
    except EngineError as e:
        _fail(e)
    if alert is None:
        console.print(f"[dim]No active alert for {rule}[/dim]")
    else:
        console.print(f"[green]Resolved[/green] {alert.rule_name}")


@alerts.command("list")
@click.pass_context
def alerts_list(ctx):
    """Show active alerts."""
    c = _get_components(ctx)
    active = c["manager"].get_active_alerts()
    if not active:
        console.print("[green]All clear - no active alerts[/green]")
        return
    console.print(_alerts_table("Active Alerts", active))


@alerts.command("history")
@click.option("--limit", default=10, type=int, help="Most recent entries to show")
@click.pass_context
def alerts_history(ctx, limit):
    """Show resolved alerts."""
    c = _get_components(ctx)
    history = c["manager"].get_alert_history(limit)
    if not history:
        console.print("[dim]No alerts in history[/dim]")
        return
    console.print(_alerts_table(f"Alert History (last {limit})", history))


# ──────────────────────────────────────────────────────
# INCIDENTS
# ──────────────────────────────────────────────────────
@cli.group()
def incidents():
    """Incident management."""
    pass


@incidents.command("list")
@click.option("--status", default=None, help="Filter by status")
@click.pass_context
def incidents_list(ctx, status):
    """List incidents with statistics."""
    c = _get_components(ctx)
    try:
        items = c["manager"].list_incidents(status)
    except EngineError as e:
        _fail(e)
    stats = c["manager"].get_incident_statistics()
    table = Table(title="Incidents", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Severity")
    table.add_column("Assignee")
    table.add_column("Opened")
    for i in items:
        table.add_row(i.id[:8], i.title, colorize(i.status, STATUS_COLORS), colorize(i.severity),
                      i.assignee or "-", time_ago(i.created_at))
    console.print(table)
    mttr = f"{stats['mttr_minutes']:.1f}m" if stats["mttr_minutes"] is not None else "N/A"
    console.print(f"[dim]total {stats['total']} · active {stats['active']} · "
                  f"MTTR {mttr}[/dim]")


@incidents.command("create")
@click.option("--title", required=True, help="Incident title")
@click.option("--description", default="", help="Description")
@click.option("--severity", default="medium", help="critical | high | medium | low")
@click.option("--service", "affected_service", default="", help="Affected service")
@click.option("--alert", "related", multiple=True, help="Related alert id (repeatable)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.pass_context
def incidents_create(ctx, title, description, severity, affected_service, related, tags):
    """Open a new incident."""
    c = _get_components(ctx)
    try:
        incident = c["manager"].create_incident(
            title=title, description=description, severity=severity,
            affected_service=affected_service, related_alert_ids=list(related), tags=list(tags),
            author="cli",
        )
    except EngineError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Incident {incident.id} opened: {incident.title}")


@incidents.command("status")
@click.argument("incident_id")
@click.argument("new_status")
@click.option("--author", default="cli", help="Who made the change")
@click.option("--message", default="", help="Timeline message")
@click.option("--reopen", is_flag=True, help="Allow resolved -> investigating")
@click.pass_context
def incidents_status(ctx, incident_id, new_status, author, message, reopen):
    """Move INCIDENT_ID to NEW_STATUS."""
    c = _get_components(ctx)
    try:
        incident = c["manager"].update_incident_status(incident_id, new_status, author, message, reopen=reopen)
    except EngineError as e:
        _fail(e)
    console.print(f"[green]✓[/green] {incident.id} is now {incident.status.value} "
                  f"({len(incident.timeline)} timeline entries)")


# ──────────────────────────────────────────────────────
# CHANNELS
# ──────────────────────────────────────────────────────
@cli.group()
def channels():
    """Notification channels."""
    pass


@channels.command("list")
@click.pass_context
def channels_list(ctx):
    """List notification channels."""
    c = _get_components(ctx)
    table = Table(title="Notification Channels", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Type")
    table.add_column("Transport")
    table.add_column("Severities")
    table.add_column("Rate Limit")
    table.add_column("Enabled")
    for ch in c["manager"].list_channels():
        severities = ", ".join(getattr(s, "value", s) for s in ch.severities) or "all"
        table.add_row(ch.id, ch.type.value, ch.transport, severities,
                      f"{ch.rate_limit.max_alerts}/{format_duration(ch.rate_limit.window_seconds)}",
                      "[green]✓[/green]" if ch.enabled else "[red]✗[/red]")
    console.print(table)


@channels.command("test")
@click.option("--timeout", default=None, type=float, help="Seconds before in-flight tests are cancelled")
@click.pass_context
def channels_test(ctx, timeout):
    """Send a simulated test notification through every enabled channel."""
    c = _get_components(ctx)
    if timeout is None:
        timeout = c["config"]["notifications"].get("test_timeout", 5)
    results = c["manager"].test_notification_channels(timeout=timeout)
    table = Table(title="Channel Test", show_header=True)
    table.add_column("Channel")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Latency", justify="right")
    for r in results:
        table.add_row(r.channel_name, r.channel_type, colorize(r.status, STATUS_COLORS), f"{r.latency_ms}ms")
    console.print(table)


# ──────────────────────────────────────────────────────
# ANALYZE
# ──────────────────────────────────────────────────────
@cli.group()
def analyze():
    """Predictive intelligence."""
    pass


@analyze.command("anomalies")
@click.option("--metric", default="cpu_usage", help="Metric name")
@click.option("--values", "values_file", default=None, type=click.Path(exists=True),
              help="JSON file with a list of values (default: simulated)")
@click.option("--method", default=None, type=click.Choice(["statistical", "isolation", "sequence"]))
@click.option("--samples", default=100, type=int, help="Simulated sample count")
@click.pass_context
def analyze_anomalies(ctx, metric, values_file, method, samples):
    """Score a metric series for anomalies."""
    c = _get_components(ctx)
    if values_file:
        values = json.loads(Path(values_file).read_text())
    else:
        values = c["source"].series(metric, count=samples)
    timestamps = c["source"].timestamps(len(values))
    try:
        scores = c["intelligence"].detect_anomalies(metric, values, timestamps, method=method)
    except EngineError as e:
        _fail(e)
    anomalies = [s for s in scores if s.is_anomaly]
    console.print(f"[bold]{metric}[/bold]: {len(scores)} samples, {len(anomalies)} anomalies")
    if anomalies:
        table = Table(show_header=True)
        table.add_column("Time", style="dim")
        table.add_column("Value", justify="right")
        table.add_column("Score", justify="right")
        table.add_column("Severity")
        for s in anomalies:
            table.add_row(s.timestamp.strftime("%H:%M"), f"{s.value:g}", f"{s.score:.3f}", colorize(s.severity))
        console.print(table)


@analyze.command("predict")
@click.option("--metrics", "metrics_file", default=None, type=click.Path(exists=True),
              help="JSON file mapping metric -> list of values (default: simulated)")
@click.pass_context
def analyze_predict(ctx, metrics_file):
    """Forecast threshold breaches from recent trends."""
    c = _get_components(ctx)
    data = json.loads(Path(metrics_file).read_text()) if metrics_file else c["source"].metric_trends()
    try:
        predictions = c["intelligence"].generate_predictive_alerts(data, promote=False)
    except EngineError as e:
        _fail(e)
    if not predictions:
        console.print("[green]No threshold breaches forecast[/green]")
        return
    table = Table(title="Predictive Alerts", show_header=True)
    table.add_column("Metric")
    table.add_column("Current", justify="right")
    table.add_column("Predicted", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Probability", justify="right")
    table.add_column("ETA")
    table.add_column("Severity")
    for p in predictions:
        pr = p.prediction
        table.add_row(pr.metric, f"{pr.current_value:g}", f"{pr.predicted_value:g}", f"{pr.threshold:g}",
                      format_pct(p.probability * 100, 0), format_duration(p.time_to_event_seconds),
                      colorize(p.severity))
    console.print(table)


@analyze.command("capacity")
@click.option("--service", default="api_service", help="Service name")
@click.option("--horizon", default=30.0, type=float, help="Planning horizon in days")
@click.pass_context
def analyze_capacity(ctx, service, horizon):
    """Forecast resource demand and cost for a service."""
    c = _get_components(ctx)
    try:
        plan = c["intelligence"].create_capacity_plan(service, horizon)
    except EngineError as e:
        _fail(e)
    table = Table(title=f"Capacity Plan: {service} ({horizon:g}d)", show_header=True)
    table.add_column("Resource")
    table.add_column("Current", justify="right")
    table.add_column("Projected", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Trend")
    table.add_column("Confidence", justify="right")
    for f in plan.forecasts:
        table.add_row(f.resource, format_pct(f.current), format_pct(f.projected), format_pct(f.limit, 0),
                      f.trend.value, f"{f.confidence:.2f}")
    console.print(table)
    for r in plan.recommendations:
        console.print(f"  {colorize(r.urgency)} {r.action} [dim]({r.rationale})[/dim]")
    cost = plan.cost_analysis
    console.print(f"\nCost: current {format_usd(cost.current_cost)} · projected {format_usd(cost.projected_cost)}"
                  f" · optimized {format_usd(cost.optimized_cost)} · [green]savings {format_usd(cost.savings)}[/green]")


@analyze.command("insights")
@click.pass_context
def analyze_insights(ctx):
    """Compare service latency/throughput with their baselines."""
    c = _get_components(ctx)
    insights = c["intelligence"].generate_performance_insights()
    if not insights:
        console.print("[green]All services within baseline[/green]")
        return
    for i in insights:
        console.print(f"{colorize(i.severity)} [bold]{i.title}[/bold]: {i.description}")
        for s in i.suggestions:
            console.print(f"    → {s.title}")


# ──────────────────────────────────────────────────────
# RUN / WEB
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--interval", default=None, type=int, help="Evaluation interval in seconds")
@click.option("--once", is_flag=True, help="Run a single evaluation pass and exit")
@click.pass_context
def run(ctx, interval, once):
    """Evaluate rules against the metric source on a schedule."""
    from monitor.scheduler import EvaluationScheduler

    c = _get_components(ctx)
    interval = interval or c["config"]["alerts"]["evaluation_interval"]
    scheduler = EvaluationScheduler(c["evaluator"], interval)

    def report(result):
        for a in result["fired"]:
            console.print(f"[red]FIRING[/red] {a.rule_name} = {a.value:g} ({a.severity.value})")
        for a in result["resolved"]:
            console.print(f"[green]RESOLVED[/green] {a.rule_name}")

    scheduler.on_evaluate(report)
    if once:
        scheduler.run_once()
        return

    console.print(f"[bold]Evaluating rules every {interval}s.[/bold] Press Ctrl+C to stop.")
    scheduler.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()


@cli.command()
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--host", default=None, type=str, help="Host to bind to")
@click.option("--evaluate", is_flag=True, help="Also run the rule evaluation loop")
@click.pass_context
def web(ctx, port, host, evaluate):
    """Serve the JSON API."""
    from web.app import create_app
    from monitor.scheduler import EvaluationScheduler

    c = _get_components(ctx)
    web_cfg = c["config"]["web"]
    port = port or web_cfg["port"]
    host = host or web_cfg["host"]

    app = create_app(c["config"], {
        "alert_manager": c["manager"],
        "intelligence": c["intelligence"],
        "source": c["source"],
    })

    scheduler = None
    if evaluate:
        scheduler = EvaluationScheduler(c["evaluator"], c["config"]["alerts"]["evaluation_interval"])
        scheduler.start()

    console.print(f"\n[bold]Alert & Incident Engine -- API[/bold]\n")
    console.print(f"  Listening: http://{host}:{port}")
    console.print(f"  Health:    http://{host}:{port}/health")
    console.print(f"\n  Press Ctrl+C to stop.\n")

    try:
        app.run(host=host, port=port, debug=web_cfg.get("debug", False))
    finally:
        if scheduler:
            scheduler.stop()


if __name__ == "__main__":
    cli()
