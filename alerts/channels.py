"""Notification transports and channel dispatch.

Channels are configuration entities owned by the AlertManager. Delivery goes
through a pluggable transport per channel so the simulated sender used for
testing can be swapped for a real one without touching the manager.
"""
import json
import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from models.alerts import Alert, ChannelTestResult
from models.enums import Severity

logger = logging.getLogger("alertengine.alerts.channels")


class DeliveryCancelled(Exception):
    """Raised by a transport when the caller cancelled an in-flight send."""


@runtime_checkable
class NotificationTransport(Protocol):
    def send(self, channel, alert, cancel=None) -> bool: ...


class SimulatedTransport:
    """Pretend delivery with bounded random latency and a fixed success rate."""

    def __init__(self, success_rate=0.95, min_latency_ms=5, max_latency_ms=55, rng=None):
        if min_latency_ms > max_latency_ms:
            raise ValueError("min_latency_ms must be <= max_latency_ms")
        self.success_rate = success_rate
        self.min_latency_ms = min_latency_ms
        self.max_latency_ms = max_latency_ms
        self._rng = rng or random.Random()
        self._rng_lock = threading.Lock()

    def send(self, channel, alert, cancel=None):
        with self._rng_lock:
            latency = self._rng.uniform(self.min_latency_ms, self.max_latency_ms) / 1000.0
            roll = self._rng.random()
        if cancel is not None:
            if cancel.wait(latency):
                raise DeliveryCancelled(channel.name)
        else:
            time.sleep(latency)
        return roll < self.success_rate


class ConsoleTransport:
    """Print alerts to the terminal with rich formatting."""

    severity_styles = {
        "critical": "bold white on red",
        "high": "bold red",
        "medium": "bold yellow",
        "low": "bold blue",
    }

    def send(self, channel, alert, cancel=None):
        from rich.console import Console
        console = Console()

        sev = alert.severity.value if hasattr(alert.severity, "value") else str(alert.severity)
        style = self.severity_styles.get(sev, "")
        console.print(f"[{style}]\\[{sev.upper()}][/] [{channel.name}] {alert.rule_name}: {alert.message}")
        return True


class FileTransport:
    """Append alerts to a JSON lines log file."""

    def __init__(self, log_path="data/notifications.jsonl"):
        self.log_path = log_path
        self._lock = threading.Lock()

    def send(self, channel, alert, cancel=None):
        sev = alert.severity.value if hasattr(alert.severity, "value") else str(alert.severity)
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "channel": channel.name,
            "alert_id": alert.id,
            "rule_id": alert.rule_id,
            "rule_name": alert.rule_name,
            "severity": sev,
            "status": alert.status.value if hasattr(alert.status, "value") else str(alert.status),
            "value": alert.value,
            "message": alert.message,
        }
        try:
            with self._lock, open(self.log_path, "a") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            logger.warning(f"FileTransport write failed ({self.log_path}): {e}")
            return False
        return True


def build_transports(config=None):
    """Create the named transports channels can refer to."""
    cfg = (config or {}).get("notifications", {})
    sim = cfg.get("simulated", {})
    return {
        "simulated": SimulatedTransport(
            success_rate=sim.get("success_rate", 0.95),
            min_latency_ms=sim.get("min_latency_ms", 5),
            max_latency_ms=sim.get("max_latency_ms", 55),
        ),
        "console": ConsoleTransport(),
        "file": FileTransport(cfg.get("file_path", "data/notifications.jsonl")),
    }


class ChannelDispatcher:
    """Routes alerts to channels, enforcing per-channel severity filters and rate limits."""

    def __init__(self, transports=None, max_workers=8, clock=time.time):
        self.transports = transports if transports is not None else build_transports()
        self.max_workers = max_workers
        self._clock = clock
        self._send_history = {}
        self._lock = threading.Lock()
        self._executor = None

    def submit(self, fn, *args):
        """Run ``fn`` on the shared notification pool, started on first use."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="notify")
            executor = self._executor
        return executor.submit(fn, *args)

    def shutdown(self, wait=True):
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def transport_for(self, channel):
        transport = self.transports.get(channel.transport)
        if transport is None:
            logger.warning(f"Channel {channel.name}: unknown transport '{channel.transport}', using simulated")
            transport = self.transports.get("simulated") or SimulatedTransport()
        return transport

    def _is_rate_limited(self, channel):
        """Check and record a send slot for this channel's window."""
        now = self._clock()
        limit = channel.rate_limit
        with self._lock:
            history = self._send_history.get(channel.id, [])
            cutoff = now - limit.window_seconds
            history = [t for t in history if t > cutoff]
            if len(history) >= limit.max_alerts:
                self._send_history[channel.id] = history
                return True
            history.append(now)
            self._send_history[channel.id] = history
            return False

    def dispatch(self, alert, channels):
        """Send an alert to every matching channel. Returns {channel_id: delivered}."""
        outcomes = {}
        for channel in channels:
            if not channel.enabled or not channel.accepts(alert.severity):
                continue
            if self._is_rate_limited(channel):
                logger.debug(f"Channel {channel.name}: rate limited, skipping alert {alert.id}")
                continue
            try:
                delivered = bool(self.transport_for(channel).send(channel, alert))
            except Exception as e:
                logger.warning(f"Channel dispatch error ({channel.name}): {e}")
                delivered = False
            if not delivered:
                logger.warning(f"Notification to {channel.name} failed for alert {alert.rule_name}")
            outcomes[channel.id] = delivered
        return outcomes

    def test_channels(self, channels, cancel=None, timeout=None):
        """Send a synthetic alert through every enabled channel concurrently.

        Wall time is bounded by the slowest channel (or ``timeout``). Channels
        still in flight when the caller cancels or the timeout expires are
        reported with status ``cancelled``.
        """
        enabled = [c for c in channels if c.enabled]
        if not enabled:
            return []
        stop = threading.Event()
        probe = Alert(
            id="channel-test",
            rule_id="channel-test",
            rule_name="channel-test",
            severity=Severity.LOW,
            message="Test notification",
        )

        def _test(channel):
            start = time.monotonic()
            try:
                ok = bool(self.transport_for(channel).send(channel, probe, cancel=stop))
                status, error = ("ok" if ok else "failed"), ""
            except DeliveryCancelled:
                ok, status, error = False, "cancelled", "cancelled"
            except Exception as e:
                ok, status, error = False, "failed", str(e)
            latency = int((time.monotonic() - start) * 1000)
            return ChannelTestResult(
                channel_id=channel.id,
                channel_name=channel.name,
                channel_type=channel.type.value,
                success=ok,
                latency_ms=latency,
                status=status,
                error=error,
            )

        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(enabled)))
        try:
            futures = {executor.submit(_test, c): c for c in enabled}
            done, not_done = self._wait_for(futures, cancel, timeout)
            if not_done:
                logger.info(f"Channel test stopped with {len(not_done)} channel(s) still in flight")
                stop.set()
            results = {}
            for future in done:
                result = future.result()
                results[result.channel_id] = result
            for future in not_done:
                channel = futures[future]
                results[channel.id] = ChannelTestResult(
                    channel_id=channel.id,
                    channel_name=channel.name,
                    channel_type=channel.type.value,
                    success=False,
                    status="cancelled",
                    error="cancelled" if cancel is not None and cancel.is_set() else "timed out",
                )
        finally:
            executor.shutdown(wait=False)

        for r in results.values():
            logger.debug(f"Channel test {r.channel_name}: {r.status} ({r.latency_ms}ms)")
        return [results[c.id] for c in enabled]

    @staticmethod
    def _wait_for(futures, cancel, timeout, poll=0.01):
        """Wait until every future finishes, the caller cancels, or the timeout expires."""
        deadline = None if timeout is None else time.monotonic() + timeout
        pending = set(futures)
        done = set()
        while pending:
            if cancel is not None and cancel.is_set():
                break
            slice_ = poll
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                slice_ = min(poll, remaining)
            finished, pending = wait(pending, timeout=slice_)
            done |= finished
        return done, pending
