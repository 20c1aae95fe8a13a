"""Tests for notification transports and channel dispatch."""
import json
import threading
import time

from alerts.channels import ChannelDispatcher, FileTransport, SimulatedTransport, build_transports
from models.alerts import Alert, NotificationChannel, RateLimit
from models.enums import ChannelType, Severity


def _channel(cid="ops", severities=None, max_alerts=10, window=3600, transport="simulated", enabled=True):
    return NotificationChannel(
        id=cid, name=cid, type=ChannelType.SLACK, enabled=enabled,
        severities=severities or [],
        rate_limit=RateLimit(max_alerts=max_alerts, window_seconds=window),
        transport=transport,
    )


def _alert(severity=Severity.HIGH):
    return Alert(id="a1", rule_id="r1", rule_name="r1", severity=severity, message="boom", value=1.0)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class FailingTransport:
    def send(self, channel, alert, cancel=None):
        raise ConnectionError("smtp down")


def test_dispatch_filters_by_severity(transport):
    dispatcher = ChannelDispatcher({"simulated": transport})
    channels = [_channel("all"), _channel("crit", severities=[Severity.CRITICAL])]
    outcomes = dispatcher.dispatch(_alert(Severity.HIGH), channels)
    assert outcomes == {"all": True}


def test_dispatch_skips_disabled(transport):
    dispatcher = ChannelDispatcher({"simulated": transport})
    assert dispatcher.dispatch(_alert(), [_channel(enabled=False)]) == {}


def test_rate_limit_window(transport):
    clock = FakeClock()
    dispatcher = ChannelDispatcher({"simulated": transport}, clock=clock)
    channel = _channel(max_alerts=2, window=60)
    assert dispatcher.dispatch(_alert(), [channel]) == {"ops": True}
    assert dispatcher.dispatch(_alert(), [channel]) == {"ops": True}
    assert dispatcher.dispatch(_alert(), [channel]) == {}
    clock.now += 61
    assert dispatcher.dispatch(_alert(), [channel]) == {"ops": True}


def test_transport_errors_count_as_failures():
    dispatcher = ChannelDispatcher({"simulated": FailingTransport()})
    assert dispatcher.dispatch(_alert(), [_channel()]) == {"ops": False}


def test_unknown_transport_falls_back_to_simulated(transport):
    dispatcher = ChannelDispatcher({"simulated": transport})
    assert dispatcher.dispatch(_alert(), [_channel(transport="carrier-pigeon")]) == {"ops": True}


def test_simulated_failure_rate():
    never = SimulatedTransport(success_rate=0.0, min_latency_ms=0, max_latency_ms=0)
    assert never.send(_channel(), _alert()) is False


def test_file_transport_appends_json(tmp_path):
    path = tmp_path / "notifications.jsonl"
    transport = FileTransport(str(path))
    assert transport.send(_channel(), _alert()) is True
    assert transport.send(_channel(), _alert()) is True
    lines = path.read_text().splitlines()
    assert len(lines) == 2
    entry = json.loads(lines[0])
    assert entry["rule_name"] == "r1"
    assert entry["severity"] == "high"


def test_build_transports_reads_config():
    transports = build_transports({"notifications": {"simulated": {"success_rate": 0.5}}})
    assert set(transports) == {"simulated", "console", "file"}
    assert transports["simulated"].success_rate == 0.5


def test_channel_test_all_ok(transport):
    dispatcher = ChannelDispatcher({"simulated": transport})
    results = dispatcher.test_channels([_channel("a"), _channel("b"), _channel("c", enabled=False)])
    assert [r.channel_id for r in results] == ["a", "b"]
    assert all(r.success and r.status == "ok" for r in results)


def test_channel_test_runs_concurrently():
    slow = SimulatedTransport(success_rate=1.0, min_latency_ms=200, max_latency_ms=200)
    dispatcher = ChannelDispatcher({"simulated": slow})
    started = time.monotonic()
    results = dispatcher.test_channels([_channel(str(i)) for i in range(4)])
    assert time.monotonic() - started < 0.7
    assert all(r.success for r in results)


def test_channel_test_timeout_reports_cancelled():
    slow = SimulatedTransport(success_rate=1.0, min_latency_ms=2000, max_latency_ms=2000)
    dispatcher = ChannelDispatcher({"simulated": slow})
    started = time.monotonic()
    results = dispatcher.test_channels([_channel("a"), _channel("b")], timeout=0.1)
    assert time.monotonic() - started < 1.5
    assert [r.status for r in results] == ["cancelled", "cancelled"]
    assert results[0].error == "timed out"


def test_channel_test_caller_cancel():
    slow = SimulatedTransport(success_rate=1.0, min_latency_ms=2000, max_latency_ms=2000)
    dispatcher = ChannelDispatcher({"simulated": slow})
    cancel = threading.Event()
    cancel.set()
    results = dispatcher.test_channels([_channel("a")], cancel=cancel)
    assert results[0].status == "cancelled"
    assert results[0].error == "cancelled"
    assert results[0].success is False


def test_manager_channel_test_does_not_touch_counts(manager):
    results = manager.test_notification_channels()
    assert len(results) == 3
    assert all(c.sent_count == 0 for c in manager.list_channels())
