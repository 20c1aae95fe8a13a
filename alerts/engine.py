"""Rule evaluation engine."""
import logging
import time

logger = logging.getLogger("alertengine.alerts.engine")

OPERATOR_MAP = {
    "<": lambda v, t: v < t,
    ">": lambda v, t: v > t,
    "<=": lambda v, t: v <= t,
    ">=": lambda v, t: v >= t,
    "==": lambda v, t: v == t,
    "!=": lambda v, t: v != t,
}


class RuleEvaluator:
    """Evaluates enabled rules against a metric source and fires or resolves alerts.

    A rule whose condition holds is kept pending until it has held for the
    rule's ``duration_seconds``; only then is the alert fired.
    """

    def __init__(self, manager, source, clock=time.monotonic):
        self.manager = manager
        self.source = source
        self._clock = clock
        self._pending_since = {}

    def _evaluate_condition(self, value, operator, threshold):
        if value is None:
            return False
        func = OPERATOR_MAP.get(operator)
        if func is None:
            return False
        return func(value, threshold)

    def evaluate(self, cancel=None):
        """Run one evaluation pass. Returns {"fired": [...], "resolved": [...], "pending": [...]}."""
        result = {"fired": [], "resolved": [], "pending": [], "skipped": []}
        now = self._clock()

        for rule in self.manager.list_rules()["rules"]:
            if cancel is not None and cancel.is_set():
                logger.info("Rule evaluation cancelled")
                break
            if not rule.enabled or self.manager.is_silenced(rule.id):
                self._pending_since.pop(rule.id, None)
                result["skipped"].append(rule.id)
                continue

            try:
                value = self.source.current_value(rule.metric)
            except Exception as e:
                logger.warning(f"Metric read failed for {rule.metric}: {e}")
                continue
            if value is None:
                continue

            if self._evaluate_condition(value, rule.threshold.operator, rule.threshold.value):
                started = self._pending_since.setdefault(rule.id, now)
                if now - started < rule.duration_seconds:
                    result["pending"].append(rule.id)
                    continue
                alert = self.manager.fire_alert(
                    rule.id,
                    value=value,
                    message=f"{rule.name}: {rule.metric} = {value:g} {rule.threshold}",
                )
                result["fired"].append(alert)
            else:
                self._pending_since.pop(rule.id, None)
                resolved = self.manager.resolve_alert(rule.id)
                if resolved is not None:
                    result["resolved"].append(resolved)

        logger.debug(
            f"Evaluation pass: {len(result['fired'])} firing, "
            f"{len(result['resolved'])} resolved, {len(result['pending'])} pending"
        )
        return result
