"""Typed errors raised by the alert and intelligence engines."""


class EngineError(Exception):
    """Base engine error with an HTTP-equivalent status for the web layer."""

    http_status = 500
    kind = "engine_error"

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        body = {"error": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(EngineError):
    http_status = 404
    kind = "not_found"


class UnknownRuleError(NotFoundError):
    kind = "unknown_rule"

    def __init__(self, rule_ref):
        super().__init__(f"Unknown alert rule: {rule_ref}", rule=rule_ref)
        self.rule_ref = rule_ref


class UnknownIncidentError(NotFoundError):
    kind = "unknown_incident"

    def __init__(self, incident_id):
        super().__init__(f"Unknown incident: {incident_id}", incident_id=incident_id)
        self.incident_id = incident_id


# Root cause analysis reports missing incidents under this name.
IncidentNotFoundError = UnknownIncidentError


class InvalidInputError(EngineError):
    http_status = 400
    kind = "invalid_input"


class PolicyViolationError(EngineError):
    http_status = 409
    kind = "policy_violation"


class InvalidTransitionError(PolicyViolationError):
    kind = "invalid_transition"

    def __init__(self, incident_id, old_status, new_status, reason=""):
        msg = f"Incident {incident_id}: cannot move from {old_status} to {new_status}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg, incident_id=incident_id, old_status=str(old_status),
                         new_status=str(new_status))
        self.old_status = old_status
        self.new_status = new_status
