"""Alert system module."""
from alerts.engine import RuleEvaluator
from alerts.manager import AlertManager
from alerts.rules_manager import RulesManager
from alerts.channels import (
    ChannelDispatcher, SimulatedTransport, ConsoleTransport, FileTransport, build_transports,
)
