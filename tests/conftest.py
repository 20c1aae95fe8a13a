"""Shared test fixtures."""
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import load_config
from alerts.channels import ChannelDispatcher, SimulatedTransport
from alerts.manager import AlertManager
from alerts.rules_manager import RulesManager, DEFAULT_RULES_PATH
from intelligence.service import IntelligenceService


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def rules_manager():
    return RulesManager(DEFAULT_RULES_PATH)


@pytest.fixture
def transport():
    """Instant, always-successful delivery."""
    return SimulatedTransport(success_rate=1.0, min_latency_ms=0, max_latency_ms=0)


@pytest.fixture
def dispatcher(transport):
    return ChannelDispatcher({"simulated": transport})


@pytest.fixture
def manager(rules_manager, dispatcher, config):
    return AlertManager.from_rules_manager(rules_manager, dispatcher=dispatcher, config=config)


@pytest.fixture
def intelligence(manager, config):
    return IntelligenceService(manager, config)
