"""WSGI entry point for production deployment (e.g. gunicorn wsgi:app)."""
import sys
import os
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from utils.logger import setup_logging
from alerts.rules_manager import RulesManager, DEFAULT_RULES_PATH
from alerts.manager import AlertManager
from alerts.channels import ChannelDispatcher, build_transports
from alerts.engine import RuleEvaluator
from intelligence.service import IntelligenceService
from monitor.scheduler import EvaluationScheduler
from monitor.sources import SimulatedMetricSource
from web.app import create_app

logger = logging.getLogger("alertengine.wsgi")

config = load_config(os.environ.get("ALERTENGINE_CONFIG"))
setup_logging(config["logging"]["level"], config["logging"].get("file"))

rules = RulesManager(config["alerts"].get("rules_file") or DEFAULT_RULES_PATH)
dispatcher = ChannelDispatcher(build_transports(config), max_workers=config["notifications"].get("max_workers", 8))
manager = AlertManager.from_rules_manager(rules, dispatcher=dispatcher, config=config)
source = SimulatedMetricSource()
intelligence = IntelligenceService(manager, config)

app = create_app(config, {
    "alert_manager": manager,
    "intelligence": intelligence,
    "source": source,
})

if os.environ.get("ALERTENGINE_EVALUATE", "").lower() in ("1", "true", "yes"):
    scheduler = EvaluationScheduler(RuleEvaluator(manager, source), config["alerts"]["evaluation_interval"])
    scheduler.start()
    logger.info("Rule evaluation loop started")
