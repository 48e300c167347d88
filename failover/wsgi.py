"""WSGI entry point for gunicorn.

Usage:
    gunicorn failover.wsgi:app --bind 0.0.0.0:8000
"""
from failover.api import create_app
from failover.bootstrap import build_orchestrator, build_probe
from failover.config import Settings
from failover.log import setup_logging

_settings = Settings()
setup_logging(_settings.log_level)
_orchestrator = build_orchestrator(_settings)
_probe = build_probe(_settings, _orchestrator.network)
if _probe is not None:
    _probe.start()
app = create_app(_orchestrator)
