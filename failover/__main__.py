"""Dev entry point: python -m failover."""

from failover.api import create_app
from failover.bootstrap import build_orchestrator, build_probe
from failover.config import Settings
from failover.log import setup_logging


def main() -> None:
    settings = Settings()
    setup_logging(settings.log_level)
    orchestrator = build_orchestrator(settings)
    probe = build_probe(settings, orchestrator.network)
    if probe is not None:
        probe.start()
    app = create_app(orchestrator)
    try:
        app.run(host=settings.host, port=settings.port)
    finally:
        if probe is not None:
            probe.close()


if __name__ == "__main__":
    main()
