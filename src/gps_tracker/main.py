from __future__ import annotations

import argparse
import logging

from .config import TrackerSettings
from .logging import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="GPS Tracker Relay")
    parser.add_argument("--print-config", action="store_true", help="Print resolved configuration and exit.")
    parser.add_argument("--serve", action="store_true", help="Start the HTTP/WebSocket server.")
    return parser


def run(argv: list[str] | None = None, cfg: TrackerSettings | None = None) -> int:
    """
    Tracker relay entrypoint.
    """
    try:
        args = build_parser().parse_args(argv)

        # Load settings from environment / .env
        cfg = cfg or TrackerSettings()

        configure_logging(cfg.log_level)

        logger.info("Tracker relay starting")
        logger.info(
            "Resolved config: http=%s:%s window=%s cooldown=%ss email=%s",
            cfg.host, cfg.port, cfg.movement_window_size, cfg.alert_cooldown_sec,
            "on" if cfg.email_enabled else "off",
        )

        if args.print_config:
            # Never echo the SMTP password
            print(cfg.model_dump(exclude={"smtp_password"}))
            return 0

        if args.serve:
            import uvicorn
            from .api import create_app

            app = create_app(cfg)

            logger.info("Starting tracker relay at http://%s:%s", cfg.host, cfg.port)
            uvicorn.run(
                app,
                host=cfg.host,
                port=cfg.port,
                log_level=cfg.log_level.lower(),
            )
            return 0

        logger.info("Nothing to do. Use --print-config or --serve.")
        return 0

    except Exception:
        # Log unexpected exceptions so the service is diagnosable.
        logger.exception("Tracker relay crashed due to an unexpected error")
        if cfg is not None and (cfg.debug or cfg.log_level.upper() == "DEBUG"):
            raise
        return 1


if __name__ == "__main__":
    raise SystemExit(run())
