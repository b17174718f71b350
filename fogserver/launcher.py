"""Command line launcher for the private game server."""

from __future__ import annotations

import argparse
import logging

import uvicorn

from fogserver.backend.config import BackendSettings, load_settings

APP_PATH = "fogserver.backend.api:app"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_args(settings: BackendSettings, argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fog Server launcher")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--log-level", default=settings.log_level)
    parser.add_argument("--reload", action="store_true")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def main(argv: list[str] | None = None) -> int:
    settings = load_settings()
    args = parse_args(settings, argv)
    configure_logging(args.log_level)
    logging.getLogger(__name__).info("Starting server on %s:%d", args.host, args.port)
    uvicorn.run(APP_PATH, host=args.host, port=args.port, log_level=args.log_level.lower(), reload=args.reload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
