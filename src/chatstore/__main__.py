# chatstore/__main__.py
from __future__ import annotations

import argparse
import asyncio
import json
import sys

import uvicorn

from chatstore.config.loader import load_settings
from chatstore.config.runtime import get_settings
from chatstore.server.app_factory import create_app
from chatstore.services.logger.std import LoggingConfig, StdLoggerService
from chatstore.storage.factory import build_store

"""
chatstore CLI

Commands:

  1) Serve the HTTP API (blocking)
       python -m chatstore serve --root ./data --port 3000

  2) Print the usage snapshot for a data directory
       python -m chatstore stats --root ./data

     Output matches GET /api/v1/status:
       {"dbSize": 1234, "records": {"chat": 3, "user": 1}, "updated": "..."}

     The data directory is locked while the server runs, so `stats` against
     a live server's directory waits and then fails; query /api/v1/status instead.
"""


async def _stats(root: str | None) -> dict:
    cfg = load_settings()
    if root is not None:
        cfg = cfg.model_copy(update={"root": root})
    store = build_store(cfg)
    async with store:
        stats = await store.stats()
    return stats.to_dict()


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]

    parser = argparse.ArgumentParser(prog="chatstore")
    sub = parser.add_subparsers(dest="cmd", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API (blocking).")
    serve.add_argument("--root", default=None, help="Data root holding items.json / groups.json.")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--log-level", default=None)
    serve.add_argument("--uvicorn-log-level", default="warning")

    stats = sub.add_parser("stats", help="Print store statistics as JSON.")
    stats.add_argument("--root", default=None)

    args = parser.parse_args(argv)

    if args.cmd == "stats":
        print(json.dumps(asyncio.run(_stats(args.root)), indent=2))
        return 0

    if args.cmd == "serve":
        # get_settings() is cached and shared; overrides go on a copy
        cfg = get_settings()
        if args.log_level:
            logging_cfg = cfg.logging.model_copy(update={"level": args.log_level.upper()})
            cfg = cfg.model_copy(update={"logging": logging_cfg})
        if args.root is not None:
            cfg = cfg.model_copy(update={"root": args.root})
        logger_service = StdLoggerService.build(LoggingConfig.from_settings(cfg.logging))
        app = create_app(cfg=cfg, logger_service=logger_service)

        host = args.host or cfg.server.host
        port = args.port if args.port is not None else cfg.server.port
        logger_service.base().info("serving chatstore on http://%s:%d (root=%s)", host, port, cfg.data_root())
        try:
            uvicorn.run(app, host=host, port=port, log_level=args.uvicorn_log_level)
        finally:
            logger_service.shutdown()
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
