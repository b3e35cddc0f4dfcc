# utrace/__main__.py
# Usage: python3 -m utrace [--host 0.0.0.0] [--port 3000] [--log-level debug]
import argparse
import logging

from aiohttp import web

from utrace.config import Settings
from utrace.logging_config import setup_logging
from utrace.web.app import create_app

_LOG = logging.getLogger("utrace")


def main():
    settings = Settings.from_env()

    ap = argparse.ArgumentParser(prog="utrace", description="Streaming traceroute and network lookup server")
    ap.add_argument("--host", default=settings.host)
    ap.add_argument("--port", type=int, default=settings.port)
    ap.add_argument("--log-level", default=settings.log_level)
    ap.add_argument("--max-duration", type=float, default=settings.traceroute_max_duration,
                    help="kill a traceroute after this many seconds (default: unbounded)")
    ap.add_argument("--no-color", action="store_true")
    args = ap.parse_args()

    settings.host = args.host
    settings.port = args.port
    settings.log_level = args.log_level
    settings.traceroute_max_duration = args.max_duration

    setup_logging(settings.log_level, color=not args.no_color)
    _LOG.info("Starting utrace on %s:%d (commit %s)", settings.host, settings.port, settings.commit_sha)

    app = create_app(settings)
    # cancel the handler when the peer goes away so traceroute gets killed promptly
    web.run_app(app, host=settings.host, port=settings.port,
                handler_cancellation=True, print=None, access_log=None)


if __name__ == "__main__":
    main()
