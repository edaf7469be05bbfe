"""
Tally Report Engine
Application Runner

    python run.py                      # serve the HTTP API (default)
    python run.py serve --port 8080
    python run.py action get_outstanding --param type=receivable
"""

import argparse
import asyncio
import json
import sys

import uvicorn

from tally_engine.config import config
from tally_engine.utils.constants import APP_NAME, APP_VERSION


def parse_params(pairs):
    """key=value pairs; values that parse as JSON (numbers, lists) are decoded"""
    params = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"Expected key=value, got {pair!r}")
        try:
            params[key] = json.loads(value)
        except ValueError:
            params[key] = value
    return params


def serve(args):
    print(f"""
    ============================================================
    |              {APP_NAME} v{APP_VERSION}                  |
    ============================================================
    |  Server: http://{args.host}:{args.port}
    |  Docs:   http://{args.host}:{args.port}/docs
    |  Tally:  {config.tally.server}:{config.tally.port}
    ============================================================
    """)

    uvicorn.run(
        "tally_engine.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


def run_action(args):
    from tally_engine.services.dispatcher import execute
    from tally_engine.utils.logger import setup_logger

    setup_logger(level=config.logging.level, log_file=config.logging.file, console=False)
    skill_config = {"port": args.tally_port, "company_name": args.company}
    result = asyncio.run(execute("cli", args.name, parse_params(args.param), skill_config))

    print(result.message)
    if result.attachment is not None:
        with open(result.attachment.filename, "wb") as f:
            f.write(result.attachment.content)
        print(f"\nSaved {result.attachment.filename}")
    return 0 if result.success else 1


def main():
    parser = argparse.ArgumentParser(description=APP_NAME)
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=config.api.host, help="Host to bind")
    serve_parser.add_argument("--port", type=int, default=config.api.port, help="Port to bind")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    action_parser = subparsers.add_parser("action", help="Run one Tally action and print the message")
    action_parser.add_argument("name", help="Action name, e.g. get_outstanding")
    action_parser.add_argument("--param", action="append", help="Action parameter as key=value")
    action_parser.add_argument("--tally-port", type=int, default=None, help="Tally HTTP port")
    action_parser.add_argument("--company", default=None, help="Company used when Tally reports none")

    args = parser.parse_args()

    if args.command == "action":
        sys.exit(run_action(args))

    if args.command is None:
        args = serve_parser.parse_args([])
    serve(args)


if __name__ == "__main__":
    main()
