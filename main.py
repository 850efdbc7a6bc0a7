#!/usr/bin/env python3
"""
User API -- account registration, token login and per-user collections.

Usage:
  python main.py
  python main.py --port 9000
  python main.py --host 127.0.0.1 --reload

Environment variables (see core/config.py for the full list):
  SECRET_KEY            Token signing secret, at least 32 characters. Required
                        unless DEBUG=true.
  DATABASE_URL          SQLAlchemy URL of the user store (default: sqlite file).
  PORT                  Listen port (default: 8080).
  CONNECT_RETRIES       Startup connection attempts (default: 3).
  CONNECT_RETRY_DELAY   Seconds between attempts (default: 5).
  TOKEN_EXPIRE_SECONDS  Token lifetime; 0 issues tokens without expiry.
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="user-api",
        description="Serve the User API with uvicorn.",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"Interface to bind (default: {settings.host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Port to listen on (default: {settings.port})",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change (development only)",
    )
    args = parser.parse_args()

    # A failed startup (bad secret, unreachable store) makes uvicorn exit
    # non-zero; no traffic is ever accepted in that case.
    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
