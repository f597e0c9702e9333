#!/usr/bin/env python3
"""
notcorp identity service -- development server launcher.

Usage:
  python main.py
  python main.py --host 0.0.0.0 --port 5001 --reload

Environment variables (see core/config.py for the full list):
  SECRET_KEY    Signs session cookies. Required unless DEBUG=true.
  DATABASE_URL  SQLAlchemy URL of the account/session database.
  SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD
                Relay used to deliver password reset tokens.
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the notcorp identity API.")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Port to listen on")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    print(f"Server listening on :{args.port}")
    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
