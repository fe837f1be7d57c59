#!/usr/bin/env python3
"""
VoidRunner -- credential registration, login, and bearer token authority.

Usage:
  python main.py
  python main.py --host 0.0.0.0 --port 8080
  python main.py --reload

Environment variables (see core/config.py for the full list):
  JWT_SECRET        Signing secret, at least 32 characters. Required unless DEBUG=true.
  STORAGE_BACKEND   memory (default) or postgres.
  PG_HOST, PG_PORT, PG_USER, PG_PASSWORD, PG_DBNAME, or DATABASE_URL
                    Connection settings for the postgres backend.
"""

import argparse

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="voidrunner",
        description="Run the VoidRunner auth API server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --port 8080
  DEBUG=true python main.py --reload
  STORAGE_BACKEND=postgres PG_USER=app PG_PASSWORD=... PG_DBNAME=voidrunner python main.py
        """,
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Interface to bind (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port to listen on (default: 8080)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change (development only)",
    )
    args = parser.parse_args()

    # Passed as an import string so --reload can re-import the app.
    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
