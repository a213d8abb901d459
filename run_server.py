#!/usr/bin/env python3
"""
Startup script for the storefront checkout service.

Usage:
    # Run with the settings from .env / the environment
    python run_server.py

    # Run with custom port
    python run_server.py --port 8001

    # Run against another database
    python run_server.py --database-url sqlite:///./data/checkout.db

    # Run with reload for development
    python run_server.py --reload
"""

import argparse
import os


def run_server(
    host: str = "0.0.0.0",
    port: int = 8000,
    database_url: str = None,
    reload: bool = False,
) -> None:
    """Run the checkout API with uvicorn."""
    if database_url:
        os.environ["DATABASE_URL"] = database_url
    database_url = os.environ.get("DATABASE_URL", "sqlite:///./storefront.db")

    print(f"\n{'=' * 50}")
    print("Starting: Storefront Checkout")
    print(f"Port:     {port}")
    print(f"Database: {database_url}")
    print(f"{'=' * 50}\n")

    # Ensure data directory exists
    if database_url.startswith("sqlite:///./"):
        db_path = database_url.replace("sqlite:///./", "")
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    import uvicorn

    # The app reads DATABASE_URL and the rest of its settings at import time
    uvicorn.run(
        "storefront_checkout.main:app",
        host=host,
        port=port,
        reload=reload,
    )


def main():
    parser = argparse.ArgumentParser(description="Run the storefront checkout service")
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=int(os.environ.get("PORT", "8000")),
        help="Port to run on (default: $PORT or 8000)",
    )
    parser.add_argument(
        "--database-url",
        help="SQLAlchemy database URL (overrides DATABASE_URL)",
    )
    parser.add_argument(
        "--reload",
        "-r",
        action="store_true",
        help="Enable auto-reload for development",
    )

    args = parser.parse_args()

    run_server(
        host=args.host,
        port=args.port,
        database_url=args.database_url,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
