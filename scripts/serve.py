#!/usr/bin/env python3
"""
Zeami Watcher API Server.

Runs the FastAPI bridge with uvicorn.
Requires Python 3.11+.

Usage:
    python scripts/serve.py --port 8765
"""

import argparse
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import uvicorn

from utils.config import get_settings


def main() -> None:
    """Main entry point."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Serve the Zeami Watcher API"
    )
    parser.add_argument("--host", default=settings.api.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.api.port, help="Port to bind")

    args = parser.parse_args()

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=settings.api.debug,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
