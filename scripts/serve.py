"""Serve the payroll API with uvicorn.

Usage:
    # Listen on 127.0.0.1:8000
    python scripts/serve.py

    # Bind elsewhere and reload on code changes
    python scripts/serve.py --host 0.0.0.0 --port 9000 --reload
"""

import argparse
import sys
from pathlib import Path

import uvicorn

ROOT = Path(__file__).resolve().parent.parent

# Add project root to path
sys.path.insert(0, str(ROOT))

from config.settings import settings

APP = "payroll.api.app:create_app"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the payroll API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: %(default)s)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: %(default)s)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    # The app's lifespan configures logging from settings.log_level
    uvicorn.run(
        APP,
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        app_dir=str(ROOT),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
