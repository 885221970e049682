from __future__ import annotations

import argparse

import uvicorn

from complianceiq.infrastructure.config import get_settings
from complianceiq.infrastructure.db import create_database_engine
from complianceiq.utils.seed import initialise_database

APP_PATH = "complianceiq.web.main:app"


def ensure_database() -> bool:
    engine = create_database_engine(get_settings().database)
    try:
        return initialise_database(engine)
    finally:
        engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the ComplianceIQ API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        existed = ensure_database()
        if not existed:
            print("[run-server] Created missing database tables.")
    except Exception as exc:  # pragma: no cover - developer helper
        print(f"[run-server] Warning: {exc}")

    uvicorn.run(
        APP_PATH,
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
    )


if __name__ == "__main__":
    main()
