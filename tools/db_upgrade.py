#!/usr/bin/env python3
"""Apply Alembic migrations for the contact service database."""

from __future__ import annotations

import argparse
from pathlib import Path

from alembic import command
from alembic.config import Config

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def upgrade(revision: str = "head", database_url: str | None = None) -> None:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    if database_url:
        # ConfigParser interpolation treats "%" specially.
        cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    command.upgrade(cfg, revision)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "revision",
        nargs="?",
        default="head",
        help="target revision (default: head)",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="override DATABASE_URL for this run",
    )
    args = parser.parse_args(argv)
    upgrade(args.revision, args.database_url)


if __name__ == "__main__":
    main()
