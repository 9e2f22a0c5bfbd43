#!/usr/bin/env python3
"""Seed default cadence strategies for tiers without a stored row.

Usage:
    python scripts/seed_cadence_strategies.py
    python scripts/seed_cadence_strategies.py --dry-run

Existing rows are left untouched. Exits 0 on success, 1 on failure.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import select

from app.db.session import SessionLocal
from app.models import CadenceStrategy
from app.services.cadence.cadence_constants import DEFAULT_CADENCE_STRATEGIES
from app.services.cadence.strategy_store import seed_default_strategies


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Insert default cadence strategies for missing tiers.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print which categories would be inserted.",
    )
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        if args.dry_run:
            existing = set(db.scalars(select(CadenceStrategy.category)).all())
            missing = [c for c in DEFAULT_CADENCE_STRATEGIES if c not in existing]
            print(f"would_insert={','.join(missing) or '-'}")
            return 0
        inserted = seed_default_strategies(db)
        print(f"inserted={','.join(inserted) or '-'}")
        return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
