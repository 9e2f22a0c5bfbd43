#!/usr/bin/env python3
"""Rescore every current qualification in an organization.

Run after changing the questionnaire or CLASSIFICATION_THRESHOLDS so stored
tiers follow the new configuration.

Usage:
    python scripts/rescore_leads.py --organization ORG_ID

Leads whose stored answers no longer validate are reported and skipped.
Exits 0 when every lead was rescored, 1 otherwise.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.db.session import SessionLocal
from app.services.cadence.clock import system_clock
from app.services.lead_cadence import rescore_organization


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Rescore current qualifications for an organization.")
    parser.add_argument("--organization", required=True, metavar="ORG_ID")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        result = rescore_organization(db, args.organization, system_clock())
        print(
            f"leads_rescored={result['leads_rescored']} "
            f"leads_failed={result['leads_failed']} "
            f"tier_changes={result['tier_changes']}"
        )
        if result["error"]:
            print(f"error={result['error']}", file=sys.stderr)
        return 0 if result["leads_failed"] == 0 else 1
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
