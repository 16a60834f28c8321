#!/usr/bin/env python3
"""
Rebuild every balance and friend balance from the expense ledger.

The ledger is the source of truth; run this to repair drifted balance rows.
Safe to run against a live database: it is idempotent and commits once.
"""

import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

import models
from database import SessionLocal, engine
from utils.balances import recalc_all_balances


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--dry-run", action="store_true", help="Only count the pairs and contexts that would be recomputed")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    models.Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        stats = recalc_all_balances(db, dry_run=args.dry_run)
    except SQLAlchemyError as e:
        print(f"❌ Database error: {e}")
        return 1
    finally:
        db.close()

    verb = "Would recompute" if args.dry_run else "Recomputed"
    print(f"✓ {verb} {stats['contexts']} contexts across {stats['pairs']} pairs")
    return 0


if __name__ == "__main__":
    sys.exit(main())
