"""Re-verify payment intents that never received a gateway confirmation.

Run periodically (cron) after deploys or gateway incidents:

    python scripts/reconcile_payments.py --older-than 15
"""
import sys
import os
import argparse
import logging
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from buildlink.config import settings
from buildlink.database import SessionLocal
import buildlink.models  # noqa: F401

from buildlink.services.escrow_service import reconcile_pending_intents
from buildlink.services.payment_gateway import HttpPaymentGateway


def main():
    parser = argparse.ArgumentParser(description="Reconcile pending payment intents with the gateway.")
    parser.add_argument("--older-than", type=int, default=settings.RECONCILE_AFTER_MINUTES,
                        help="only intents created at least this many minutes ago")
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    db = SessionLocal()
    try:
        summary = reconcile_pending_intents(db, HttpPaymentGateway(), older_than_minutes=args.older_than)
        print(f"Reconciliation finished: {summary}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
