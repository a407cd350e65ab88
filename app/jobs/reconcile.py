"""
Reconciliación offline.

    python -m app.jobs.reconcile [--week 2025-W40]

Se puede interrumpir y volver a ejecutar desde el principio sin riesgo.
"""
import argparse
import json
import logging
import sys

from sqlmodel import Session

from app.core.config import settings
from app.core.db import create_all_tables, engine
from app.core.exceptions import PartialBatchFailure, PayoutError
from app.services.reconciler import Reconciler

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Rebuild financing and weekly record state from the payment ledger")
    parser.add_argument("--week", help="ISO week (YYYY-Www) to restrict weekly record checks")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    create_all_tables()
    with Session(engine) as session:
        try:
            report = Reconciler(session).run(args.week)
        except PayoutError as e:
            logger.error(e.message)
            return 2
    print(json.dumps(report.model_dump(mode="json"), indent=2))
    if report.errors:
        failure = PartialBatchFailure(
            "reconciliation",
            [(e.get("financing_id") or e.get("record_id"), e["error"]) for e in report.errors])
        logger.error(failure.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
