"""
Generate the monthly payroll batch from a scheduler (cron, systemd timer).

Defaults to the current month. A period that already has a batch is not an
error: the script reports the existing batch and exits 0 so reruns are safe.

    python scripts/run_monthly_payroll.py --month 7 --year 2025
"""
import argparse
import logging
import sys
from datetime import date

from payroll_engine.core.exceptions import AppException
from payroll_engine.core.logging import setup_logging
from payroll_engine.database import SessionLocal, init_db
from payroll_engine.schemas.payroll import ConflictResult, GenerationOptions
from payroll_engine.services import payroll_service

logger = logging.getLogger("run_monthly_payroll")


def parse_args(argv=None):
    today = date.today()
    parser = argparse.ArgumentParser(description="Generate the payroll batch for a month.")
    parser.add_argument("--month", type=int, default=today.month)
    parser.add_argument("--year", type=int, default=today.year)
    parser.add_argument("--working-days", type=int, default=None)
    parser.add_argument("--generated-by", default="scheduler")
    parser.add_argument("--notes", default="")
    return parser.parse_args(argv)


def run(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()
    init_db()

    options = {"generated_by": args.generated_by, "notes": args.notes}
    if args.working_days is not None:
        options["working_days"] = args.working_days

    db = SessionLocal()
    try:
        result = payroll_service.generate_payroll(db, args.month, args.year, GenerationOptions(**options))
    except AppException as e:
        logger.error(e.message, extra={"code": e.error_code, "details": e.details})
        return 1
    finally:
        db.close()

    if isinstance(result, ConflictResult):
        logger.info(f"{result.message}: {result.batch_id} ({result.existing.status})")
        return 0

    summary = result.summary
    logger.info(
        f"{result.message}: {result.batch_id}",
        extra={
            "employees": summary.total_employees,
            "errors": summary.errors_count,
            "total_net_salary": str(summary.totals.total_net_salary),
        }
    )
    for error in result.metadata.errors:
        logger.warning(error)
    return 0


if __name__ == "__main__":
    sys.exit(run())
