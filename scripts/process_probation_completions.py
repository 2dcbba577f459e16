#!/usr/bin/env python3
"""Probation completions — daily job.

For every active employment whose pass-probation date is the run date the
probation is marked passed and its funding allocations are re-priced at the
post-probation salary. Scheduled once a day after midnight (Asia/Bangkok):
    5 0 * * *

Usage:
    python scripts/process_probation_completions.py                   # today
    python scripts/process_probation_completions.py --date 2026-03-01
    python scripts/process_probation_completions.py --dry-run         # list only

Exit codes:
    0 = all due employments transitioned (or nothing due)
    1 = one or more transitions failed
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date

from hrms.common.logging_config import configure_logging
from hrms.config import settings
from hrms.database import async_session_factory, engine, session_scope
from hrms.employment.probation import ProbationService, local_today

logger = logging.getLogger("process_probation_completions")


async def run(run_date: date, dry_run: bool) -> int:
    if dry_run:
        async with async_session_factory() as session:
            due = await ProbationService.due_employments(session, run_date)
            for employment in due:
                logger.info(
                    "  due: employment %s (employee %s, started %s)",
                    employment.id, employment.employee_id, employment.start_date,
                )
            logger.info("Dry run: %d employment(s) due on %s", len(due), run_date)
        failed = 0
    else:
        async with session_scope() as session:
            result = await ProbationService.process_transitions(session, run_date)
        for error in result.errors:
            logger.error("  employment %s: %s", error["employment_id"], error["error"])
        failed = result.failed
    await engine.dispose()
    return 1 if failed else 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Process probation completions")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Run date YYYY-MM-DD (default: today)")
    parser.add_argument("--dry-run", action="store_true", help="List due employments without changing anything")
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL)
    run_date = args.date or local_today()
    logger.info("Processing probation completions for %s", run_date)
    return asyncio.run(run(run_date, args.dry_run))


if __name__ == "__main__":
    sys.exit(main())
