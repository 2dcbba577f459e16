#!/usr/bin/env python3
"""Seed reference data — tax brackets, tax settings, benefit settings and leave types.

Existing rows are left alone; only missing entries are inserted, so the
script can be re-run safely.

Usage:
    python scripts/seed_reference_data.py              # current year
    python scripts/seed_reference_data.py --year 2026
    python scripts/seed_reference_data.py --skip-leave-types
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from hrms.common.logging_config import configure_logging
from hrms.config import settings
from hrms.database import engine, session_scope
from hrms.employment.probation import local_today
from hrms.leave.service import LeaveService
from hrms.payroll.service import BenefitSettingService
from hrms.tax.service import seed_tax_year

logger = logging.getLogger("seed_reference_data")


async def seed(year: int, *, leave_types: bool = True) -> dict[str, int]:
    counts: dict[str, int] = {}
    async with session_scope() as session:
        counts["tax_brackets"], counts["tax_settings"] = await seed_tax_year(session, year)
        counts["benefit_settings"] = await BenefitSettingService.seed_defaults(session)
        if leave_types:
            counts["leave_types"] = await LeaveService.seed_default_types(session)
    await engine.dispose()
    return counts


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed HRMS reference data")
    parser.add_argument("--year", type=int, default=None, help="Tax year to seed (default: current year)")
    parser.add_argument("--skip-leave-types", action="store_true", help="Do not seed leave types")
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL)
    year = args.year or local_today().year
    logger.info("Seeding reference data for %d", year)

    counts = asyncio.run(seed(year, leave_types=not args.skip_leave_types))
    for name, added in counts.items():
        logger.info("  %-18s %d added", name, added)
    return 0


if __name__ == "__main__":
    sys.exit(main())
