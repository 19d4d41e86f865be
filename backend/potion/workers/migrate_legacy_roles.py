"""
Legacy role migration.
Copies accountant and subcontractor access records into unified roles.
Safe to run more than once.
"""

import asyncio
import logging
from dataclasses import asdict

from potion.database import AsyncSessionLocal
from potion.logging_config import configure_logging
from potion.services.legacy_migration import LegacyRoleMigration

logger = logging.getLogger(__name__)


async def migrate_legacy_roles() -> dict:
    async with AsyncSessionLocal() as db:
        report = await LegacyRoleMigration(db).run()
    return asdict(report)


# Entry point for running as standalone script
if __name__ == "__main__":
    configure_logging()
    result = asyncio.run(migrate_legacy_roles())
    logger.info("Migration results: %s", result)
