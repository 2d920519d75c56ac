"""
Seed script for access settings.

Run this script after database initialization to create:
- Permission managers listed in PERMISSION_MANAGERS (comma separated emails)
- A row for every assignment type that has no policy yet (any role allowed)

Usage:
    PERMISSION_MANAGERS=ward.lead@example.org python -m scripts.seed_access_settings
"""
import asyncio
import os
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core.database.engine import get_db, init_db
from ward_access.features.permissions import store
from ward_access.features.permissions.models import AssignmentPolicy
from ward_access.utils import get_logger


log = get_logger(__name__)


def managers_from_env() -> list[str]:
    raw = os.environ.get("PERMISSION_MANAGERS", "")
    return [email.strip() for email in raw.split(",") if email.strip()]


async def seed_managers(db: AsyncSession, emails: list[str]) -> set[str]:
    log.info("Registering %d permission manager(s)...", len(emails))
    managers = await store.list_managers(db)
    for email in emails:
        managers = await store.add_manager(db, email)
    return managers


async def seed_assignment_policies(db: AsyncSession) -> None:
    """Materialize the default policy for assignment types with no row."""
    for assignment_type in store.ASSIGNMENT_TYPES:
        existing = await db.get(AssignmentPolicy, assignment_type)
        if existing:
            log.debug(f"Assignment policy '{assignment_type}' already exists, skipping")
            continue
        db.add(AssignmentPolicy(assignment_type=assignment_type, assigner_roles=[], assignee_roles=[]))
    await db.commit()


async def main():
    """Main function to seed access settings."""
    log.info("Starting access settings seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            managers = await seed_managers(db, managers_from_env())
            await seed_assignment_policies(db)

            log.info("Access settings seeding completed successfully!")
            for email in sorted(managers):
                log.info(f"  - manager: {email}")
        except Exception as e:
            log.error(f"Error seeding access settings: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
