"""
Seed script to populate default permissions and roles.

Run this script after database initialization to create:
- The default permission catalog
- Default roles with their permission grants
- Optionally, an admin employee account for an identity id

Usage:
    uv run python -m scripts.seed_permissions
    uv run python -m scripts.seed_permissions --admin-identity <subject-id> --admin-email ops@example.com
"""
import argparse
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import generate_ulid
from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.accounts.models import AccountStatus, EmployeeAccount
from app.features.permissions.models import Permission, Role
from app.features.permissions.queries import replace_account_roles, replace_role_permissions
from app.features.permissions.schemas import ADMIN_ROLE_NAME
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_PERMISSIONS = [
    # Orders
    ("orders.read", "View orders"),
    ("orders.review", "Review orders"),
    ("orders.process", "Process and fulfil orders"),

    # Catalog and customers
    ("products.read", "View products"),
    ("customers.read", "View customers"),

    # Reporting
    ("reports.read", "View reports"),

    # Payroll
    ("payroll.read", "View own payroll records"),
    ("payroll.manage", "Generate and settle payroll"),

    # Administration
    ("employees.manage", "Manage employees, accounts and role assignments"),
    ("settings.manage", "Manage roles and permission grants"),
]


DEFAULT_ROLES = {
    ADMIN_ROLE_NAME: {
        "description": "Full access; bypasses permission checks",
        "permissions": "ALL",
    },
    "manager": {
        "description": "Runs staff, payroll and settings",
        "permissions": [
            "employees.manage", "payroll.manage", "settings.manage",
            "reports.read", "orders.read",
        ],
    },
    "support": {
        "description": "Handles customer orders",
        "permissions": ["orders.read", "orders.review", "orders.process", "customers.read"],
    },
    "billing": {
        "description": "Payroll and financial reporting",
        "permissions": ["payroll.manage", "reports.read"],
    },
    "staff": {
        "description": "Baseline employee access",
        "permissions": ["payroll.read", "products.read"],
    },
}


async def seed_permissions(db: AsyncSession) -> list[str]:
    """
    Create any missing permissions from the default catalog.

    Returns:
        All permission keys in the catalog
    """
    log.info("Creating default permissions...")
    result = await db.execute(select(Permission.key))
    existing = set(result.scalars().all())

    for key, description in DEFAULT_PERMISSIONS:
        if key in existing:
            log.debug(f"Permission '{key}' already exists, skipping")
            continue
        db.add(Permission(key=key, description=description))
        log.info(f"Created permission: {key}")

    await db.commit()
    return [key for key, _ in DEFAULT_PERMISSIONS]


async def seed_roles(db: AsyncSession, permission_keys: list[str]) -> dict[str, str]:
    """
    Create missing default roles and grant their permissions.

    Existing roles keep whatever grants they have.

    Returns:
        Role name -> role id
    """
    log.info("Creating default roles...")
    role_ids: dict[str, str] = {}

    for role_name, role_config in DEFAULT_ROLES.items():
        result = await db.execute(select(Role).where(Role.name == role_name))
        existing = result.scalars().first()

        if existing:
            log.debug(f"Role '{role_name}' already exists, skipping")
            role_ids[role_name] = existing.id
            continue

        role = Role(name=role_name, description=role_config["description"])
        db.add(role)
        await db.flush()

        keys = permission_keys if role_config["permissions"] == "ALL" else role_config["permissions"]
        granted = await replace_role_permissions(db, role.id, keys)
        role_ids[role_name] = role.id
        log.info(f"Created role '{role_name}' with {len(granted)} permissions")

    return role_ids


async def seed_admin_account(db: AsyncSession, identity_id: str, email: str, admin_role_id: str) -> None:
    """Provision an active employee account for `identity_id` holding only the admin role."""
    account = await db.get(EmployeeAccount, identity_id)
    if account is None:
        db.add(EmployeeAccount(
            id=identity_id,
            employee_id=generate_ulid(),
            email=email,
            status=AccountStatus.ACTIVE.value,
        ))
        await db.flush()
        log.info(f"Created admin account for identity {identity_id}")
    else:
        log.info(f"Account for identity {identity_id} already exists, assigning admin role")

    await replace_account_roles(db, identity_id, [admin_role_id])


async def main(admin_identity: str | None = None, admin_email: str | None = None):
    """Main function to seed permissions and roles."""
    log.info("Starting permission seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            permission_keys = await seed_permissions(db)
            role_ids = await seed_roles(db, permission_keys)

            if admin_identity:
                await seed_admin_account(
                    db,
                    admin_identity,
                    admin_email or f"{admin_identity}@staff.local",
                    role_ids[ADMIN_ROLE_NAME],
                )

            log.info("Permission seeding completed successfully!")
            log.info("Default roles:")
            for role_name, role_config in DEFAULT_ROLES.items():
                log.info(f"  - {role_name}: {role_config['description']}")

        except Exception as e:
            log.error(f"Error seeding permissions: {e}", exc_info=True)
            await db.rollback()
            raise


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed default permissions and roles")
    parser.add_argument("--admin-identity", help="Identity provider subject id to provision as admin")
    parser.add_argument("--admin-email", help="Email for the provisioned admin account")
    args = parser.parse_args()
    asyncio.run(main(args.admin_identity, args.admin_email))
