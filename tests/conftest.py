from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Generator

import jwt
import pytest
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.database.engine import create_engine, init_db
from app.features.accounts.models import AccountStatus, EmployeeAccount
from app.features.permissions.models import Permission, Role, account_roles, role_permissions
from app.features.permissions.queries import aggregate_permission_keys, list_account_roles


UTC = timezone.utc
JWT_SECRET = "test-secret"


# Role name -> permission keys
ROLE_GRANTS: dict[str, list[str]] = {
    "admin": [],
    "support": ["orders.read", "orders.review"],
    "billing": ["payroll.manage", "reports.read"],
    "clerk": ["orders.read", "reports.read"],
    "manager": ["employees.manage", "settings.manage"],
}

# Identity subject -> (status, role names)
ACCOUNTS: dict[str, tuple[AccountStatus, list[str]]] = {
    "support-user": (AccountStatus.ACTIVE, ["support"]),
    "admin-user": (AccountStatus.ACTIVE, ["admin"]),
    "disabled-admin": (AccountStatus.DISABLED, ["admin", "support"]),
    "multi-user": (AccountStatus.ACTIVE, ["support", "clerk"]),
    "norole-user": (AccountStatus.ACTIVE, []),
    "manager-user": (AccountStatus.ACTIVE, ["manager"]),
}


def role_id(name: str) -> str:
    return f"r-{name}"


def permission_id(key: str) -> str:
    return "p-" + key.replace(".", "-")


def make_token(sub: str, *, secret: str = JWT_SECRET, expires_in: int = 3600, **claims: Any) -> str:
    payload = {
        "sub": sub,
        "exp": int((datetime.now(tz=UTC) + timedelta(seconds=expires_in)).timestamp()),
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_header(sub: str, **kwargs: Any) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub, **kwargs)}"}


async def effective_permissions(db: AsyncSession, account_id: str) -> frozenset[str]:
    """Union of permission keys over the roles an account holds."""
    roles = await list_account_roles(db, account_id)
    return await aggregate_permission_keys(db, [role.id for role in roles])


async def seed_rbac(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Load the role catalog and accounts described by ROLE_GRANTS and ACCOUNTS."""
    keys = sorted({key for grants in ROLE_GRANTS.values() for key in grants})
    async with session_factory() as db:
        db.add_all([Permission(id=permission_id(key), key=key) for key in keys])
        db.add_all([Role(id=role_id(name), name=name) for name in ROLE_GRANTS])
        db.add_all([
            EmployeeAccount(
                id=subject,
                employee_id=f"emp-{subject}",
                email=f"{subject}@example.com",
                status=status.value,
            )
            for subject, (status, _) in ACCOUNTS.items()
        ])
        await db.flush()

        grant_rows = [
            {"role_id": role_id(name), "permission_id": permission_id(key)}
            for name, grants in ROLE_GRANTS.items()
            for key in grants
        ]
        await db.execute(insert(role_permissions), grant_rows)

        assignment_rows = [
            {"account_id": subject, "role_id": role_id(name)}
            for subject, (_, names) in ACCOUNTS.items()
            for name in names
        ]
        await db.execute(insert(account_roles), assignment_rows)
        await db.commit()


@pytest.fixture()
def engine(tmp_path) -> Generator[AsyncEngine, None, None]:
    """Fresh SQLite file database per test with all tables created."""
    async_engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'authz.db'}")
    asyncio.run(init_db(async_engine))
    yield async_engine
    asyncio.run(async_engine.dispose())


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture()
def seeded(session_factory: async_sessionmaker[AsyncSession]) -> async_sessionmaker[AsyncSession]:
    asyncio.run(seed_rbac(session_factory))
    return session_factory
