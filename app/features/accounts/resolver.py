"""
Employee account lookups and status updates.
"""
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.accounts.models import AccountStatus, EmployeeAccount
from app.features.accounts.schemas import EmployeeAccountRecord


async def get_account_by_identity(db: AsyncSession, identity_id: str) -> Optional[EmployeeAccountRecord]:
    """
    Look up the employee account for a verified identity.

    Returns None for callers without a staff account. Disabled accounts are
    returned as-is; deciding what a disabled status means is left to the gate.
    """
    result = await db.execute(select(EmployeeAccount).where(EmployeeAccount.id == identity_id))
    row = result.scalar_one_or_none()
    if row is None:
        return None
    return EmployeeAccountRecord.model_validate(row)


async def set_account_status(
    db: AsyncSession,
    account_id: str,
    status: AccountStatus,
) -> Optional[EmployeeAccountRecord]:
    """Set an account's status and return the updated record, or None if it does not exist."""
    try:
        result = await db.execute(
            update(EmployeeAccount)
            .where(EmployeeAccount.id == account_id)
            .values(status=status.value)
        )
        if result.rowcount == 0:
            await db.rollback()
            return None
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    return await get_account_by_identity(db, account_id)
