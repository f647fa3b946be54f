"""
Role data accessor: reads and writes the role-specific row of a user.

Every store failure is logged and turned into None/False here; callers only
ever see "no data" or "not saved".

A row is only ever inserted for an existing profile, and only in the table of
that profile's current role.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from medqueue.database import DataStore
from medqueue.exceptions import RoleUnmapped, WriteFailure
from medqueue.models.profile import Profile
from medqueue.models.role_data import ROLE_DATA_FIELDS
from medqueue.roles import Role, table_for

logger = logging.getLogger(__name__)


def _row_to_dict(row) -> dict[str, Any]:
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _owns_role(session: AsyncSession, user_id: str, role) -> bool:
    """True when user_id is a profile whose current role is role."""
    current = await session.scalar(select(Profile.role).where(Profile.id == user_id))
    return current is not None and Role.parse(current) is Role.parse(role)


class RoleDataAccessor:
    def __init__(self, store: DataStore):
        self.store = store

    @staticmethod
    def table_for(role):
        return table_for(role)

    def _require_table(self, role):
        model = table_for(role)
        if model is None:
            raise RoleUnmapped(role)
        return model

    async def read(self, user_id: str, role: str, create_missing: bool = False) -> Optional[dict]:
        """
        Fetch the role-data row for user_id. None when the role is unmapped,
        the row is absent or the query fails.

        With create_missing, an absent row is created first; this repairs
        profiles whose best-effort role-data insert never landed.
        """
        if not user_id:
            return None
        try:
            model = self._require_table(role)
            async with self.store.session() as session:
                row = await session.scalar(select(model).where(model.user_id == user_id))
                if row is None and create_missing and await _owns_role(session, user_id, role):
                    logger.info("Creating missing %s row for user %s", model.__tablename__, user_id)
                    row = model(user_id=user_id, appointments=[], preferences={}, updated_at=_utcnow())
                    session.add(row)
                    await session.flush()
                    await session.refresh(row)
                return _row_to_dict(row) if row is not None else None
        except RoleUnmapped as exc:
            logger.info("No role data for user %s: %s", user_id, exc)
            return None
        except SQLAlchemyError:
            logger.exception("Error fetching %s data for user %s", role, user_id)
            return None

    async def write(self, user_id: str, role: str, updates: dict) -> bool:
        """
        Apply a partial update to the user's row. A missing row is inserted
        when the profile holds that role; otherwise the write fails.
        False on any failure.
        """
        if not user_id:
            return False
        try:
            model = self._require_table(role)
            unknown = set(updates) - set(ROLE_DATA_FIELDS)
            if unknown:
                raise WriteFailure(f"unknown role data fields: {sorted(unknown)}")
            values = dict(updates)
            values.setdefault("updated_at", _utcnow())
            async with self.store.session() as session:
                result = await session.execute(
                    update(model).where(model.user_id == user_id).values(**values)
                )
                if result.rowcount == 0:
                    if not await _owns_role(session, user_id, role):
                        raise WriteFailure(f"no {role} profile {user_id}")
                    logger.info("No %s row for user %s, inserting", model.__tablename__, user_id)
                    session.add(model(user_id=user_id, **values))
            return True
        except (RoleUnmapped, WriteFailure) as exc:
            logger.warning("Rejected %s data update for user %s: %s", role, user_id, exc)
            return False
        except SQLAlchemyError:
            logger.exception("Error updating %s data for user %s", role, user_id)
            return False

    async def create(self, user_id: str, role: str) -> bool:
        """Best-effort insert of an empty row; an existing row counts as success."""
        try:
            model = self._require_table(role)
            async with self.store.session() as session:
                existing = await session.scalar(select(model.id).where(model.user_id == user_id))
                if existing is not None:
                    return True
                if not await _owns_role(session, user_id, role):
                    raise WriteFailure(f"no {role} profile {user_id}")
                session.add(model(user_id=user_id, appointments=[], preferences={}, updated_at=_utcnow()))
            return True
        except (RoleUnmapped, WriteFailure) as exc:
            logger.warning("Cannot create role data for user %s: %s", user_id, exc)
            return False
        except IntegrityError:
            # Lost a race with another creator
            logger.info("%s row for user %s already exists", role, user_id)
            return True
        except SQLAlchemyError:
            logger.warning("Error creating %s data for user %s", role, user_id, exc_info=True)
            return False
