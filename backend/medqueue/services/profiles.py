"""
Profile resolver: existence checks, idempotent profile creation and lookups.

Profile creation and role-data creation are two independent writes. The second
is best-effort; RoleDataAccessor.read(create_missing=True) repairs it later.
"""

import logging
import uuid
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from medqueue.database import DataStore
from medqueue.exceptions import LookupFailure, MissingEmail
from medqueue.identity import IdentityUser
from medqueue.models.profile import Profile
from medqueue.roles import DEFAULT_ROLE, Role
from medqueue.schemas.profile import ProfileResponse
from medqueue.services.role_data import RoleDataAccessor

logger = logging.getLogger(__name__)


class ProfileResolver:
    def __init__(self, store: DataStore, accessor: RoleDataAccessor = None):
        self.store = store
        self.accessor = accessor or RoleDataAccessor(store)

    async def _find(self, email: str) -> Optional[ProfileResponse]:
        try:
            async with self.store.session() as session:
                profile = await session.scalar(select(Profile).where(Profile.email == email))
                return ProfileResponse.model_validate(profile) if profile else None
        except SQLAlchemyError as exc:
            raise LookupFailure(f"profile lookup failed for {email}") from exc

    async def exists(self, email: str) -> bool:
        """False when absent, and also when the lookup itself fails."""
        if not email:
            return False
        try:
            return await self._find(email) is not None
        except LookupFailure:
            logger.exception("Error checking user existence")
            return False

    async def get_by_email(self, email: str) -> Optional[ProfileResponse]:
        if not email:
            return None
        logger.debug("Looking up profile for email: %s", email)
        try:
            return await self._find(email)
        except LookupFailure:
            logger.exception("Error fetching user profile")
            return None

    async def create_profile(self, identity, role: Role = DEFAULT_ROLE) -> Optional[str]:
        """
        Create a profile for the identity's email, then its role-data row.
        Returns the profile id, or None if the profile could not be created.

        Losing a creation race (unique email) is success: the surviving
        profile's id is returned.
        """
        try:
            email = getattr(identity, "email", None)
            if not email:
                raise MissingEmail(getattr(identity, "user_id", None))
            user_id = str(uuid.uuid4())
            async with self.store.session() as session:
                session.add(Profile(id=user_id, email=email, role=role.value))
        except MissingEmail as exc:
            logger.warning("Cannot create profile: %s", exc)
            return None
        except IntegrityError:
            logger.info("Profile for %s was created concurrently", email)
            existing = await self.get_by_email(email)
            return existing.id if existing else None
        except SQLAlchemyError:
            logger.exception("Error creating user profile")
            return None

        logger.info("Created %s profile %s for %s", role.value, user_id, email)
        try:
            created = await self.accessor.create(user_id, role)
        except Exception:
            logger.exception("Error creating %s data for %s", role.value, user_id)
            created = False
        if not created:
            logger.warning("Profile %s created without %s data", user_id, role.value)
        return user_id

    async def change_role(self, profile_id: str, role: str) -> Optional[ProfileResponse]:
        """
        Switch a profile to another role and make sure the new role's data row
        exists. The previous role's row is left in place.
        """
        new_role = Role.parse(role)
        if new_role is None:
            logger.warning("Invalid role selection %r for profile %s", role, profile_id)
            return None
        try:
            async with self.store.session() as session:
                profile = await session.get(Profile, profile_id)
                if profile is None:
                    return None
                if profile.role != new_role.value:
                    profile.role = new_role.value
                    await session.flush()
                    await session.refresh(profile)
                result = ProfileResponse.model_validate(profile)
        except SQLAlchemyError:
            logger.exception("Error updating role for profile %s", profile_id)
            return None

        await self.accessor.create(profile_id, new_role)
        return result

    async def seed_profiles(self, profiles: dict[str, str]) -> int:
        """Create the pre-configured accounts if they don't exist. Idempotent."""
        created = 0
        for email, role in profiles.items():
            parsed = Role.parse(role)
            if parsed is None:
                logger.warning("Skipping pre-configured profile %s: unknown role %r", email, role)
                continue
            if await self.exists(email):
                continue
            if await self.create_profile(IdentityUser(user_id="", email=email), role=parsed):
                created += 1
        return created
