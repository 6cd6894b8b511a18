"""Root project quota per subscription tier.

The counter lives on ``User.total_projects`` and is written separately from the
project row, so a failed project write has to be compensated with
``release_project_quota``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import select, update

from database import db
from models.project import ProjectType
from models.user import SubscriptionTier, User
from services.errors import QuotaExceededError, UserNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_GUEST_PROJECT_QUOTA = 3
DEFAULT_STANDARD_PROJECT_QUOTA = 12
QUOTA_EXCEEDED_MESSAGE = "Please upgrade your account to enjoy more projects"


def _normalize_type(project_type: ProjectType | str | None) -> str:
    if project_type is None:
        return ProjectType.ROOT.value
    return str(project_type)


def counts_towards_quota(project_type: ProjectType | str | None) -> bool:
    """Only root projects count towards the subscription quota."""
    return _normalize_type(project_type) == ProjectType.ROOT.value


def quota_ceiling_for(tier: SubscriptionTier | str | None) -> int | None:
    """Return the maximum number of root projects for the tier, ``None`` meaning unlimited."""

    config = current_app.config
    if tier == SubscriptionTier.GUEST:
        return int(config.get("PROJECT_QUOTA_GUEST", DEFAULT_GUEST_PROJECT_QUOTA))
    if tier == SubscriptionTier.STANDARD:
        return int(config.get("PROJECT_QUOTA_STANDARD", DEFAULT_STANDARD_PROJECT_QUOTA))
    return None


@dataclass
class QuotaReservation:
    """Outcome of ``reserve_project_quota``; ``release`` undoes it at most once."""

    user: User
    project_type: str
    reserved: bool = False
    released: bool = False

    def release(self) -> bool:
        if not self.reserved or self.released:
            return False
        release_project_quota(self.user, self.project_type)
        self.released = True
        return True


def reserve_project_quota(user: User, project_type: ProjectType | str | None) -> QuotaReservation:
    """Count one more root project against the user's quota.

    The increment and the ceiling check are a single conditional UPDATE, so
    concurrent requests from the same user cannot both pass the check.
    Raises ``QuotaExceededError`` without touching the counter when the
    ceiling is already reached, and ``UserNotFoundError`` when the user row
    is gone.
    """

    normalized = _normalize_type(project_type)
    reservation = QuotaReservation(user=user, project_type=normalized)
    if not counts_towards_quota(normalized):
        return reservation

    user_id = user.id
    ceiling = quota_ceiling_for(user.tier)
    statement = (
        update(User)
        .where(User.id == user_id)
        .values(total_projects=User.total_projects + 1)
        .execution_options(synchronize_session=False)
    )
    if ceiling is not None:
        statement = statement.where(User.total_projects < ceiling)

    result = db.session.execute(statement)
    db.session.commit()

    if result.rowcount == 0:
        if db.session.execute(select(User.id).where(User.id == user_id)).first() is None:
            logger.warning("Cannot reserve project quota for unknown user %s", user_id)
            raise UserNotFoundError(f"User {user_id} does not exist", user_id=user_id)
        logger.warning(
            "User %s is trying to add more projects beyond the max limit (%s)", user_id, ceiling
        )
        raise QuotaExceededError(QUOTA_EXCEEDED_MESSAGE, ceiling=ceiling)

    reservation.reserved = True
    logger.debug("Reserved root project quota for user %s", user_id)
    return reservation


def release_project_quota(user: User, project_type: ProjectType | str | None) -> None:
    """Give back a root project previously counted by ``reserve_project_quota``."""

    if not counts_towards_quota(project_type):
        return

    user_id = user.id
    db.session.execute(
        update(User)
        .where(User.id == user_id, User.total_projects > 0)
        .values(total_projects=User.total_projects - 1)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    logger.info("Released root project quota for user %s", user_id)
