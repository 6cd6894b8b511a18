""" Represents a user in the system.

Users are authenticated elsewhere; this service only reads the subscription
tier (base_role) and keeps the count of root projects a user owns.
A User on the guest or standard tier can own a limited number of root projects
A User on any other tier can own an unlimited number of root projects
Sub-projects never count towards the limit

"""
from enum import StrEnum

from database import db


class SubscriptionTier(StrEnum):
    """Subscription tiers stored on ``User.base_role``."""

    GUEST = "guest"
    STANDARD = "standard"
    PREMIUM = "premium"
    ADMIN = "admin"


class User(db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(80), unique=True, nullable=False)
    base_role = db.Column(db.String(20), nullable=False, default=SubscriptionTier.GUEST.value)
    total_projects = db.Column(db.Integer, nullable=False, default=0)

    owned_projects = db.relationship("Project", back_populates="owner", lazy=True)
    owned_tasks = db.relationship("Task", back_populates="owner", lazy=True)

    def __repr__(self):
        return f"<User {self.id}>"

    @property
    def tier(self) -> SubscriptionTier | str:
        """Return the subscription tier, falling back to the raw value for unknown roles."""

        try:
            return SubscriptionTier(self.base_role)
        except ValueError:
            return self.base_role

    @property
    def display_name(self) -> str:
        for attr in ("name", "username", "email"):
            value = getattr(self, attr, None)
            if value:
                return value
        return f"user #{self.id}"
