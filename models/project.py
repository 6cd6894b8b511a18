"""A project groups tasks and, through the hierarchy, other projects.

A Project is either a root project or a sub-project
A root project has no parent; a sub-project always references its root parent
A Project can depend on another Project (lookup only, no ownership)
A leafy Project can hold tasks directly
A normal Project is a pure container: once a sub-project hangs from it, tasks
belong to the sub-projects instead
Project titles are unique across all projects
Root projects count towards the owner's subscription quota (see services.quota_service)

"""
from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy.orm import validates

from database import db


class ProjectType(StrEnum):
    """Position of a project in the hierarchy."""

    ROOT = "root"
    SUB_PROJECT = "sub_project"


class ProjectTypeBehavior(StrEnum):
    """Whether a project may hold tasks directly."""

    LEAFY = "leafy"
    NORMAL = "normal"


class ProjectStage(StrEnum):
    """Default progress stages. Custom stage labels are stored as plain strings."""

    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class Project(db.Model):
    __tablename__ = "project"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    stages = db.Column(db.JSON, nullable=False, default=list)
    icon_id = db.Column(db.Integer, db.ForeignKey("icon.id"), nullable=True)
    is_enabled = db.Column(db.Boolean, nullable=False, default=True, index=True)
    total_sub_projects = db.Column(db.Integer, nullable=False, default=0)
    total_project_todos = db.Column(db.Integer, nullable=False, default=0)
    progress_stage = db.Column(
        db.String(50), nullable=False, default=ProjectStage.BACKLOG.value, index=True
    )
    project_type = db.Column(db.String(20), nullable=False, default=ProjectType.ROOT.value)
    project_type_behavior = db.Column(
        db.String(20), nullable=False, default=ProjectTypeBehavior.LEAFY.value
    )
    root_parent_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True, index=True)
    sub_parent_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True, index=True)
    depends_on_id = db.Column(db.Integer, db.ForeignKey("project.id"), nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    start_at = db.Column(db.DateTime, nullable=True)
    end_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    root_parent = db.relationship(
        "Project", foreign_keys=[root_parent_id], remote_side=[id], lazy="select"
    )
    sub_parent = db.relationship(
        "Project", foreign_keys=[sub_parent_id], remote_side=[id], lazy="select"
    )
    depends_on = db.relationship(
        "Project", foreign_keys=[depends_on_id], remote_side=[id], lazy="select"
    )
    icon = db.relationship("Icon", lazy="select")
    owner = db.relationship("User", back_populates="owned_projects", foreign_keys=[owner_id])
    tasks = db.relationship(
        "Task",
        back_populates="project",
        foreign_keys="Task.project_id",
        lazy=True,
    )

    @validates("title")
    def _validate_title(self, _key, value):
        if value is None or not str(value).strip():
            raise ValueError("A project requires a title.")
        return str(value).strip()

    @validates("project_type")
    def _validate_project_type(self, _key, value):
        try:
            return ProjectType(value).value
        except ValueError:
            allowed = " or ".join(item.value for item in ProjectType)
            raise ValueError(f"Received {value}, while expects project to be {allowed}") from None

    @validates("project_type_behavior")
    def _validate_project_type_behavior(self, _key, value):
        try:
            return ProjectTypeBehavior(value).value
        except ValueError:
            allowed = " or ".join(item.value for item in ProjectTypeBehavior)
            raise ValueError(
                f"Received {value}, while expects project behavior to be {allowed}"
            ) from None

    @validates("end_at")
    def _validate_end_at(self, _key, value):
        if value is not None and self.start_at is not None and value < self.start_at:
            raise ValueError("A project cannot end before it starts.")
        return value

    @property
    def type_enum(self) -> ProjectType:
        return ProjectType(self.project_type)

    @property
    def behavior_enum(self) -> ProjectTypeBehavior:
        return ProjectTypeBehavior(self.project_type_behavior)

    @property
    def is_root(self) -> bool:
        return self.type_enum == ProjectType.ROOT

    @property
    def is_leafy(self) -> bool:
        return self.behavior_enum == ProjectTypeBehavior.LEAFY

    @property
    def task_count(self) -> int:
        """Number of tasks whose project_id points at this project (computed, never stored)."""
        from services.task_service import count_project_tasks

        if self.id is None:
            return 0
        return count_project_tasks(self.id)

    @property
    def has_tasks(self) -> bool:
        return self.task_count > 0

    def __repr__(self):
        return f"<Project {self.title}>"
