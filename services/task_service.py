"""Helpers for attaching tasks to projects."""

from __future__ import annotations

import logging

from sqlalchemy import func, select

from database import db
from models.project import Project
from models.task import Task
from models.user import User
from services.errors import ProjectValidationError

logger = logging.getLogger(__name__)

NORMAL_PROJECT_TASK_MESSAGE = (
    "Tasks cannot be added directly to a project that holds sub-projects. "
    "Add the task to one of its sub-projects instead."
)


def count_project_tasks(project_id: int | None) -> int:
    if project_id is None:
        return 0
    statement = select(func.count(Task.id)).where(Task.project_id == project_id)
    return db.session.execute(statement).scalar_one()


def add_task_to_project(
    project: Project,
    name: str,
    owner: User | None = None,
    *,
    description: str | None = None,
    sub_parent: Project | None = None,
    icon_id: int | None = None,
) -> Task:
    """Create a task on a leafy project and bump its task counter in the same commit."""

    if not project.is_leafy:
        logger.warning("Refusing to attach task '%s' to normal project %s", name, project.id)
        raise ProjectValidationError(NORMAL_PROJECT_TASK_MESSAGE)

    task = Task(
        name=name,
        description=description,
        project_id=project.id,
        sub_parent_id=sub_parent.id if sub_parent is not None else None,
        icon_id=icon_id,
        owner_id=owner.id if owner is not None else None,
    )
    db.session.add(task)
    project.total_project_todos = (project.total_project_todos or 0) + 1
    db.session.commit()
    return task
