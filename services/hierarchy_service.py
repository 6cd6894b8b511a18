"""Structural rules for where a new project sits in the hierarchy."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from flask import current_app

from database import db
from models.project import Project, ProjectType, ProjectTypeBehavior
from models.user import User
from services.errors import ProjectValidationError, RelatedProjectNotFoundError

if TYPE_CHECKING:
    from services.project_service import CreateProjectRequest

logger = logging.getLogger(__name__)

ROOT_WITH_PARENT_MESSAGE = (
    "Looks like you are creating a new project? However your request includes "
    "dependencies to another project? Do you intend to create a sub-project?"
)
SUB_PROJECT_WITHOUT_PARENT_MESSAGE = "A sub-project requires it's parent id"
PARENT_HAS_TASKS_MESSAGE = (
    "The root project you are trying to associate this sub-projects have tasks "
    "associated at its root. Please, update all these tasks to associate them with "
    "either this sub-project or other relevant sub-projects & convert is to normal"
)

# (request attribute, label used in messages)
RELATED_PROJECT_FIELDS = (
    ("root_parent_id", "root parent"),
    ("sub_parent_id", "sub-parent"),
    ("depends_on_id", "dependency"),
)


@dataclass
class ParentResolution:
    """Result of looking up the root parent of a new sub-project."""

    parent: Optional[Project] = None
    message: Optional[str] = None
    converted: bool = False


def unknown_project_type_message(value) -> str:
    allowed = " or ".join(item.value for item in ProjectType)
    return f"Received {value}, while expects project to be {allowed}"


def validate_project_hierarchy(request: "CreateProjectRequest", user: User | None = None) -> None:
    """Reject requests whose project type is unknown or contradicts the supplied parent references.

    Runs before anything is written, so failures need no compensation.
    """

    who = user.display_name if user is not None else "anonymous"
    project_type = request.effective_project_type

    if not isinstance(project_type, ProjectType):
        logger.warning("User %s requested unknown project type %r", who, project_type)
        raise ProjectValidationError(unknown_project_type_message(project_type))

    if project_type == ProjectType.ROOT and (request.root_parent_id or request.sub_parent_id):
        field = "root parent id" if request.root_parent_id else "sub-parent id"
        logger.warning(
            "User %s is trying to create a new root project but has also supplied a %s",
            who,
            field,
        )
        raise ProjectValidationError(f"{ROOT_WITH_PARENT_MESSAGE} (unexpected {field})")

    if project_type == ProjectType.SUB_PROJECT and not request.root_parent_id:
        logger.warning("User %s is creating a sub project without its parent id", who)
        raise ProjectValidationError(SUB_PROJECT_WITHOUT_PARENT_MESSAGE)


def require_existing_parent() -> bool:
    return bool(current_app.config.get("PROJECTS_REQUIRE_EXISTING_PARENT", False))


def missing_related_project(request: "CreateProjectRequest") -> RelatedProjectNotFoundError | None:
    """Return the error for the first referenced project that does not exist, if any."""

    for attribute, label in RELATED_PROJECT_FIELDS:
        project_id = getattr(request, attribute)
        if project_id is None:
            continue
        if db.session.get(Project, project_id) is None:
            return RelatedProjectNotFoundError(
                f"The {label} project {project_id} does not exist",
                field=attribute,
                project_id=project_id,
            )
    return None


def ensure_related_projects_exist(request: "CreateProjectRequest") -> None:
    error = missing_related_project(request)
    if error is not None:
        raise error


def convert_to_normal(project: Project) -> None:
    """Turn a leafy project into a pure container and persist that single change."""

    project.project_type_behavior = ProjectTypeBehavior.NORMAL.value
    db.session.commit()
    logger.info("Project %s converted from leafy to normal", project.id)


def resolve_parent_project(request: "CreateProjectRequest") -> ParentResolution:
    """Load the root parent and adjust its task-holding behavior.

    A missing parent is tolerated unless PROJECTS_REQUIRE_EXISTING_PARENT is set.
    A leafy parent that already holds tasks is left alone and the resolution
    carries an advisory message; a leafy parent without tasks becomes normal.
    """

    if require_existing_parent():
        ensure_related_projects_exist(request)

    if not request.root_parent_id:
        return ParentResolution()

    parent = db.session.get(Project, request.root_parent_id)
    if parent is None:
        logger.debug("Root parent %s not found; no parent handling applied", request.root_parent_id)
        return ParentResolution()

    if not parent.is_leafy:
        return ParentResolution(parent=parent)

    if parent.has_tasks:
        logger.info(
            "Project %s still holds tasks; leaving it leafy until they are reassigned", parent.id
        )
        return ParentResolution(parent=parent, message=PARENT_HAS_TASKS_MESSAGE)

    convert_to_normal(parent)
    return ParentResolution(parent=parent, converted=True)
