"""Project creation workflow.

``create_project`` validates the hierarchy, reserves quota, resolves the root
parent, writes the new project and hydrates its relations. The quota counter
and the project row are separate commits; any failure after the quota was
reserved releases it again before the error is surfaced.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from database import db
from models.project import Project, ProjectStage, ProjectType
from models.user import User
from services.errors import (
    DuplicateKeyError,
    ProjectError,
    ProjectInternalError,
    ProjectValidationError,
    RelatedProjectNotFoundError,
    duplicate_key_message,
    is_foreign_key_violation,
    missing_reference_from_error,
)
from services.hierarchy_service import (
    missing_related_project,
    resolve_parent_project,
    validate_project_hierarchy,
)
from services.quota_service import QuotaReservation, reserve_project_quota

logger = logging.getLogger(__name__)

DEFAULT_CREATED_MESSAGE = "A new project was successfully created"
CREATE_FAILED_MESSAGE = "Failed to create a new project"

PROJECT_RELATION_PATHS = (
    "depends_on",
    "root_parent",
    "sub_parent",
    "icon",
    "tasks",
    "tasks.project",
    "tasks.sub_parent",
    "tasks.icon",
    "tasks.owner",
)

# Wire names accepted by CreateProjectRequest.from_mapping, keyed by attribute.
REQUEST_ALIASES = {
    "project_type": "projectType",
    "root_parent_id": "rootParentId",
    "sub_parent_id": "subParentId",
    "depends_on_id": "dependsOn",
    "icon_id": "iconsId",
    "progress_stage": "progressStage",
    "is_enabled": "isEnabled",
    "start_at": "startAt",
    "end_at": "endAt",
}


class CreationState(StrEnum):
    """Steps of one creation request, in order."""

    VALIDATING = "validating"
    QUOTA_RESERVED = "quota_reserved"
    PARENT_RESOLVED = "parent_resolved"
    WRITING = "writing"
    POPULATING = "populating"
    DONE = "done"


def _coerce_id(name: str, value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ProjectValidationError(f"{name} must be a project id, received {value!r}") from None


def _coerce_datetime(name: str, value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise ProjectValidationError(f"{name} must be an ISO 8601 date, received {value!r}") from None


@dataclass
class CreateProjectRequest:
    """Creatable attributes of a project, already authenticated and schema-validated upstream."""

    title: str
    description: Optional[str] = None
    project_type: Optional[str] = None
    root_parent_id: Optional[int] = None
    sub_parent_id: Optional[int] = None
    depends_on_id: Optional[int] = None
    icon_id: Optional[int] = None
    progress_stage: Optional[str] = None
    stages: list[str] = field(default_factory=list)
    is_enabled: Optional[bool] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "CreateProjectRequest":
        """Build a request from a snake_case or camelCase payload."""

        def value(name: str, default=None):
            if name in payload:
                return payload[name]
            alias = REQUEST_ALIASES.get(name)
            if alias and alias in payload:
                return payload[alias]
            return default

        stages = value("stages") or []
        if isinstance(stages, str):
            stages = [stages]

        return cls(
            title=value("title"),
            description=value("description"),
            project_type=value("project_type") or None,
            root_parent_id=_coerce_id("rootParentId", value("root_parent_id")),
            sub_parent_id=_coerce_id("subParentId", value("sub_parent_id")),
            depends_on_id=_coerce_id("dependsOn", value("depends_on_id")),
            icon_id=_coerce_id("iconsId", value("icon_id")),
            progress_stage=value("progress_stage"),
            stages=list(stages),
            is_enabled=value("is_enabled"),
            start_at=_coerce_datetime("startAt", value("start_at")),
            end_at=_coerce_datetime("endAt", value("end_at")),
        )

    @property
    def effective_project_type(self) -> ProjectType | str:
        """The requested type; an absent type means a root project."""

        if not self.project_type:
            return ProjectType.ROOT
        try:
            return ProjectType(self.project_type)
        except ValueError:
            return self.project_type


@dataclass
class ProjectCreationResult:
    message: str
    data: Project

    def as_dict(self) -> dict:
        return {"message": self.message, "data": self.data}


def build_project(request: CreateProjectRequest, owner: User | None) -> Project:
    """Construct a fresh Project from the request fields.

    Field validators on the model raise ``ValueError`` for invalid values.
    """

    return Project(
        title=request.title,
        description=request.description,
        project_type=request.effective_project_type,
        root_parent_id=request.root_parent_id,
        sub_parent_id=request.sub_parent_id,
        depends_on_id=request.depends_on_id,
        icon_id=request.icon_id,
        progress_stage=request.progress_stage or ProjectStage.BACKLOG.value,
        stages=list(request.stages or []),
        is_enabled=True if request.is_enabled is None else bool(request.is_enabled),
        start_at=request.start_at,
        end_at=request.end_at,
        owner_id=owner.id if owner is not None else None,
    )


def _relation_loader(path: str):
    """Translate a dotted relation path into a chained ``selectinload`` option."""

    entity = Project
    loader = None
    for name in path.split("."):
        attribute = getattr(entity, name)
        loader = selectinload(attribute) if loader is None else loader.selectinload(attribute)
        entity = attribute.property.mapper.class_
    return loader


def populate_project_relations(
    project: Project, paths: Iterable[str] = PROJECT_RELATION_PATHS
) -> Project:
    """Reload the project with every relation path eagerly loaded."""

    options = [_relation_loader(path) for path in paths]
    if not options:
        return project
    statement = (
        select(Project)
        .where(Project.id == project.id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    return db.session.execute(statement).scalar_one()


def load_project(project_id: int, paths: Iterable[str] = PROJECT_RELATION_PATHS) -> Project | None:
    project = db.session.get(Project, project_id)
    if project is None:
        return None
    return populate_project_relations(project, paths)


def _release_reservation(reservation: QuotaReservation) -> None:
    try:
        reservation.release()
    except SQLAlchemyError:
        db.session.rollback()
        logger.error(
            "Unable to release root project quota for user %s",
            reservation.user.id,
            exc_info=True,
        )


def _missing_reference_error(
    request: CreateProjectRequest, error: IntegrityError
) -> RelatedProjectNotFoundError:
    """Name the reference a foreign key violation tripped over."""

    missing = missing_related_project(request)
    if missing is not None:
        return missing
    field, value = missing_reference_from_error(error)
    if field is None:
        return RelatedProjectNotFoundError("A referenced record does not exist")
    return RelatedProjectNotFoundError(
        f"The referenced {field} {value} does not exist", field=field
    )


def _fail(reservation: QuotaReservation, state: CreationState, error: BaseException) -> None:
    """Undo the quota reservation and log the failure."""

    db.session.rollback()
    logger.warning("Project creation failed while %s: %s", state.value, error)
    logger.debug("Project creation failure detail", exc_info=error)
    _release_reservation(reservation)


def create_project(
    request: CreateProjectRequest, user: User, *, populate: bool = True
) -> ProjectCreationResult:
    """Create a root project or sub-project on behalf of ``user``.

    Raises a ``ProjectError`` subclass on failure. Validation and quota
    failures happen before anything is written; later failures release the
    reserved quota first.
    """

    state = CreationState.VALIDATING
    try:
        validate_project_hierarchy(request, user)
        reservation = reserve_project_quota(user, request.effective_project_type)
    except ProjectError as error:
        logger.warning("Project creation rejected while %s: %s", state.value, error)
        logger.debug("Project creation rejection detail", exc_info=error)
        raise
    state = CreationState.QUOTA_RESERVED

    try:
        resolution = resolve_parent_project(request)
        state = CreationState.PARENT_RESOLVED

        state = CreationState.WRITING
        project = build_project(request, user)
        if resolution.parent is not None:
            parent = resolution.parent
            parent.total_sub_projects = (parent.total_sub_projects or 0) + 1
        db.session.add(project)
        db.session.commit()
    except ProjectError as error:
        _fail(reservation, state, error)
        raise
    except IntegrityError as error:
        _fail(reservation, state, error)
        if is_foreign_key_violation(error):
            raise _missing_reference_error(request, error) from error
        message, duplicated = duplicate_key_message(
            error, CREATE_FAILED_MESSAGE, {"title": request.title}
        )
        if duplicated is None:
            raise ProjectValidationError(CREATE_FAILED_MESSAGE) from error
        raise DuplicateKeyError(message, field=duplicated) from error
    except (ValueError, DataError) as error:
        _fail(reservation, state, error)
        raise ProjectValidationError(str(error) or CREATE_FAILED_MESSAGE) from error
    except Exception as error:
        _fail(reservation, state, error)
        raise ProjectInternalError() from error

    project_id = project.id
    state = CreationState.POPULATING
    if populate:
        try:
            project = populate_project_relations(project)
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("Unable to populate relations of project %s", project_id, exc_info=True)

    state = CreationState.DONE
    logger.info("Project %s created by user %s (%s)", project_id, user.id, state.value)
    return ProjectCreationResult(message=resolution.message or DEFAULT_CREATED_MESSAGE, data=project)
