import unittest
from datetime import datetime
from unittest import mock

from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.project import Project, ProjectStage, ProjectType, ProjectTypeBehavior
from models.user import SubscriptionTier
from services.errors import (
    INTERNAL_ERROR_MESSAGE,
    DuplicateKeyError,
    ErrorKind,
    ProjectInternalError,
    ProjectValidationError,
    QuotaExceededError,
    RelatedProjectNotFoundError,
)
from services.project_service import (
    DEFAULT_CREATED_MESSAGE,
    PROJECT_RELATION_PATHS,
    CreateProjectRequest,
    create_project,
    load_project,
)
from services.task_service import add_task_to_project
from tests.utils.cases import DatabaseTestCase

_original_commit = Session.commit


def _reject_pending_projects(session, detail):
    """Commit normally unless a new project is pending, which fails like a database constraint."""

    if any(isinstance(obj, Project) for obj in session.new):
        raise IntegrityError("INSERT INTO project ...", {}, Exception(detail))
    return _original_commit(session)


class CreateProjectTestCase(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.user = self.create_user(tier=SubscriptionTier.STANDARD, total_projects=1)
        self.user_id = self.user.id

    def test_root_project_defaults(self):
        result = create_project(CreateProjectRequest(title="Roadmap"), self.user)

        project = result.data
        self.assertEqual(result.message, DEFAULT_CREATED_MESSAGE)
        self.assertEqual(result.as_dict()["data"].id, project.id)
        self.assertEqual(project.project_type, ProjectType.ROOT)
        self.assertEqual(project.project_type_behavior, ProjectTypeBehavior.LEAFY)
        self.assertEqual(project.progress_stage, ProjectStage.BACKLOG)
        self.assertTrue(project.is_enabled)
        self.assertEqual(project.stages, [])
        self.assertEqual(project.total_sub_projects, 0)
        self.assertEqual(project.total_project_todos, 0)
        self.assertEqual(project.owner_id, self.user_id)
        self.assertEqual(self.reload_user(self.user_id).total_projects, 2)

    def test_duplicate_title_rolls_back_quota(self):
        create_project(CreateProjectRequest(title="Roadmap"), self.user)
        self.assertEqual(self.reload_user(self.user_id).total_projects, 2)

        with self.assertLogs("services.project_service", level="WARNING"):
            with self.assertRaises(DuplicateKeyError) as ctx:
                create_project(CreateProjectRequest(title="Roadmap"), self.reload_user(self.user_id))

        self.assertEqual(ctx.exception.kind, ErrorKind.DUPLICATE_KEY)
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.field, "title")
        self.assertIn("Roadmap", ctx.exception.message)
        self.assertEqual(self.reload_user(self.user_id).total_projects, 2)
        self.assertEqual(Project.query.count(), 1)

    def test_field_validation_failure_rolls_back_quota(self):
        request = CreateProjectRequest(
            title="Backwards",
            start_at=datetime(2026, 5, 1),
            end_at=datetime(2026, 4, 1),
        )

        with self.assertRaises(ProjectValidationError) as ctx:
            create_project(request, self.user)

        self.assertIn("cannot end before it starts", ctx.exception.message)
        self.assertEqual(self.reload_user(self.user_id).total_projects, 1)
        self.assertEqual(Project.query.count(), 0)

    def test_blank_title_is_a_validation_error(self):
        with self.assertRaises(ProjectValidationError):
            create_project(CreateProjectRequest(title="   "), self.user)
        self.assertEqual(self.reload_user(self.user_id).total_projects, 1)

    def test_unknown_project_type_is_a_validation_error(self):
        with self.assertRaises(ProjectValidationError) as ctx:
            create_project(CreateProjectRequest(title="Odd", project_type="portfolio"), self.user)

        self.assertIn("Received portfolio", ctx.exception.message)
        self.assertEqual(self.reload_user(self.user_id).total_projects, 1)

    def test_unexpected_failure_is_opaque_and_compensated(self):
        with mock.patch(
            "services.project_service.build_project", side_effect=RuntimeError("disk on fire")
        ):
            with self.assertRaises(ProjectInternalError) as ctx:
                create_project(CreateProjectRequest(title="Roadmap"), self.user)

        self.assertEqual(ctx.exception.kind, ErrorKind.INTERNAL)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.message, INTERNAL_ERROR_MESSAGE)
        self.assertNotIn("disk on fire", ctx.exception.message)
        self.assertEqual(self.reload_user(self.user_id).total_projects, 1)

    def test_new_project_never_reuses_parent_identity(self):
        parent = create_project(CreateProjectRequest(title="Platform"), self.user).data
        parent_id = parent.id

        child = create_project(
            CreateProjectRequest(
                title="API",
                project_type=ProjectType.SUB_PROJECT,
                root_parent_id=parent_id,
            ),
            self.reload_user(self.user_id),
        ).data

        self.assertNotEqual(child.id, parent_id)
        self.assertEqual(child.root_parent_id, parent_id)
        self.assertEqual(self.reload_project(parent_id).title, "Platform")
        self.assertEqual(Project.query.count(), 2)

    def test_missing_dependency_rejected_by_foreign_key(self):
        request = CreateProjectRequest(title="Roadmap", depends_on_id=9999)

        with mock.patch.object(
            Session,
            "commit",
            autospec=True,
            side_effect=lambda session: _reject_pending_projects(
                session, "FOREIGN KEY constraint failed"
            ),
        ):
            with self.assertRaises(RelatedProjectNotFoundError) as ctx:
                create_project(request, self.user)

        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND_RELATED)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.field, "depends_on_id")
        self.assertEqual(ctx.exception.project_id, 9999)
        self.assertEqual(self.reload_user(self.user_id).total_projects, 1)
        self.assertEqual(Project.query.count(), 0)

    def test_missing_parent_of_sub_project_rejected_by_foreign_key(self):
        request = CreateProjectRequest(
            title="API", project_type=ProjectType.SUB_PROJECT, root_parent_id=9999
        )
        detail = (
            'insert or update on table "project" violates foreign key constraint'
            ' "fk_project_root_parent_id"\nDETAIL:  Key (root_parent_id)=(9999)'
            ' is not present in table "project".'
        )

        with mock.patch.object(
            Session,
            "commit",
            autospec=True,
            side_effect=lambda session: _reject_pending_projects(session, detail),
        ):
            with self.assertRaises(RelatedProjectNotFoundError) as ctx:
                create_project(request, self.user)

        self.assertEqual(ctx.exception.field, "root_parent_id")
        self.assertIn("9999", ctx.exception.message)
        self.assertEqual(self.reload_user(self.user_id).total_projects, 1)

    def test_rejections_before_reservation_log_full_detail(self):
        user = self.create_user("capped", tier=SubscriptionTier.GUEST, total_projects=3)

        with self.assertLogs("services.project_service", level="DEBUG") as logs:
            with self.assertRaises(QuotaExceededError):
                create_project(CreateProjectRequest(title="Fourth"), user)

        levels = [record.levelname for record in logs.records]
        self.assertIn("WARNING", levels)
        detail = [record for record in logs.records if record.levelname == "DEBUG"]
        self.assertTrue(detail)
        self.assertIsNotNone(detail[0].exc_info)

    def test_populate_can_be_skipped(self):
        result = create_project(CreateProjectRequest(title="Roadmap"), self.user, populate=False)

        self.assertEqual(result.data.title, "Roadmap")


class ProjectHydrationTestCase(DatabaseTestCase):
    def test_populated_relations_are_loaded(self):
        user = self.create_user(tier=SubscriptionTier.PREMIUM)
        platform = create_project(CreateProjectRequest(title="Platform"), user).data
        platform_id = platform.id
        infra = create_project(CreateProjectRequest(title="Infra"), user).data
        infra_id = infra.id

        api = create_project(
            CreateProjectRequest(
                title="API",
                project_type=ProjectType.SUB_PROJECT,
                root_parent_id=platform_id,
                sub_parent_id=platform_id,
                depends_on_id=infra_id,
            ),
            user,
        ).data
        add_task_to_project(api, "Write endpoints", user)

        project = load_project(api.id)

        unloaded = inspect(project).unloaded
        for path in PROJECT_RELATION_PATHS:
            if "." not in path:
                self.assertNotIn(path, unloaded)
        self.assertEqual(project.root_parent.id, platform_id)
        self.assertEqual(project.sub_parent.id, platform_id)
        self.assertEqual(project.depends_on.id, infra_id)
        self.assertIsNone(project.icon)
        self.assertEqual(len(project.tasks), 1)

        task = project.tasks[0]
        task_unloaded = inspect(task).unloaded
        for name in ("project", "sub_parent", "icon", "owner"):
            self.assertNotIn(name, task_unloaded)
        self.assertEqual(task.project.id, project.id)
        self.assertEqual(task.owner.id, user.id)

    def test_load_missing_project_returns_none(self):
        self.assertIsNone(load_project(12345))


class CreateProjectRequestTestCase(unittest.TestCase):
    def test_from_mapping_accepts_wire_names(self):
        request = CreateProjectRequest.from_mapping(
            {
                "title": "API",
                "projectType": "sub_project",
                "rootParentId": "7",
                "dependsOn": 3,
                "progressStage": "in_progress",
                "stages": ["backlog", "in_progress"],
                "isEnabled": False,
                "startAt": "2026-01-01T09:00:00",
            }
        )

        self.assertEqual(request.effective_project_type, ProjectType.SUB_PROJECT)
        self.assertEqual(request.root_parent_id, 7)
        self.assertEqual(request.depends_on_id, 3)
        self.assertIsNone(request.sub_parent_id)
        self.assertEqual(request.progress_stage, "in_progress")
        self.assertEqual(request.stages, ["backlog", "in_progress"])
        self.assertFalse(request.is_enabled)
        self.assertEqual(request.start_at, datetime(2026, 1, 1, 9, 0))

    def test_missing_type_means_root(self):
        request = CreateProjectRequest.from_mapping({"title": "Roadmap"})

        self.assertIsNone(request.project_type)
        self.assertEqual(request.effective_project_type, ProjectType.ROOT)

    def test_bad_identifier_is_rejected(self):
        with self.assertRaises(ProjectValidationError):
            CreateProjectRequest.from_mapping({"title": "API", "rootParentId": "not-an-id"})

    def test_bad_date_is_rejected(self):
        with self.assertRaises(ProjectValidationError):
            CreateProjectRequest.from_mapping({"title": "API", "endAt": "next tuesday"})


if __name__ == "__main__":
    unittest.main()
