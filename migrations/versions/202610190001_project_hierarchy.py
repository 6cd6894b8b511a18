"""Create users, icons, projects and tasks for the project hierarchy (SQLite-safe, idempotent)."""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "202610190001_project_hierarchy"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing = set(inspector.get_table_names())

    if "user" not in existing:
        op.create_table(
            "user",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("username", sa.String(length=80), nullable=False),
            sa.Column("name", sa.String(length=80), nullable=False),
            sa.Column("email", sa.String(length=80), nullable=False),
            sa.Column("base_role", sa.String(length=20), nullable=False, server_default="guest"),
            sa.Column("total_projects", sa.Integer(), nullable=False, server_default="0"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
            sa.UniqueConstraint("email"),
        )
        print("[INFO] Created user table.")

    if "icon" not in existing:
        op.create_table(
            "icon",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=80), nullable=False),
            sa.Column("url", sa.String(length=255), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )
        print("[INFO] Created icon table.")

    if "project" not in existing:
        op.create_table(
            "project",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("stages", sa.JSON(), nullable=False),
            sa.Column("icon_id", sa.Integer(), nullable=True),
            sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("total_sub_projects", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total_project_todos", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("progress_stage", sa.String(length=50), nullable=False, server_default="backlog"),
            sa.Column("project_type", sa.String(length=20), nullable=False, server_default="root"),
            sa.Column(
                "project_type_behavior",
                sa.String(length=20),
                nullable=False,
                server_default="leafy",
            ),
            sa.Column("root_parent_id", sa.Integer(), nullable=True),
            sa.Column("sub_parent_id", sa.Integer(), nullable=True),
            sa.Column("depends_on_id", sa.Integer(), nullable=True),
            sa.Column("owner_id", sa.Integer(), nullable=True),
            sa.Column("start_at", sa.DateTime(), nullable=True),
            sa.Column("end_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["icon_id"], ["icon.id"], name="fk_project_icon_id"),
            sa.ForeignKeyConstraint(["root_parent_id"], ["project.id"], name="fk_project_root_parent_id"),
            sa.ForeignKeyConstraint(["sub_parent_id"], ["project.id"], name="fk_project_sub_parent_id"),
            sa.ForeignKeyConstraint(["depends_on_id"], ["project.id"], name="fk_project_depends_on_id"),
            sa.ForeignKeyConstraint(["owner_id"], ["user.id"], name="fk_project_owner_id"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("title", name="uq_project_title"),
        )
        op.create_index("ix_project_is_enabled", "project", ["is_enabled"])
        op.create_index("ix_project_progress_stage", "project", ["progress_stage"])
        op.create_index("ix_project_root_parent_id", "project", ["root_parent_id"])
        op.create_index("ix_project_sub_parent_id", "project", ["sub_parent_id"])
        op.create_index("ix_project_owner_id", "project", ["owner_id"])
        print("[INFO] Created project table.")
    else:
        print("[INFO] Skipping project table creation (already exists).")

    if "task" not in existing:
        op.create_table(
            "task",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("project_id", sa.Integer(), nullable=True),
            sa.Column("sub_parent_id", sa.Integer(), nullable=True),
            sa.Column("icon_id", sa.Integer(), nullable=True),
            sa.Column("owner_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["project_id"], ["project.id"], name="fk_task_project_id"),
            sa.ForeignKeyConstraint(["sub_parent_id"], ["project.id"], name="fk_task_sub_parent_id"),
            sa.ForeignKeyConstraint(["icon_id"], ["icon.id"], name="fk_task_icon_id"),
            sa.ForeignKeyConstraint(["owner_id"], ["user.id"], name="fk_task_owner_id"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_task_project_id", "task", ["project_id"])
        print("[INFO] Created task table.")
    else:
        print("[INFO] Skipping task table creation (already exists).")


def downgrade():
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing = set(inspector.get_table_names())

    if "task" in existing:
        op.drop_index("ix_task_project_id", table_name="task")
        op.drop_table("task")
    if "project" in existing:
        for index_name in (
            "ix_project_owner_id",
            "ix_project_sub_parent_id",
            "ix_project_root_parent_id",
            "ix_project_progress_stage",
            "ix_project_is_enabled",
        ):
            op.drop_index(index_name, table_name="project")
        op.drop_table("project")
    if "icon" in existing:
        op.drop_table("icon")
    if "user" in existing:
        op.drop_table("user")
    print("[INFO] Dropped project hierarchy tables.")
