"""Create people, templates and project planning tables.

Revision ID: c3d9a1e7b2f4
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "c3d9a1e7b2f4"
down_revision = None
branch_labels = None
depends_on = None

teamrole = postgresql.ENUM(
    "accountant",
    "admin_assistant",
    "client_service_rep",
    "deliverables_team_coordinator",
    "estate_attorney",
    "financial_planner",
    "human_relations",
    "insurance_business",
    "insurance_health",
    "insurance_life_ltc_disability",
    "insurance_pc",
    "money_manager",
    "tax_planner",
    "trusted_advisor",
    "other",
    name="teamrole",
    create_type=False,
)
meetingtype = postgresql.ENUM("frm", "im", "ipu", "csr", "gpo", "tar", name="meetingtype", create_type=False)
projectstatus = postgresql.ENUM(
    "planning", "active", "on_hold", "completed", "cancelled", name="projectstatus", create_type=False
)
taskstatus = postgresql.ENUM("todo", "in_progress", "completed", "cancelled", name="taskstatus", create_type=False)
taskpriority = postgresql.ENUM("low", "medium", "high", "urgent", name="taskpriority", create_type=False)
dependencyanchor = postgresql.ENUM("due_date", "completion", name="dependencyanchor", create_type=False)

ENUMS = (teamrole, meetingtype, projectstatus, taskstatus, taskpriority, dependencyanchor)


def _uuid():
    return postgresql.UUID(as_uuid=True)


def _timestamps(with_updated: bool = True) -> list:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)]
    if with_updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return columns


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "people",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False),
        sa.Column("display_name", sa.String(length=160), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "person_roles",
        sa.Column("person_id", _uuid(), sa.ForeignKey("people.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role", teamrole, primary_key=True),
        *_timestamps(with_updated=False),
    )

    op.create_table(
        "project_templates",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("meeting_type", meetingtype, nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("meeting_type", name="uq_project_templates_meeting_type"),
    )
    op.create_table(
        "template_milestones",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("template_id", _uuid(), sa.ForeignKey("project_templates.id"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_table(
        "project_template_tasks",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("template_id", _uuid(), sa.ForeignKey("project_templates.id"), nullable=False),
        sa.Column(
            "milestone_id",
            _uuid(),
            sa.ForeignKey("template_milestones.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("parent_task_id", _uuid(), sa.ForeignKey("project_template_tasks.id"), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("priority", taskpriority, nullable=True),
        sa.Column("level", sa.Integer(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=True),
        sa.Column("days_from_meeting", sa.Integer(), nullable=True),
        sa.Column("depends_on_task_id", _uuid(), sa.ForeignKey("project_template_tasks.id"), nullable=True),
        sa.Column("dependency_anchor", dependencyanchor, nullable=True),
        sa.Column("dependency_lag_days", sa.Integer(), nullable=True),
        sa.Column("assigned_roles", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "days_from_meeting IS NULL OR depends_on_task_id IS NULL",
            name="ck_project_template_tasks_single_schedule",
        ),
        sa.CheckConstraint(
            "depends_on_task_id IS NULL OR depends_on_task_id <> id",
            name="ck_project_template_tasks_no_self_dependency",
        ),
    )
    op.create_index("ix_project_template_tasks_template", "project_template_tasks", ["template_id"])

    op.create_table(
        "projects",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("template_id", _uuid(), sa.ForeignKey("project_templates.id"), nullable=True),
        sa.Column("meeting_type", meetingtype, nullable=True),
        sa.Column("reference_date", sa.Date(), nullable=True),
        sa.Column("status", projectstatus, nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "project_milestones",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("project_id", _uuid(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column(
            "template_milestone_id",
            _uuid(),
            sa.ForeignKey("template_milestones.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_table(
        "project_tasks",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("project_id", _uuid(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("milestone_id", _uuid(), sa.ForeignKey("project_milestones.id"), nullable=True),
        sa.Column("parent_task_id", _uuid(), sa.ForeignKey("project_tasks.id"), nullable=True),
        sa.Column("template_task_id", _uuid(), sa.ForeignKey("project_template_tasks.id"), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", taskstatus, nullable=True),
        sa.Column("priority", taskpriority, nullable=True),
        sa.Column("level", sa.Integer(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=True),
        sa.Column("days_from_meeting", sa.Integer(), nullable=True),
        sa.Column("depends_on_task_id", _uuid(), sa.ForeignKey("project_tasks.id"), nullable=True),
        sa.Column("dependency_anchor", dependencyanchor, nullable=True),
        sa.Column("dependency_lag_days", sa.Integer(), nullable=True),
        sa.Column("unresolved_roles", sa.JSON(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "days_from_meeting IS NULL OR depends_on_task_id IS NULL",
            name="ck_project_tasks_single_schedule",
        ),
        sa.CheckConstraint(
            "depends_on_task_id IS NULL OR depends_on_task_id <> id",
            name="ck_project_tasks_no_self_dependency",
        ),
    )
    op.create_index("ix_project_tasks_project_due", "project_tasks", ["project_id", "due_date"])
    op.create_table(
        "project_task_assignees",
        sa.Column("task_id", _uuid(), sa.ForeignKey("project_tasks.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("person_id", _uuid(), sa.ForeignKey("people.id", ondelete="CASCADE"), primary_key=True),
        *_timestamps(with_updated=False),
    )


def downgrade() -> None:
    op.drop_table("project_task_assignees")
    op.drop_index("ix_project_tasks_project_due", table_name="project_tasks")
    op.drop_table("project_tasks")
    op.drop_table("project_milestones")
    op.drop_table("projects")
    op.drop_index("ix_project_template_tasks_template", table_name="project_template_tasks")
    op.drop_table("project_template_tasks")
    op.drop_table("template_milestones")
    op.drop_table("project_templates")
    op.drop_table("person_roles")
    op.drop_table("people")
    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
