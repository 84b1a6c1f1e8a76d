from datetime import date

import pytest

from meeting_planner.models.person import TeamRole
from meeting_planner.models.projects import MeetingType, ProjectTask
from meeting_planner.schemas.person import PersonRead
from meeting_planner.schemas.projects import (
    ProjectFromTemplateCreate,
    ProjectMilestoneRead,
    ProjectRead,
    ProjectTaskRead,
    ProjectTaskUpdate,
    ProjectTemplateRead,
    ProjectTemplateTaskRead,
    TaskTreeNodeRead,
)
from meeting_planner.services import project_templates as templates_service
from meeting_planner.services import projects as projects_service


def test_meeting_date_alias_is_accepted():
    payload = ProjectFromTemplateCreate.model_validate(
        {"name": "Annual review", "meeting_type": "tar", "meeting_date": "2025-10-01"}
    )
    assert payload.reference_date == date(2025, 10, 1)
    assert payload.meeting_type == MeetingType.tar


def test_task_update_rejects_two_schedules():
    with pytest.raises(ValueError):
        ProjectTaskUpdate(days_from_meeting=1, depends_on_task_id="00000000-0000-0000-0000-000000000001")


def test_person_read_exposes_role_tags(make_person):
    person = make_person(TeamRole.money_manager)
    read = PersonRead.model_validate(person)
    assert read.role_tags == [TeamRole.money_manager]


def test_template_reads(db_session, csr_template):
    template = ProjectTemplateRead.model_validate(csr_template["template"])
    summary = ProjectTemplateTaskRead.model_validate(csr_template["summary"])
    assert template.meeting_type == MeetingType.csr
    assert summary.assigned_roles == [TeamRole.estate_attorney, TeamRole.tax_planner]
    assert summary.depends_on_task_id == csr_template["notes"].id

    forest = templates_service.project_templates.task_tree(db_session, str(csr_template["template"].id))
    node = TaskTreeNodeRead.from_node(forest[0])
    assert node.title == "Confirm Meeting Date & Time with Client"
    assert [child.level for child in node.children] == [1]


def test_project_reads(db_session, csr_template, make_person):
    result = projects_service.projects.create_from_template(
        db_session,
        ProjectFromTemplateCreate(name="Read model", meeting_type=MeetingType.csr, reference_date=date(2025, 10, 1)),
    )
    project = ProjectRead.model_validate(result.project)
    assert project.reference_date == date(2025, 10, 1)

    task = (
        db_session.query(ProjectTask)
        .filter(ProjectTask.project_id == result.project.id)
        .filter(ProjectTask.title == "Send Meeting Summary to Client")
        .one()
    )
    read = ProjectTaskRead.model_validate(task)
    assert read.due_date == date(2025, 10, 4)
    assert read.assigned_to_person_ids == []
    assert read.unresolved_roles == [TeamRole.estate_attorney, TeamRole.tax_planner]

    summaries = projects_service.project_milestones.list(db_session, str(result.project.id))
    milestone = ProjectMilestoneRead.model_validate(summaries[1].milestone).model_copy(
        update={"progress": summaries[1].percent}
    )
    assert milestone.due_date == date(2025, 10, 4)
    assert milestone.progress == 0
