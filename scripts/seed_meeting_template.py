import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from meeting_planner.db import SessionLocal
from meeting_planner.models.person import TeamRole
from meeting_planner.models.projects import DependencyAnchor, MeetingType, ProjectTemplate, TaskPriority
from meeting_planner.schemas.projects import (
    ProjectTemplateCreate,
    ProjectTemplateTaskCreate,
    TemplateMilestoneCreate,
)
from meeting_planner.services import project_templates as templates_service

# (title, role, days_from_meeting, priority, children)
# A string in place of days_from_meeting names the task this one follows by one day.
CSR_SECTIONS = {
    "Confirming & Scheduling Meeting Dates & Times": [
        ("Confirm Meeting Date & Time with Client", TeamRole.client_service_rep, -80, TaskPriority.high, []),
        ("Enter Dates into ASANA", TeamRole.admin_assistant, -78, TaskPriority.medium, []),
        ("Submit Proposed Dates/Time for DRPM", TeamRole.admin_assistant, -76, TaskPriority.medium, []),
        ("Update New Meeting in ASANA and Create Meeting", TeamRole.admin_assistant, -74, TaskPriority.medium, []),
        ("Send Out Expectation Email #1 to Team", TeamRole.admin_assistant, -72, TaskPriority.medium, []),
    ],
    "Preparing for & Gathering Information for Meetings": [
        (
            "Submit Your Items Still Needed & Initial Highest Priority Conversation Reports",
            TeamRole.client_service_rep,
            -70,
            TaskPriority.high,
            [],
        ),
        ("Consolidate Items Still Needed and Send to SMEs", TeamRole.client_service_rep, -65, TaskPriority.medium, []),
        (
            "Consolidate Highest Priority Conversations & Update Meeting Agenda",
            TeamRole.client_service_rep,
            -60,
            TaskPriority.medium,
            [],
        ),
        (
            "Request Account Values for Any Outside Accounts and Transactions",
            TeamRole.admin_assistant,
            -55,
            TaskPriority.medium,
            [],
        ),
        (
            "Request Actions Taken Since Last Meeting by Team and Client",
            TeamRole.admin_assistant,
            -50,
            TaskPriority.medium,
            [],
        ),
        (
            "Download Account Values & Transactions for Growth Accounts",
            TeamRole.admin_assistant,
            -45,
            TaskPriority.low,
            [],
        ),
    ],
    "Preparing for DRPM": [
        (
            "Create Circle Chart",
            TeamRole.financial_planner,
            -40,
            TaskPriority.high,
            [
                ("Financial Planner Review Circle Chart", TeamRole.financial_planner, -35),
                ("Tax Planner Review Circle Chart", TeamRole.tax_planner, -30),
                ("Estate Attorney Review Circle Chart", TeamRole.estate_attorney, -25),
                ("Insurance Planner Review Circle Chart", TeamRole.insurance_life_ltc_disability, -20),
                ("Money Manager Review Circle Chart", TeamRole.money_manager, -15),
            ],
        ),
        ("Finalize Circle Chart", TeamRole.financial_planner, -10, TaskPriority.high, []),
        ("Send Circle Chart to Team", TeamRole.admin_assistant, "Finalize Circle Chart", TaskPriority.medium, []),
        ("DRPM Meeting", TeamRole.client_service_rep, -5, TaskPriority.high, []),
        ("Update Meeting Agenda Based on DRPM", TeamRole.client_service_rep, -3, TaskPriority.medium, []),
        ("Send Final Meeting Agenda to Team", TeamRole.admin_assistant, -2, TaskPriority.medium, []),
        ("Prepare Meeting Materials", TeamRole.admin_assistant, -1, TaskPriority.medium, []),
    ],
    "Preparing for Progress Meeting": [
        ("Send Meeting Materials to Client", TeamRole.admin_assistant, -1, TaskPriority.medium, []),
        ("Conduct Progress Meeting", TeamRole.client_service_rep, 0, TaskPriority.urgent, []),
    ],
    "After Progress Meeting": [
        ("Create Meeting Notes", TeamRole.admin_assistant, 1, TaskPriority.medium, []),
        ("Send Meeting Summary to Client", TeamRole.admin_assistant, "Create Meeting Notes", TaskPriority.medium, []),
        ("Update Client Records", TeamRole.admin_assistant, 3, TaskPriority.low, []),
        ("Schedule Follow-up Actions", TeamRole.admin_assistant, 4, TaskPriority.low, []),
    ],
}


def parse_args():
    parser = argparse.ArgumentParser(description="Seed the comprehensive safety review meeting template.")
    parser.add_argument("--name", default="Comprehensive Safety Review")
    parser.add_argument(
        "--meeting-type",
        choices=[item.value for item in MeetingType],
        default=MeetingType.csr.value,
    )
    parser.add_argument("--force", action="store_true", help="Seed even if a template for the type exists.")
    return parser.parse_args()


def seed_template(db, name: str, meeting_type: MeetingType):
    template = templates_service.project_templates.create(
        db,
        ProjectTemplateCreate(name=name, meeting_type=meeting_type),
    )
    created = {}
    for milestone_order, (section, tasks) in enumerate(CSR_SECTIONS.items()):
        milestone = templates_service.template_milestones.create(
            db,
            TemplateMilestoneCreate(template_id=template.id, title=section, sort_order=milestone_order),
        )
        for task_order, (title, role, schedule, priority, children) in enumerate(tasks):
            follows = created.get(schedule) if isinstance(schedule, str) else None
            task = templates_service.project_template_tasks.create(
                db,
                ProjectTemplateTaskCreate(
                    template_id=template.id,
                    milestone_id=milestone.id,
                    title=title,
                    priority=priority,
                    sort_order=task_order,
                    days_from_meeting=None if follows else schedule,
                    depends_on_task_id=follows.id if follows else None,
                    dependency_anchor=DependencyAnchor.due_date,
                    dependency_lag_days=1 if follows else 0,
                    assigned_roles=[role],
                ),
            )
            created[title] = task
            for child_order, (child_title, child_role, child_offset) in enumerate(children):
                created[child_title] = templates_service.project_template_tasks.create(
                    db,
                    ProjectTemplateTaskCreate(
                        template_id=template.id,
                        parent_task_id=task.id,
                        title=child_title,
                        sort_order=child_order,
                        days_from_meeting=child_offset,
                        assigned_roles=[child_role],
                    ),
                )
    return template, len(created)


def main():
    load_dotenv()
    args = parse_args()
    meeting_type = MeetingType(args.meeting_type)
    db = SessionLocal()
    try:
        existing = db.query(ProjectTemplate).filter(ProjectTemplate.meeting_type == meeting_type).first()
        if existing and not args.force:
            print(f"Template already exists for {meeting_type.value}: {existing.id}")
            return
        if existing:
            existing.meeting_type = None
            db.commit()
        template, count = seed_template(db, args.name, meeting_type)
        print(f"Seeded template {template.id} ({template.name}) with {count} tasks")
    finally:
        db.close()


if __name__ == "__main__":
    main()
