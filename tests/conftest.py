import os
import sqlite3
import uuid

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

load_dotenv(os.path.join(os.getcwd(), ".env"))

# Register UUID adapter for SQLite - store as string
sqlite3.register_adapter(uuid.UUID, lambda u: str(u))

# Let SQLite accept UUID columns given either UUID objects or strings.
# This must happen before any models are imported
from sqlalchemy.sql import sqltypes  # noqa: E402

_original_uuid_bind_processor = sqltypes.Uuid.bind_processor
_original_uuid_result_processor = sqltypes.Uuid.result_processor


def _sqlite_uuid_bind_processor(self, dialect):
    if dialect.name == "sqlite":
        def process(value):
            if value is None:
                return None
            if isinstance(value, uuid.UUID):
                return str(value)
            return str(uuid.UUID(value)) if value else None
        return process
    return _original_uuid_bind_processor(self, dialect)


def _sqlite_uuid_result_processor(self, dialect, coltype):
    if dialect.name == "sqlite":
        def process(value):
            if value is None or isinstance(value, uuid.UUID):
                return value
            return uuid.UUID(value) if value else None
        return process
    return _original_uuid_result_processor(self, dialect, coltype)


sqltypes.Uuid.bind_processor = _sqlite_uuid_bind_processor
sqltypes.Uuid.result_processor = _sqlite_uuid_result_processor

from meeting_planner import models  # noqa: F401,E402
from meeting_planner.db import Base  # noqa: E402
from meeting_planner.models.person import Person, PersonRole, TeamRole  # noqa: E402
from meeting_planner.models.projects import MeetingType  # noqa: E402
from meeting_planner.schemas.projects import (  # noqa: E402
    ProjectTemplateCreate,
    ProjectTemplateTaskCreate,
    TemplateMilestoneCreate,
)
from meeting_planner.services import project_templates as templates_service  # noqa: E402

@pytest.fixture(scope="session")
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _connection_record):
            # Disable pysqlite's own transaction handling so SAVEPOINTs work.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _do_begin(conn):
            conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        autocommit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex}@example.com"


@pytest.fixture()
def make_person(db_session):
    def _make(*roles: TeamRole, first_name: str = "Test", is_active: bool = True) -> Person:
        person = Person(
            first_name=first_name,
            last_name="User",
            email=_unique_email(),
            is_active=is_active,
        )
        for role in roles:
            person.roles.append(PersonRole(role=role))
        db_session.add(person)
        db_session.commit()
        db_session.refresh(person)
        return person

    return _make


@pytest.fixture()
def person(make_person):
    return make_person()


@pytest.fixture()
def csr_template(db_session):
    """Two milestones: an offset root with a subtask, plus a dependent task.

    Returns a dict of the template and its records keyed by short name.
    """
    template = templates_service.project_templates.create(
        db_session,
        ProjectTemplateCreate(name="Comprehensive Safety Review", meeting_type=MeetingType.csr),
    )
    prepare = templates_service.template_milestones.create(
        db_session,
        TemplateMilestoneCreate(template_id=template.id, title="Preparing for Meeting"),
    )
    follow_up = templates_service.template_milestones.create(
        db_session,
        TemplateMilestoneCreate(template_id=template.id, title="After Meeting"),
    )
    confirm = templates_service.project_template_tasks.create(
        db_session,
        ProjectTemplateTaskCreate(
            template_id=template.id,
            milestone_id=prepare.id,
            title="Confirm Meeting Date & Time with Client",
            sort_order=0,
            days_from_meeting=-80,
            assigned_roles=[TeamRole.client_service_rep],
        ),
    )
    enter_dates = templates_service.project_template_tasks.create(
        db_session,
        ProjectTemplateTaskCreate(
            template_id=template.id,
            parent_task_id=confirm.id,
            title="Enter Dates into Calendar",
            sort_order=0,
            days_from_meeting=-78,
            assigned_roles=[TeamRole.admin_assistant],
        ),
    )
    notes = templates_service.project_template_tasks.create(
        db_session,
        ProjectTemplateTaskCreate(
            template_id=template.id,
            milestone_id=follow_up.id,
            title="Create Meeting Notes",
            sort_order=0,
            days_from_meeting=1,
            assigned_roles=[TeamRole.admin_assistant],
        ),
    )
    summary = templates_service.project_template_tasks.create(
        db_session,
        ProjectTemplateTaskCreate(
            template_id=template.id,
            milestone_id=follow_up.id,
            title="Send Meeting Summary to Client",
            sort_order=1,
            depends_on_task_id=notes.id,
            dependency_lag_days=2,
            assigned_roles=[TeamRole.estate_attorney, TeamRole.tax_planner],
        ),
    )
    return {
        "template": template,
        "prepare": prepare,
        "follow_up": follow_up,
        "confirm": confirm,
        "enter_dates": enter_dates,
        "notes": notes,
        "summary": summary,
    }
