import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from meeting_planner.db import Base


class TeamRole(enum.Enum):
    accountant = "accountant"
    admin_assistant = "admin_assistant"
    client_service_rep = "client_service_rep"
    deliverables_team_coordinator = "deliverables_team_coordinator"
    estate_attorney = "estate_attorney"
    financial_planner = "financial_planner"
    human_relations = "human_relations"
    insurance_business = "insurance_business"
    insurance_health = "insurance_health"
    insurance_life_ltc_disability = "insurance_life_ltc_disability"
    insurance_pc = "insurance_pc"
    money_manager = "money_manager"
    tax_planner = "tax_planner"
    trusted_advisor = "trusted_advisor"
    other = "other"


class Person(Base):
    __tablename__ = "people"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    first_name: Mapped[str] = mapped_column(String(80), nullable=False)
    last_name: Mapped[str] = mapped_column(String(80), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(160))
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    roles = relationship("PersonRole", back_populates="person", cascade="all, delete-orphan")

    @property
    def role_tags(self) -> list[TeamRole]:
        return [item.role for item in self.roles]

    @property
    def label(self) -> str:
        if self.display_name:
            return self.display_name
        return f"{self.first_name} {self.last_name}".strip()


class PersonRole(Base):
    __tablename__ = "person_roles"

    person_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("people.id", ondelete="CASCADE"),
        primary_key=True,
    )
    role: Mapped[TeamRole] = mapped_column(Enum(TeamRole, name="teamrole"), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    person = relationship("Person", back_populates="roles")
