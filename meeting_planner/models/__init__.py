from meeting_planner.models.person import Person, PersonRole, TeamRole  # noqa: F401
from meeting_planner.models.projects import (  # noqa: F401
    DependencyAnchor,
    MeetingType,
    Project,
    ProjectMilestone,
    ProjectStatus,
    ProjectTask,
    ProjectTaskAssignee,
    ProjectTemplate,
    ProjectTemplateTask,
    TaskPriority,
    TaskStatus,
    TemplateMilestone,
)
