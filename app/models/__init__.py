from app.models.user import BlacklistedToken, User, UserRole  # noqa: F401
from app.models.docman import (  # noqa: F401
    Book,
    Category,
    CategoryType,
    ChartDataSource,
    ChartType,
    CollaboratorRole,
    CustomChart,
    Document,
    DocumentFile,
    DocumentVersionHistory,
    ExternalContact,
    ExternalContactType,
    InvitationStatus,
    Notification,
    NotificationType,
    Project,
    ProjectCollaborator,
    ProjectPriority,
    ProjectStatus,
    ReviewAssignment,
    ReviewInterval,
    ReviewPeriod,
    ReviewStatus,
    Team,
    TeamInvitation,
    TeamMember,
    TeamRole,
)
