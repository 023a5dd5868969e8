"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from letterflow.db.models.user import UserRow
from letterflow.db.models.template import TemplateRow, TemplateReviewerRow
from letterflow.db.models.file import FileRow
from letterflow.db.models.letter import LetterRow, LetterReviewerRow, LetterActionLogRow
from letterflow.db.models.notification import NotificationRow
from letterflow.db.models.activity import ActivityRow

__all__ = [
    "UserRow",
    "TemplateRow",
    "TemplateReviewerRow",
    "FileRow",
    "LetterRow",
    "LetterReviewerRow",
    "LetterActionLogRow",
    "NotificationRow",
    "ActivityRow",
]
