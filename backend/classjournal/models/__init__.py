from classjournal.models.journal import Journal, MediaType, journal_tagged_students
from classjournal.models.user import Role, User

__all__ = ["Journal", "MediaType", "Role", "User", "journal_tagged_students"]
