"""Database models"""

from authgate.models.user import User
from authgate.models.security import RefreshToken
from authgate.models.audit import AuditEvent

__all__ = ["User", "RefreshToken", "AuditEvent"]
