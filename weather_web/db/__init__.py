from .base import Base
from .session import DatabaseSessionManager

__all__ = ["Base", "DatabaseSessionManager"]
