"""SQL backing for the primary document store."""

from database.models import Base, StoredDocument
from database.connection import DatabaseConnection, init_db

__all__ = [
    "Base",
    "StoredDocument",
    "DatabaseConnection",
    "init_db",
]
