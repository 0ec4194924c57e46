"""
Re-exports of the ORM base and the default database manager.
"""

from eventbook.core.database_manager import Base, DatabaseManager, db_manager

__all__ = ["Base", "DatabaseManager", "db_manager"]
