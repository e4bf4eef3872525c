"""Database layer for cashledger."""

from cashledger.database.base import Database
from cashledger.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
