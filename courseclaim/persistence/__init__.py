"""
Persistence module implementing the data-access interface.
"""

from .database import (
    DatabaseManager, SQLiteDatabase, PostgreSQLDatabase, DatabaseFactory,
    UNIQUE_CONSTRAINTS, constraint_for_columns,
)

__all__ = [
    "DatabaseManager",
    "SQLiteDatabase",
    "PostgreSQLDatabase",
    "DatabaseFactory",
    "UNIQUE_CONSTRAINTS",
    "constraint_for_columns",
]
