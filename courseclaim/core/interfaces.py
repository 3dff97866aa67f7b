"""
Core interfaces and abstract base classes for the course claim platform.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence


Row = Dict[str, Any]


class DataAccess(ABC):
    """Relational data-access interface every storage backend implements.

    Uniqueness and conditional updates are enforced by the backend itself;
    callers rely on the exceptions raised here instead of reading first.
    """

    @abstractmethod
    def insert_row(self, table: str, values: Dict[str, Any]) -> Row:
        """Insert a row and return it.

        Raises DuplicateEntityError when a unique constraint is violated.
        """
        pass

    @abstractmethod
    def update_row_if(self, table: str, row_id: str, predicate: Dict[str, Any],
                      values: Dict[str, Any]) -> Row:
        """Atomically update a row only if every predicate column matches.

        A predicate value of None matches SQL NULL. Raises ResourceNotFoundError
        when the row does not exist and PredicateFailedError when it exists
        but does not satisfy the predicate.
        """
        pass

    @abstractmethod
    def find_one(self, table: str, filters: Dict[str, Any]) -> Optional[Row]:
        """Return the first row matching all equality filters, or None."""
        pass

    @abstractmethod
    def find_many(self, table: str, filters: Optional[Dict[str, Any]] = None,
                  order_by: Optional[str] = None, descending: bool = False,
                  limit: Optional[int] = None) -> List[Row]:
        """Return all rows matching the equality filters."""
        pass

    @abstractmethod
    def search_rows(self, table: str, columns: Sequence[str], term: str,
                    filters: Optional[Dict[str, Any]] = None) -> List[Row]:
        """Case-insensitive substring search over ``columns``."""
        pass

    def close(self) -> None:
        """Release backend resources."""
        pass
