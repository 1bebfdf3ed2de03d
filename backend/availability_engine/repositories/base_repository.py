# backend/availability_engine/repositories/base_repository.py
"""
Shared data access for the rule and slot stores.

Repositories flush so generated ids and defaults are visible, but never
commit: the engine decides where a unit of work ends. Every SQLAlchemy error
leaves the repository as a RepositoryException.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
import logging
from typing import Any, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class IRepository(ABC, Generic[T]):
    """Minimal store contract the engine relies on for rules and slots."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Entity by primary key, or None."""

    @abstractmethod
    def create(self, **kwargs: Any) -> T:
        """Insert one entity and return it with its id assigned."""

    @abstractmethod
    def update(self, id: str, **kwargs: Any) -> Optional[T]:
        """Apply column values; None when the id is unknown."""

    @abstractmethod
    def delete(self, id: str) -> bool:
        """Remove by id; False when the id is unknown."""


class BaseRepository(IRepository[T]):
    """SQLAlchemy implementation of IRepository for one mapped model."""

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def _db_errors(self, action: str, rollback: bool = False) -> Iterator[None]:
        """Translate SQLAlchemy failures into RepositoryException."""
        try:
            yield
        except IntegrityError as exc:
            self.logger.error(f"Integrity error while trying to {action}: {exc}")
            if rollback:
                self.db.rollback()
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as exc:
            self.logger.error(f"Database error while trying to {action}: {exc}")
            if rollback:
                self.db.rollback()
            raise RepositoryException(f"Failed to {action}: {exc}") from exc

    def _build_query(self) -> Query:
        return self.db.query(self.model)

    def get_by_id(self, id: str) -> Optional[T]:
        with self._db_errors(f"get {self.model.__name__} {id}"):
            return self._build_query().filter(self.model.id == id).first()

    def create(self, **kwargs: Any) -> T:
        with self._db_errors(f"create {self.model.__name__}", rollback=True):
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
        return entity

    def bulk_create(self, rows: List[Dict[str, Any]]) -> List[T]:
        """Insert many entities with a single flush; ids are populated on return."""
        if not rows:
            return []
        with self._db_errors(f"bulk create {len(rows)} {self.model.__name__} rows", rollback=True):
            entities = [self.model(**row) for row in rows]
            self.db.add_all(entities)
            self.db.flush()
        return entities

    def update(self, id: str, **kwargs: Any) -> Optional[T]:
        """Set only the given columns; unknown attribute names are ignored."""
        entity = self.get_by_id(id)
        if entity is None:
            return None
        with self._db_errors(f"update {self.model.__name__} {id}", rollback=True):
            for key, value in kwargs.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)
            self.db.flush()
        return entity

    def delete(self, id: str) -> bool:
        entity = self.get_by_id(id)
        if entity is None:
            return False
        with self._db_errors(f"delete {self.model.__name__} {id}", rollback=True):
            self.db.delete(entity)
            self.db.flush()
        return True
