"""
Repository selection.

A provider is chosen once when the application is created and stored on
``app.state``; request handlers obtain a repository from it through the
``get_repository`` dependency.
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import Request

from app.repositories.base import (
    CategoryTotal,
    FinanceRepository,
    MonthlyTotal,
    TransactionFilters,
    TransactionPage,
)
from app.repositories.memory import InMemoryRepository
from app.repositories.sql import SqlAlchemyRepository

logger = logging.getLogger(__name__)

__all__ = [
    "CategoryTotal",
    "FinanceRepository",
    "InMemoryRepository",
    "MemoryRepositoryProvider",
    "MonthlyTotal",
    "RepositoryProvider",
    "SqlAlchemyRepository",
    "SqlRepositoryProvider",
    "TransactionFilters",
    "TransactionPage",
    "build_repository_provider",
    "get_repository",
]


class RepositoryProvider:
    """Hands out a repository scoped to one request or job."""

    backend = "unknown"

    def create_schema(self) -> None:
        pass

    @contextmanager
    def session(self) -> Iterator[FinanceRepository]:
        raise NotImplementedError


class SqlRepositoryProvider(RepositoryProvider):
    backend = "sql"

    def __init__(self, session_factory, engine=None):
        self.session_factory = session_factory
        self.engine = engine

    def create_schema(self) -> None:
        from app.database import Base

        if self.engine is not None:
            Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[FinanceRepository]:
        db = self.session_factory()
        try:
            yield SqlAlchemyRepository(db)
        finally:
            db.close()


class MemoryRepositoryProvider(RepositoryProvider):
    backend = "memory"

    def __init__(self, repository: InMemoryRepository = None):
        self.repository = repository or InMemoryRepository()

    @contextmanager
    def session(self) -> Iterator[FinanceRepository]:
        yield self.repository


def build_repository_provider(settings) -> RepositoryProvider:
    backend = (settings.storage_backend or "sql").strip().lower()
    if backend == "memory":
        logger.info("Using in-memory storage backend")
        return MemoryRepositoryProvider()
    if backend != "sql":
        raise ValueError(f"Unknown STORAGE_BACKEND '{settings.storage_backend}'. Use 'sql' or 'memory'.")

    from app.database import SessionLocal, engine

    logger.info("Using SQL storage backend")
    return SqlRepositoryProvider(SessionLocal, engine)


def get_repository(request: Request) -> Iterator[FinanceRepository]:
    """FastAPI dependency yielding a repository for the current request."""
    provider: RepositoryProvider = request.app.state.repository_provider
    with provider.session() as repository:
        yield repository
