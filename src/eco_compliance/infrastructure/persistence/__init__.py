"""Persistence adapters: SQLAlchemy async models, repositories and unit of work."""
from eco_compliance.infrastructure.persistence.database import (
    Base,
    create_engine,
    create_session_factory,
    init_db,
)
from eco_compliance.infrastructure.persistence.unit_of_work import SqlAlchemyUnitOfWork

__all__ = ["Base", "create_engine", "create_session_factory", "init_db", "SqlAlchemyUnitOfWork"]
