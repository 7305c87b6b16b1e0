"""Persistence helpers for working with relational databases."""

from .sqlalchemy_store import (
    Base,
    ProfileRecord,
    SqlAlchemyRecordSource,
    UserRecord,
    create_engine,
    create_sessionmaker,
    create_sqlite_memory_engine,
    ensure_schema,
    export_records,
    import_records,
    update_privacy_level,
    update_profile,
)

__all__ = [
    "Base",
    "ProfileRecord",
    "SqlAlchemyRecordSource",
    "UserRecord",
    "create_engine",
    "create_sessionmaker",
    "create_sqlite_memory_engine",
    "ensure_schema",
    "export_records",
    "import_records",
    "update_privacy_level",
    "update_profile",
]
