"""SQLAlchemy persistence helpers for :mod:`alumnigeo` records.

This module is the storage collaborator the query engine reads from. It keeps
the relational layout of the directory (one ``users`` row plus one
``alumni_profiles`` row per alumnus) and exposes:

* ORM models and engine/session helpers, usable with SQLite for tests and
  PostgreSQL in deployment.
* :func:`export_records` / :func:`import_records` to round-trip
  :class:`~alumnigeo.entities.AlumniRecord` snapshots.
* :class:`SqlAlchemyRecordSource`, which pushes structured equality predicates
  down into SQL. Free-text, radius and privacy filtering stay in the engine.
* The two explicit write paths: :func:`update_privacy_level` and
  :func:`update_profile`.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    create_engine as _sa_create_engine,
    delete,
    select,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    sessionmaker,
)

from ..entities import AlumniRecord, PrivacyTier

logger = logging.getLogger(__name__)

# JSONB on PostgreSQL, plain JSON elsewhere
_JSONType = JSON().with_variant(JSONB(), "postgresql")

# ---------------------------------------------------------------------------
# SQLAlchemy ORM models
# ---------------------------------------------------------------------------

_naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=_naming_convention)


class UserRecord(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    graduation_year: Mapped[int | None] = mapped_column(Integer, index=True)
    alumni_identity_id: Mapped[str | None] = mapped_column(String(64), unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    profile: Mapped["ProfileRecord | None"] = relationship(
        back_populates="user", cascade="all, delete-orphan", uselist=False
    )


class ProfileRecord(Base):
    __tablename__ = "alumni_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    school: Mapped[str | None] = mapped_column(String(255), index=True)
    college: Mapped[str | None] = mapped_column(String(255), index=True)
    major: Mapped[str | None] = mapped_column(String(255), index=True)
    degree: Mapped[str | None] = mapped_column(String(64))
    city: Mapped[str | None] = mapped_column(String(128), index=True)
    district: Mapped[str | None] = mapped_column(String(128))
    address: Mapped[str | None] = mapped_column(String(512))
    address_en: Mapped[str | None] = mapped_column(String(512))
    country: Mapped[str | None] = mapped_column(String(128), index=True)
    lat: Mapped[float | None] = mapped_column(Float)
    lng: Mapped[float | None] = mapped_column(Float)
    office_address: Mapped[str | None] = mapped_column(String(512))
    office_lat: Mapped[float | None] = mapped_column(Float)
    office_lng: Mapped[float | None] = mapped_column(Float)
    privacy_level: Mapped[str | None] = mapped_column(
        String(16), default=PrivacyTier.DISTRICT.value
    )
    job_title: Mapped[str | None] = mapped_column(String(255))
    company: Mapped[str | None] = mapped_column(String(255))
    industry: Mapped[str | None] = mapped_column(String(128), index=True)
    industry_segment: Mapped[str | None] = mapped_column(String(128))
    is_startup: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    business_domain: Mapped[str | None] = mapped_column(String(128))
    funding_stage: Mapped[str | None] = mapped_column(String(64))
    contact_name: Mapped[str | None] = mapped_column(String(128))
    contact_phone: Mapped[str | None] = mapped_column(String(64))
    contact_email: Mapped[str | None] = mapped_column(String(255))
    wechat: Mapped[str | None] = mapped_column(String(128))
    qq: Mapped[str | None] = mapped_column(String(64))
    skills: Mapped[list[str] | None] = mapped_column(_JSONType)
    resources: Mapped[list[str] | None] = mapped_column(_JSONType)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    user: Mapped[UserRecord] = relationship(back_populates="profile")


_USER_FIELDS = ("name", "graduation_year", "alumni_identity_id")
_PROFILE_FIELDS = (
    "school",
    "college",
    "major",
    "degree",
    "city",
    "district",
    "address",
    "address_en",
    "country",
    "lat",
    "lng",
    "office_address",
    "office_lat",
    "office_lng",
    "privacy_level",
    "job_title",
    "company",
    "industry",
    "industry_segment",
    "is_startup",
    "business_domain",
    "funding_stage",
    "contact_name",
    "contact_phone",
    "contact_email",
    "wechat",
    "qq",
    "skills",
    "resources",
)

# ---------------------------------------------------------------------------
# Engine / session helpers
# ---------------------------------------------------------------------------


def create_engine(url: str, *, echo: bool = False, **kwargs):
    """Wrapper around :func:`sqlalchemy.create_engine` for convenience."""

    return _sa_create_engine(url, echo=echo, **kwargs)


def create_sqlite_memory_engine(echo: bool = False):
    """Quick helper for unit tests or experimenting without PostgreSQL."""

    return create_engine("sqlite+pysqlite:///:memory:", echo=echo)


def create_sessionmaker(engine, *, expire_on_commit: bool = False, **kwargs):
    """Return a configured ``sessionmaker`` factory for the given engine."""

    return sessionmaker(bind=engine, expire_on_commit=expire_on_commit, class_=Session, **kwargs)


def ensure_schema(engine) -> None:
    """Create the database schema if it does not already exist."""

    Base.metadata.create_all(engine)


# ---------------------------------------------------------------------------
# Record <-> ORM bridge
# ---------------------------------------------------------------------------


def _to_record(user: UserRecord, profile: ProfileRecord) -> AlumniRecord:
    return AlumniRecord(
        id=user.id,
        name=user.name,
        graduation_year=user.graduation_year,
        alumni_identity_id=user.alumni_identity_id,
        school=profile.school,
        college=profile.college,
        major=profile.major,
        degree=profile.degree,
        company=profile.company,
        job_title=profile.job_title,
        industry=profile.industry,
        industry_segment=profile.industry_segment,
        is_startup=bool(profile.is_startup),
        funding_stage=profile.funding_stage,
        business_domain=profile.business_domain,
        country=profile.country,
        city=profile.city,
        district=profile.district,
        address=profile.address,
        address_en=profile.address_en,
        lat=profile.lat,
        lng=profile.lng,
        office_address=profile.office_address,
        office_lat=profile.office_lat,
        office_lng=profile.office_lng,
        privacy_level=profile.privacy_level,
        contact_name=profile.contact_name,
        contact_phone=profile.contact_phone,
        contact_email=profile.contact_email,
        wechat=profile.wechat,
        qq=profile.qq,
        skills=list(profile.skills or []),
        resources=list(profile.resources or []),
    )


def export_records(
    records: Iterable[AlumniRecord],
    session: Session,
    *,
    replace: bool = True,
) -> int:
    """Persist ``records`` into the database bound to ``session``.

    Parameters
    ----------
    records:
        Records to write; ``record.id`` becomes the ``users.id`` primary key.
    session:
        A live SQLAlchemy :class:`~sqlalchemy.orm.Session`.
    replace:
        When ``True`` (default) both tables are emptied first. Set to
        ``False`` to upsert by id.

    Returns the number of records written.
    """

    if replace:
        session.execute(delete(ProfileRecord))
        session.execute(delete(UserRecord))
        session.flush()

    now = datetime.now(timezone.utc)
    count = 0
    for rec in records:
        user = session.get(UserRecord, rec.id)
        if user is None:
            user = UserRecord(id=rec.id, created_at=now)
            session.add(user)
        for name in _USER_FIELDS:
            setattr(user, name, getattr(rec, name))

        profile = user.profile
        if profile is None:
            profile = ProfileRecord()
            user.profile = profile
        for name in _PROFILE_FIELDS:
            value = getattr(rec, name)
            if name in ("skills", "resources"):
                value = list(value) if value else None
            setattr(profile, name, value)
        profile.updated_at = now
        count += 1

    session.flush()
    logger.info("store.export records=%d replace=%s", count, replace)
    return count


def _joined_select():
    return (
        select(UserRecord, ProfileRecord)
        .join(ProfileRecord, ProfileRecord.user_id == UserRecord.id)
        .order_by(UserRecord.id)
    )


def import_records(session: Session) -> list[AlumniRecord]:
    """Hydrate every stored alumnus as an :class:`AlumniRecord`."""

    rows = session.execute(_joined_select()).all()
    return [_to_record(user, profile) for user, profile in rows]


def _predicate_column(name: str):
    if name == "graduation_year":
        return UserRecord.graduation_year
    return getattr(ProfileRecord, name)


class SqlAlchemyRecordSource:
    """:class:`~alumnigeo.sources.RecordSource` backed by a SQLAlchemy session factory."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def fetch_candidate_records(self, predicates: Mapping[str, Any]) -> list[AlumniRecord]:
        stmt = _joined_select()
        for name, value in predicates.items():
            stmt = stmt.where(_predicate_column(name) == value)
        with self._session_factory() as session:
            rows = session.execute(stmt).all()
            records = [_to_record(user, profile) for user, profile in rows]
        logger.debug(
            "store.fetch predicates=%s rows=%d", ",".join(sorted(predicates)), len(records)
        )
        return records

    def get_record(self, record_id: Any) -> Optional[AlumniRecord]:
        stmt = _joined_select().where(UserRecord.id == record_id)
        with self._session_factory() as session:
            row = session.execute(stmt).first()
            if row is None:
                return None
            return _to_record(row[0], row[1])


# ---------------------------------------------------------------------------
# Write paths
# ---------------------------------------------------------------------------


def _profile_for(session: Session, user_id: int) -> Optional[ProfileRecord]:
    return session.execute(
        select(ProfileRecord).where(ProfileRecord.user_id == user_id)
    ).scalar_one_or_none()


def update_privacy_level(session: Session, user_id: int, level: str) -> bool:
    """Set a profile's privacy tier. Returns ``False`` if the profile does not exist."""

    allowed = {tier.value for tier in PrivacyTier}
    if level not in allowed:
        raise ValueError(
            f"privacy_level must be one of {sorted(allowed)}, got {level!r}"
        )
    profile = _profile_for(session, user_id)
    if profile is None:
        return False
    profile.privacy_level = level
    profile.updated_at = datetime.now(timezone.utc)
    session.flush()
    logger.info("store.privacy_updated user_id=%s level=%s", user_id, level)
    return True


def update_profile(session: Session, user_id: int, changes: Mapping[str, Any]) -> bool:
    """Apply a partial update; keys absent from ``changes`` are left untouched."""

    unknown = sorted(set(changes) - set(_USER_FIELDS) - set(_PROFILE_FIELDS))
    if unknown:
        raise ValueError(f"Unknown profile fields: {', '.join(unknown)}")
    if "privacy_level" in changes and changes["privacy_level"] not in {
        tier.value for tier in PrivacyTier
    }:
        raise ValueError(f"Invalid privacy_level {changes['privacy_level']!r}")

    user = session.get(UserRecord, user_id)
    if user is None or user.profile is None:
        return False

    for name, value in changes.items():
        if name in _USER_FIELDS:
            setattr(user, name, value)
        elif name == "is_startup":
            user.profile.is_startup = bool(value)
        elif name in ("skills", "resources"):
            setattr(user.profile, name, list(value) if value else None)
        else:
            setattr(user.profile, name, value)
    user.profile.updated_at = datetime.now(timezone.utc)
    session.flush()
    logger.info(
        "store.profile_updated user_id=%s fields=%s", user_id, ",".join(sorted(changes))
    )
    return True
