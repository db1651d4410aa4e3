"""SQLAlchemy database models."""

import secrets
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")

# Schemas are served verbatim; JSONB would reorder object keys
JSONVerbatim = JSON()

SOURCE_MODES = ("generation", "projection", "external")


def generate_organization_id() -> str:
    return str(uuid.uuid4())


def generate_api_key() -> str:
    return secrets.token_urlsafe(32)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Organization(Base):
    """A tenant. The api_key is a shared secret compared verbatim."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=generate_organization_id
    )
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    base_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    api_key: Mapped[str] = mapped_column(
        String(128), nullable=False, default=generate_api_key
    )
    settings: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument, default=dict, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    page_schemas: Mapped[list["PageSchema"]] = relationship(
        "PageSchema", back_populates="organization", cascade="all, delete-orphan"
    )
    drift_signals: Mapped[list["DriftSignal"]] = relationship(
        "DriftSignal", back_populates="organization", cascade="all, delete-orphan"
    )


class PageSchema(Base):
    """JSON-LD document served for one (organization, normalized page URL)."""

    __tablename__ = "page_schemas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("organizations.id"), nullable=False
    )
    page_url: Mapped[str] = mapped_column(Text, nullable=False)
    schema_json: Mapped[Any] = mapped_column(JSONVerbatim, nullable=False)
    content_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Bumped by exactly one on every successful write; doubles as the ETag
    cache_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    source_mode: Mapped[str] = mapped_column(
        String(16), default="external", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="page_schemas"
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "page_url", name="uq_page_schema_org_url"),
        CheckConstraint(
            "source_mode IN ('generation', 'projection', 'external')",
            name="ck_page_schema_source_mode",
        ),
        CheckConstraint("cache_version >= 1", name="ck_page_schema_cache_version"),
    )


class DriftSignal(Base):
    """One content fingerprint observed on a live page. Never deleted."""

    __tablename__ = "drift_signals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("organizations.id"), nullable=False
    )
    page_url: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(Text, nullable=False)
    previous_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    drift_detected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    signals: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONDocument, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="drift_signals"
    )

    __table_args__ = (
        Index(
            "ix_drift_signals_org_url_processed",
            "organization_id",
            "page_url",
            "processed",
        ),
    )
