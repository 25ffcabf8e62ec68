"""SQLAlchemy models for settings and index metadata.

Settings payloads are stored as opaque JSON documents; the relational columns
only carry the identity of the record and its modification time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ProviderSettingsRow(Base):
    """One document provider configuration, keyed by type and name.

    ``name_key`` is the case-folded name and makes the identity
    case-insensitive; ``provider_name`` keeps the spelling last written.
    """

    __tablename__ = "provider_settings"

    provider_type: Mapped[str] = mapped_column(String(50), primary_key=True)
    name_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    provider_name: Mapped[str] = mapped_column(String(255))
    settings: Mapped[dict[str, Any]] = mapped_column(JSON)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class AiProviderSettingsRow(Base):
    """The single configuration record of a language-model provider type."""

    __tablename__ = "ai_provider_settings"

    provider_type: Mapped[str] = mapped_column(String(50), primary_key=True)
    settings: Mapped[dict[str, Any]] = mapped_column(JSON)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class IndexedDocumentRow(Base):
    """What was last indexed for one document of one provider."""

    __tablename__ = "indexed_documents"

    provider_type: Mapped[str] = mapped_column(String(50), primary_key=True)
    name_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    provider_name: Mapped[str] = mapped_column(String(255))
    address: Mapped[str] = mapped_column(String(1024), primary_key=True)
    filename: Mapped[str] = mapped_column(String(1024))
    change_token: Mapped[str] = mapped_column(String(255))
    last_modified: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    relative_path: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    chunk_count: Mapped[int] = mapped_column(Integer, default=0)
    indexed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
