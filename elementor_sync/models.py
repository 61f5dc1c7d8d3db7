from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, validates

TEMPLATE_POST_TYPE = "elementor_library"


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clean_url_path(path: str) -> str:
    """Stored and looked-up URL paths carry no surrounding slashes; the front page is ``""``."""
    return path.strip().strip("/")


class Document(Base):
    """A page or library template whose Elementor tree is stored as JSON text."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(length=255), nullable=False, default="")
    slug: Mapped[str] = mapped_column(String(length=200), nullable=False, default="", index=True)
    url_path: Mapped[str | None] = mapped_column(String(length=512), nullable=True, index=True)
    post_type: Mapped[str] = mapped_column(String(length=64), nullable=False, default="page")
    document_type: Mapped[str | None] = mapped_column(String(length=64), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(length=32), nullable=False, default="publish")
    elementor_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @validates("url_path")
    def _clean_url_path(self, key: str, value: str | None) -> str | None:
        return clean_url_path(value) if value is not None else None


class Attachment(Base):
    __tablename__ = "attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Kit(Base):
    __tablename__ = "kits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(length=255), nullable=False, default="Default Kit")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    page_settings: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
