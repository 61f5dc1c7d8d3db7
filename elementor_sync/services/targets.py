from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal
from urllib.parse import parse_qs, urlparse

from sqlalchemy import select
from sqlalchemy.orm import Session

from elementor_sync.models import TEMPLATE_POST_TYPE, Document, clean_url_path

logger = logging.getLogger(__name__)

TRASH_STATUS = "trash"
PUBLISH_STATUS = "publish"
LISTED_TEMPLATE_STATUSES = ("publish", "draft", "private")
DEFAULT_TEMPLATE_DOCUMENT_TYPE = "page"
_POST_ID_QUERY_KEYS = ("page_id", "p", "post")


@dataclass
class TargetResolutionError(RuntimeError):
    code: str
    message: str
    status_code: int = 400

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class EditTarget:
    url: str = ""
    template_id: int = 0
    document_type: str = ""
    slug: str = ""

    @classmethod
    def from_params(cls, params: Any) -> EditTarget:
        def _text(name: str) -> str:
            value = getattr(params, name, None)
            return value.strip() if isinstance(value, str) else ""

        template_id = getattr(params, "template_id", None)
        return cls(
            url=_text("url"),
            template_id=template_id if isinstance(template_id, int) and template_id > 0 else 0,
            document_type=_text("document_type"),
            slug=_text("slug"),
        )


@dataclass(frozen=True)
class ResolvedTarget:
    document: Document
    source: Literal["url", "template"]

    @property
    def post_id(self) -> int:
        return self.document.id


class TargetResolver:
    """Maps a page URL, template id or template type/slug onto a stored document."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def resolve(self, target: EditTarget) -> ResolvedTarget:
        if target.template_id > 0:
            document = self.resolve_template_id(target.template_id)
            if document is None:
                raise TargetResolutionError("template_not_found", "Template not found.", 404)
            return ResolvedTarget(document=document, source="template")

        if target.document_type:
            document = self.resolve_template(target.document_type, target.slug)
            if document is None:
                raise TargetResolutionError("template_not_found", "Template not found.", 404)
            return ResolvedTarget(document=document, source="template")

        if target.url:
            document = self.resolve_url(target.url)
            if document is None:
                logger.info("URL could not be resolved", extra={"url": target.url})
                raise TargetResolutionError("url_unresolved", "URL could not be resolved.", 400)
            return ResolvedTarget(document=document, source="url")

        raise TargetResolutionError("missing_target", "Provide url, template_id, or document_type.", 400)

    def resolve_url(self, url: str) -> Document | None:
        url = url.strip()
        if not url:
            return None
        parsed = urlparse(url)

        query = parse_qs(parsed.query)
        for key in _POST_ID_QUERY_KEYS:
            values = query.get(key) or []
            if values and values[0].isdigit():
                document = self.session.get(Document, int(values[0]))
                if document is not None and document.status != TRASH_STATUS:
                    return document
                return None

        path = clean_url_path(parsed.path)
        stmt = (
            select(Document)
            .where(Document.url_path == path)
            .where(Document.status != TRASH_STATUS)
            .order_by(Document.id.asc())
            .limit(1)
        )
        document = self.session.scalars(stmt).first()
        if document is not None:
            return document

        if not path:
            return None
        slug = path.rsplit("/", 1)[-1]
        stmt = (
            select(Document)
            .where(Document.slug == slug)
            .where(Document.post_type != TEMPLATE_POST_TYPE)
            .where(Document.status != TRASH_STATUS)
            .order_by(Document.id.asc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def resolve_template_id(self, template_id: int) -> Document | None:
        if template_id <= 0:
            return None
        document = self.session.get(Document, template_id)
        if document is None or document.post_type != TEMPLATE_POST_TYPE or document.status == TRASH_STATUS:
            return None
        return document

    def resolve_template(self, document_type: str, slug: str = "") -> Document | None:
        """Newest published template of ``document_type``, optionally narrowed to ``slug``."""
        document_type = document_type.strip()
        if not document_type:
            return None
        stmt = (
            select(Document)
            .where(Document.post_type == TEMPLATE_POST_TYPE)
            .where(Document.status == PUBLISH_STATUS)
            .where(Document.document_type == document_type)
        )
        if slug.strip():
            stmt = stmt.where(Document.slug == slug.strip())
        stmt = stmt.order_by(Document.created_at.desc(), Document.id.desc()).limit(1)
        return self.session.scalars(stmt).first()

    def list_templates(self) -> list[dict[str, Any]]:
        stmt = (
            select(Document)
            .where(Document.post_type == TEMPLATE_POST_TYPE)
            .where(Document.status.in_(LISTED_TEMPLATE_STATUSES))
            .order_by(Document.title.asc(), Document.id.asc())
        )
        return [
            {
                "id": document.id,
                "name": document.title or str(document.id),
                "document_type": document.document_type or DEFAULT_TEMPLATE_DOCUMENT_TYPE,
                "slug": document.slug or "",
            }
            for document in self.session.scalars(stmt)
        ]
