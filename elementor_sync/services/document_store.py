from __future__ import annotations

import json
import logging
import re
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from elementor_sync.models import Document

logger = logging.getLogger(__name__)

_ESCAPED_CHAR_RE = re.compile(r"\\(.)", re.DOTALL)


def _strip_slashes(raw: str) -> str:
    return _ESCAPED_CHAR_RE.sub(r"\1", raw)


def decode_tree(raw: str | bytes | None) -> Any | None:
    """Decode stored tree JSON; ``None`` when it is missing or not a list/object.

    Data written by some importers is backslash-escaped, so a failed decode is
    retried once with the escaping removed.
    """
    if raw is None or raw == "" or raw == b"":
        return None
    try:
        decoded = json.loads(raw)
    except ValueError:
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        try:
            decoded = json.loads(_strip_slashes(text))
        except ValueError:
            return None
    if not isinstance(decoded, (list, dict)):
        return None
    return decoded


class DocumentStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, document_id: int) -> Document | None:
        return self.session.get(Document, document_id)

    def load(self, document: Document) -> Any | None:
        return decode_tree(document.elementor_data)

    def reload(self, document: Document) -> Any | None:
        """Read the tree back from the database rather than the session's identity map."""
        self.session.expire(document)
        return self.load(document)

    def save(self, document: Document, data: Any) -> bool:
        try:
            document.elementor_data = json.dumps(data, ensure_ascii=False)
            self.session.add(document)
            self.session.commit()
        except (SQLAlchemyError, TypeError) as exc:
            self.session.rollback()
            logger.exception("Failed to save document data", extra={"post_id": document.id, "error": str(exc)})
            return False
        return True
