from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from elementor_sync.models import Kit

logger = logging.getLogger(__name__)

SYSTEM_COLORS = "system_colors"
SYSTEM_TYPOGRAPHY = "system_typography"
_LIST_KEYS = (SYSTEM_COLORS, SYSTEM_TYPOGRAPHY)


@dataclass
class KitSettingsError(RuntimeError):
    code: str
    message: str
    status_code: int = 400

    def __str__(self) -> str:
        return self.message


def _item_key(item: dict[str, Any]) -> str | None:
    for key in ("_id", "id"):
        value = item.get(key)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
    return None


def _sync_color(item: dict[str, Any]) -> dict[str, Any]:
    value = item.get("value")
    if isinstance(value, str) and value:
        item["color"] = value
        return item
    color = item.get("color")
    if isinstance(color, str) and color:
        item["value"] = color
    return item


def merge_list_by_id(current: list[Any], patch: list[Any]) -> list[Any]:
    """Merge kit list entries matched on ``_id``/``id``.

    Existing entries keep their position; new ids are appended in patch order.
    Patch entries without an id are ignored.
    """
    merged: dict[str, dict[str, Any]] = {}
    for item in current:
        key = _item_key(item) if isinstance(item, dict) else None
        if key is not None:
            merged[key] = item
    for item in patch:
        if not isinstance(item, dict):
            continue
        key = _item_key(item)
        if key is None:
            continue
        merged[key] = _sync_color({**merged.get(key, {}), **item})

    out: list[Any] = []
    seen: set[str] = set()
    for item in current:
        key = _item_key(item) if isinstance(item, dict) else None
        if key is None:
            out.append(item)
            continue
        out.append(merged[key])
        seen.add(key)
    out.extend(item for key, item in merged.items() if key not in seen)
    return out


def merge_page_settings(current: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    result = dict(current)
    for key, value in patch.items():
        if not isinstance(key, str):
            continue
        existing = result.get(key)
        if key in _LIST_KEYS and isinstance(value, list):
            result[key] = merge_list_by_id(existing if isinstance(existing, list) else [], value)
        elif isinstance(value, dict) and isinstance(existing, dict):
            result[key] = {**existing, **value}
        else:
            result[key] = value
    return result


def colors_for_api(colors: list[Any]) -> list[Any]:
    out: list[Any] = []
    for item in colors:
        if isinstance(item, dict):
            value = item.get("value")
            color = item.get("color")
            if not (isinstance(value, str) and value.strip()) and isinstance(color, str) and color.strip():
                item = {**item, "value": color.strip()}
        out.append(item)
    return out


class KitStore:
    """Global design settings (colors, typography) of the active kit."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def active_kit(self) -> Kit:
        stmt = select(Kit).where(Kit.is_active.is_(True)).order_by(Kit.id.asc()).limit(1)
        kit = self.session.scalars(stmt).first()
        if kit is None:
            raise KitSettingsError("no_active_kit", "No active Elementor kit found.", 404)
        return kit

    def page_settings(self, kit: Kit) -> dict[str, Any]:
        if not kit.page_settings:
            return {}
        try:
            decoded = json.loads(kit.page_settings)
        except json.JSONDecodeError as exc:
            raise KitSettingsError("invalid_settings", "Kit page settings could not be read.", 500) from exc
        if not isinstance(decoded, dict):
            raise KitSettingsError("invalid_settings", "Kit page settings could not be read.", 500)
        return decoded

    def describe(self) -> dict[str, Any]:
        kit = self.active_kit()
        page_settings = self.page_settings(kit)
        colors = page_settings.get(SYSTEM_COLORS)
        typography = page_settings.get(SYSTEM_TYPOGRAPHY)
        return {
            "kit_id": kit.id,
            "colors": colors_for_api(colors if isinstance(colors, list) else []),
            "typography": typography if isinstance(typography, list) else [],
            "raw_settings": page_settings,
        }

    def update(
        self,
        *,
        colors: list[Any] | None = None,
        typography: list[Any] | None = None,
        extra_settings: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        kit = self.active_kit()
        patch: dict[str, Any] = {}
        if colors is not None:
            patch[SYSTEM_COLORS] = colors
        if typography is not None:
            patch[SYSTEM_TYPOGRAPHY] = typography
        for key, value in (extra_settings or {}).items():
            patch[key] = value
        if not patch:
            raise KitSettingsError(
                "invalid_payload", "Provide at least one of: colors, typography, or settings.", 400
            )

        merged = merge_page_settings(self.page_settings(kit), patch)
        try:
            kit.page_settings = json.dumps(merged, ensure_ascii=False)
            self.session.add(kit)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Failed to save kit settings", extra={"kit_id": kit.id})
            raise KitSettingsError("save_failed", "Failed to save kit settings.", 500) from exc
        return self.describe()
