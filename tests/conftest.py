import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("ELEMENTOR_SYNC_DB_URL", "sqlite:///./test_elementor_sync.db")
os.environ.setdefault("AI_EDIT_SERVICE_URL", "https://edits.example.test/edits")
os.environ.setdefault("CACHE_INVALIDATION_WEBHOOK_URL", "")
os.environ.setdefault("SIDELOAD_IMAGES", "false")
os.environ.setdefault("DICTIONARY_MAX_TEXT_LEN", "0")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import delete  # noqa: E402

import elementor_sync.main as main_module  # noqa: E402
from elementor_sync.db import SessionLocal, init_db  # noqa: E402
from elementor_sync.models import Attachment, Document, Kit  # noqa: E402


def _clear(session) -> None:
    session.execute(delete(Document))
    session.execute(delete(Attachment))
    session.execute(delete(Kit))
    session.commit()


@pytest.fixture()
def db_session():
    init_db()
    session = SessionLocal()
    _clear(session)
    try:
        yield session
    finally:
        session.rollback()
        _clear(session)
        session.close()


@pytest.fixture()
def api_client():
    with TestClient(main_module.app) as client:
        yield client


@pytest.fixture()
def page_elements() -> list[dict]:
    """section > column > [heading, heading, button, icon-list, image]."""
    return [
        {
            "id": "sec1",
            "elType": "section",
            "settings": {},
            "elements": [
                {
                    "id": "col1",
                    "elType": "column",
                    "settings": {},
                    "elements": [
                        {
                            "id": "h1",
                            "elType": "widget",
                            "widgetType": "heading",
                            "settings": {"title": "Welcome Home"},
                            "elements": [],
                        },
                        {
                            "id": "h2",
                            "elType": "widget",
                            "widgetType": "heading",
                            "settings": {"title": "Welcome Back"},
                            "elements": [],
                        },
                        {
                            "id": "btn",
                            "elType": "widget",
                            "widgetType": "button",
                            "settings": {
                                "text": "Shop now",
                                "link": {"url": "https://shop.example.test", "is_external": ""},
                            },
                            "elements": [],
                        },
                        {
                            "id": "list",
                            "elType": "widget",
                            "widgetType": "icon-list",
                            "settings": {
                                "icon_list": [
                                    {"text": "First"},
                                    {"text": "Second", "link": {"url": "/second"}},
                                ]
                            },
                            "elements": [],
                        },
                        {
                            "id": "img",
                            "elType": "widget",
                            "widgetType": "image",
                            "settings": {"image": {"url": "https://cdn.example.test/a.png", "id": 12}},
                            "elements": [],
                        },
                    ],
                }
            ],
        }
    ]
