from typing import Any

import httpx
import pytest

from elementor_sync.models import Attachment
from elementor_sync.services import cache, media
from elementor_sync.services.cache import CacheInvalidator
from elementor_sync.services.edits import ImageEdit
from elementor_sync.services.media import DownloadResult, MediaLibrary


def test_cache_invalidation_without_webhook_is_noop(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr(cache.httpx, "Client", fail)

    CacheInvalidator(webhook_url="").invalidate(5)


def test_cache_invalidation_posts_post_id(monkeypatch):
    calls: list[dict[str, Any]] = []

    class FakeClient:
        def __init__(self, *args, **kwargs):
            pass

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

        def post(self, url: str, *, json: dict[str, Any]):
            calls.append({"url": url, "json": json})
            return httpx.Response(500, request=httpx.Request("POST", url))

    monkeypatch.setattr(cache.httpx, "Client", FakeClient)

    with pytest.raises(httpx.HTTPStatusError):
        CacheInvalidator(webhook_url="https://hooks.example.test/purge", timeout_seconds=1).invalidate(5)

    assert calls == [{"url": "https://hooks.example.test/purge", "json": {"post_id": 5}}]


def test_resolve_image_from_attachment_id(db_session):
    attachment = Attachment(url="https://site.test/media/a.png", file_name="a.png")
    db_session.add(attachment)
    db_session.commit()
    library = MediaLibrary(db_session, sideload_enabled=False)

    assert library.resolve_image(ImageEdit(new_attachment_id=attachment.id, id="img")) == (
        "https://site.test/media/a.png",
        attachment.id,
    )
    assert library.resolve_image(ImageEdit(new_attachment_id=9999, id="img")) == ("", 9999)
    assert library.resolve_image(ImageEdit(new_image_url="https://cdn.test/x.png", id="img")) == (
        "https://cdn.test/x.png",
        None,
    )


def test_sideload_stores_attachment(db_session, monkeypatch, tmp_path):
    library = MediaLibrary(
        db_session, sideload_enabled=True, media_root=str(tmp_path), base_url="https://site.test/media/"
    )
    monkeypatch.setattr(
        library,
        "_download",
        lambda url: DownloadResult(content=b"png-bytes", sha256="ab" * 32, content_type="image/png", url=url),
    )

    image_url, attachment_id = library.resolve_image(ImageEdit(new_image_url="https://cdn.test/x.png", id="img"))

    assert image_url == "https://site.test/media/abababababababab.png"
    stored = db_session.get(Attachment, attachment_id)
    assert stored.source_url == "https://cdn.test/x.png"
    assert (tmp_path / "abababababababab.png").read_bytes() == b"png-bytes"


def test_sideload_failure_keeps_original_url(db_session, monkeypatch, tmp_path):
    library = MediaLibrary(db_session, sideload_enabled=True, media_root=str(tmp_path))

    def fail(url: str):
        raise RuntimeError("blocked_private_network")

    monkeypatch.setattr(library, "_download", fail)

    assert library.resolve_image(ImageEdit(new_image_url="http://10.0.0.1/x.png", id="img")) == (
        "http://10.0.0.1/x.png",
        None,
    )


def test_sideload_rejects_private_hosts(db_session, monkeypatch):
    monkeypatch.setattr(
        media.socket,
        "getaddrinfo",
        lambda host, port: [(None, None, None, None, ("127.0.0.1", 0))],
    )

    with pytest.raises(RuntimeError, match="blocked_private_network"):
        MediaLibrary(db_session)._assert_public_hostname("localhost")
