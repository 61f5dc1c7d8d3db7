from __future__ import annotations

import hashlib
import ipaddress
import logging
import mimetypes
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import httpx
from sqlalchemy.orm import Session

from elementor_sync.config import settings
from elementor_sync.models import Attachment
from elementor_sync.services.edits import ImageEdit

logger = logging.getLogger(__name__)

_MAX_SIDELOAD_BYTES = 25 * 1024 * 1024


@dataclass
class DownloadResult:
    content: bytes
    sha256: str
    content_type: Optional[str]
    url: str


class MediaLibrary:
    """Attachment lookup plus optional sideloading of remote images."""

    def __init__(
        self,
        session: Session,
        *,
        sideload_enabled: bool | None = None,
        media_root: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.session = session
        self.sideload_enabled = settings.SIDELOAD_IMAGES if sideload_enabled is None else sideload_enabled
        self.media_root = Path(media_root or settings.MEDIA_ROOT)
        self.base_url = (base_url if base_url is not None else settings.media_base_url).rstrip("/")
        self.timeout_seconds = float(timeout_seconds or settings.SIDELOAD_TIMEOUT_SECONDS)

    def attachment_url(self, attachment_id: int) -> str | None:
        attachment = self.session.get(Attachment, attachment_id)
        if attachment is None or not attachment.url:
            return None
        return attachment.url

    def resolve_image(self, edit: ImageEdit) -> tuple[str, int | None]:
        """Fill in whichever half of (url, attachment id) an image edit is missing."""
        image_url = edit.new_image_url
        attachment_id = edit.new_attachment_id
        if not image_url and attachment_id is not None:
            image_url = self.attachment_url(attachment_id) or ""
        if image_url and attachment_id is None and self.sideload_enabled:
            attachment = self.sideload(image_url)
            if attachment is not None:
                return attachment.url, attachment.id
        return image_url, attachment_id

    def sideload(self, image_url: str) -> Attachment | None:
        image_url = image_url.strip()
        try:
            download = self._download(image_url)
        except (httpx.HTTPError, RuntimeError) as exc:
            logger.warning("Image sideload failed", extra={"url": image_url, "error": str(exc)})
            return None
        if not (download.content_type or "").startswith("image/"):
            logger.warning(
                "Image sideload rejected non-image content",
                extra={"url": image_url, "content_type": download.content_type},
            )
            return None

        file_name = f"{download.sha256[:16]}.{self._guess_extension(download.content_type)}"
        self.media_root.mkdir(parents=True, exist_ok=True)
        (self.media_root / file_name).write_bytes(download.content)

        attachment = Attachment(
            url=f"{self.base_url}/{file_name}",
            file_name=file_name,
            source_url=image_url,
        )
        self.session.add(attachment)
        self.session.commit()
        self.session.refresh(attachment)
        logger.info("Sideloaded image", extra={"url": image_url, "attachment_id": attachment.id})
        return attachment

    def _download(self, url: str) -> DownloadResult:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise RuntimeError("unsupported_scheme")
        if not parsed.hostname:
            raise RuntimeError("invalid_url")
        self._assert_public_hostname(parsed.hostname)

        timeout = httpx.Timeout(self.timeout_seconds, read=self.timeout_seconds)
        with httpx.stream("GET", url, follow_redirects=True, timeout=timeout) as resp:
            resp.raise_for_status()
            hasher = hashlib.sha256()
            data = bytearray()
            for chunk in resp.iter_bytes():
                data.extend(chunk)
                if len(data) > _MAX_SIDELOAD_BYTES:
                    raise RuntimeError("media_too_large")
                hasher.update(chunk)

            content_type = resp.headers.get("content-type")
            if content_type:
                content_type = content_type.split(";")[0].strip()
            return DownloadResult(
                content=bytes(data),
                sha256=hasher.hexdigest(),
                content_type=content_type or mimetypes.guess_type(url)[0],
                url=str(resp.url),
            )

    def _assert_public_hostname(self, hostname: str) -> None:
        try:
            infos = socket.getaddrinfo(hostname, None)
        except socket.gaierror as exc:
            raise RuntimeError(f"dns_lookup_failed:{hostname}") from exc
        for _, _, _, _, sockaddr in infos:
            ip = ipaddress.ip_address(sockaddr[0])
            if ip.is_private or ip.is_loopback or ip.is_reserved or ip.is_link_local or ip.is_multicast:
                raise RuntimeError("blocked_private_network")

    def _guess_extension(self, mime: Optional[str]) -> str:
        if not mime:
            return "bin"
        ext = mimetypes.guess_extension(mime)
        if ext:
            return ext.lstrip(".")
        return mime.split("/", 1)[1]
