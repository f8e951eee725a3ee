"""Download remote images referenced by imported content and serve them locally.

Policy:
- Local paths and blank values pass through untouched.
- Each remote URL is fetched at most once per localizer (one import run).
- Failures never raise: the remote URL is kept and the failure is logged.
"""

from __future__ import annotations

import ipaddress
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import unquote, urlparse

import requests


logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg")
DEFAULT_EXTENSION = ".jpg"

_CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/svg+xml": ".svg",
}

_PRIVATE_NETS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


@dataclass(frozen=True)
class LocalAsset:
    original_url: str
    filename: str
    local_url: str


def is_remote_url(url: Optional[str]) -> bool:
    u = (url or "").strip().lower()
    return u.startswith("http://") or u.startswith("https://")


def _is_private_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return any(ip in net for net in _PRIVATE_NETS)


def _validate_fetch_url(url: str) -> Optional[str]:
    """Return error string if URL should not be fetched (SSRF protections)."""
    try:
        p = urlparse(url)
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    host = (p.hostname or "").strip().lower()
    if not host:
        return "missing_host"
    if host in ("localhost", "localhost.localdomain"):
        return "blocked_host"
    if _is_private_ip(host):
        return "blocked_private_ip"
    return None


def extension_from_url(url: str) -> Optional[str]:
    """Image extension of the URL path's last segment, if it is an allowed one."""
    try:
        path = unquote(urlparse(url).path or "")
    except ValueError:
        return None
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return None
    ext = "." + name.rsplit(".", 1)[-1].lower()
    return ext if ext in IMAGE_EXTENSIONS else None


def extension_from_content_type(content_type: Optional[str]) -> Optional[str]:
    ctype = (content_type or "").split(";", 1)[0].strip().lower()
    return _CONTENT_TYPE_EXTENSIONS.get(ctype)


class AssetLocalizer:
    """Downloads remote images into ``upload_dir`` and rewrites their URLs."""

    def __init__(
        self,
        upload_dir: str,
        *,
        context_path: str = "",
        session=None,
        connect_timeout: float = 10.0,
        read_timeout: float = 30.0,
        max_bytes: int = 20_000_000,
    ):
        self.upload_dir = upload_dir
        self.context_path = (context_path or "").rstrip("/")
        self.session = session or requests.Session()
        self.timeout = (connect_timeout, read_timeout)
        self.max_bytes = max_bytes
        self.downloads = 0
        self.localized: Dict[str, Optional[LocalAsset]] = {}

    def localize(self, url: Optional[str]) -> Optional[str]:
        """Return the local URL for ``url``, or ``url`` itself when it cannot be localized."""
        if url is None or not url.strip():
            return url
        if not is_remote_url(url):
            return url
        key = url.strip()
        if key not in self.localized:
            self.localized[key] = self._download(key)
        asset = self.localized[key]
        return asset.local_url if asset else url

    def _upload_path(self) -> str:
        path = self.upload_dir
        if not os.path.isabs(path):
            path = os.path.join(os.getcwd(), path)
        os.makedirs(path, exist_ok=True)
        return path

    def _download(self, url: str) -> Optional[LocalAsset]:
        err = _validate_fetch_url(url)
        if err:
            logger.warning(f"Refusing to download image {url}: {err}")
            return None
        self.downloads += 1
        try:
            resp = self.session.get(
                url,
                headers={"User-Agent": "Mozilla/5.0 (ANRSI content import)"},
                timeout=self.timeout,
                stream=True,
            )
            try:
                if not 200 <= resp.status_code < 300:
                    logger.error(f"Failed to download image from URL: {url} - http_{resp.status_code}")
                    return None
                buf = bytearray()
                for chunk in resp.iter_content(chunk_size=64 * 1024):
                    if not chunk:
                        continue
                    buf.extend(chunk)
                    if len(buf) > self.max_bytes:
                        logger.error(f"Failed to download image from URL: {url} - too_large")
                        return None
                content = bytes(buf)
                content_type = resp.headers.get("Content-Type") if resp.headers else None
            finally:
                resp.close()
        except requests.RequestException as e:
            logger.error(f"Failed to download image from URL: {url} - {e}")
            return None

        if not content:
            logger.error(f"Failed to download image from URL: {url} - empty body")
            return None

        ext = extension_from_url(url) or extension_from_content_type(content_type) or DEFAULT_EXTENSION
        filename = f"{uuid.uuid4().hex}{ext}"
        try:
            with open(os.path.join(self._upload_path(), filename), "wb") as f:
                f.write(content)
        except OSError as e:
            logger.error(f"Failed to store image from URL: {url} - {e}")
            return None

        local_url = f"{self.context_path}/uploads/{filename}"
        logger.info(f"Image downloaded successfully: {url} -> {filename}")
        return LocalAsset(original_url=url, filename=filename, local_url=local_url)
