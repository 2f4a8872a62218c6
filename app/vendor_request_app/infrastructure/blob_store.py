from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from vendor_request_app.core.config import AppConfig
from vendor_request_app.core.repository_errors import UploadError

LOGGER = logging.getLogger(__name__)
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _clean_segment(value: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", str(value or "").strip())
    if cleaned in {"", ".", ".."}:
        return "object"
    return cleaned


def normalize_blob_path(path: str) -> str:
    segments = [segment for segment in str(path or "").replace("\\", "/").split("/") if segment.strip()]
    if not segments:
        raise ValueError("Blob path is required.")
    return "/".join(_clean_segment(segment) for segment in segments)


class LocalBlobStore:
    """Filesystem-backed document store.

    Objects live under ``<root>/<bucket>/<path>`` with a JSON sidecar holding
    the content type. The public reference handed back from :meth:`upload`
    is ``<public_base_url>/<path>`` and is what gets persisted on the record.
    """

    def __init__(self, *, root: str, bucket: str, public_base_url: str) -> None:
        self._root = Path(root)
        self._bucket = _clean_segment(bucket)
        self._public_base_url = str(public_base_url or "").rstrip("/")

    @classmethod
    def from_config(cls, config: AppConfig) -> "LocalBlobStore":
        return cls(
            root=config.blob_root,
            bucket=config.blob_bucket,
            public_base_url=config.blob_public_base_url,
        )

    @property
    def public_base_url(self) -> str:
        return self._public_base_url

    def public_ref(self, path: str) -> str:
        return f"{self._public_base_url}/{normalize_blob_path(path)}"

    def path_for_ref(self, public_ref: str | None) -> str | None:
        ref = str(public_ref or "").strip()
        if not ref:
            return None
        prefix = f"{self._public_base_url}/"
        if not ref.startswith(prefix):
            return None
        return normalize_blob_path(ref[len(prefix):])

    def upload(self, path: str, content: bytes, content_type: str | None = None) -> str:
        key = normalize_blob_path(path)
        target = self._path_for_key(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(bytes(content or b""))
            self._write_meta(
                target,
                {
                    "content_type": content_type or DEFAULT_CONTENT_TYPE,
                    "size": len(content or b""),
                    "created_at": datetime.now(timezone.utc).isoformat(),
                },
            )
        except OSError as exc:
            raise UploadError(f"Failed to store document '{key}'.") from exc
        LOGGER.info(
            "Stored document. path=%s bytes=%s",
            key,
            len(content or b""),
            extra={"event": "blob_uploaded", "blob_path": key},
        )
        return self.public_ref(key)

    def exists(self, path: str) -> bool:
        return self._path_for_key(normalize_blob_path(path)).is_file()

    def read(self, path: str) -> bytes:
        target = self._path_for_key(normalize_blob_path(path))
        if not target.is_file():
            raise FileNotFoundError(path)
        return target.read_bytes()

    def content_type(self, path: str) -> str:
        target = self._path_for_key(normalize_blob_path(path))
        return str(self._read_meta(target).get("content_type") or DEFAULT_CONTENT_TYPE)

    def remove(self, path: str) -> bool:
        key = normalize_blob_path(path)
        target = self._path_for_key(key)
        if not target.exists():
            return False
        try:
            target.unlink()
            meta = self._meta_path(target)
            if meta.exists():
                meta.unlink()
        except OSError as exc:
            raise UploadError(f"Failed to remove document '{key}'.") from exc
        LOGGER.info("Removed document. path=%s", key, extra={"event": "blob_removed", "blob_path": key})
        return True

    def _path_for_key(self, key: str) -> Path:
        return self._root / self._bucket / key

    def _meta_path(self, path: Path) -> Path:
        return Path(f"{path}.meta.json")

    def _read_meta(self, path: Path) -> dict[str, Any]:
        meta_path = self._meta_path(path)
        if not meta_path.exists():
            return {}
        try:
            return json.loads(meta_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return {}

    def _write_meta(self, path: Path, meta: dict[str, Any]) -> None:
        self._meta_path(path).write_text(json.dumps(meta, ensure_ascii=True, sort_keys=True), encoding="utf-8")
