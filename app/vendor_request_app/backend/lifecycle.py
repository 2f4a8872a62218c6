from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
import logging
import re
from typing import Any, Callable, Mapping

from vendor_request_app.backend.repository import VendorRequestRepository
from vendor_request_app.core.defaults import DEFAULT_DOCUMENT_PREFIX
from vendor_request_app.core.models import (
    COMPLETION_COMPLETE,
    COMPLETION_INCOMPLETE,
    EDITABLE_FIELDS,
    REQUIRED_SUBMISSION_FIELDS,
    VendorRequest,
)
from vendor_request_app.core.principal import SessionPrincipal
from vendor_request_app.core.repository_errors import (
    PersistenceError,
    RequestNotFoundError,
    RequestValidationFailed,
    UploadError,
)
from vendor_request_app.core.util import clean_text
from vendor_request_app.infrastructure.blob_store import LocalBlobStore

LOGGER = logging.getLogger(__name__)

FIELD_LABELS = {
    "name": "Organization",
    "contact": "Contact",
    "email": "Email",
    "phone": "Phone",
    "address": "Address",
    "city": "City",
    "state": "State",
    "supplies": "Supplies Needed",
    "company_web": "Website",
    "requested_delivery": "Requested delivery date",
}


@dataclass(frozen=True)
class UploadedDocument:
    filename: str
    content: bytes
    content_type: str | None = None


def sanitize_filename(filename: str) -> str:
    return re.sub(r"[^A-Za-z0-9.\-_]", "_", str(filename or ""))


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def build_document_path(filename: str, moment: datetime) -> str:
    return f"{DEFAULT_DOCUMENT_PREFIX}/{_epoch_ms(moment)}_{sanitize_filename(filename)}"


def build_replacement_path(request_id: str, filename: str, moment: datetime) -> str:
    name = str(filename or "")
    extension = sanitize_filename(name.rsplit(".", 1)[1]) if "." in name else ""
    stem = f"{DEFAULT_DOCUMENT_PREFIX}/{sanitize_filename(request_id)}_{_epoch_ms(moment)}"
    return f"{stem}.{extension}" if extension else stem


def parse_delivery_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = clean_text(value)
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def validate_submission(fields: Mapping[str, Any], *, today: date) -> dict[str, Any]:
    errors: dict[str, str] = {}
    cleaned: dict[str, Any] = {}
    for name in REQUIRED_SUBMISSION_FIELDS:
        cleaned[name] = clean_text(fields.get(name))
        if not cleaned[name]:
            errors[name] = f"{FIELD_LABELS[name]} is required."
    cleaned["company_web"] = clean_text(fields.get("company_web")) or None

    raw_delivery = clean_text(fields.get("requested_delivery"))
    delivery = parse_delivery_date(fields.get("requested_delivery"))
    if raw_delivery and delivery is None:
        errors["requested_delivery"] = "Requested delivery date must be a valid date (YYYY-MM-DD)."
    elif delivery is not None and delivery < today:
        errors["requested_delivery"] = "Requested delivery date cannot be in the past."
    cleaned["requested_delivery"] = delivery

    if errors:
        raise RequestValidationFailed(errors)
    return cleaned


def _merge_edit(record: VendorRequest, fields: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {name: getattr(record, name) for name in EDITABLE_FIELDS}
    for name in EDITABLE_FIELDS:
        if name in fields:
            merged[name] = fields[name]
    raw_delivery = clean_text(merged["requested_delivery"])
    delivery = parse_delivery_date(merged["requested_delivery"])
    if raw_delivery and delivery is None:
        raise RequestValidationFailed(
            {"requested_delivery": "Requested delivery date must be a valid date (YYYY-MM-DD)."}
        )
    merged["requested_delivery"] = delivery
    merged["company_web"] = clean_text(merged["company_web"]) or None
    return merged


class RequestLifecycleController:
    """Mutations on vendor requests: submit, edit, delete and the two staff toggles.

    Keeps no state of its own. Every successful call changes the record store
    and callers re-read it to render the next view.
    """

    def __init__(
        self,
        repo: VendorRequestRepository,
        blob_store: LocalBlobStore,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.repo = repo
        self.blob_store = blob_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _require_record(self, request_id: str) -> VendorRequest:
        record = self.repo.get_request(request_id)
        if record is None:
            raise RequestNotFoundError(request_id)
        return record

    @staticmethod
    def _require_owner(principal: SessionPrincipal, record: VendorRequest, action: str) -> None:
        if clean_text(record.user_email).lower() != clean_text(principal.email).lower():
            raise PermissionError(f"Only the submitter can {action} this request.")

    def _upload(self, path: str, document: UploadedDocument) -> str:
        public_ref = self.blob_store.upload(path, document.content, document.content_type)
        if not self.blob_store.exists(path):
            raise UploadError(f"Uploaded document '{path}' could not be verified.")
        return public_ref

    def _discard(self, path: str, *, reason: str) -> None:
        try:
            self.blob_store.remove(path)
        except UploadError:
            LOGGER.warning(
                "Could not remove document after %s. path=%s",
                reason,
                path,
                exc_info=True,
                extra={"event": "blob_cleanup_failed", "blob_path": path},
            )

    def _restore(self, path: str, content: bytes, content_type: str) -> None:
        try:
            self.blob_store.upload(path, content, content_type)
        except UploadError:
            LOGGER.error(
                "Could not restore previous document; record now references a missing file. path=%s",
                path,
                exc_info=True,
                extra={"event": "blob_restore_failed", "blob_path": path},
            )

    def submit(
        self,
        principal: SessionPrincipal,
        fields: Mapping[str, Any],
        document: UploadedDocument | None = None,
    ) -> str:
        now = self._clock()
        cleaned = validate_submission(fields, today=now.date())

        uploaded_path = None
        document_ref = None
        if document is not None:
            uploaded_path = build_document_path(document.filename, now)
            document_ref = self._upload(uploaded_path, document)

        try:
            request_id = self.repo.insert_request(
                {**cleaned, "document_path": document_ref, "user_email": principal.email}
            )
        except PersistenceError:
            if uploaded_path:
                self._discard(uploaded_path, reason="failed insert")
            raise
        LOGGER.info(
            "Vendor request submitted. id=%s user=%s document=%s",
            request_id,
            principal.email,
            bool(document_ref),
            extra={"event": "request_submitted", "request_id": request_id, "user_email": principal.email},
        )
        return request_id

    def update(
        self,
        principal: SessionPrincipal,
        request_id: str,
        fields: Mapping[str, Any],
        document: UploadedDocument | None = None,
    ) -> None:
        """Owner edit. A new document is uploaded and verified before the old one is removed,
        and the record only points at it once both steps succeeded."""
        record = self._require_record(request_id)
        self._require_owner(principal, record, "edit")
        merged = _merge_edit(record, fields)
        merged["document_path"] = record.document_path

        new_path = None
        old_path = self.blob_store.path_for_ref(record.document_path)
        old_backup: tuple[bytes, str] | None = None
        if document is not None:
            new_path = build_replacement_path(record.id, document.filename, self._clock())
            new_ref = self._upload(new_path, document)
            if old_path and old_path != new_path and self.blob_store.exists(old_path):
                old_backup = (self.blob_store.read(old_path), self.blob_store.content_type(old_path))
                try:
                    self.blob_store.remove(old_path)
                except UploadError:
                    self._discard(new_path, reason="failed replacement")
                    raise
            merged["document_path"] = new_ref

        try:
            self.repo.update_request(record.id, merged)
        except PersistenceError:
            if new_path:
                self._discard(new_path, reason="failed update")
                if old_backup is not None and old_path:
                    self._restore(old_path, *old_backup)
            raise
        LOGGER.info(
            "Vendor request updated. id=%s user=%s document_replaced=%s",
            record.id,
            principal.email,
            document is not None,
            extra={"event": "request_updated", "request_id": record.id, "user_email": principal.email},
        )

    def delete(self, principal: SessionPrincipal, request_id: str) -> None:
        record = self._require_record(request_id)
        self._require_owner(principal, record, "delete")
        old_path = self.blob_store.path_for_ref(record.document_path)
        if old_path:
            self._discard(old_path, reason="request delete")
        self.repo.delete_request(record.id)
        LOGGER.info(
            "Vendor request deleted. id=%s user=%s",
            record.id,
            principal.email,
            extra={"event": "request_deleted", "request_id": record.id, "user_email": principal.email},
        )

    def toggle_completion(self, request_id: str) -> str:
        record = self._require_record(request_id)
        new_value = COMPLETION_INCOMPLETE if record.is_complete else COMPLETION_COMPLETE
        self.repo.set_completion(record.id, new_value)
        LOGGER.info(
            "Completion toggled. id=%s completion=%s",
            record.id,
            new_value,
            extra={"event": "completion_toggled", "request_id": record.id, "completion": new_value},
        )
        return new_value

    def toggle_approval(self, request_id: str, current_approved: bool | None = None) -> bool:
        record = self._require_record(request_id)
        if current_approved is None:
            current_approved = record.approved
        approved = not bool(current_approved)
        start_date = self._clock() if approved else None
        self.repo.set_approval(record.id, approved, start_date)
        LOGGER.info(
            "Approval toggled. id=%s approved=%s",
            record.id,
            approved,
            extra={"event": "approval_toggled", "request_id": record.id, "approved": approved},
        )
        return approved
