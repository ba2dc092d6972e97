"""
Snapshot Persistence Adapter

Serializes the full AppSnapshot to durable storage and reads it back.

DESIGN DECISION: Persistence failures are never fatal.
- save() logs and swallows storage errors; the session keeps running
  in memory and only durability is lost.
- load() treats a missing, unreadable or malformed snapshot as absent.
  Each top-level field is validated on its own, so one bad field never
  costs the others.
- import_document() is the strict variant: any problem rejects the
  whole document and nothing is applied.
"""

import json
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from billbook.audit import AuditLogger
from billbook.models.audit import AuditEventBuilder
from billbook.models.bill import AppSnapshot, SnapshotPatch
from billbook.services.storage.interface import (
    ImportDocumentError,
    SnapshotStorageInterface,
    StorageError,
)

DEFAULT_STATE_KEY = "finance-app-state-v1"

logger = structlog.get_logger(__name__)


def _document_keys() -> dict[str, str]:
    """Attribute name -> key used in the JSON document."""
    return {
        name: field.alias or name
        for name, field in SnapshotPatch.model_fields.items()
    }


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}"


class SnapshotPersistence:
    """
    Reads and writes the AppSnapshot under one fixed key.
    """

    def __init__(
        self,
        storage: SnapshotStorageInterface,
        key: str = DEFAULT_STATE_KEY,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._key = key
        self._audit_logger = audit_logger

    @property
    def key(self) -> str:
        return self._key

    # -------------------------------------------------------------------------
    # Durable snapshot
    # -------------------------------------------------------------------------

    def save(self, snapshot: AppSnapshot) -> bool:
        """
        Write the snapshot through to storage.

        Returns True on success. Storage errors are logged, never raised.
        """
        payload = json.dumps(snapshot.to_document(), separators=(",", ":"))
        try:
            self._storage.write(self._key, payload)
        except StorageError as e:
            logger.warning("snapshot_save_failed", key=self._key, error=str(e))
            if self._audit_logger:
                self._audit_logger.log(AuditEventBuilder.save_failed(str(e)))
            return False

        logger.debug("snapshot_saved", key=self._key, size=len(payload))
        return True

    def load(self) -> Optional[SnapshotPatch]:
        """
        Read the stored snapshot.

        Returns None when nothing usable is stored. Otherwise returns a
        patch holding every top-level field that was present and valid.
        """
        try:
            raw = self._storage.read(self._key)
        except StorageError as e:
            self._load_failed(f"Storage unavailable: {e}")
            return None

        if raw is None:
            logger.info("snapshot_absent", key=self._key)
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            self._load_failed(f"Malformed snapshot: {e}")
            return None

        if not isinstance(data, dict):
            self._load_failed("Snapshot is not a JSON object")
            return None

        values = {}
        skipped = []
        for name, doc_key in _document_keys().items():
            if data.get(doc_key) is None:
                continue
            try:
                part = SnapshotPatch.model_validate({doc_key: data[doc_key]})
            except ValidationError as e:
                logger.warning(
                    "snapshot_field_skipped",
                    field=doc_key,
                    error=_describe_validation_error(e),
                )
                skipped.append(doc_key)
                continue
            values[name] = getattr(part, name)

        patch = SnapshotPatch(**values)
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.snapshot_loaded(
                fields=sorted(patch.present_fields()),
                skipped=skipped,
            ))
        return patch

    def clear(self) -> bool:
        try:
            return self._storage.delete(self._key)
        except StorageError as e:
            logger.warning("snapshot_clear_failed", key=self._key, error=str(e))
            return False

    def _load_failed(self, message: str) -> None:
        logger.warning("snapshot_load_failed", key=self._key, error=message)
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.load_failed(message))

    # -------------------------------------------------------------------------
    # Export / import documents
    # -------------------------------------------------------------------------

    @staticmethod
    def export_document(snapshot: AppSnapshot) -> bytes:
        """Pretty-printed JSON of the full snapshot."""
        return json.dumps(
            snapshot.to_document(),
            indent=2,
            ensure_ascii=False,
        ).encode("utf-8")

    def import_document(self, data: Union[bytes, str]) -> SnapshotPatch:
        """
        Parse an exported document.

        Raises:
            ImportDocumentError: If the document isn't valid JSON, isn't an
                object, has no snapshot fields, or any present field fails
                validation. Nothing is applied in that case.
        """
        try:
            return self._parse_document(data)
        except ImportDocumentError as e:
            logger.warning("document_import_failed", error=str(e))
            if self._audit_logger:
                self._audit_logger.log(AuditEventBuilder.import_failed(str(e)))
            raise

    @staticmethod
    def _parse_document(data: Union[bytes, str]) -> SnapshotPatch:
        if isinstance(data, bytes):
            try:
                text = data.decode("utf-8-sig")
            except UnicodeDecodeError as e:
                raise ImportDocumentError(f"File is not UTF-8 text: {e}") from e
        else:
            text = data

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise ImportDocumentError(f"Invalid JSON: {e}") from e

        if not isinstance(parsed, dict):
            raise ImportDocumentError("Document must be a JSON object")

        try:
            patch = SnapshotPatch.model_validate(parsed)
        except ValidationError as e:
            first = e.errors()[0]
            field = str(first["loc"][0]) if first.get("loc") else None
            raise ImportDocumentError(
                f"Invalid document: {_describe_validation_error(e)}",
                field=field,
            ) from e

        if patch.is_empty:
            raise ImportDocumentError("Document contains no bill data")
        return patch
