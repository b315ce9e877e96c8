"""
Inspection Store

Local storage of inspections as JSON documents: a header plus the
persisted response rows. Drafts and submitted inspections live in
separate directories; a submitted inspection is never overwritten.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from checklist_studio.config import settings
from checklist_studio.errors import InvalidOperationError, PersistenceError, SchemaDefinitionError
from checklist_studio.records import from_records, inspection_header, to_records
from checklist_studio.responses import DRAFT, SUBMITTED, Inspection, utcnow_iso
from checklist_studio.schema import Schema, SchemaCatalog

logger = logging.getLogger(__name__)

STATUS_DIRS = {DRAFT: "drafts", SUBMITTED: "submitted"}


class InspectionStore:
    """
    Manages local storage of inspection documents.

    One file per inspection, ``<status dir>/<inspection_id>.json``.
    """

    def __init__(self, storage_path: Optional[Union[str, Path]] = None):
        """
        Initialize inspection store.

        Args:
            storage_path: Path for local storage (default: settings.STORE_PATH)
        """
        self.storage_path = Path(storage_path) if storage_path else Path(settings.STORE_PATH)
        try:
            for dirname in STATUS_DIRS.values():
                (self.storage_path / dirname).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create inspection store at {self.storage_path}: {e}") from e

    def _path(self, inspection_id: str, status: str) -> Path:
        if not inspection_id or inspection_id in (".", "..") or any(sep in inspection_id for sep in ("/", "\\")):
            raise InvalidOperationError(f"Invalid inspection id: {inspection_id!r}")
        return self.storage_path / STATUS_DIRS[status] / f"{inspection_id}.json"

    def _write(self, path: Path, document: Dict) -> None:
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            tmp_path.replace(path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {path}: {e}") from e

    def _read(self, path: Path) -> Dict:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except OSError as e:
            raise PersistenceError(f"Cannot read {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt inspection document {path}: {e}") from e
        if not isinstance(document, dict) or "inspection" not in document:
            raise PersistenceError(f"Corrupt inspection document {path}: no inspection header")
        return document

    def _document(self, inspection: Inspection, schema: Schema) -> Dict:
        return {
            "inspection": inspection_header(inspection),
            "responses": to_records(inspection, schema),
            "saved_at": utcnow_iso(),
        }

    def save_draft(self, inspection: Inspection, schema: Schema) -> Path:
        """
        Save an in-progress inspection.

        Args:
            inspection: Draft inspection
            schema: Schema the inspection follows

        Returns:
            Path of the stored document

        Raises:
            InvalidOperationError: If the inspection (or a stored copy of it)
                                   is already submitted, or its id is not
                                   a plain file name
        """
        if inspection.is_submitted:
            raise InvalidOperationError(f"Inspection {inspection.inspection_id} is submitted; use save_submitted")
        if self._path(inspection.inspection_id, SUBMITTED).exists():
            raise InvalidOperationError(f"Inspection {inspection.inspection_id} was already submitted")

        path = self._path(inspection.inspection_id, DRAFT)
        self._write(path, self._document(inspection, schema))
        logger.info("Saved draft %s to %s", inspection.inspection_id, path)
        return path

    def save_submitted(self, inspection: Inspection, schema: Schema) -> Path:
        """
        Store a finalized inspection and drop its draft.

        Raises:
            InvalidOperationError: If the inspection is not finalized, or a
                                   submitted copy already exists
        """
        if not inspection.is_submitted:
            raise InvalidOperationError(f"Inspection {inspection.inspection_id} has not been finalized")
        path = self._path(inspection.inspection_id, SUBMITTED)
        if path.exists():
            raise InvalidOperationError(f"Inspection {inspection.inspection_id} was already submitted")

        self._write(path, self._document(inspection, schema))
        draft_path = self._path(inspection.inspection_id, DRAFT)
        if draft_path.exists():
            draft_path.unlink()
        logger.info("Stored submitted inspection %s", inspection.inspection_id)
        return path

    def find_path(self, inspection_id: str) -> Optional[Path]:
        for status in (SUBMITTED, DRAFT):
            path = self._path(inspection_id, status)
            if path.exists():
                return path
        return None

    def exists(self, inspection_id: str) -> bool:
        return self.find_path(inspection_id) is not None

    def load_document(self, inspection_id: str) -> Dict:
        """
        Read the raw stored document of an inspection.

        Raises:
            PersistenceError: If the inspection is not stored or unreadable
        """
        path = self.find_path(inspection_id)
        if path is None:
            raise PersistenceError(f"Inspection not found: {inspection_id}")
        return self._read(path)

    def load(self, inspection_id: str, catalog: SchemaCatalog) -> Inspection:
        """
        Load an inspection and rebuild its responses.

        Args:
            inspection_id: Inspection ID
            catalog: Schemas to resolve the inspection's schema id and version

        Returns:
            Inspection rebuilt from its persisted rows
        """
        document = self.load_document(inspection_id)
        header = document["inspection"]
        schema = self.schema_for(header, catalog)
        return from_records(document.get("responses") or [], schema, header=header)

    @staticmethod
    def schema_for(header: Dict, catalog: SchemaCatalog) -> Schema:
        """Exact schema version if registered, else the latest of that id."""
        schema_id = header.get("schema_id")
        version = header.get("schema_version")
        try:
            return catalog.get(schema_id, version)
        except SchemaDefinitionError:
            logger.warning("Schema %s@%s not registered, using latest version", schema_id, version)
        return catalog.get(schema_id)

    def list_inspections(self, status: Optional[str] = None) -> List[Dict]:
        """
        List stored inspection headers, newest first.

        Args:
            status: Optional "draft" or "submitted" filter
        """
        statuses = [status] if status else list(STATUS_DIRS)
        headers = []
        for current in statuses:
            if current not in STATUS_DIRS:
                raise ValueError(f"Unknown status: {current}")
            for path in (self.storage_path / STATUS_DIRS[current]).glob("*.json"):
                headers.append(self._read(path)["inspection"])

        headers.sort(key=lambda h: h.get("created_at") or "", reverse=True)
        return headers

    def delete(self, inspection_id: str) -> bool:
        """
        Delete a draft.

        Returns:
            True if deleted, False if no draft exists

        Raises:
            InvalidOperationError: If the inspection is submitted
        """
        if self._path(inspection_id, SUBMITTED).exists():
            raise InvalidOperationError(f"Submitted inspection {inspection_id} cannot be deleted")
        path = self._path(inspection_id, DRAFT)
        if not path.exists():
            return False
        path.unlink()
        return True

    def get_storage_stats(self) -> Dict:
        """
        Get storage statistics.

        Returns:
            Dictionary with storage stats
        """
        stats = {"storage_path": str(self.storage_path)}
        total_size = 0
        for status, dirname in STATUS_DIRS.items():
            files = list((self.storage_path / dirname).glob("*.json"))
            stats[f"{status}_count"] = len(files)
            total_size += sum(path.stat().st_size for path in files)
        stats["total_size_bytes"] = total_size
        return stats
