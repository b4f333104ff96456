"""Local JSON file storage for article records"""
import json
import logging
import os
import tempfile
import threading
from datetime import timedelta
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .config import DATA_FILE_NAME, DEFAULT_DATA_DIR, DEFAULT_RECORD_LIMIT
from .errors import CapacityError
from .models import ArticleRecord, utc_now

logger = logging.getLogger(__name__)


class RecordStore:
    """
    Stores records in a single JSON file (a list of records).

    All read-modify-write sequences hold one lock per store instance, so
    concurrent callers of the same store never interleave.
    """

    def __init__(self, data_dir: Optional[str] = None, record_limit: int = DEFAULT_RECORD_LIMIT):
        self.data_dir = Path(data_dir or DEFAULT_DATA_DIR)
        self.data_path = self.data_dir / DATA_FILE_NAME
        self.record_limit = record_limit
        self._records: Optional[List[ArticleRecord]] = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ reads

    def load_all(self) -> List[ArticleRecord]:
        """All records, as copies"""
        with self._lock:
            return [record.model_copy(deep=True) for record in self._ensure_loaded()]

    def get_by_id(self, record_id: str) -> Optional[ArticleRecord]:
        with self._lock:
            for record in self._ensure_loaded():
                if record.id == record_id:
                    return record.model_copy(deep=True)
            return None

    def count(self) -> int:
        with self._lock:
            return len(self._ensure_loaded())

    def is_at_limit(self) -> bool:
        return self.count() >= self.record_limit

    def remaining_capacity(self) -> int:
        return max(0, self.record_limit - self.count())

    # ----------------------------------------------------------------- writes

    def create(self, record: ArticleRecord) -> ArticleRecord:
        """
        Add a new record and persist it

        Raises:
            CapacityError: the store already holds `record_limit` records
            ValueError: a record with the same id exists
        """
        if record is None:
            raise ValueError("record cannot be None")

        with self._lock:
            records = self._ensure_loaded()
            if len(records) >= self.record_limit:
                raise CapacityError(
                    f"Limite de {self.record_limit} registros atingido. "
                    "Sincronize ou exclua registros antes de salvar novos.",
                    limit=self.record_limit,
                )
            if any(r.id == record.id for r in records):
                raise ValueError(f"Record {record.id} already exists")

            now = utc_now()
            stored = record.model_copy(deep=True, update={"created_at": now, "updated_at": now})
            self._commit(records + [stored])
            logger.info("Created record %s (%d/%d)", stored.id, len(self._records), self.record_limit)
            return stored.model_copy(deep=True)

    def update(self, record: ArticleRecord) -> bool:
        """Replace the record with the same id; False if it does not exist"""
        if record is None:
            raise ValueError("record cannot be None")

        with self._lock:
            records = self._ensure_loaded()
            for index, existing in enumerate(records):
                if existing.id != record.id:
                    continue
                now = utc_now()
                if existing.updated_at is not None and now <= existing.updated_at:
                    now = existing.updated_at + timedelta(microseconds=1)
                updated = list(records)
                updated[index] = record.model_copy(deep=True, update={
                    "created_at": existing.created_at,
                    "updated_at": now,
                })
                self._commit(updated)
                logger.info("Updated record %s", record.id)
                return True

            logger.warning("Update skipped, record %s not found", record.id)
            return False

    def delete(self, record_id: str) -> bool:
        with self._lock:
            records = self._ensure_loaded()
            kept = [r for r in records if r.id != record_id]
            if len(kept) == len(records):
                return False
            self._commit(kept)
            logger.info("Deleted record %s", record_id)
            return True

    def delete_many(self, record_ids: Iterable[str]) -> int:
        """Delete several records; returns how many were removed"""
        ids = set(record_ids or [])
        if not ids:
            return 0

        with self._lock:
            records = self._ensure_loaded()
            kept = [r for r in records if r.id not in ids]
            removed = len(records) - len(kept)
            if removed:
                self._commit(kept)
                logger.info("Deleted %d record(s)", removed)
            return removed

    # ---------------------------------------------------------------- helpers

    def _commit(self, records: List[ArticleRecord]):
        # The cache only changes once the file write succeeded
        self._save(records)
        self._records = records

    def _ensure_loaded(self) -> List[ArticleRecord]:
        if self._records is None:
            self._records = self._read_file()
        return self._records

    def _read_file(self) -> List[ArticleRecord]:
        if not self.data_path.exists():
            return []

        try:
            with open(self.data_path, 'r', encoding='utf-8') as f:
                content = f.read()
            if not content.strip():
                return []
            data = json.loads(content)
            if not isinstance(data, list):
                raise ValueError("data file must contain a list of records")
            return [ArticleRecord.model_validate(item) for item in data]
        except (json.JSONDecodeError, ValueError, PydanticValidationError) as e:
            # Keep the unreadable file aside so the next save does not destroy it
            backup = self.data_path.with_name(f"{self.data_path.name}.corrupt-{utc_now():%Y%m%d%H%M%S}")
            os.replace(self.data_path, backup)
            logger.error("Could not read %s (%s); moved it to %s", self.data_path, e, backup)
            return []

    def _save(self, records: List[ArticleRecord]):
        self.data_dir.mkdir(parents=True, exist_ok=True)

        if not records:
            if self.data_path.exists():
                self.data_path.unlink()
            return

        payload = [record.to_json_dict() for record in records]
        fd, tmp_path = tempfile.mkstemp(prefix=".data-", suffix=".json", dir=str(self.data_dir))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.data_path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
