"""Storage collaborator for canonical readings.

The ingestion engine hands readings to a ReadingStore. Change tracking uses an
explicit ChangesToken that the caller keeps and passes back; stores hold no
per-caller cursor.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from glucose_ingest.interface.ingest_interface import CanonicalReading
from glucose_ingest.reading_processor import ReadingProcessor


@dataclass(frozen=True)
class StoredReading:
    """A reading together with the id the store assigned to it."""
    record_id: str
    reading: CanonicalReading


@dataclass(frozen=True)
class ChangesToken:
    """Opaque position in a store's change feed."""
    position: int = 0


class ReadingStore(ABC):
    """Abstract storage for glucose readings."""

    @abstractmethod
    def upload(self, reading: CanonicalReading) -> str:
        """Persist one reading.

        Args:
            reading: Canonical reading to store

        Returns:
            Record id assigned by the store
        """
        pass

    @abstractmethod
    def read(self, start: datetime, end: datetime) -> List[StoredReading]:
        """Readings with start <= timestamp <= end, chronologically."""
        pass

    @abstractmethod
    def get_changes_token(self) -> ChangesToken:
        """Token marking the current end of the change feed."""
        pass

    @abstractmethod
    def get_changes(self, token: ChangesToken) -> Tuple[List[StoredReading], ChangesToken]:
        """Readings stored since the token was issued.

        Args:
            token: Token from get_changes_token or a previous get_changes call

        Returns:
            Tuple of (new readings in upload order, token to pass next time)

        Raises:
            ValueError: If the token was not issued by this store
        """
        pass


class InMemoryReadingStore(ReadingStore):
    """ReadingStore kept in process memory. Readings are never deduplicated."""

    def __init__(self):
        self._records: List[StoredReading] = []

    def __len__(self) -> int:
        return len(self._records)

    def upload(self, reading: CanonicalReading) -> str:
        record_id = uuid.uuid4().hex
        self._records.append(StoredReading(record_id, reading))
        return record_id

    def read(self, start: datetime, end: datetime) -> List[StoredReading]:
        selected = [
            record for record in self._records
            if ReadingProcessor.in_range(record.reading.timestamp, start, end)
        ]
        return sorted(selected, key=lambda record: record.reading.timestamp)

    def latest(self) -> Optional[StoredReading]:
        """The stored reading with the newest timestamp, if any."""
        if not self._records:
            return None
        return max(self._records, key=lambda record: record.reading.timestamp)

    def get_changes_token(self) -> ChangesToken:
        return ChangesToken(len(self._records))

    def get_changes(self, token: ChangesToken) -> Tuple[List[StoredReading], ChangesToken]:
        if not 0 <= token.position <= len(self._records):
            raise ValueError(f"Unknown changes token: {token}")
        changes = self._records[token.position:]
        return list(changes), ChangesToken(len(self._records))


def upload_readings(store: ReadingStore, readings: Iterable[CanonicalReading]) -> List[str]:
    """Upload readings in order.

    Args:
        store: Target store
        readings: Readings to upload

    Returns:
        Record ids in upload order
    """
    record_ids = [store.upload(reading) for reading in readings]
    logger.info(f"Uploaded {len(record_ids)} readings")
    return record_ids
