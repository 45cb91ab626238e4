"""In-memory resource store — the query engine behind the gateway.

Records are kept exactly as the pipeline hands them over (subjects in
pseudonym form) and every read returns a deep copy, so outbound transforms
never touch stored data.
"""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

from bsnguard.errors import NotFoundError
from bsnguard.models import DocumentReference, Meta, OtherResource

Record = DocumentReference | OtherResource

SUBJECT_PARAMS = ("patient", "subject")


@dataclass
class SearchRequest:
    """A search about to run: resource type plus OR-lists of values per parameter."""

    resource_type: str
    params: dict[str, list[str]] = field(default_factory=dict)

    def has_subject_filter(self) -> bool:
        return any(self.params.get(name) for name in SUBJECT_PARAMS)


def _subject_matches(record: DocumentReference, value: str) -> bool:
    subject = record.subject
    if subject is None:
        return False
    if "|" in value:
        system, _, ident = value.partition("|")
        identifier = subject.identifier
        if identifier is None:
            return False
        return identifier.value == ident and (not system or identifier.system == system)
    reference = subject.reference
    if reference is None:
        return False
    if reference == value:
        return True
    if "/" not in value:
        value = "Patient/" + value
    return reference == value or reference.endswith("/" + value)


class ResourceStore:
    """Thread-safe dict of resources keyed by (resourceType, id)."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], Record] = {}
        self._lock = threading.Lock()

    def create(self, resource: Record) -> Record:
        stored = resource.model_copy(deep=True)
        stored.id = str(uuid4())
        stored.meta = Meta(
            version_id="1",
            last_updated=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            self._records[(stored.resource_type, stored.id)] = stored
        return stored.model_copy(deep=True)

    def read(self, resource_type: str, resource_id: str) -> Record:
        with self._lock:
            record = self._records.get((resource_type, resource_id))
        if record is None:
            raise NotFoundError(f"{resource_type}/{resource_id} not found")
        return record.model_copy(deep=True)

    def search(self, search: SearchRequest) -> list[Record]:
        with self._lock:
            candidates = [
                record
                for (resource_type, _), record in self._records.items()
                if resource_type == search.resource_type
            ]
        results = []
        for record in candidates:
            if self._matches(record, search):
                results.append(record.model_copy(deep=True))
        return results

    def count_records(self) -> dict[str, int]:
        with self._lock:
            return dict(Counter(resource_type for resource_type, _ in self._records))

    @staticmethod
    def _matches(record: Record, search: SearchRequest) -> bool:
        for name in SUBJECT_PARAMS:
            values = search.params.get(name)
            if not values:
                continue
            if not isinstance(record, DocumentReference):
                return False
            if not any(_subject_matches(record, value) for value in values):
                return False
        return True
