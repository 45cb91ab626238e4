"""Tests for the in-memory resource store."""

from __future__ import annotations

import pytest

from bsnguard.errors import NotFoundError
from bsnguard.models import DocumentReference, OtherResource
from bsnguard.store import ResourceStore, SearchRequest

from conftest import PSEUDO_SYSTEM

REFERENCE = f"{PSEUDO_SYSTEM}/Patient/ps-nvi-1-0a0b"


def _doc(**subject) -> DocumentReference:
    return DocumentReference(subject=subject or None)


class TestCreateRead:
    def test_assigns_id_and_meta(self, store):
        created = store.create(_doc(reference=REFERENCE))
        assert created.id
        assert created.meta.version_id == "1"
        assert created.meta.last_updated

    def test_input_not_mutated(self, store):
        doc = _doc(reference=REFERENCE)
        store.create(doc)
        assert doc.id is None

    def test_read_returns_copy(self, store):
        created = store.create(_doc(reference=REFERENCE))
        first = store.read("DocumentReference", created.id)
        first.subject.reference = "changed"
        assert store.read("DocumentReference", created.id).subject.reference == REFERENCE

    def test_read_missing(self, store):
        with pytest.raises(NotFoundError):
            store.read("DocumentReference", "nope")

    def test_type_is_part_of_key(self, store):
        created = store.create(OtherResource(resourceType="Patient"))
        with pytest.raises(NotFoundError):
            store.read("DocumentReference", created.id)


class TestSearch:
    @pytest.fixture
    def filled(self, store):
        store.create(_doc(reference=REFERENCE))
        store.create(_doc(reference="Patient/42"))
        store.create(_doc(identifier={"system": "urn:mrn", "value": "7"}))
        store.create(_doc())
        store.create(OtherResource(resourceType="Patient"))
        return store

    def _count(self, store, **params):
        return len(store.search(SearchRequest("DocumentReference", params)))

    def test_exact_reference(self, filled):
        assert self._count(filled, patient=[REFERENCE]) == 1

    def test_bare_id_and_relative_reference(self, filled):
        assert self._count(filled, subject=["42"]) == 1
        assert self._count(filled, subject=["Patient/42"]) == 1

    def test_identifier_token(self, filled):
        assert self._count(filled, patient=["urn:mrn|7"]) == 1
        assert self._count(filled, patient=["|7"]) == 1
        assert self._count(filled, patient=["urn:other|7"]) == 0

    def test_or_values(self, filled):
        assert self._count(filled, patient=[REFERENCE, "Patient/42"]) == 2

    def test_patient_and_subject_both_apply(self, filled):
        assert self._count(filled, patient=[REFERENCE], subject=["Patient/42"]) == 0

    def test_no_filter_returns_all_of_type(self, filled):
        assert self._count(filled) == 4

    def test_counts(self, filled):
        assert filled.count_records() == {"DocumentReference": 4, "Patient": 1}
