"""
Tests for the repository accessors and normalized entity parsing.
"""
from django.test import SimpleTestCase

from rehydrate.core.exceptions import MalformedReferenceError
from rehydrate.core.repository import (
    InMemoryRepository,
    MemoizedRepository,
    StoreRepository,
    create_schemas_map,
)
from rehydrate.core.types import Descriptor, NormalizedEntity, entity_status_token
from tests.core.fixtures import build_storage


class NormalizedEntityTestCase(SimpleTestCase):
    def test_from_dict_reads_references(self):
        entity = NormalizedEntity.from_dict(build_storage()["articles"]["1"])

        self.assertEqual(entity.descriptor, Descriptor("1", "articles"))
        self.assertEqual(entity.relationships["author"], Descriptor("7", "people"))
        self.assertEqual(
            entity.relationships["tags"],
            (Descriptor("t1", "tags"), Descriptor("t2", "tags")),
        )
        self.assertEqual(entity.status, "S0")

    def test_from_dict_accepts_unwrapped_references(self):
        entity = NormalizedEntity.from_dict(
            {
                "id": 1,
                "attributes": {},
                "relationships": {"author": {"id": 7, "type": "people"}, "editor": None},
            },
            schema="articles",
        )

        self.assertEqual(entity.type, "articles")
        self.assertEqual(entity.relationships, {"author": Descriptor("7", "people"), "editor": None})

    def test_missing_status_becomes_content_digest(self):
        first = NormalizedEntity.from_dict({"id": "1", "type": "notes", "attributes": {"text": "a"}})
        same = NormalizedEntity.from_dict({"id": "1", "type": "notes", "attributes": {"text": "a"}})
        changed = NormalizedEntity.from_dict({"id": "1", "type": "notes", "attributes": {"text": "b"}})

        self.assertEqual(first.status, same.status)
        self.assertNotEqual(first.status, changed.status)
        self.assertEqual(first.status, entity_status_token({"text": "a"}, {}))

    def test_relationship_without_linkage_is_left_out(self):
        entity = NormalizedEntity.from_dict(
            {
                "id": "7",
                "type": "people",
                "relationships": {
                    "avatar": {"links": {"related": "/people/7/avatar"}},
                    "badges": {"meta": {"count": 3}},
                    "mentor": {"data": None, "links": {"self": "/people/7/relationships/mentor"}},
                },
            }
        )

        self.assertEqual(entity.relationships, {"mentor": None})

    def test_relationship_missing_id_or_type_is_malformed(self):
        for reference in ({"type": "people"}, {"id": "8"}, {"data": {"id": "8"}}, {"data": [{"type": "tags"}]}, "8"):
            with self.subTest(reference=reference):
                with self.assertRaises(MalformedReferenceError):
                    NormalizedEntity.from_dict(
                        {"id": "7", "type": "people", "relationships": {"mentor": reference}}
                    )

    def test_entity_without_id_is_malformed(self):
        with self.assertRaises(MalformedReferenceError):
            NormalizedEntity.from_dict({"type": "notes"})


class InMemoryRepositoryTestCase(SimpleTestCase):
    def setUp(self):
        self.repository = InMemoryRepository(build_storage())

    def test_get_normalized_entity(self):
        entity = self.repository.get_normalized_entity("people", 7)

        self.assertEqual(entity.attributes, {"name": "Ada"})
        self.assertIsNone(self.repository.get_normalized_entity("people", 99))
        self.assertIsNone(self.repository.get_normalized_entity("unknown", 1))

    def test_integer_keyed_partitions(self):
        repository = InMemoryRepository({"notes": {1: {"id": 1, "type": "notes", "status": "N0"}}})

        self.assertEqual(repository.get(Descriptor(1, "notes")).status, "N0")

    def test_get_storage_partition(self):
        partition = self.repository.get_storage_partition("tags")

        self.assertEqual(sorted(partition), ["t1", "t2"])
        self.assertIsInstance(partition["t1"], NormalizedEntity)

    def test_snapshot_memoizes_reads(self):
        partitions = build_storage()
        snapshot = InMemoryRepository(partitions).snapshot()
        first = snapshot.get(Descriptor("7", "people"))

        del partitions["people"]["7"]

        self.assertIsInstance(snapshot, MemoizedRepository)
        self.assertIs(snapshot.get(Descriptor("7", "people")), first)
        self.assertIs(snapshot.snapshot(), snapshot)


class StoreRepositoryTestCase(SimpleTestCase):
    def test_create_schemas_map(self):
        store = {"api": {"people": {"7": {}}}, "local": {"drafts": {}}}

        schemas = create_schemas_map(
            store, {"people": "api.people", "drafts": ["local", "drafts"], "tags": "api.tags"}
        )

        self.assertEqual(schemas, {"people": {"7": {}}, "drafts": {}, "tags": None})

    def test_reads_latest_store(self):
        stores = [{"api": build_storage()}]
        repository = StoreRepository(lambda: stores[-1], {"people": "api.people"})

        self.assertEqual(repository.get(Descriptor("7", "people")).attributes["name"], "Ada")
        stores.append({"api": {"people": {}}})
        self.assertIsNone(repository.get(Descriptor("7", "people")))

    def test_snapshot_reads_store_once(self):
        calls = []

        def get_store():
            calls.append(1)
            return {"api": build_storage()}

        snapshot = StoreRepository(get_store, {"people": "api.people", "tags": "api.tags"}).snapshot()
        snapshot.get(Descriptor("7", "people"))
        snapshot.get(Descriptor("8", "people"))
        snapshot.get_storage_partition("tags")

        self.assertEqual(len(calls), 1)
