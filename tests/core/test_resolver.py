"""
Tests for staleness detection of cached items and collections.
"""
from django.test import SimpleTestCase

from rehydrate.core.denormalizer import Denormalizer
from rehydrate.core.descriptors import build_collection_descriptor
from rehydrate.core.resolver import ResolutionState
from rehydrate.core.types import Descriptor
from tests.core.fixtures import article, build_storage, person, remove, replace

ARTICLE = Descriptor("1", "articles")


class ResolveItemTestCase(SimpleTestCase):
    def setUp(self):
        self.storage = build_storage()
        self.denormalizer = Denormalizer()
        self.first = self.denormalizer.denormalize_item(ARTICLE, storage=self.storage)

    def resolve(self, storage):
        context = self.denormalizer.create_context(storage)
        entity = context.repository.get(ARTICLE)
        return self.denormalizer.resolver.resolve_item(entity, context)

    def test_unchanged_entry_is_valid(self):
        resolution = self.resolve(self.storage)

        self.assertEqual(resolution.state, ResolutionState.VALID)
        self.assertIs(resolution.value, self.first)
        self.assertEqual(resolution.changed_relationships, frozenset())

    def test_related_status_change_is_reported(self):
        """Only the relationship whose target changed is reported."""
        storage = replace(self.storage, "people", person("7", "P1", "Ada"))

        resolution = self.resolve(storage)

        self.assertEqual(resolution.state, ResolutionState.STALE)
        self.assertEqual(resolution.changed_relationships, {"author"})
        self.assertIs(resolution.relationships["editor"], self.first["editor"])
        self.assertIsNot(resolution.relationships["author"], self.first["author"])
        self.assertEqual(resolution.observed_status["author"], "P1")

    def test_own_status_change_reports_every_relationship(self):
        storage = replace(self.storage, "articles", article("1", "S1", "Normalization", tags=["t1", "t2"]))

        resolution = self.resolve(storage)

        self.assertEqual(resolution.state, ResolutionState.STALE)
        self.assertEqual(resolution.changed_relationships, {"author", "editor", "tags"})

    def test_to_many_order_change_is_reported(self):
        storage = replace(self.storage, "articles", article("1", "S0", "Normalization", tags=["t2", "t1"]))

        resolution = self.resolve(storage)

        self.assertEqual(resolution.changed_relationships, {"tags"})
        self.assertIs(resolution.relationships["tags"][0], self.first["tags"][1])

    def test_to_many_target_change_is_reported(self):
        storage = replace(self.storage, "tags", {"id": "t1", "type": "tags", "status": "T1", "attributes": {"label": "data"}})

        resolution = self.resolve(storage)

        self.assertEqual(resolution.changed_relationships, {"tags"})

    def test_second_level_change_is_reported_on_direct_relationship(self):
        """A change to the author's mentor marks only `author` as changed."""
        storage = replace(self.storage, "people", person("7", "P0", "Ada", mentor="9"))
        storage["people"]["9"] = person("9", "M0", "Charles")
        self.denormalizer.flush_cache()
        first = self.denormalizer.denormalize_item(ARTICLE, storage=storage)
        changed = replace(storage, "people", person("9", "M1", "Charles Babbage"))

        resolution = self.resolve(changed)

        self.assertEqual(resolution.state, ResolutionState.STALE)
        self.assertEqual(resolution.changed_relationships, {"author"})
        self.assertEqual(resolution.observed_status["author"], "P0")
        self.assertEqual(resolution.relationships["author"]["mentor"]["name"], "Charles Babbage")
        self.assertIs(resolution.relationships["editor"], first["editor"])

    def test_flushed_entry_is_missing(self):
        self.denormalizer.flush_cache()

        resolution = self.resolve(self.storage)

        self.assertEqual(resolution.state, ResolutionState.MISSING)
        self.assertFalse(resolution.is_cached())


class ResolveCollectionTestCase(SimpleTestCase):
    def setUp(self):
        self.storage = build_storage()
        self.denormalizer = Denormalizer()

    def resolve(self, items, storage=None):
        descriptor = build_collection_descriptor(items, "articles")
        context = self.denormalizer.create_context(storage or self.storage)
        return self.denormalizer.resolver.resolve_collection(descriptor, context)

    def test_uncached_collection_is_missing(self):
        resolution = self.resolve(["1", "2"])

        self.assertEqual(resolution.state, ResolutionState.MISSING)
        self.assertEqual([item["id"] for item in resolution.members], ["1", "2"])

    def test_same_membership_is_valid(self):
        first = self.denormalizer.denormalize_collection(["1", "2"], "articles", storage=self.storage)

        resolution = self.resolve(["1", "2"])

        self.assertTrue(resolution.is_valid())
        self.assertIs(resolution.value, first)
        self.assertFalse(resolution.membership_changed)

    def test_reorder_changes_membership(self):
        self.denormalizer.denormalize_collection(["1", "2"], "articles", storage=self.storage)

        resolution = self.resolve(["2", "1"])

        self.assertEqual(resolution.state, ResolutionState.STALE)
        self.assertTrue(resolution.membership_changed)

    def test_missing_members_are_listed(self):
        self.denormalizer.denormalize_collection(["1", "2"], "articles", storage=self.storage)

        resolution = self.resolve(["1", "2"], storage=remove(self.storage, "articles", "2"))

        self.assertEqual(resolution.state, ResolutionState.STALE)
        self.assertEqual(resolution.missing_members, (Descriptor("2", "articles"),))
