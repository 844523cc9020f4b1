from django.test import SimpleTestCase

from rehydrate.core.graph import GraphDenormalizer, bare_reference, expand_reference
from rehydrate.core.repository import InMemoryRepository
from rehydrate.core.types import DenormalizedEntity, Descriptor, NormalizedEntity
from tests.core.fixtures import build_storage, person


class GraphDenormalizerTestCase(SimpleTestCase):
    def setUp(self):
        self.graph = GraphDenormalizer()

    def test_attributes_only(self):
        entity = NormalizedEntity(
            id="1",
            type="articles",
            attributes={"title": "Normalization"},
            relationships={"author": Descriptor("7", "people")},
        )

        self.assertEqual(
            self.graph.denormalize_attributes_only(entity),
            {"id": "1", "type": "articles", "title": "Normalization"},
        )

    def test_full_expansion(self):
        repository = InMemoryRepository(build_storage())

        result = self.graph.denormalize_full(Descriptor("1", "articles"), repository)

        self.assertIsInstance(result, DenormalizedEntity)
        self.assertEqual(result["author"]["name"], "Ada")
        self.assertEqual([tag["id"] for tag in result["tags"]], ["t1", "t2"])

    def test_cycles_resolve_to_back_references(self):
        storage = build_storage()
        storage["people"]["7"] = person("7", "P0", "Ada", mentor="8")
        storage["people"]["8"] = person("8", "Q0", "Grace", mentor="7")

        result = self.graph.denormalize_full(Descriptor("7", "people"), InMemoryRepository(storage))

        self.assertIs(result["mentor"]["mentor"], result)

    def test_absent_target_becomes_reference(self):
        storage = build_storage()
        storage["people"]["7"] = person("7", "P0", "Ada", mentor="404")

        result = self.graph.denormalize_full(Descriptor("7", "people"), InMemoryRepository(storage))

        self.assertEqual(result["mentor"], {"id": "404", "type": "people"})

    def test_expand_reference(self):
        resolve = bare_reference

        self.assertIsNone(expand_reference(None, resolve))
        self.assertEqual(expand_reference(Descriptor("1", "tags"), resolve), {"id": "1", "type": "tags"})
        self.assertEqual(
            expand_reference((Descriptor("1", "tags"), Descriptor("2", "tags")), resolve),
            [{"id": "1", "type": "tags"}, {"id": "2", "type": "tags"}],
        )

    def test_merge_fills_target(self):
        entity = NormalizedEntity(id="1", type="tags")
        target = DenormalizedEntity()

        merged = self.graph.merge(entity, {"id": "1", "type": "tags"}, {"parent": None}, target=target)

        self.assertIs(merged, target)
        self.assertEqual(merged, {"id": "1", "type": "tags", "parent": None})
