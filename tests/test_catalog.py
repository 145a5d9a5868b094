import json

import numpy as np
import pytest

from aqar.data.catalog import (
    DEFAULT_CATALOG_SIZE,
    catalog_path,
    generate_catalog,
    load_catalog,
    load_or_generate,
    parse_catalog,
    write_catalog,
)
from aqar.data.embeddings import (
    build_embedding_index,
    embedding_paths,
    load_embedding_index,
    save_embedding_index,
)
from aqar.errors import CatalogLoadError
from aqar.services.counts import CountReader
from aqar.services.ranker import EmbeddingIndex
from aqar.text import normalize_query


class TestGenerateCatalog:
    def test_deterministic(self):
        assert generate_catalog("ar", 20) == generate_catalog("ar", 20)

    def test_default_size_and_unique_ids(self):
        catalog = generate_catalog("en")
        assert len(catalog) == DEFAULT_CATALOG_SIZE
        assert len({prop.id for prop in catalog}) == DEFAULT_CATALOG_SIZE

    @pytest.mark.parametrize("locale", ["ar", "en"])
    def test_types_are_canonical(self, locale, ar_lexicon, en_lexicon):
        lexicon = ar_lexicon if locale == "ar" else en_lexicon
        assert all(prop.type in lexicon.types for prop in generate_catalog(locale, 24))

    @pytest.mark.parametrize("locale", ["ar", "en"])
    def test_count_features_are_readable(self, locale, ar_lexicon, en_lexicon):
        counts = CountReader(ar_lexicon if locale == "ar" else en_lexicon)
        for prop in generate_catalog(locale, 24):
            rooms, bathrooms = counts.derive(prop.features)
            assert rooms is not None and rooms >= 2
            assert bathrooms == max(2, int(rooms * 0.7))


class TestLexiconCoverage:
    """Every value in the generated catalogs can be asked for in a query."""

    def test_arabic(self, ar_extractor):
        self.check_coverage(ar_extractor, generate_catalog("ar", 48))

    def test_english(self, en_extractor):
        self.check_coverage(en_extractor, generate_catalog("en", 48))

    @staticmethod
    def check_coverage(extractor, catalog):
        for prop in catalog:
            assert extractor.extract(prop.type).criteria.type == prop.type
            assert extractor.extract(prop.city).criteria.city == prop.city
            assert extractor.extract(prop.district).criteria.districts == [prop.district]
            for feature in prop.features:
                if extractor.counts.read(normalize_query(feature)).spans:
                    continue
                assert extractor.extract(feature).criteria.features.optional == [feature]


class TestLoadCatalog:
    def test_round_trip(self, tmp_path, ar_lexicon):
        catalog = generate_catalog("ar", 5)
        path = catalog_path(tmp_path, "ar")
        write_catalog(path, catalog)
        assert load_catalog(path, ar_lexicon) == catalog

    def test_wrapped_rows_and_numeric_ids(self, ar_lexicon):
        rows = {
            "properties": [
                {
                    "id": 7,
                    "title": "فيلا",
                    "type": "فيلا",
                    "city": "الرياض",
                    "district": "النرجس",
                    "price": 3_000_000,
                    "features": ["مسبح", "مسبح", " حديقة "],
                }
            ]
        }
        [prop] = parse_catalog(rows, ar_lexicon)
        assert prop.id == "7"
        assert prop.features == ["مسبح", "حديقة"]

    def test_unknown_type(self, ar_lexicon):
        row = generate_catalog("ar", 1)[0].model_dump()
        row["type"] = "كوخ"
        with pytest.raises(CatalogLoadError):
            parse_catalog([row], ar_lexicon)

    def test_duplicate_ids(self, ar_lexicon):
        row = generate_catalog("ar", 1)[0].model_dump()
        with pytest.raises(CatalogLoadError):
            parse_catalog([row, row], ar_lexicon)

    def test_invalid_price(self, ar_lexicon):
        row = generate_catalog("ar", 1)[0].model_dump()
        row["price"] = 0
        with pytest.raises(CatalogLoadError):
            parse_catalog([row], ar_lexicon)

    def test_unreadable_file(self, tmp_path, ar_lexicon):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CatalogLoadError):
            load_catalog(path, ar_lexicon)

    def test_load_or_generate(self, tmp_path):
        assert len(load_or_generate(tmp_path, "ar")) == DEFAULT_CATALOG_SIZE
        write_catalog(catalog_path(tmp_path, "ar"), generate_catalog("ar", 3))
        assert len(load_or_generate(tmp_path, "ar")) == 3


class FakeEmbeddingService:
    def __init__(self) -> None:
        self.batches = []

    async def embed_many(self, texts):
        self.batches.append(list(texts))
        return [[float(len(text)), 1.0] for text in texts]


class TestEmbeddingIndexFiles:
    def test_missing_files(self, tmp_path):
        assert load_embedding_index(tmp_path, "ar", generate_catalog("ar", 3)) is None

    def test_round_trip(self, tmp_path):
        catalog = generate_catalog("ar", 3)
        index = EmbeddingIndex(ids=tuple(p.id for p in catalog), vectors=np.eye(3))
        save_embedding_index(tmp_path, "ar", index)

        loaded = load_embedding_index(tmp_path, "ar", catalog)

        assert loaded.ids == index.ids
        np.testing.assert_allclose(loaded.vectors, np.eye(3))
        metadata = json.loads(embedding_paths(tmp_path, "ar")[1].read_text(encoding="utf-8"))
        assert metadata["binaryFormat"] == {"dimensions": 3, "count": 3, "bytesPerFloat": 4}

    def test_count_mismatch(self, tmp_path):
        catalog = generate_catalog("ar", 3)
        index = EmbeddingIndex(ids=tuple(p.id for p in catalog), vectors=np.eye(3))
        save_embedding_index(tmp_path, "ar", index)
        with pytest.raises(CatalogLoadError):
            load_embedding_index(tmp_path, "ar", generate_catalog("ar", 4))

    def test_truncated_vectors(self, tmp_path):
        catalog = generate_catalog("ar", 3)
        index = EmbeddingIndex(ids=tuple(p.id for p in catalog), vectors=np.eye(3))
        save_embedding_index(tmp_path, "ar", index)
        vectors_path = embedding_paths(tmp_path, "ar")[0]
        vectors_path.write_bytes(vectors_path.read_bytes()[:-4])
        with pytest.raises(CatalogLoadError):
            load_embedding_index(tmp_path, "ar", catalog)

    async def test_build_in_batches(self):
        catalog = generate_catalog("en", 5)
        service = FakeEmbeddingService()

        index = await build_embedding_index(catalog, service, batch_size=2, delay=0)

        assert [len(batch) for batch in service.batches] == [2, 2, 1]
        assert len(index) == 5
        assert index.dimensions == 2
        assert service.batches[0][0] == catalog[0].description
