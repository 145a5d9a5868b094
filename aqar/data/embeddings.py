"""
Precomputed embedding index: loading and building.

Vectors are stored per locale as ``embeddings-{locale}.bin`` (little-endian
float32, one row per property, catalog order) next to
``embedding-metadata-{locale}.json``, whose ``binaryFormat`` block records
``dimensions`` and ``count``.

Build the files for a locale with::

    python -m aqar.data.embeddings --locale ar
"""

import argparse
import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np

from aqar.config import get_settings
from aqar.data.catalog import load_or_generate
from aqar.errors import CatalogLoadError
from aqar.models.property import Property
from aqar.services.embedding_service import EmbeddingService
from aqar.services.ranker import EmbeddingIndex

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
BATCH_DELAY_SECONDS = 1.0
BYTES_PER_FLOAT = 4


def embedding_paths(data_dir: Path, locale: str) -> Tuple[Path, Path]:
    data_dir = Path(data_dir)
    return (
        data_dir / f"embeddings-{locale}.bin",
        data_dir / f"embedding-metadata-{locale}.json",
    )


def load_embedding_index(
    data_dir: Path, locale: str, catalog: Sequence[Property]
) -> Optional[EmbeddingIndex]:
    """
    Load the embedding index for a locale, aligned with `catalog`.

    Returns:
        The index, or None when no embedding files exist for the locale.

    Raises:
        CatalogLoadError: If the files exist but are inconsistent with each
            other or with the catalog.
    """
    vectors_path, metadata_path = embedding_paths(data_dir, locale)
    if not vectors_path.exists() or not metadata_path.exists():
        logger.info("No embedding index for %r in %s", locale, data_dir)
        return None

    try:
        metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
        binary_format = metadata["binaryFormat"]
        dimensions = int(binary_format["dimensions"])
        count = int(binary_format["count"])
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise CatalogLoadError(f"Invalid embedding metadata {metadata_path}: {e}") from e

    if count != len(catalog):
        raise CatalogLoadError(
            f"Embedding index has {count} vectors but the {locale!r} catalog has "
            f"{len(catalog)} properties"
        )

    vectors = np.fromfile(vectors_path, dtype="<f4")
    if vectors.size != count * dimensions:
        raise CatalogLoadError(
            f"{vectors_path} holds {vectors.size} floats, expected {count} x {dimensions}"
        )

    ids = metadata.get("ids") or [prop.id for prop in catalog]
    if list(ids) != [prop.id for prop in catalog]:
        raise CatalogLoadError(f"Embedding index {vectors_path} is not in catalog order")

    logger.info("Loaded %d x %d embedding index for %r", count, dimensions, locale)
    return EmbeddingIndex(ids=tuple(ids), vectors=vectors.reshape(count, dimensions))


def save_embedding_index(data_dir: Path, locale: str, index: EmbeddingIndex) -> None:
    vectors_path, metadata_path = embedding_paths(data_dir, locale)
    Path(data_dir).mkdir(parents=True, exist_ok=True)
    index.vectors.astype("<f4").tofile(vectors_path)
    metadata = {
        "ids": list(index.ids),
        "lastUpdateTimestamp": datetime.now(timezone.utc).isoformat(),
        "totalProcessed": len(index),
        "binaryFormat": {
            "dimensions": index.dimensions,
            "count": len(index),
            "bytesPerFloat": BYTES_PER_FLOAT,
        },
    }
    metadata_path.write_text(json.dumps(metadata, indent=2), encoding="utf-8")


async def build_embedding_index(
    catalog: Sequence[Property],
    service: EmbeddingService,
    batch_size: int = BATCH_SIZE,
    delay: float = BATCH_DELAY_SECONDS,
) -> EmbeddingIndex:
    """Embed every property description, in batches, pausing between batches."""
    vectors: List[List[float]] = []
    batches = (len(catalog) + batch_size - 1) // batch_size
    for number, start in enumerate(range(0, len(catalog), batch_size), start=1):
        batch = catalog[start:start + batch_size]
        logger.info("Embedding batch %d/%d", number, batches)
        vectors.extend(await service.embed_many([prop.description or prop.title for prop in batch]))
        if delay and start + batch_size < len(catalog):
            await asyncio.sleep(delay)
    return EmbeddingIndex(ids=tuple(prop.id for prop in catalog), vectors=np.asarray(vectors))


async def _run(locale: str, data_dir: Path) -> int:
    settings = get_settings()
    if not settings.embedding_api_key:
        logger.error("EMBEDDING_API_KEY is not set")
        return 1

    catalog = load_or_generate(data_dir, locale)
    service = EmbeddingService(settings)
    try:
        index = await build_embedding_index(catalog, service)
    finally:
        await service.close()
    save_embedding_index(data_dir, locale, index)
    logger.info("Wrote %d embeddings for %r to %s", len(index), locale, data_dir)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Build the embedding index for a catalog")
    parser.add_argument("--locale", default="ar", choices=["ar", "en"])
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory holding the catalog and embedding files (default: settings.data_dir)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    data_dir = args.data_dir or get_settings().data_dir
    return asyncio.run(_run(args.locale, data_dir))


if __name__ == "__main__":
    raise SystemExit(main())
