"""
Property catalog loading and generation.

The catalog for a locale lives in ``properties-{locale}.json`` under the
configured data directory. Every row is validated into a `Property` here;
the engine only ever sees validated models. When no file exists, a
deterministic demo catalog of 150 listings is generated instead.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

from pydantic import TypeAdapter, ValidationError

from aqar.errors import CatalogLoadError
from aqar.models.lexicon import Lexicon, load_lexicon
from aqar.models.property import Property

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_SIZE = 150

_PROPERTY_LIST = TypeAdapter(List[Property])

IMAGE_BASE = "https://images.unsplash.com"
TYPE_IMAGES = (
    "photo-1613977257363-707ba9348227",
    "photo-1545324418-cc1a3fa10c00",
    "photo-1505843513577-22bb7d21e455",
    "photo-1512917774080-9991f1c4c750",
)

# Per-locale vocabulary of the generated catalog. Types are listed as
# (villa, apartment, palace, duplex); villas and apartments come up twice
# as often in the rotation.
_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "ar": {
        "types": ("فيلا", "شقة", "قصر", "دوبلكس"),
        "cities": ("الرياض", "جدة", "الدمام", "مكة"),
        "districts": ("النرجس", "الياسمين", "الملقا", "الورود"),
        "base_features": ("مطبخ", "صالة", "موقف سيارات"),
        "luxury_features": (
            ("مسبح", "حديقة", "غرفة خادمة", "مجلس"),
            ("شرفة", "مخزن", "تكييف مركزي"),
            ("مسبح", "حديقة", "مجلس", "غرفة سينما", "غرفة خادمة"),
            ("شرفة", "حديقة", "مدخل خاص"),
        ),
        "rooms_feature": "{rooms} غرف",
        "bathrooms_feature": "{bathrooms} حمامات",
        "title": "{type} {rooms} غرف في {city}",
        "description": "{type} في حي {district}، {city}. تتميز بـ {features}.",
        "separator": "، ",
    },
    "en": {
        "types": ("villa", "apartment", "palace", "duplex"),
        "cities": ("Riyadh", "Jeddah", "Dammam", "Mecca"),
        "districts": ("Al Narjis", "Al Yasmin", "Al Malqa", "Al Wurud"),
        "base_features": ("kitchen", "living room", "parking"),
        "luxury_features": (
            ("pool", "garden", "maid room", "majlis"),
            ("balcony", "storage", "central ac"),
            ("pool", "garden", "majlis", "cinema room", "maid room"),
            ("balcony", "garden", "private entrance"),
        ),
        "rooms_feature": "{rooms} rooms",
        "bathrooms_feature": "{bathrooms} bathrooms",
        "title": "{rooms}-room {type} in {city}",
        "description": "{type_title} in {district}, {city}. Features {features}.",
        "separator": ", ",
    },
}

TYPE_ROTATION = (0, 1, 0, 1, 2, 3)
ROOM_COUNTS = ((4, 5, 6), (2, 3, 4), (8, 10, 12), (4, 5, 6))
LUXURY_COUNTS = (2, 1, 3, 2)
PRICE_RANGES = (
    (2_500_000, 4_000_000),
    (750_000, 1_500_000),
    (6_000_000, 8_000_000),
    (1_800_000, 3_000_000),
)


def catalog_path(data_dir: Path, locale: str) -> Path:
    return Path(data_dir) / f"properties-{locale}.json"


def generate_catalog(locale: str, count: int = DEFAULT_CATALOG_SIZE) -> List[Property]:
    """
    Build a deterministic demo catalog.

    The same locale and count always produce the same listings, so tests and
    precomputed embedding files stay aligned with it.
    """
    template = _TEMPLATES[locale]
    properties = []
    for i in range(count):
        kind = TYPE_ROTATION[i % len(TYPE_ROTATION)]
        prop_type = template["types"][kind]
        city = template["cities"][i % len(template["cities"])]
        district = template["districts"][(i // len(template["cities"])) % len(template["districts"])]
        rooms = ROOM_COUNTS[kind][i % 3]
        bathrooms = max(2, int(rooms * 0.7))

        luxury = template["luxury_features"][kind]
        extras = [luxury[(i + offset) % len(luxury)] for offset in range(LUXURY_COUNTS[kind])]
        features = [
            template["rooms_feature"].format(rooms=rooms),
            template["bathrooms_feature"].format(bathrooms=bathrooms),
            *template["base_features"],
            *extras,
        ]

        low, high = PRICE_RANGES[kind]
        steps = (high - low) // 1000
        price = low + (i * 37 % steps) * 1000

        properties.append(
            Property(
                id=str(i + 1),
                title=template["title"].format(type=prop_type, rooms=rooms, city=city),
                description=template["description"].format(
                    type=prop_type,
                    type_title=prop_type.capitalize(),
                    district=district,
                    city=city,
                    features=template["separator"].join(extras),
                ),
                type=prop_type,
                city=city,
                district=district,
                price=price,
                features=features,
                images=[f"{IMAGE_BASE}/{TYPE_IMAGES[kind]}?q=80&w=800"],
            )
        )
    return properties


def parse_catalog(rows: Any, lexicon: Lexicon) -> List[Property]:
    """
    Validate raw catalog rows.

    Accepts either a list of rows or an object with a ``properties`` list.

    Raises:
        CatalogLoadError: On invalid rows, duplicate ids or property types
            the lexicon does not know.
    """
    if isinstance(rows, dict):
        rows = rows.get("properties", [])
    try:
        properties = _PROPERTY_LIST.validate_python(rows)
    except ValidationError as e:
        raise CatalogLoadError(f"Invalid catalog rows: {e}") from e

    seen = set()
    for prop in properties:
        if prop.id in seen:
            raise CatalogLoadError(f"Duplicate property id {prop.id!r}")
        seen.add(prop.id)
        if prop.type not in lexicon.types:
            raise CatalogLoadError(
                f"Property {prop.id!r} has type {prop.type!r}, which is not a "
                f"canonical {lexicon.locale!r} type"
            )
    return properties


def load_catalog(path: Path, lexicon: Lexicon) -> List[Property]:
    """Load and validate a catalog JSON file."""
    try:
        rows = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogLoadError(f"Cannot read catalog {path}: {e}") from e
    properties = parse_catalog(rows, lexicon)
    logger.info("Loaded %d properties from %s", len(properties), path)
    return properties


def load_or_generate(data_dir: Path, locale: str) -> List[Property]:
    """Catalog for a locale: the JSON file when present, else the generated one."""
    lexicon = load_lexicon(locale)
    path = catalog_path(data_dir, locale)
    if path.exists():
        return load_catalog(path, lexicon)
    logger.info("No catalog at %s, generating %d demo properties", path, DEFAULT_CATALOG_SIZE)
    return generate_catalog(locale)


def write_catalog(path: Path, properties: Sequence[Property]) -> None:
    rows = [prop.model_dump() for prop in properties]
    Path(path).write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")
