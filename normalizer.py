"""Turn raw CSV rows from any record family into canonical {id, text, metadata} records."""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping

logger = logging.getLogger(__name__)

MAX_ID_LENGTH = 100
FALLBACK_TEXT_LIMIT = 2000
# Pinecone rejects records whose metadata exceeds 40 KB
METADATA_BYTE_LIMIT = 40960

_WHITESPACE_RE = re.compile(r"\s+")

SOURCE_FAMILIES = ("verse", "commentary", "practices")

# Family-specific identifier columns, tried before the generic ones
_FAMILY_ID_KEYS = {
    "verse": ("source id", "source_id", "sourceid", "reference"),
    "commentary": ("commentary_id",),
    "practices": ("practice_id",),
}
_GENERIC_ID_KEYS = ("id", "source_id")
# Verse references are the shared key space; other families qualify generic ids
_BARE_ID_FAMILIES = ("verse",)
_RESERVED_KEYS = ("id", "source", "type")

# Content-bearing columns in embedding priority order: (candidate keys) -> canonical field
CONTENT_FIELDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("sanskrit verse", "sanskrit"), "sanskrit"),
    (("hinglish (1)", "hinglish1", "hinglish", "transliteration_hinglish"), "hinglish1"),
    (("hinglish (2)", "hinglish2"), "hinglish2"),
    (("translation (english)", "translation", "english"), "translation"),
    (("commentary_long", "commentary"), "commentary"),
    (("summary", "commentary_summary"), "summary"),
    (("practice_text", "description", "practice"), "practice_text"),
    (("message", "text"), "message"),
)

# Structured fields kept in metadata, defaulting to "" when absent
FAMILY_FIELDS: dict[str, tuple[tuple[tuple[str, ...], str], ...]] = {
    "verse": (
        (("chapter",), "chapter"),
        (("verse",), "verse"),
        (("reference",), "reference"),
        (("tags",), "tags"),
    ),
    "commentary": (
        (("reference",), "reference"),
        (("title",), "title"),
        (("tags",), "tags"),
    ),
    "practices": (
        (("duration_sec", "duration"), "duration_sec"),
        (("level",), "level"),
        (("tags",), "tags"),
    ),
}
_DEFAULT_FAMILY_FIELDS = (
    (("title",), "title"),
    (("tags",), "tags"),
)


@dataclass(frozen=True)
class Record:
    """One input row, ready for embedding."""
    id: str
    text: str
    metadata: dict[str, str] = field(default_factory=dict)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    # pandas hands missing cells of ragged rows back as float NaN
    if isinstance(value, float) and value != value:
        return ""
    return str(value).strip()


def _lowered(row: Mapping[str, Any]) -> dict[str, str]:
    """Case-insensitive, trimmed view of the row; first occurrence of a key wins."""
    view: dict[str, str] = {}
    for key, value in row.items():
        name = str(key).strip().lower()
        if name not in view:
            view[name] = _cell(value)
    return view


def _first(view: Mapping[str, str], candidates: tuple[str, ...]) -> str:
    for key in candidates:
        value = view.get(key, "")
        if value:
            return value
    return ""


def sanitize_id(raw: str) -> str:
    """Collapse whitespace to underscores and bound the length for vector-store keys."""
    return _WHITESPACE_RE.sub("_", raw.strip())[:MAX_ID_LENGTH]


def _metadata_size(metadata: Mapping[str, str]) -> int:
    return len(json.dumps(metadata, ensure_ascii=False).encode("utf-8"))


def bound_metadata(metadata: dict[str, str], limit: int = METADATA_BYTE_LIMIT) -> dict[str, str]:
    """Trim the longest values until the JSON-encoded metadata fits in ``limit`` bytes.

    ``id``, ``source`` and ``type`` are never trimmed.
    """
    size = _metadata_size(metadata)
    while size > limit:
        candidates = [k for k in metadata if k not in _RESERVED_KEYS and metadata[k]]
        if not candidates:
            break
        key = max(candidates, key=lambda k: len(metadata[k].encode("utf-8")))
        encoded = metadata[key].encode("utf-8")
        keep = max(len(encoded) - (size - limit), 0)
        metadata[key] = encoded[:keep].decode("utf-8", errors="ignore")
        logger.debug("Trimmed metadata field %r to fit %d bytes", key, limit)
        size = _metadata_size(metadata)
    return metadata


class RecordNormalizer:
    """Normalizes rows of one record family.

    The family name doubles as the id prefix and as the ``source``/``type``
    metadata value.
    """

    def __init__(self, source: str):
        self.source = source
        self._family_id_keys = _FAMILY_ID_KEYS.get(source, ())
        self._family_fields = FAMILY_FIELDS.get(source, _DEFAULT_FAMILY_FIELDS)

    def _qualify(self, candidate: str) -> str:
        prefix = f"{self.source}_"
        if self.source in _BARE_ID_FAMILIES or candidate.startswith(prefix):
            return candidate
        return sanitize_id(prefix + candidate)

    def derive_id(self, view: Mapping[str, str], index: int) -> str:
        for key in self._family_id_keys:
            candidate = sanitize_id(view.get(key, ""))
            if candidate:
                return candidate
        for key in _GENERIC_ID_KEYS:
            candidate = sanitize_id(view.get(key, ""))
            if candidate:
                return self._qualify(candidate)
        return sanitize_id(f"{self.source}_{index + 1}")

    @staticmethod
    def derive_content(view: Mapping[str, str]) -> dict[str, str]:
        """Return the recognized content fields present in the row, in priority order."""
        content = {}
        for candidates, canonical in CONTENT_FIELDS:
            value = _first(view, candidates)
            if value:
                content[canonical] = value
        return content

    @staticmethod
    def fallback_text(row: Mapping[str, Any]) -> str:
        values = [_cell(v) for v in row.values()]
        return " | ".join(v for v in values if v)[:FALLBACK_TEXT_LIMIT]

    def normalize(self, row: Mapping[str, Any], index: int) -> Record:
        """Build a Record from one raw row. Never raises on odd row shapes.

        Content columns stay in metadata under their original names only; the
        embedded text is derived from them and not stored a second time.
        """
        view = _lowered(row)
        record_id = self.derive_id(view, index)
        content = self.derive_content(view)

        text = "\n".join(content.values())
        if not text:
            text = self.fallback_text(row) or record_id
            logger.debug("%s row %d has no recognized content columns; using fallback text", self.source, index + 1)

        metadata = {str(k).strip(): _cell(v) for k, v in row.items() if str(k).strip()}
        for candidates, canonical in self._family_fields:
            metadata[canonical] = _first(view, candidates)
        metadata.update({
            "id": record_id,
            "source": self.source,
            "type": self.source,
        })
        return Record(id=record_id, text=text, metadata=bound_metadata(metadata))


def normalize_record(row: Mapping[str, Any], index: int, source: str) -> Record:
    return RecordNormalizer(source).normalize(row, index)
