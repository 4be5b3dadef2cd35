"""
Typed item records and their flat field-map representation in the store.

Field maps are converted to Item exactly once, here, with defaulting applied.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

ITEM_KEY_PREFIX = "item:"
ALL_ITEMS_SET = "items:all"
CATEGORY_SET_PREFIX = "items:category:"
DEFAULT_CATEGORY = "General"

EMBEDDING_FIELDS = {
    "title": "titleEmbedding",
    "content": "contentEmbedding",
    "combined": "combinedEmbedding",
}


def normalize_category(category: Optional[str]) -> str:
    """Stored form of a category: surrounding whitespace removed, "General" when missing or blank."""
    stripped = category.strip() if category else ""
    return stripped or DEFAULT_CATEGORY


def category_set_key(category: str) -> str:
    return f"{CATEGORY_SET_PREFIX}{category}"


def serialize_vector(vector: List[float]) -> str:
    """Serialize a vector as a JSON array of floats."""
    return json.dumps([float(v) for v in vector])


def parse_vector(raw: Optional[str]) -> Optional[List[float]]:
    """Parse a serialized vector. Returns None when missing or unparsable."""
    if not raw:
        return None
    try:
        values = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(values, list) or not values:
        return None
    try:
        return [float(v) for v in values]
    except (TypeError, ValueError):
        return None


def _parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def _format_timestamp(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


@dataclass
class Item:
    id: str
    title: str
    content: str
    category: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    expires_at: Optional[datetime]
    title_embedding: Optional[List[float]] = None
    content_embedding: Optional[List[float]] = None
    combined_embedding: Optional[List[float]] = None
    # set by add_item when any embedding came from the fallback; not persisted
    used_fallback: bool = False

    def embedding(self, field: str) -> Optional[List[float]]:
        """Embedding for 'title', 'content' or 'combined'."""
        return getattr(self, f"{field}_embedding")

    def to_fields(self) -> Dict[str, str]:
        """Flat string field map as persisted in the store."""
        fields = {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "createdAt": _format_timestamp(self.created_at),
            "updatedAt": _format_timestamp(self.updated_at),
            "expiresAt": _format_timestamp(self.expires_at),
        }
        for name, field_name in EMBEDDING_FIELDS.items():
            vector = self.embedding(name)
            if vector is not None:
                fields[field_name] = serialize_vector(vector)
        return fields

    @classmethod
    def from_fields(cls, fields: Dict[str, str], key: Optional[str] = None) -> "Item":
        """Build an Item from a stored field map.

        Missing or unparsable embeddings become None rather than failing the read.
        """
        return cls(
            id=fields.get("id") or key or "",
            title=fields.get("title") or "",
            content=fields.get("content") or "",
            category=fields.get("category") or DEFAULT_CATEGORY,
            created_at=_parse_timestamp(fields.get("createdAt")),
            updated_at=_parse_timestamp(fields.get("updatedAt")),
            expires_at=_parse_timestamp(fields.get("expiresAt")),
            title_embedding=parse_vector(fields.get("titleEmbedding")),
            content_embedding=parse_vector(fields.get("contentEmbedding")),
            combined_embedding=parse_vector(fields.get("combinedEmbedding")),
        )

    def to_public_dict(self) -> Dict[str, str]:
        """Response payload. Embeddings are internal and never included."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "createdAt": _format_timestamp(self.created_at),
            "updatedAt": _format_timestamp(self.updated_at),
            "expiresAt": _format_timestamp(self.expires_at),
        }


@dataclass
class DeletedItem:
    """Snapshot of an item taken just before it was deleted."""
    id: str
    title: str
    content: str
    category: str

    def to_public_dict(self) -> Dict[str, str]:
        return {"id": self.id, "title": self.title, "content": self.content, "category": self.category}


@dataclass
class SearchHit:
    item: Item
    score: float
