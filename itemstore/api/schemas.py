"""
Request and response models for the item store HTTP API.

Wire names are camelCase; Python attributes are snake_case.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Envelope(ApiModel):
    success: bool = True
    message: str = ""
    timestamp: str = Field(default_factory=_now)


class AddItemRequest(ApiModel):
    # presence and emptiness are checked by the item store so both give a 400
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    ttl_seconds: Optional[int] = Field(default=None, alias="ttlSeconds")


class ItemIdRequest(ApiModel):
    id: Optional[str] = None


class SearchRequest(ApiModel):
    query: Optional[str] = None
    category: Optional[str] = None
    limit: Optional[int] = None


class VectorSearchRequest(ApiModel):
    query: Optional[str] = None
    limit: Optional[int] = None
    field: str = "combined"


class ItemPayload(ApiModel):
    id: str
    title: str
    content: str
    category: str
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")
    expires_at: str = Field(alias="expiresAt")


class SearchItemPayload(ItemPayload):
    relevance_score: float = Field(alias="relevanceScore")


class DeletedItemPayload(ApiModel):
    id: str
    title: str
    content: str
    category: str


class AddItemResponse(Envelope):
    item_id: str = Field(alias="itemId")
    item: ItemPayload
    embedding_fallback: bool = Field(default=False, alias="embeddingFallback")


class GetItemResponse(Envelope):
    item: ItemPayload


class DeleteItemResponse(Envelope):
    deleted_item: DeletedItemPayload = Field(alias="deletedItem")


class SearchResponse(Envelope):
    items: List[SearchItemPayload]
    total_count: int = Field(alias="totalCount")


class VectorSearchResponse(SearchResponse):
    field: str


class InitIndexResponse(Envelope):
    index_exists: bool = Field(alias="indexExists")
    created: bool


class HelloResponse(Envelope):
    status: str = "success"
    version: str


class HealthResponse(ApiModel):
    status: str
    version: str
    store_health: bool
    index_exists: bool


class ErrorResponse(Envelope):
    success: bool = False
    retryable: bool = False
