"""
HTTP API for the item store.

Every function is reachable as /api/<name>, /functions/<name> and /<name>.
"""

from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .schemas import (
    AddItemRequest,
    AddItemResponse,
    DeletedItemPayload,
    DeleteItemResponse,
    ErrorResponse,
    GetItemResponse,
    HealthResponse,
    HelloResponse,
    InitIndexResponse,
    ItemIdRequest,
    ItemPayload,
    SearchItemPayload,
    SearchRequest,
    SearchResponse,
    VectorSearchRequest,
    VectorSearchResponse,
)
from ..core.config import (
    TEXT_SEARCH_LIMIT,
    VECTOR_SEARCH_LIMIT,
    VERSION,
    debug_enabled,
    get_cors_origins,
    get_embedding_provider,
    get_store,
)
from ..core.dao import ItemStore
from ..core.errors import InvalidInputError, StoreUnavailableError
from ..core.index_lifecycle import IndexLifecycleManager
from ..core.schema import SearchHit
from ..core.search_service import SimilarityEngine, TextSearchEngine
from ..core.store import IKeyValueStore
from ..util.logging import logger
from ..vector.embeddings import EmbeddingProvider

FUNCTION_NAMES = ["hello", "add-item", "get-item", "delete-item", "search-items", "vector-search", "init-index"]
ROUTE_PREFIXES = ["/api", "/functions"]


@lru_cache(maxsize=1)
def get_store_dep() -> IKeyValueStore:
    return get_store()


@lru_cache(maxsize=1)
def get_embedder_dep() -> EmbeddingProvider:
    return get_embedding_provider()


def get_item_store(store: IKeyValueStore = Depends(get_store_dep),
                   embedder: EmbeddingProvider = Depends(get_embedder_dep)) -> ItemStore:
    return ItemStore(store, embedder)


def get_similarity_engine(store: IKeyValueStore = Depends(get_store_dep),
                          embedder: EmbeddingProvider = Depends(get_embedder_dep)) -> SimilarityEngine:
    return SimilarityEngine(store, embedder)


def get_text_search_engine(store: IKeyValueStore = Depends(get_store_dep)) -> TextSearchEngine:
    return TextSearchEngine(store)


def get_index_manager(store: IKeyValueStore = Depends(get_store_dep),
                      embedder: EmbeddingProvider = Depends(get_embedder_dep)) -> IndexLifecycleManager:
    return IndexLifecycleManager(store, embedder.get_dimension())


app = FastAPI(
    title="Semantic Item Store API",
    version=VERSION,
    description="Knowledge items with expiry, lexical search and embedding similarity search",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(message=exc.message, retryable=False).model_dump(by_alias=True),
    )


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"Store unavailable during {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(message=exc.message, retryable=True).model_dump(by_alias=True),
    )


def _not_found(message: str) -> JSONResponse:
    return JSONResponse(status_code=404, content=ErrorResponse(message=message).model_dump(by_alias=True))


def _search_payload(hits: List[SearchHit]) -> List[SearchItemPayload]:
    return [SearchItemPayload(**hit.item.to_public_dict(), relevanceScore=hit.score) for hit in hits]


router = APIRouter()


@router.api_route("/hello", methods=["GET", "POST"], response_model=HelloResponse)
def hello():
    """Liveness greeting."""
    return HelloResponse(message="Hello from the semantic item store!", version=VERSION)


@router.post("/add-item", response_model=AddItemResponse, status_code=201)
def add_item_endpoint(request: AddItemRequest, items: ItemStore = Depends(get_item_store)):
    """Add an item; embeddings are computed and stored but not returned."""
    item = items.add_item(
        title=request.title,
        content=request.content,
        category=request.category,
        ttl_seconds=request.ttl_seconds,
    )
    return AddItemResponse(
        message="Item added successfully.",
        itemId=item.id,
        item=ItemPayload(**item.to_public_dict()),
        embeddingFallback=item.used_fallback,
    )


def _get_item(item_id: Optional[str], items: ItemStore):
    item = items.get_item(item_id)
    if item is None:
        return _not_found(f"Item with ID '{item_id}' not found.")
    return GetItemResponse(message="Item retrieved successfully.", item=ItemPayload(**item.to_public_dict()))


@router.get("/get-item", response_model=GetItemResponse)
def get_item_endpoint(id: Optional[str] = None, items: ItemStore = Depends(get_item_store)):
    return _get_item(id, items)


@router.post("/get-item", response_model=GetItemResponse)
def get_item_post_endpoint(request: ItemIdRequest, items: ItemStore = Depends(get_item_store)):
    return _get_item(request.id, items)


def _delete_item(item_id: Optional[str], items: ItemStore):
    deleted = items.delete_item(item_id)
    if deleted is None:
        return _not_found(f"Item with ID '{item_id}' not found")
    return DeleteItemResponse(
        message=f"Item '{deleted.title}' deleted successfully",
        deletedItem=DeletedItemPayload(**deleted.to_public_dict()),
    )


@router.delete("/delete-item", response_model=DeleteItemResponse)
def delete_item_endpoint(id: Optional[str] = None, items: ItemStore = Depends(get_item_store)):
    return _delete_item(id, items)


@router.post("/delete-item", response_model=DeleteItemResponse)
def delete_item_post_endpoint(request: ItemIdRequest, items: ItemStore = Depends(get_item_store)):
    return _delete_item(request.id, items)


def _lexical_search(query: Optional[str], category: Optional[str], limit: Optional[int],
                    engine: TextSearchEngine) -> SearchResponse:
    hits = engine.lexical_search(query=query, category=category,
                                 limit=TEXT_SEARCH_LIMIT if limit is None else limit)
    suffix = f' matching "{query}"' if query else ""
    return SearchResponse(
        message=f"Found {len(hits)} items{suffix}.",
        items=_search_payload(hits),
        totalCount=len(hits),
    )


@router.get("/search-items", response_model=SearchResponse)
def search_items_endpoint(query: Optional[str] = None, category: Optional[str] = None,
                          limit: Optional[int] = None,
                          engine: TextSearchEngine = Depends(get_text_search_engine)):
    """Lexical search by substring and category."""
    return _lexical_search(query, category, limit, engine)


@router.post("/search-items", response_model=SearchResponse)
def search_items_post_endpoint(request: SearchRequest,
                               engine: TextSearchEngine = Depends(get_text_search_engine)):
    return _lexical_search(request.query, request.category, request.limit, engine)


@router.post("/vector-search", response_model=VectorSearchResponse)
def vector_search_endpoint(request: VectorSearchRequest,
                           engine: SimilarityEngine = Depends(get_similarity_engine)):
    """Semantic search by cosine similarity against the chosen embedding field."""
    hits = engine.vector_search(
        query=request.query,
        limit=VECTOR_SEARCH_LIMIT if request.limit is None else request.limit,
        field=request.field,
    )
    return VectorSearchResponse(
        message=f"Found {len(hits)} similar items.",
        items=_search_payload(hits),
        totalCount=len(hits),
        field=request.field,
    )


@router.post("/init-index", response_model=InitIndexResponse)
def init_index_endpoint(manager: IndexLifecycleManager = Depends(get_index_manager)):
    """Create the search index marker if it does not exist yet."""
    status = manager.ensure_index_exists()
    if not status.created:
        return InitIndexResponse(
            message="Search index already exists and is ready for vector similarity search.",
            indexExists=True,
            created=False,
        )
    response = InitIndexResponse(
        message="Search index created successfully. Vector similarity search is now enabled.",
        indexExists=False,
        created=True,
    )
    return JSONResponse(status_code=201, content=response.model_dump(by_alias=True))


# only the /api mount is documented; the others are aliases
for _prefix in ROUTE_PREFIXES:
    app.include_router(router, prefix=_prefix, include_in_schema=_prefix == "/api")
app.include_router(router, include_in_schema=False)


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(store: IKeyValueStore = Depends(get_store_dep),
                          manager: IndexLifecycleManager = Depends(get_index_manager)):
    """Check system health."""
    store_health = store.ping()
    index_exists = manager.index_exists() if store_health else False

    return HealthResponse(
        status="healthy" if store_health else "unhealthy",
        version=VERSION,
        store_health=store_health,
        index_exists=index_exists,
    )


@app.get("/")
@app.get("/api")
def list_functions(request: Request):
    """List available functions and their endpoints."""
    origin = str(request.base_url).rstrip("/")
    return {
        "message": "Semantic Item Store function router",
        "availableFunctions": FUNCTION_NAMES,
        "usage": [
            {"function": name, "endpoints": [f"{origin}/api/{name}", f"{origin}/{name}"]}
            for name in FUNCTION_NAMES
        ],
    }
