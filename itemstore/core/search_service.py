"""
Vector similarity search and lexical search over stored items.

Both engines scan the store on every query; there is no secondary index.
Items that disappear between enumeration and read are skipped.
"""

from typing import List, Optional

from .config import TEXT_SEARCH_LIMIT, VECTOR_SEARCH_LIMIT
from .dao import require_positive_int, require_text
from .errors import InvalidInputError
from .schema import (
    ALL_ITEMS_SET,
    EMBEDDING_FIELDS,
    ITEM_KEY_PREFIX,
    Item,
    SearchHit,
    category_set_key,
    normalize_category,
)
from .store import IKeyValueStore
from ..util.logging import logger
from ..vector.embeddings import EmbeddingProvider
from ..vector.similarity import cosine_similarity, rank_by_score

EXACT_MATCH_SCORE = 1.0
TITLE_MATCH_SCORE = 0.9
CONTENT_MATCH_SCORE = 0.7


class SimilarityEngine:
    """Brute-force cosine similarity search over every stored item."""

    def __init__(self, store: IKeyValueStore, embedder: EmbeddingProvider):
        self.store = store
        self.embedder = embedder

    def vector_search(self, query: str, limit: int = VECTOR_SEARCH_LIMIT, field: str = "combined") -> List[SearchHit]:
        """
        Rank all items by cosine similarity between the query and one of their embeddings.

        Args:
            query: Text to embed and compare
            limit: Maximum number of results (positive integer)
            field: Which embedding to compare against: title, content or combined

        Returns:
            Hits sorted by descending score. Equal scores keep the store's
            scan order, which both bundled stores return sorted by key;
            other stores may not guarantee a stable order.
        """
        query = require_text(query, "query")
        limit = require_positive_int(limit, "limit")
        if field not in EMBEDDING_FIELDS:
            raise InvalidInputError(f"field must be one of {sorted(EMBEDDING_FIELDS)}, got {field!r}")

        query_result = self.embedder.embed(query)
        query_vector = query_result.vector

        hits = []
        skipped = 0
        with self.store.session() as store:
            keys = store.scan_prefix(ITEM_KEY_PREFIX)
            for key in keys:
                fields = store.get(key)
                if fields is None:
                    skipped += 1
                    continue

                item = Item.from_fields(fields, key=key)
                vector = item.embedding(field)
                if vector is None or len(vector) != len(query_vector):
                    skipped += 1
                    continue

                hits.append(SearchHit(item=item, score=cosine_similarity(query_vector, vector)))

        results = rank_by_score(hits, limit)
        logger.log_search("vector", query, len(keys), len(results), {
            "field": field,
            "skipped": skipped,
            "used_fallback": query_result.used_fallback,
        })
        return results


class TextSearchEngine:
    """Substring and category filtering with a three-tier relevance score.

    The tiers (1.0 exact, 0.9 title contains, 0.7 otherwise) are a coarse
    heuristic, kept as is rather than replaced with a ranking function.
    """

    def __init__(self, store: IKeyValueStore):
        self.store = store

    @staticmethod
    def score(item: Item, query: Optional[str]) -> Optional[float]:
        """Relevance of item for query, or None if the item does not match."""
        if not query:
            return EXACT_MATCH_SCORE

        needle = query.lower()
        searchable = f"{item.title} {item.content}".lower()
        if needle not in searchable:
            return None
        if searchable == needle:
            return EXACT_MATCH_SCORE
        if needle in item.title.lower():
            return TITLE_MATCH_SCORE
        return CONTENT_MATCH_SCORE

    def lexical_search(self, query: Optional[str] = None, category: Optional[str] = None,
                       limit: int = TEXT_SEARCH_LIMIT) -> List[SearchHit]:
        """
        Filter items by category set and substring match, then rank.

        Args:
            query: Case-insensitive substring to look for in title + content; empty matches everything
            category: Restrict candidates to this category's set; surrounding whitespace is ignored
            limit: Maximum number of results (positive integer)
        """
        limit = require_positive_int(limit, "limit")
        if category and category.strip():
            category = normalize_category(category)
            set_key = category_set_key(category)
        else:
            set_key = ALL_ITEMS_SET

        hits = []
        with self.store.session() as store:
            members = store.set_members(set_key)
            for item_id in members:
                fields = store.get(item_id)
                if fields is None:
                    # expired item still listed in the set
                    continue

                item = Item.from_fields(fields, key=item_id)
                score = self.score(item, query)
                if score is not None:
                    hits.append(SearchHit(item=item, score=score))

        results = rank_by_score(hits, limit)
        logger.log_search("lexical", query, len(members), len(results), {"category": category})
        return results
