"""
Similarity Retriever - embedding-based candidate search with a per-requester cache

Flow for one request:
1. Load the requester's embedding (none -> empty result, caller falls back)
2. Serve a cached result when it is newer than that embedding, not expired,
   covers the request and force_refresh is off
3. Otherwise rank stored embeddings by cosine similarity, map to a 0-100
   score, apply the threshold, hydrate profiles and cache the result
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from compatibility_scorer import sort_matches
from config import get_cache_max_age_minutes
from match_cache import CacheEntry, MatchCache
from models import MatchCandidate
from utils.helpers import clamp_score, utc_now

logger = logging.getLogger(__name__)


def similarity_to_score(similarity: float) -> float:
    """Map cosine similarity in [-1, 1] to a compatibility score in [0, 100]"""
    return round(clamp_score((similarity + 1) / 2 * 100), 1)


@dataclass
class RetrievalResult:
    matches: List[MatchCandidate] = field(default_factory=list)
    cache_used: bool = False
    cache_age: Optional[timedelta] = None


class SimilarityRetriever:
    def __init__(
        self,
        embedding_store,
        directory_service,
        cache: Optional[MatchCache] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Args:
            embedding_store: Object with get_embedding(user_id) and search_similar(vector, limit)
            directory_service: Object with get_profiles(ids)
            cache: Shared match cache; defaults to one expiring after the configured max age
            clock: Returns the current aware datetime
        """
        self.embedding_store = embedding_store
        self.directory_service = directory_service
        self.cache = cache if cache is not None else MatchCache(
            max_age=timedelta(minutes=get_cache_max_age_minutes())
        )
        self.clock = clock

    def retrieve(
        self,
        requester_id: str,
        max_results: int,
        min_compatibility: float,
        force_refresh: bool = False
    ) -> RetrievalResult:
        """
        Find candidates similar to the requester

        Returns:
            RetrievalResult; matches is empty when the requester has no
            embedding or no other user clears the threshold

        Raises:
            DependencyError: when a store is unavailable
        """
        embedding = self.embedding_store.get_embedding(requester_id)
        if embedding is None:
            logger.info(f"No embedding for {requester_id}, similarity search skipped")
            return RetrievalResult()

        with self.cache.lock_for(requester_id):
            now = self.clock()

            if force_refresh:
                logger.info(f"Force refresh requested for {requester_id}, bypassing cache")
                self.cache.invalidate(requester_id)
            else:
                cached = self._cached_result(requester_id, embedding.generated_at, now,
                                             max_results, min_compatibility)
                if cached is not None:
                    return cached

            matches = self._search(requester_id, embedding.vector, max_results, min_compatibility)

            if matches:
                self.cache.put(CacheEntry(
                    requester_id=requester_id,
                    matches=tuple(matches),
                    created_at=now,
                    max_results=max_results,
                    min_compatibility=min_compatibility
                ))

            return RetrievalResult(matches=matches)

    def _cached_result(
        self,
        requester_id: str,
        embedding_generated_at: datetime,
        now: datetime,
        max_results: int,
        min_compatibility: float
    ) -> Optional[RetrievalResult]:
        entry = self.cache.get(requester_id)
        if entry is None:
            logger.info(f"No cached matches for {requester_id}")
            return None

        if entry.is_stale(embedding_generated_at):
            logger.info(f"Cached matches for {requester_id} predate the latest embedding")
            self.cache.invalidate(requester_id)
            return None

        if self.cache.is_expired(entry, now):
            logger.info(f"Cached matches for {requester_id} expired ({entry.age(now)} old)")
            self.cache.invalidate(requester_id)
            return None

        if not entry.covers(max_results, min_compatibility):
            logger.info(f"Cached matches for {requester_id} do not cover this request")
            return None

        matches = [m for m in entry.matches if m.score >= min_compatibility][:max_results]
        logger.info(f"Returning {len(matches)} cached matches for {requester_id} ({entry.age(now)} old)")
        return RetrievalResult(matches=matches, cache_used=True, cache_age=entry.age(now))

    def _search(self, requester_id: str, vector, max_results: int, min_compatibility: float) -> List[MatchCandidate]:
        # +1: the requester's own vector is among the hits
        hits = self.embedding_store.search_similar(vector, max_results + 1)
        if not hits:
            logger.info("Embedding store returned no similar profiles")
            return []

        scores = {}
        similarities = {}
        for user_id, similarity in hits:
            if user_id == requester_id or user_id in scores:
                continue
            score = similarity_to_score(similarity)
            if score >= min_compatibility:
                scores[user_id] = score
                similarities[user_id] = similarity

        if not scores:
            return []

        profiles = self.directory_service.get_profiles(list(scores))
        matches = []
        for profile in profiles:
            if profile.id == requester_id or profile.id not in scores:
                continue
            score = scores[profile.id]
            matches.append(MatchCandidate(
                profile=profile,
                score=score,
                reasons=(f"Semantic profile similarity of {score:.0f}%",),
                similarity=similarities[profile.id]
            ))

        missing = len(scores) - len(matches)
        if missing:
            logger.warning(f"{missing} similar users have no profile record")

        return sort_matches(matches)[:max_results]
