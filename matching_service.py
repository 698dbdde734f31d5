"""
Matching Service - orchestrates networking match requests
Picks rule-based or similarity matching, falls back from similarity to
rule-based matching when no candidates come back, filters by category and
truncates to the requested size.
"""
import logging
import time
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from category_classifier import CategoryClassifier
from compatibility_scorer import CompatibilityScorer
from config import (
    get_batch_max_results, get_recommendations_preset, get_similarity_pool_size,
    get_traditional_candidate_cap
)
from errors import AuthenticationError, DependencyError, InputError, MatchingError, NotFoundError
from models import Algorithm, MatchCandidate, MatchingRequest, MatchingResponse, Profile
from similarity_retriever import RetrievalResult, SimilarityRetriever

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

FALLBACK_REASON = "No vector embeddings found, used traditional matching"


class MatchingState(str, Enum):
    TRADITIONAL = "traditional"
    RAG_ATTEMPT = "rag_attempt"
    RAG_RESULT = "rag_result"
    TRADITIONAL_FALLBACK = "traditional_fallback"


STATE_ALGORITHMS = {
    MatchingState.TRADITIONAL: Algorithm.TRADITIONAL,
    MatchingState.RAG_RESULT: Algorithm.RAG,
    MatchingState.TRADITIONAL_FALLBACK: Algorithm.RAG_FALLBACK_TRADITIONAL,
}


def next_state(state: MatchingState, retrieval: RetrievalResult) -> MatchingState:
    """Leave RAG_ATTEMPT: zero similarity candidates means fall back to rule-based matching"""
    if state is not MatchingState.RAG_ATTEMPT:
        return state
    if retrieval.matches:
        return MatchingState.RAG_RESULT
    return MatchingState.TRADITIONAL_FALLBACK


class MatchingService:
    """
    Entry point for match requests

    Works against any profile directory exposing get_profile, list_profiles,
    count_profiles and get_profiles, and any embedding store exposing
    get_embedding and search_similar.
    """

    def __init__(
        self,
        directory_service=None,
        embedding_store=None,
        scorer: Optional[CompatibilityScorer] = None,
        classifier: Optional[CategoryClassifier] = None,
        retriever: Optional[SimilarityRetriever] = None,
        candidate_cap: Optional[int] = None,
        max_workers: Optional[int] = None,
        similarity_pool: Optional[int] = None
    ):
        if directory_service is None:
            from directory_service import DirectoryService
            directory_service = DirectoryService(use_admin=True)
        if embedding_store is None and retriever is None:
            from embedding_service import SupabaseEmbeddingStore
            embedding_store = SupabaseEmbeddingStore()

        self.directory_service = directory_service
        self.scorer = scorer or CompatibilityScorer()
        self.classifier = classifier or CategoryClassifier(self.scorer)
        self.retriever = retriever or SimilarityRetriever(embedding_store, directory_service)
        self.candidate_cap = candidate_cap or get_traditional_candidate_cap()
        self.max_workers = max_workers
        self.similarity_pool = similarity_pool or get_similarity_pool_size()

    # ==========================================
    # REQUEST HANDLING
    # ==========================================

    def handle_request(self, requester_id: Optional[str], params: Optional[Dict[str, Any]] = None) -> Tuple[int, Dict[str, Any]]:
        """
        Run a match request from raw parameters

        Args:
            requester_id: Authenticated user id, None when unauthenticated
            params: Raw request parameters (see MatchingRequest.from_params)

        Returns:
            (HTTP status, response payload). Failures produce
            {"success": False, "error": ...} with 400/401/404/500.
        """
        try:
            if not requester_id:
                raise AuthenticationError("Authentication required")
            request = MatchingRequest.from_params(requester_id, params)
            return 200, self.find_matches(request).to_dict()
        except MatchingError as e:
            logger.warning(f"Match request for {requester_id} rejected ({e.status_code}): {e}")
            return e.status_code, {"success": False, "error": str(e)}
        except Exception as e:
            logger.error(f"Error in match request for {requester_id}: {str(e)}")
            return 500, {"success": False, "error": str(e) or "Internal server error"}

    def handle_batch_request(self, requester_id: Optional[str], body: Optional[Dict[str, Any]] = None) -> Tuple[int, Dict[str, Any]]:
        """
        Run similarity matching once per requested category

        Args:
            requester_id: Authenticated user id
            body: {"algorithm": "rag", "categories": [...],
                   "preferences": {"minCompatibility": 40}}
        """
        body = body or {}
        try:
            if not requester_id:
                raise AuthenticationError("Authentication required")
            if str(body.get("algorithm") or "rag").lower() != Algorithm.RAG.value:
                raise InputError("Batch processing supports only the rag algorithm")
            categories = body.get("categories") or ["all"]
            if isinstance(categories, str) or not isinstance(categories, (list, tuple)):
                raise InputError("categories must be a list")
            preferences = body.get("preferences") or {}
            if not isinstance(preferences, dict):
                raise InputError("preferences must be an object")
            return 200, self.batch_find_matches(
                requester_id, categories, min_compatibility=preferences.get("minCompatibility")
            )
        except MatchingError as e:
            logger.warning(f"Batch request for {requester_id} rejected ({e.status_code}): {e}")
            return e.status_code, {"success": False, "error": str(e)}
        except Exception as e:
            logger.error(f"Error in batch matching for {requester_id}: {str(e)}")
            return 500, {"success": False, "error": str(e) or "Internal server error"}

    # ==========================================
    # MATCHING
    # ==========================================

    def find_matches(self, request: MatchingRequest) -> MatchingResponse:
        """
        Produce ranked matches for a validated request

        Raises:
            NotFoundError: requester has no profile
            InputError: requester profile lacks a name, or both title and company
            DependencyError: profile or embedding store unavailable
        """
        start = time.monotonic()
        logger.info(f"Finding matches for {request.requester_id} using {request.algorithm.value} "
                    f"(category={request.category.value}, force_refresh={request.force_refresh})")

        requester = self._load_requester(request.requester_id)
        total_available = self._count_available(requester.id)
        max_results = request.max_results
        if total_available is not None:
            max_results = min(max_results, total_available)

        state = MatchingState.RAG_ATTEMPT if request.algorithm is Algorithm.RAG else MatchingState.TRADITIONAL
        retrieval = RetrievalResult()

        if state is MatchingState.RAG_ATTEMPT:
            # Pool size is independent of max_results; truncation happens after the category filter
            retrieval = self.retriever.retrieve(
                requester.id, max(self.similarity_pool, max_results),
                request.min_compatibility, request.force_refresh
            )
            state = next_state(state, retrieval)

        if state is MatchingState.RAG_RESULT:
            ranked = self.classifier.annotate(requester, retrieval.matches)
        else:
            if state is MatchingState.TRADITIONAL_FALLBACK:
                logger.info(f"Similarity search found no candidates for {requester.id}, falling back to traditional matching")
            ranked = self._rank_traditional(requester, request.min_compatibility)

        filtered = [c for c in self.classifier.filter(ranked, request.category) if c.profile.id != requester.id]
        matches = filtered[:max_results]

        response = MatchingResponse(
            algorithm=STATE_ALGORITHMS[state],
            category=request.category,
            matches=matches,
            total_found=len(filtered),
            cache_used=retrieval.cache_used if state is MatchingState.RAG_RESULT else False,
            cache_age=retrieval.cache_age if state is MatchingState.RAG_RESULT else None,
            fallback_reason=FALLBACK_REASON if state is MatchingState.TRADITIONAL_FALLBACK else None,
            total_available=total_available,
            processing_time_ms=int((time.monotonic() - start) * 1000)
        )

        logger.info(f"Found {response.total_found} matches for {requester.id} via {response.algorithm.value}, "
                    f"returning {len(matches)} in {response.processing_time_ms}ms")
        return response

    def batch_find_matches(
        self,
        requester_id: str,
        categories: Iterable[str],
        min_compatibility: Optional[int] = None,
        max_results: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Run the similarity path once per category, sequentially

        Returns:
            {"success": True, "algorithm": "rag", "results": [...]} with one
            entry per category; a failing category reports its own error.
            Results are not deduplicated across categories.
        """
        results = []
        for category in categories:
            params = {
                "algorithm": Algorithm.RAG.value,
                "category": category,
                "maxResults": max_results or get_batch_max_results(),
                "minCompatibility": min_compatibility
            }
            try:
                response = self.find_matches(MatchingRequest.from_params(requester_id, params))
                results.append(response.to_dict())
            except MatchingError as e:
                logger.warning(f"Batch category {category!r} failed for {requester_id}: {e}")
                results.append({"category": category, "success": False, "matches": [], "error": str(e)})

        return {
            "success": True,
            "algorithm": Algorithm.RAG.value,
            "results": results
        }

    def get_networking_recommendations(self, requester_id: str) -> MatchingResponse:
        """Similarity matches with the recommendations preset (more results, higher bar)"""
        preset = get_recommendations_preset()
        request = MatchingRequest.from_params(requester_id, {
            "algorithm": Algorithm.RAG.value,
            "maxResults": preset["max_results"],
            "minCompatibility": preset["min_compatibility"]
        })
        return self.find_matches(request)

    # ==========================================
    # HELPERS
    # ==========================================

    def _load_requester(self, requester_id: str) -> Profile:
        profile = self.directory_service.get_profile(requester_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        if not profile.name or not (profile.title or profile.company):
            raise InputError(
                "Incomplete profile. Please add at least your name and either title or company to use matching features."
            )
        return profile

    def _count_available(self, requester_id: str) -> Optional[int]:
        try:
            return self.directory_service.count_profiles(requester_id)
        except DependencyError as e:
            logger.warning(f"Failed to get total profile count: {e}")
            return None

    def _rank_traditional(self, requester: Profile, min_compatibility: int) -> List[MatchCandidate]:
        profiles = self.directory_service.list_profiles(requester.id, self.candidate_cap)
        logger.info(f"Scoring {len(profiles)} profiles for {requester.id}")
        return self.scorer.rank(requester, profiles, min_compatibility, max_workers=self.max_workers)
