"""
Embedding Service - read access to profile embeddings for similarity matching
Embeddings are produced elsewhere (profile intelligence runs); this module only
looks them up and ranks stored vectors against a query vector.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from config import get_embedding_document_type, get_similarity_rpc, get_table_name
from errors import DependencyError
from models import Embedding
from supabase_client import get_admin_client
from utils.helpers import parse_timestamp, parse_vector, utc_now

logger = logging.getLogger(__name__)

# Stand-in generation time for documents without created_at
UNKNOWN_GENERATED_AT = datetime(1970, 1, 1, tzinfo=timezone.utc)


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Calculate cosine similarity between two vectors, 0.0 for empty or zero vectors"""
    if not vec1 or not vec2:
        return 0.0

    # Manual calculation to avoid numpy dependency
    dot_product = sum(a * b for a, b in zip(vec1, vec2))
    norm1 = sum(a * a for a in vec1) ** 0.5
    norm2 = sum(b * b for b in vec2) ** 0.5

    if norm1 == 0 or norm2 == 0:
        return 0.0

    return dot_product / (norm1 * norm2)


class SupabaseEmbeddingStore:
    """
    Embeddings stored as LangChain-style documents in Supabase.

    Each user's profile intelligence document carries the embedding, its
    creation time and metadata {"type": "profile_intelligence", "user_id": ...}.
    Similarity search goes through the match_documents RPC (pgvector cosine).
    """

    def __init__(self, client=None):
        self.client = client if client is not None else get_admin_client()
        self.table_name = get_table_name("embeddings")
        self.document_type = get_embedding_document_type()
        self.rpc_name = get_similarity_rpc()

    def get_embedding(self, user_id: str) -> Optional[Embedding]:
        """Get the latest embedding for a user, None if no intelligence run exists"""
        try:
            response = self.client.table(self.table_name) \
                .select("user_id, embedding, created_at") \
                .eq("user_id", user_id) \
                .eq("metadata->>type", self.document_type) \
                .order("created_at", desc=True) \
                .limit(1) \
                .execute()
        except Exception as e:
            logger.error(f"Embedding lookup failed for {user_id}: {e}")
            raise DependencyError(f"Embedding store unavailable: {e}") from e

        if not response.data:
            return None

        row = response.data[0]
        vector = parse_vector(row.get("embedding"))
        if not vector:
            logger.warning(f"Embedding document for {user_id} has no usable vector")
            return None

        generated_at = parse_timestamp(row.get("created_at"))
        if generated_at is None:
            logger.warning(f"Embedding document for {user_id} has no created_at, treating it as {UNKNOWN_GENERATED_AT.isoformat()}")
            generated_at = UNKNOWN_GENERATED_AT

        return Embedding(
            user_id=str(row.get("user_id") or user_id),
            vector=tuple(vector),
            generated_at=generated_at
        )

    def search_similar(self, vector: Sequence[float], limit: int) -> List[Tuple[str, float]]:
        """
        Find the users whose embeddings are closest to vector

        Args:
            vector: Query embedding
            limit: Maximum number of users to return

        Returns:
            (user_id, cosine similarity) pairs, most similar first, one per user
        """
        try:
            response = self.client.rpc(self.rpc_name, {
                "query_embedding": list(vector),
                "match_count": limit,
                "filter": {"type": self.document_type}
            }).execute()
        except Exception as e:
            logger.error(f"Similarity search failed: {e}")
            raise DependencyError(f"Embedding store unavailable: {e}") from e

        best: Dict[str, float] = {}
        for row in response.data or []:
            metadata = row.get("metadata") or {}
            user_id = metadata.get("user_id") or row.get("user_id")
            similarity = row.get("similarity")
            if not user_id or similarity is None:
                continue
            user_id = str(user_id)
            similarity = float(similarity)
            if user_id not in best or similarity > best[user_id]:
                best[user_id] = similarity

        ranked = sorted(best.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:limit]


class InMemoryEmbeddingStore:
    """
    Process-local embedding store with brute-force cosine search.
    Holds at most one embedding per user; all vectors share one dimensionality.
    """

    def __init__(self):
        self._embeddings: Dict[str, Embedding] = {}
        self._lock = threading.Lock()

    def put(self, user_id: str, vector: Sequence[float], generated_at: Optional[datetime] = None) -> Embedding:
        """Store (or overwrite) the embedding for a user"""
        vector = tuple(float(x) for x in vector)
        if not vector:
            raise ValueError("Embedding vector must not be empty")

        with self._lock:
            reference = next((e for e in self._embeddings.values() if e.user_id != user_id), None)
            if reference is not None and len(reference.vector) != len(vector):
                raise ValueError(
                    f"Embedding dimension {len(vector)} does not match stored dimension {len(reference.vector)}"
                )

            embedding = Embedding(
                user_id=user_id,
                vector=vector,
                generated_at=parse_timestamp(generated_at) or utc_now()
            )
            self._embeddings[user_id] = embedding
            return embedding

    def remove(self, user_id: str) -> None:
        with self._lock:
            self._embeddings.pop(user_id, None)

    def get_embedding(self, user_id: str) -> Optional[Embedding]:
        with self._lock:
            return self._embeddings.get(user_id)

    def search_similar(self, vector: Sequence[float], limit: int) -> List[Tuple[str, float]]:
        """Rank every stored embedding by cosine similarity to vector"""
        with self._lock:
            embeddings = list(self._embeddings.values())

        scored = [(e.user_id, cosine_similarity(vector, e.vector)) for e in embeddings]
        scored.sort(key=lambda item: (-item[1], item[0]))
        return scored[:limit]

    def __len__(self) -> int:
        return len(self._embeddings)
