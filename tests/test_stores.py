"""
Tests for the Supabase-backed profile and embedding stores and the
in-memory embedding store
"""

from datetime import datetime, timezone

import pytest

from conftest import T0, FakeResponse, FakeSupabaseClient
from directory_service import DirectoryService
from embedding_service import (
    UNKNOWN_GENERATED_AT, InMemoryEmbeddingStore, SupabaseEmbeddingStore, cosine_similarity
)
from errors import DependencyError


def calls(query):
    return [method for method, _, _ in query.calls]


class TestDirectoryService:
    """Test profile reads"""

    def test_get_profile(self, profile_rows):
        """Profile row maps to a Profile"""
        client = FakeSupabaseClient({'users': FakeResponse([profile_rows[0]])})

        profile = DirectoryService(client=client).get_profile('u-alice')

        assert profile.id == 'u-alice'
        assert profile.connections == 12
        assert profile.preferences.mentor is True
        query = client.queries[0]
        assert query.name == 'users'
        assert ('eq', ('id', 'u-alice'), {}) in query.calls

    def test_get_profile_missing(self):
        """No rows means no profile"""
        client = FakeSupabaseClient({'users': FakeResponse([])})

        assert DirectoryService(client=client).get_profile('u-nobody') is None

    def test_list_profiles(self, profile_rows):
        """Listing excludes the requester and applies the limit"""
        client = FakeSupabaseClient({'users': FakeResponse(profile_rows[1:3])})

        profiles = DirectoryService(client=client).list_profiles('u-alice', 1000)

        assert [p.id for p in profiles] == ['u-bob', 'u-carol']
        query = client.queries[0]
        assert ('neq', ('id', 'u-alice'), {}) in query.calls
        assert ('limit', (1000,), {}) in query.calls
        assert calls(query) == ['select', 'neq', 'order', 'limit']

    def test_count_profiles(self):
        """Exact count comes from the response count"""
        client = FakeSupabaseClient({'users': FakeResponse([{'id': 'u-bob'}], count=41)})

        assert DirectoryService(client=client).count_profiles('u-alice') == 41
        assert client.queries[0].calls[0] == ('select', ('id',), {'count': 'exact'})

    def test_count_missing(self):
        """A response without a count is an error"""
        client = FakeSupabaseClient({'users': FakeResponse([], count=None)})

        with pytest.raises(DependencyError, match="no count"):
            DirectoryService(client=client).count_profiles('u-alice')

    def test_get_profiles(self, profile_rows):
        """Batch lookup deduplicates ids"""
        client = FakeSupabaseClient({'users': FakeResponse(profile_rows[1:3])})

        profiles = DirectoryService(client=client).get_profiles(['u-bob', 'u-carol', 'u-bob'])

        assert [p.id for p in profiles] == ['u-bob', 'u-carol']
        assert ('in_', ('id', ['u-bob', 'u-carol']), {}) in client.queries[0].calls

    def test_get_profiles_empty(self):
        """No ids means no query"""
        client = FakeSupabaseClient()

        assert DirectoryService(client=client).get_profiles([]) == []
        assert client.queries == []

    @pytest.mark.parametrize("method,args", [
        ('get_profile', ('u-alice',)),
        ('list_profiles', ('u-alice', 10)),
        ('count_profiles', ('u-alice',)),
        ('get_profiles', (['u-bob'],)),
    ])
    def test_client_errors_wrapped(self, method, args):
        """Client exceptions become DependencyError"""
        client = FakeSupabaseClient(error=ConnectionError("timed out"))

        with pytest.raises(DependencyError, match="timed out"):
            getattr(DirectoryService(client=client), method)(*args)


class TestSupabaseEmbeddingStore:
    """Test embedding lookups and similarity search"""

    def test_get_embedding(self):
        """Latest profile intelligence document becomes an Embedding"""
        client = FakeSupabaseClient({'documents': FakeResponse([{
            'user_id': 'u-alice',
            'embedding': '[0.1, 0.2, 0.3]',
            'created_at': '2024-05-01T11:00:00Z'
        }])})

        embedding = SupabaseEmbeddingStore(client=client).get_embedding('u-alice')

        assert embedding.vector == (0.1, 0.2, 0.3)
        assert embedding.generated_at == datetime(2024, 5, 1, 11, 0, tzinfo=timezone.utc)
        query = client.queries[0]
        assert ('eq', ('metadata->>type', 'profile_intelligence'), {}) in query.calls
        assert ('order', ('created_at',), {'desc': True}) in query.calls

    def test_get_embedding_missing(self):
        """No document means no embedding"""
        client = FakeSupabaseClient({'documents': FakeResponse([])})

        assert SupabaseEmbeddingStore(client=client).get_embedding('u-alice') is None

    def test_get_embedding_without_created_at(self):
        """A missing created_at maps to a fixed time, not the lookup time"""
        client = FakeSupabaseClient({'documents': FakeResponse([{
            'user_id': 'u-alice', 'embedding': [0.1, 0.2], 'created_at': None
        }])})
        store = SupabaseEmbeddingStore(client=client)

        first = store.get_embedding('u-alice')
        second = store.get_embedding('u-alice')

        assert first.generated_at == UNKNOWN_GENERATED_AT
        assert second.generated_at == first.generated_at

    def test_get_embedding_unusable_vector(self):
        """A document without a parseable vector is treated as missing"""
        client = FakeSupabaseClient({'documents': FakeResponse([{
            'user_id': 'u-alice', 'embedding': 'not a vector', 'created_at': '2024-05-01T11:00:00Z'
        }])})

        assert SupabaseEmbeddingStore(client=client).get_embedding('u-alice') is None

    def test_search_similar(self):
        """Hits are deduplicated per user, best similarity first"""
        client = FakeSupabaseClient({'match_documents': FakeResponse([
            {'metadata': {'user_id': 'u-bob'}, 'similarity': 0.7},
            {'metadata': {'user_id': 'u-carol'}, 'similarity': 0.9},
            {'metadata': {'user_id': 'u-bob'}, 'similarity': 0.8},
            {'user_id': 'u-dave', 'similarity': 0.8},
            {'metadata': {}, 'similarity': 0.99},
        ])})

        hits = SupabaseEmbeddingStore(client=client).search_similar([1.0, 0.0], 10)

        assert hits == [('u-carol', 0.9), ('u-bob', 0.8), ('u-dave', 0.8)]
        query = client.queries[0]
        assert query.params == {
            'query_embedding': [1.0, 0.0],
            'match_count': 10,
            'filter': {'type': 'profile_intelligence'}
        }

    def test_search_similar_limit(self):
        """No more than limit users are returned"""
        client = FakeSupabaseClient({'match_documents': FakeResponse([
            {'metadata': {'user_id': f'u-{i}'}, 'similarity': i / 10} for i in range(5)
        ])})

        hits = SupabaseEmbeddingStore(client=client).search_similar([1.0], 2)

        assert [user_id for user_id, _ in hits] == ['u-4', 'u-3']

    def test_search_error_wrapped(self):
        """RPC failures become DependencyError"""
        client = FakeSupabaseClient(error=RuntimeError("rpc failed"))

        with pytest.raises(DependencyError, match="rpc failed"):
            SupabaseEmbeddingStore(client=client).search_similar([1.0], 5)


class TestInMemoryEmbeddingStore:
    """Test the process-local store"""

    def test_put_and_get(self):
        """Stored embeddings are returned as written"""
        store = InMemoryEmbeddingStore()
        store.put('u-alice', [1, 0], T0)

        embedding = store.get_embedding('u-alice')

        assert embedding.vector == (1.0, 0.0)
        assert embedding.generated_at == T0
        assert len(store) == 1

    def test_overwrite(self):
        """Putting again replaces the embedding, even with a new dimension"""
        store = InMemoryEmbeddingStore()
        store.put('u-alice', [1, 0], T0)
        store.put('u-alice', [1, 0, 0], T0)

        assert len(store) == 1
        assert len(store.get_embedding('u-alice').vector) == 3

    def test_dimension_mismatch(self):
        """All stored vectors share one dimensionality"""
        store = InMemoryEmbeddingStore()
        store.put('u-alice', [1, 0], T0)

        with pytest.raises(ValueError, match="dimension"):
            store.put('u-bob', [1, 0, 0], T0)

    def test_empty_vector(self):
        """Empty vectors are rejected"""
        with pytest.raises(ValueError):
            InMemoryEmbeddingStore().put('u-alice', [])

    def test_remove(self, embedding_store):
        """Removed users have no embedding"""
        embedding_store.remove('u-bob')

        assert embedding_store.get_embedding('u-bob') is None

    def test_search_order(self, embedding_store):
        """Search ranks by similarity, ties by id"""
        hits = embedding_store.search_similar([1.0, 0.0, 0.0], 3)

        assert [user_id for user_id, _ in hits] == ['u-alice', 'u-bob', 'u-carol']


class TestCosineSimilarity:
    """Test the similarity function"""

    def test_identical(self):
        assert cosine_similarity([1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)

    def test_opposite(self):
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)

    def test_zero_and_empty(self):
        """Degenerate vectors have zero similarity"""
        assert cosine_similarity([0, 0], [1, 0]) == 0.0
        assert cosine_similarity([], [1, 0]) == 0.0
