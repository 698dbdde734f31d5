"""
Shared fixtures: profile data, in-memory stores and a fake Supabase client
"""

import json
import sys
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import Profile
from embedding_service import InMemoryEmbeddingStore
from errors import DependencyError

FIXTURE_DIR = Path(__file__).parent / 'fixtures'

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def load_fixture(filename):
    """Load test fixture"""
    with open(FIXTURE_DIR / filename, 'r') as f:
        return json.load(f)


class FakeClock:
    """Controllable replacement for utc_now"""

    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class FakeDirectory:
    """In-memory profile directory with switchable failures"""

    def __init__(self, profiles):
        self.profiles = {p.id: p for p in profiles}
        self.fail_count = False
        self.fail_reads = False
        self.list_calls = []

    def _check(self):
        if self.fail_reads:
            raise DependencyError("Profile store unavailable: connection refused")

    def get_profile(self, profile_id):
        self._check()
        return self.profiles.get(profile_id)

    def list_profiles(self, exclude_id, limit):
        self._check()
        self.list_calls.append((exclude_id, limit))
        others = [p for pid, p in sorted(self.profiles.items()) if pid != exclude_id]
        return others[:limit]

    def count_profiles(self, exclude_id):
        if self.fail_count:
            raise DependencyError("Profile store unavailable: count timed out")
        self._check()
        return len([pid for pid in self.profiles if pid != exclude_id])

    def get_profiles(self, profile_ids):
        self._check()
        return [self.profiles[pid] for pid in profile_ids if pid in self.profiles]


class FakeResponse:
    def __init__(self, data=None, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Records the builder chain and returns the canned response on execute()"""

    def __init__(self, client, name, params=None):
        self.client = client
        self.name = name
        self.params = params
        self.calls = []

    def _record(self, method, *args, **kwargs):
        self.calls.append((method, args, kwargs))
        return self

    def select(self, *args, **kwargs):
        return self._record('select', *args, **kwargs)

    def eq(self, *args):
        return self._record('eq', *args)

    def neq(self, *args):
        return self._record('neq', *args)

    def in_(self, *args):
        return self._record('in_', *args)

    def order(self, *args, **kwargs):
        return self._record('order', *args, **kwargs)

    def limit(self, *args):
        return self._record('limit', *args)

    def execute(self):
        if self.client.error is not None:
            raise self.client.error
        return self.client.responses.get(self.name, FakeResponse([]))


class FakeSupabaseClient:
    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.queries = []

    def table(self, name):
        query = FakeQuery(self, name)
        self.queries.append(query)
        return query

    def rpc(self, name, params):
        query = FakeQuery(self, name, params)
        self.queries.append(query)
        return query


@pytest.fixture
def profile_rows():
    return load_fixture('profiles.json')


@pytest.fixture
def profiles(profile_rows):
    return {row['id']: Profile.from_record(row) for row in profile_rows}


@pytest.fixture
def directory(profiles):
    return FakeDirectory(profiles.values())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def embedding_store():
    """Embeddings for alice, bob, carol and dave generated an hour before T0"""
    store = InMemoryEmbeddingStore()
    generated = T0 - timedelta(hours=1)
    store.put('u-alice', [1.0, 0.0, 0.0], generated)
    store.put('u-bob', [0.9, 0.1, 0.0], generated)
    store.put('u-carol', [0.0, 1.0, 0.0], generated)
    store.put('u-dave', [-1.0, 0.0, 0.0], generated)
    return store


@pytest.fixture
def make_profile():
    """Factory for small ad-hoc profiles"""
    def _make(profile_id, **fields):
        record = {'id': profile_id, 'name': fields.pop('name', profile_id.title())}
        record.update(fields)
        return Profile.from_record(record)
    return _make
