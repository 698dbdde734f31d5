"""
Data model for the matching engine
Profiles and embeddings are read-only snapshots of the external stores;
candidates, requests and responses live for a single matching request.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from config import get_request_limits, get_strength_thresholds
from errors import InputError
from utils.helpers import parse_bool, parse_int, to_string_set

PREFERENCE_AXES = ('mentor', 'invest', 'discuss', 'collaborate', 'hire')


class MatchType(str, Enum):
    """Role the candidate plays for the requester. Values are display labels."""

    MENTOR = "Mentor"  # candidate can mentor the requester
    MENTEE = "Mentee"  # requester can mentor the candidate
    INVESTOR = "Investor"
    INVESTMENT_OPPORTUNITY = "Investment Opportunity"
    HIRING_MANAGER = "Hiring Manager"
    POTENTIAL_HIRE = "Potential Hire"
    COLLABORATOR = "Collaborator"
    DISCUSSION_PARTNER = "Discussion Partner"


class Category(str, Enum):
    """Networking intent used to filter ranked matches"""

    ALL = "all"
    MENTORSHIP = "mentorship"
    COLLABORATION = "collaboration"
    INVESTMENT = "investment"
    HIRING = "hiring"
    DISCUSSION = "discussion"


class Algorithm(str, Enum):
    """Strategy that produced a response"""

    TRADITIONAL = "traditional"
    RAG = "rag"
    RAG_FALLBACK_TRADITIONAL = "rag-fallback-traditional"


# Strategies a caller may ask for
REQUESTABLE_ALGORITHMS = (Algorithm.TRADITIONAL, Algorithm.RAG)


@dataclass(frozen=True)
class Preferences:
    mentor: bool = False
    invest: bool = False
    discuss: bool = False
    collaborate: bool = False
    hire: bool = False

    @classmethod
    def from_record(cls, data: Optional[Dict[str, Any]]) -> 'Preferences':
        """Build preferences from a JSON column; absent axes default to False"""
        if not isinstance(data, dict):
            return cls()
        return cls(**{axis: bool(data.get(axis) or False) for axis in PREFERENCE_AXES})

    def to_dict(self) -> Dict[str, bool]:
        return {axis: getattr(self, axis) for axis in PREFERENCE_AXES}


@dataclass(frozen=True)
class Profile:
    """Professional profile snapshot from the profile store"""

    id: str
    name: str = ""
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    skills: FrozenSet[str] = frozenset()
    interests: FrozenSet[str] = frozenset()
    preferences: Preferences = field(default_factory=Preferences)
    connections: int = 0

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Profile':
        """
        Map a profile row to a Profile

        Args:
            record: Row from the users table. Connections are read from
                    stats.connections, then connections_count, then connections.

        Returns:
            Profile with missing optional fields treated as empty
        """
        stats = record.get('stats')
        connections = stats.get('connections') if isinstance(stats, dict) else None
        if connections is None:
            connections = record.get('connections_count', record.get('connections'))
        try:
            connections = max(0, int(connections or 0))
        except (TypeError, ValueError):
            connections = 0

        return cls(
            id=str(record['id']),
            name=record.get('name') or "",
            title=record.get('title') or None,
            company=record.get('company') or None,
            location=record.get('location') or None,
            bio=record.get('bio') or None,
            skills=to_string_set(record.get('skills')),
            interests=to_string_set(record.get('interests')),
            preferences=Preferences.from_record(record.get('preferences')),
            connections=connections
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "bio": self.bio,
            "skills": sorted(self.skills),
            "interests": sorted(self.interests),
            "preferences": self.preferences.to_dict(),
            "connections": self.connections
        }


@dataclass(frozen=True)
class Embedding:
    """Latest embedding produced for a user by the profile intelligence run"""

    user_id: str
    vector: Tuple[float, ...]
    generated_at: datetime


@dataclass(frozen=True)
class MatchCandidate:
    """A scored candidate for one requester"""

    profile: Profile
    score: float
    reasons: Tuple[str, ...] = ()
    shared_interests: FrozenSet[str] = frozenset()
    complementary_skills: FrozenSet[str] = frozenset()
    match_types: FrozenSet[MatchType] = frozenset()
    # Cosine similarity, set only for candidates found by similarity search
    similarity: Optional[float] = None

    @property
    def recommendation_strength(self) -> str:
        thresholds = get_strength_thresholds()
        if self.score >= thresholds['high']:
            return "high"
        if self.score >= thresholds['medium']:
            return "medium"
        return "low"

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "user": self.profile.to_dict(),
            "compatibilityScore": self.score,
            "matchReasons": list(self.reasons),
            "sharedInterests": sorted(self.shared_interests),
            "complementarySkills": sorted(self.complementary_skills),
            "matchTypes": sorted(t.value for t in self.match_types),
            "recommendationStrength": self.recommendation_strength
        }
        if self.similarity is not None:
            result["semanticSimilarity"] = round(self.similarity, 4)
        return result


def _parse_enum(enum_cls, value: Any, field_name: str, default, allowed=None):
    if value is None or value == '':
        return default
    try:
        member = enum_cls(str(value).strip().lower())
    except ValueError:
        raise InputError(f"Invalid {field_name}: {value!r}")
    if allowed is not None and member not in allowed:
        raise InputError(f"Invalid {field_name}: {value!r}")
    return member


def _parse_bounded_int(value: Any, field_name: str, default: int, low: int, high: int) -> int:
    if value is None or value == '':
        return default
    try:
        number = parse_int(value)
    except (TypeError, ValueError):
        raise InputError(f"{field_name} must be an integer, got {value!r}")
    if number < low or number > high:
        raise InputError(f"{field_name} must be between {low} and {high}, got {number}")
    return number


@dataclass(frozen=True)
class MatchingRequest:
    requester_id: str
    algorithm: Algorithm = Algorithm.TRADITIONAL
    category: Category = Category.ALL
    max_results: int = 10
    min_compatibility: int = 20
    force_refresh: bool = False

    @classmethod
    def from_params(cls, requester_id: str, params: Optional[Dict[str, Any]] = None) -> 'MatchingRequest':
        """
        Validate raw request parameters

        Args:
            requester_id: Authenticated user id
            params: Dict with optional 'algorithm', 'category', 'maxResults'
                    (alias 'limit'), 'minCompatibility' and 'forceRefresh'.
                    Query-string values ('20', 'true') are accepted.

        Returns:
            Validated MatchingRequest

        Raises:
            InputError: on unknown enum values, non-integers or out-of-range numbers
        """
        params = params or {}
        limits = get_request_limits()

        if not requester_id or not str(requester_id).strip():
            raise InputError("Missing requester id")

        max_results = params.get('maxResults')
        if max_results is None:
            max_results = params.get('limit')

        try:
            force_refresh = parse_bool(params.get('forceRefresh'))
        except ValueError:
            raise InputError(f"forceRefresh must be a boolean, got {params.get('forceRefresh')!r}")

        return cls(
            requester_id=str(requester_id).strip(),
            algorithm=_parse_enum(
                Algorithm, params.get('algorithm'), 'algorithm',
                Algorithm.TRADITIONAL, allowed=REQUESTABLE_ALGORITHMS
            ),
            category=_parse_enum(Category, params.get('category'), 'category', Category.ALL),
            max_results=_parse_bounded_int(
                max_results, 'maxResults', limits['default_max_results'],
                limits['max_results_min'], limits['max_results_max']
            ),
            min_compatibility=_parse_bounded_int(
                params.get('minCompatibility'), 'minCompatibility',
                limits['default_min_compatibility'],
                limits['min_compatibility_min'], limits['min_compatibility_max']
            ),
            force_refresh=force_refresh
        )


@dataclass
class MatchingResponse:
    algorithm: Algorithm
    category: Category
    matches: List[MatchCandidate]
    total_found: int
    cache_used: bool = False
    cache_age: Optional[timedelta] = None
    fallback_reason: Optional[str] = None
    # Number of other profiles; None when the count query failed
    total_available: Optional[int] = None
    processing_time_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the response contract; cacheAge is in seconds"""
        result = {
            "success": True,
            "algorithm": self.algorithm.value,
            "category": self.category.value,
            "matches": [m.to_dict() for m in self.matches],
            "totalFound": self.total_found,
            "cacheUsed": self.cache_used,
            "cacheAge": self.cache_age.total_seconds() if self.cache_age is not None else None
        }
        if self.fallback_reason:
            result["fallbackReason"] = self.fallback_reason
        if self.total_available is not None:
            result["totalAvailable"] = self.total_available
        if self.processing_time_ms is not None:
            result["processingTime"] = self.processing_time_ms
        return result
