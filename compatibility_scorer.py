"""
Compatibility Scorer - rule-based matching between two profiles
Scores are a pure function of the two profiles:
1. Preference complementarity (mentor / invest / hire on opposite sides,
   collaborate / discuss on both sides)
2. Shared interests and skills, capped per signal
3. Same-location bonus
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from config import get_overlap_weights, get_preference_weights
from models import MatchCandidate, MatchType, Profile
from utils.helpers import clamp_score

logger = logging.getLogger(__name__)


def ranking_key(candidate: MatchCandidate) -> Tuple[float, int, str]:
    """Sort key: score desc, then connections desc, then id asc"""
    return (-candidate.score, -candidate.profile.connections, candidate.profile.id)


def sort_matches(candidates: Iterable[MatchCandidate]) -> List[MatchCandidate]:
    return sorted(candidates, key=ranking_key)


class CompatibilityScorer:
    """Deterministic pairwise scorer over profile attributes"""

    def __init__(
        self,
        preference_weights: Optional[Dict[str, int]] = None,
        overlap_weights: Optional[Dict[str, int]] = None
    ):
        self.preference_weights = dict(preference_weights or get_preference_weights())
        self.overlap_weights = dict(overlap_weights or get_overlap_weights())

    def preference_matches(self, requester: Profile, candidate: Profile) -> List[Tuple[MatchType, int, str]]:
        """
        Evaluate the preference rules for a pair

        Args:
            requester: Profile asking for matches
            candidate: Profile being scored

        Returns:
            (match type, weight, reason) for each satisfied rule, in rule order
        """
        req = requester.preferences
        cand = candidate.preferences
        weights = self.preference_weights
        matches = []

        # Mentorship: exactly one side has the flag
        if req.mentor and not cand.mentor:
            matches.append((MatchType.MENTOR, weights['mentor'],
                            "They can mentor you and share their experience"))
        elif cand.mentor and not req.mentor:
            matches.append((MatchType.MENTEE, weights['mentor'],
                            "You can mentor them in your expertise area"))

        # Investment: investor meets entrepreneur
        if req.invest and not cand.invest:
            matches.append((MatchType.INVESTMENT_OPPORTUNITY, weights['invest'],
                            "Potential investment opportunity"))
        elif cand.invest and not req.invest:
            matches.append((MatchType.INVESTOR, weights['invest'],
                            "They might be interested in investing in your projects"))

        # Collaboration: both sides
        if req.collaborate and cand.collaborate:
            matches.append((MatchType.COLLABORATOR, weights['collaborate'],
                            "Both interested in collaboration opportunities"))

        # Hiring: employer meets candidate
        if req.hire and not cand.hire:
            matches.append((MatchType.POTENTIAL_HIRE, weights['hire'],
                            "Potential hiring opportunity"))
        elif cand.hire and not req.hire:
            matches.append((MatchType.HIRING_MANAGER, weights['hire'],
                            "They might have job opportunities for you"))

        # Discussion: both sides
        if req.discuss and cand.discuss:
            matches.append((MatchType.DISCUSSION_PARTNER, weights['discuss'],
                            "Both enjoy professional discussions"))

        return matches

    def preference_match_types(self, requester: Profile, candidate: Profile) -> FrozenSet[MatchType]:
        """Match types implied by preferences alone"""
        return frozenset(match_type for match_type, _, _ in self.preference_matches(requester, candidate))

    def score(self, requester: Profile, candidate: Profile) -> MatchCandidate:
        """
        Score one candidate for the requester

        Raises:
            ValueError: when candidate is the requester
        """
        if candidate.id == requester.id:
            raise ValueError("Cannot score a profile against itself")

        weights = self.overlap_weights
        total = 0.0
        reasons: List[str] = []
        match_types = set()

        for match_type, weight, reason in self.preference_matches(requester, candidate):
            total += weight
            reasons.append(reason)
            match_types.add(match_type)

        shared_interests = requester.interests & candidate.interests
        if shared_interests:
            total += min(len(shared_interests) * weights['shared_interest'], weights['shared_interest_cap'])
            reasons.append(f"Shared interests in {', '.join(sorted(shared_interests)[:2])}")

        shared_skills = requester.skills & candidate.skills
        if shared_skills:
            total += min(len(shared_skills) * weights['shared_skill'], weights['shared_skill_cap'])
            reasons.append(f"Common skills in {', '.join(sorted(shared_skills)[:2])}")

        requester_location = (requester.location or "").strip()
        if requester_location and requester_location == (candidate.location or "").strip():
            total += weights['location']
            reasons.append("Located in the same area for potential in-person meetings")

        return MatchCandidate(
            profile=candidate,
            score=round(clamp_score(total), 1),
            reasons=tuple(reasons),
            shared_interests=frozenset(shared_interests),
            complementary_skills=frozenset(shared_skills),
            match_types=frozenset(match_types)
        )

    def rank(
        self,
        requester: Profile,
        candidates: Iterable[Profile],
        min_compatibility: float = 0,
        max_workers: Optional[int] = None
    ) -> List[MatchCandidate]:
        """
        Score every candidate and return those at or above min_compatibility

        Args:
            requester: Profile asking for matches
            candidates: Profiles to score; the requester and duplicate ids are skipped
            min_compatibility: Minimum score to keep
            max_workers: Score on a thread pool when greater than 1

        Returns:
            Matches ordered by score desc, connections desc, id asc
        """
        unique: Dict[str, Profile] = {}
        for profile in candidates:
            if profile.id != requester.id and profile.id not in unique:
                unique[profile.id] = profile
        others = list(unique.values())

        if max_workers and max_workers > 1 and len(others) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                scored = list(executor.map(lambda p: self.score(requester, p), others))
        else:
            scored = [self.score(requester, p) for p in others]

        matches = [m for m in scored if m.score >= min_compatibility]
        logger.debug(f"Scored {len(scored)} candidates for {requester.id}, {len(matches)} above {min_compatibility}")
        return sort_matches(matches)
