"""
Category Classifier - maps match types to networking categories and filters
ranked matches by category without reordering them
"""
from dataclasses import replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from compatibility_scorer import CompatibilityScorer
from models import Category, MatchCandidate, MatchType, Profile

# Every match type maps to at least one category
MATCH_TYPE_CATEGORIES: Dict[MatchType, Tuple[Category, ...]] = {
    MatchType.MENTOR: (Category.MENTORSHIP,),
    MatchType.MENTEE: (Category.MENTORSHIP,),
    MatchType.INVESTOR: (Category.INVESTMENT,),
    MatchType.INVESTMENT_OPPORTUNITY: (Category.INVESTMENT,),
    MatchType.HIRING_MANAGER: (Category.HIRING,),
    MatchType.POTENTIAL_HIRE: (Category.HIRING,),
    MatchType.COLLABORATOR: (Category.COLLABORATION,),
    MatchType.DISCUSSION_PARTNER: (Category.COLLABORATION, Category.DISCUSSION),
}


class CategoryClassifier:
    def __init__(self, scorer: Optional[CompatibilityScorer] = None):
        self.scorer = scorer or CompatibilityScorer()

    def classify(self, candidate: MatchCandidate) -> FrozenSet[Category]:
        """Categories a candidate belongs to, from its match types"""
        categories = set()
        for match_type in candidate.match_types:
            categories.update(MATCH_TYPE_CATEGORIES[match_type])
        return frozenset(categories)

    def annotate(self, requester: Profile, candidates: Iterable[MatchCandidate]) -> List[MatchCandidate]:
        """
        Fill in match types for candidates that carry none

        Similarity search does not produce match types, so they are
        reconstructed from the preference rules of the two profiles.
        Candidates that already have match types are returned unchanged.
        """
        annotated = []
        for candidate in candidates:
            if not candidate.match_types:
                inferred = self.scorer.preference_match_types(requester, candidate.profile)
                if inferred:
                    candidate = replace(candidate, match_types=inferred)
            annotated.append(candidate)
        return annotated

    def filter(self, candidates: Iterable[MatchCandidate], category: Category) -> List[MatchCandidate]:
        """Keep candidates in category, preserving order. Category.ALL keeps everything."""
        if category is Category.ALL:
            return list(candidates)
        return [c for c in candidates if category in self.classify(c)]
