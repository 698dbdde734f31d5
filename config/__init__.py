"""Config loader for matching weights, limits and store settings"""
import json
import os
from functools import lru_cache
from typing import Dict, Any

CONFIG_PATH = os.path.join(os.path.dirname(__file__), 'matching.json')


@lru_cache(maxsize=1)
def load_matching_config() -> Dict[str, Any]:
    """Load and cache matching config from JSON file"""
    with open(CONFIG_PATH, 'r') as f:
        return json.load(f)


def get_preference_weights() -> Dict[str, int]:
    """Points awarded per satisfied preference rule, keyed by preference axis"""
    return load_matching_config()['preference_weights']


def get_overlap_weights() -> Dict[str, int]:
    """Per-element weights and caps for shared interests/skills, plus the location bonus"""
    return load_matching_config()['overlap_weights']


def get_request_limits() -> Dict[str, int]:
    """
    Get defaults and inclusive bounds for request parameters.

    Returns:
        Dict with 'default_max_results', 'max_results_min', 'max_results_max',
        'default_min_compatibility', 'min_compatibility_min' and
        'min_compatibility_max' keys
    """
    return load_matching_config()['request_limits']


def get_traditional_candidate_cap() -> int:
    """Hard cap on profiles loaded for rule-based matching"""
    return load_matching_config().get('traditional_candidate_cap', 1000)


def get_cache_max_age_minutes() -> int:
    """Age after which a cached similarity result is discarded"""
    return load_matching_config().get('cache_max_age_minutes', 360)


def get_strength_thresholds() -> Dict[str, int]:
    """Get minimum scores for 'high' and 'medium' recommendation strength"""
    return load_matching_config()['recommendation_strength']


def get_recommendations_preset() -> Dict[str, int]:
    """Request parameters used for networking recommendations"""
    return load_matching_config()['recommendations']


def get_batch_max_results() -> int:
    return load_matching_config().get('batch_max_results', 10)


def get_table_name(store: str) -> str:
    """
    Get the Supabase table backing a store.

    Args:
        store: One of 'profiles', 'embeddings'
    """
    return load_matching_config()['tables'][store]


def get_embedding_document_type() -> str:
    return load_matching_config().get('embedding_document_type', 'profile_intelligence')


def get_similarity_rpc() -> str:
    return load_matching_config().get('similarity_rpc', 'match_documents')


def get_similarity_pool_size() -> int:
    """Candidates fetched per similarity search, before category filtering and truncation"""
    return load_matching_config().get('similarity_pool_size', 50)
