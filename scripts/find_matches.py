#!/usr/bin/env python3
"""
Find Matches
============
Runs the matching engine for one user against the Supabase profile and
embedding stores and prints the JSON response.

Usage:
    python scripts/find_matches.py --user-id <uuid>
    python scripts/find_matches.py --user-id <uuid> --algorithm rag --category mentorship
    python scripts/find_matches.py --user-id <uuid> --batch mentorship hiring investment
    python scripts/find_matches.py --user-id <uuid> --recommendations --csv matches.csv

Requirements:
    - SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables
    - pip install supabase pandas python-dotenv
"""

import sys
import json
import argparse
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from errors import MatchingError
from matching_service import MatchingService


def matches_to_dataframe(matches: List[Dict[str, Any]]) -> pd.DataFrame:
    """Flatten serialized matches into one row per match"""
    rows = []
    for rank, match in enumerate(matches, start=1):
        user = match.get("user", {})
        rows.append({
            "rank": rank,
            "id": user.get("id"),
            "name": user.get("name"),
            "title": user.get("title"),
            "company": user.get("company"),
            "location": user.get("location"),
            "score": match.get("compatibilityScore"),
            "strength": match.get("recommendationStrength"),
            "match_types": "; ".join(match.get("matchTypes", [])),
            "shared_interests": "; ".join(match.get("sharedInterests", [])),
            "reasons": " | ".join(match.get("matchReasons", []))
        })
    return pd.DataFrame(rows)


def main():
    parser = argparse.ArgumentParser(
        description="Find networking matches for a user"
    )
    parser.add_argument(
        '--user-id', '-u',
        required=True,
        help='Requesting user id'
    )
    parser.add_argument(
        '--algorithm', '-a',
        default='traditional',
        choices=['traditional', 'rag'],
        help='Matching strategy'
    )
    parser.add_argument(
        '--category', '-c',
        default='all',
        help='all, mentorship, collaboration, investment, hiring or discussion'
    )
    parser.add_argument(
        '--max-results', '-n',
        type=int,
        default=10,
        help='Number of matches to return (1-50)'
    )
    parser.add_argument(
        '--min-compatibility',
        type=int,
        help='Minimum compatibility score (10-100)'
    )
    parser.add_argument(
        '--force-refresh',
        action='store_true',
        help='Bypass cached similarity results'
    )
    parser.add_argument(
        '--batch',
        nargs='+',
        metavar='CATEGORY',
        help='Run similarity matching once per category'
    )
    parser.add_argument(
        '--recommendations',
        action='store_true',
        help='Use the networking recommendations preset'
    )
    parser.add_argument(
        '--csv',
        help='Also write matches to this CSV file'
    )

    args = parser.parse_args()

    try:
        service = MatchingService()

        if args.batch:
            status, payload = service.handle_batch_request(args.user_id, {
                "algorithm": "rag",
                "categories": args.batch,
                "preferences": {"minCompatibility": args.min_compatibility}
            })
            matches = [m for result in payload.get("results", []) for m in result.get("matches", [])]
        elif args.recommendations:
            payload = service.get_networking_recommendations(args.user_id).to_dict()
            status = 200
            matches = payload["matches"]
        else:
            status, payload = service.handle_request(args.user_id, {
                "algorithm": args.algorithm,
                "category": args.category,
                "maxResults": args.max_results,
                "minCompatibility": args.min_compatibility,
                "forceRefresh": args.force_refresh
            })
            matches = payload.get("matches", [])

        print(json.dumps(payload, indent=2))

        if args.csv and matches:
            matches_to_dataframe(matches).to_csv(args.csv, index=False)
            print(f"Wrote {len(matches)} matches to {args.csv}")

        if status != 200:
            sys.exit(1)

    except ValueError as e:
        print(f"Configuration Error: {e}")
        sys.exit(1)
    except MatchingError as e:
        print(f"Matching Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
