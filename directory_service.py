"""
Directory service for the matching engine
Read-only access to profile records in the users table
"""
import logging
from typing import List, Optional, Iterable

from config import get_table_name
from errors import DependencyError
from models import Profile
from supabase_client import get_client, get_admin_client

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "id, name, title, company, location, bio, skills, interests, "
    "preferences, stats, connections_count"
)


class DirectoryService:
    def __init__(self, use_admin: bool = False, client=None):
        if client is not None:
            self.client = client
        else:
            self.client = get_admin_client() if use_admin else get_client()
        self.table_name = get_table_name("profiles")

    # ==========================================
    # PROFILE READS
    # ==========================================

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        """Get a single profile by ID, None when it does not exist"""
        try:
            response = self.client.table(self.table_name) \
                .select(PROFILE_FIELDS) \
                .eq("id", profile_id) \
                .limit(1) \
                .execute()
        except Exception as e:
            logger.error(f"Profile lookup failed for {profile_id}: {e}")
            raise DependencyError(f"Profile store unavailable: {e}") from e

        if not response.data:
            return None
        return Profile.from_record(response.data[0])

    def list_profiles(self, exclude_id: str, limit: int) -> List[Profile]:
        """
        List profiles other than exclude_id

        Args:
            exclude_id: Profile to leave out (the requester)
            limit: Maximum number of rows to load

        Returns:
            Profiles ordered by id
        """
        try:
            response = self.client.table(self.table_name) \
                .select(PROFILE_FIELDS) \
                .neq("id", exclude_id) \
                .order("id") \
                .limit(limit) \
                .execute()
        except Exception as e:
            logger.error(f"Profile listing failed: {e}")
            raise DependencyError(f"Profile store unavailable: {e}") from e

        return [Profile.from_record(row) for row in response.data or []]

    def count_profiles(self, exclude_id: str) -> int:
        """Exact number of profiles other than exclude_id"""
        try:
            response = self.client.table(self.table_name) \
                .select("id", count="exact") \
                .neq("id", exclude_id) \
                .limit(1) \
                .execute()
        except Exception as e:
            logger.error(f"Profile count failed: {e}")
            raise DependencyError(f"Profile store unavailable: {e}") from e

        if response.count is None:
            raise DependencyError("Profile store returned no count")
        return response.count

    def get_profiles(self, profile_ids: Iterable[str]) -> List[Profile]:
        """Get profiles for a list of IDs; unknown IDs are skipped"""
        profile_ids = list(dict.fromkeys(profile_ids))
        if not profile_ids:
            return []

        try:
            response = self.client.table(self.table_name) \
                .select(PROFILE_FIELDS) \
                .in_("id", profile_ids) \
                .execute()
        except Exception as e:
            logger.error(f"Profile batch lookup failed: {e}")
            raise DependencyError(f"Profile store unavailable: {e}") from e

        return [Profile.from_record(row) for row in response.data or []]
