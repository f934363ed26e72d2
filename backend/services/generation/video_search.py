"""
YouTube Data API lookup for section videos.
"""
import asyncio
import logging
from typing import Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.config import YOUTUBE_API_KEY, YOUTUBE_SEARCH_LANGUAGE
from core.errors import TransientError

logger = logging.getLogger(__name__)


class YouTubeSearch:
    """Finds an embeddable, captioned video for a chapter title."""

    def __init__(self, api_key: str = YOUTUBE_API_KEY, language: str = YOUTUBE_SEARCH_LANGUAGE):
        self.language = language
        self.youtube_service = build("youtube", "v3", developerKey=api_key, cache_discovery=False)

    def _search(self, query: str) -> Optional[str]:
        search_params = {
            "part": "snippet",
            "q": query,
            "type": "video",
            "videoEmbeddable": "true",
            "relevanceLanguage": self.language,
            "safeSearch": "strict",
            "maxResults": 5,
            "order": "relevance",
        }
        search_response = self.youtube_service.search().list(**search_params).execute()

        for item in search_response.get("items", []):
            video_id = item.get("id", {}).get("videoId")
            if video_id:
                return f"https://www.youtube.com/watch?v={video_id}"
        return None

    async def find_video(self, section_title: str, audience: str = "") -> Optional[str]:
        """Return the best matching watch URL, or None when nothing matches."""
        query = f"{section_title} {audience}".strip() if audience != "unspecified" else section_title
        try:
            return await asyncio.to_thread(self._search, query)
        except HttpError as e:
            raise TransientError(f"YouTube search failed: {e}")


def create_video_search() -> Optional[YouTubeSearch]:
    """YouTube search when an API key is configured, otherwise None."""
    if not YOUTUBE_API_KEY:
        return None
    try:
        return YouTubeSearch(YOUTUBE_API_KEY)
    except Exception as e:
        logger.warning("Failed to initialize YouTube API: %s", e)
        return None
