"""Video metadata lookup: YouTube Data API first, yt-dlp second, placeholders last."""

import asyncio
import re
from typing import Any, Callable, Dict, Optional

import requests
import yt_dlp

from ..models import VideoInfo
from ..utils.logging import get_logger
from ..utils.youtube_utils import thumbnail_url
from .config import YouTubeConfig
from .http_client import YOUTUBE, new_session

logger = get_logger("youtube_client")

DATA_API_URL = "https://www.googleapis.com/youtube/v3/videos"

_ISO_DURATION = re.compile(
    r'^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$'
)


def parse_iso8601_duration(value: Optional[str]) -> Optional[int]:
    """Convert ``PT1H2M3S`` style durations to seconds."""
    if not value:
        return None
    match = _ISO_DURATION.match(value)
    if not match:
        return None
    parts = {k: int(v) for k, v in match.groupdict().items() if v}
    return (parts.get("days", 0) * 86400 + parts.get("hours", 0) * 3600
            + parts.get("minutes", 0) * 60 + parts.get("seconds", 0))


class YouTubeClient:
    """Fetches display metadata for a video."""

    def __init__(
        self,
        config: YouTubeConfig,
        session_factory: Callable[[], requests.Session] = new_session,
        downloader_factory: Callable[[Dict[str, Any]], Any] = yt_dlp.YoutubeDL,
    ):
        self.config = config
        self.session_factory = session_factory
        self.downloader_factory = downloader_factory

    def _from_data_api(self, video_id: str) -> Optional[VideoInfo]:
        s = self.session_factory()
        r = s.get(DATA_API_URL, params={
            "id": video_id,
            "part": "snippet,contentDetails",
            "key": self.config.api_key,
        }, timeout=self.config.request_timeout)
        r.raise_for_status()
        items = r.json().get("items") or []
        if not items:
            return None

        snippet = items[0].get("snippet") or {}
        details = items[0].get("contentDetails") or {}
        thumbnails = snippet.get("thumbnails") or {}
        thumb = (thumbnails.get("high") or thumbnails.get("default") or {}).get("url")
        return VideoInfo(
            video_id=video_id,
            title=snippet.get("title") or "Unknown Title",
            duration=parse_iso8601_duration(details.get("duration")),
            thumbnail=thumb or thumbnail_url(video_id),
            author=snippet.get("channelTitle") or "Unknown Author",
        )

    def _from_ytdlp(self, video_id: str) -> Optional[VideoInfo]:
        opts = {"quiet": True, "no_warnings": True, "skip_download": True, "noplaylist": True}
        with self.downloader_factory(opts) as ydl:
            info = ydl.extract_info(f"{YOUTUBE}/watch?v={video_id}", download=False)
        if not info:
            return None
        duration = info.get("duration")
        return VideoInfo(
            video_id=video_id,
            title=info.get("title") or "Unknown Title",
            duration=int(duration) if duration else None,
            thumbnail=info.get("thumbnail") or thumbnail_url(video_id),
            author=info.get("uploader") or info.get("channel") or "Unknown Author",
        )

    def _lookup(self, video_id: str) -> VideoInfo:
        if self.config.api_key:
            try:
                info = self._from_data_api(video_id)
                if info:
                    return info
            except (requests.RequestException, ValueError) as e:
                logger.warning(f"YouTube Data API lookup failed for {video_id}: {e}")

        try:
            info = self._from_ytdlp(video_id)
            if info:
                return info
        except yt_dlp.utils.DownloadError as e:
            logger.warning(f"yt-dlp metadata lookup failed for {video_id}: {e}")

        logger.info(f"Using placeholder metadata for {video_id}")
        return VideoInfo(video_id=video_id, thumbnail=thumbnail_url(video_id))

    async def get_video_info(self, video_id: str, timeout: float = 30.0) -> VideoInfo:
        """Get metadata; never fails, falling back to placeholder values."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._lookup, video_id), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Metadata lookup timed out for {video_id}")
            return VideoInfo(video_id=video_id, thumbnail=thumbnail_url(video_id))
