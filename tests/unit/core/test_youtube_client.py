"""Unit tests for video metadata lookup."""

from unittest.mock import Mock

import pytest
import requests
import yt_dlp

from vubly.core.config import YouTubeConfig
from vubly.core.youtube_client import YouTubeClient, parse_iso8601_duration

VIDEO_ID = "abc123XYZ_9"


class FakeInfoDL:
    """Stand-in for yt_dlp.YoutubeDL.extract_info."""

    def __init__(self, info=None, error=None):
        self.info = info
        self.error = error
        self.calls = 0

    def __call__(self, opts):
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def extract_info(self, url, download=False):
        self.calls += 1
        if self.error:
            raise self.error
        return self.info


def _data_api_session(payload):
    response = Mock()
    response.json = Mock(return_value=payload)
    session = Mock()
    session.get.return_value = response
    return session


@pytest.mark.unit
class TestParseDuration:

    @pytest.mark.parametrize("value,expected", [
        ("PT3M32S", 212),
        ("PT1H", 3600),
        ("PT1H2M3S", 3723),
        ("P1DT1S", 86401),
        ("PT45S", 45),
        ("", None),
        (None, None),
        ("garbage", None),
    ])
    def test_parse_iso8601_duration(self, value, expected):
        # Act & Assert
        assert parse_iso8601_duration(value) == expected


@pytest.mark.unit
class TestYouTubeClient:

    @pytest.mark.asyncio
    async def test_data_api_metadata(self):
        # Arrange
        session = _data_api_session({"items": [{
            "snippet": {
                "title": "Sourdough Basics",
                "channelTitle": "Bread Channel",
                "thumbnails": {
                    "default": {"url": "https://i.ytimg.com/default.jpg"},
                    "high": {"url": "https://i.ytimg.com/high.jpg"},
                },
            },
            "contentDetails": {"duration": "PT3M32S"},
        }]})
        ytdlp = FakeInfoDL()
        client = YouTubeClient(YouTubeConfig(api_key="yt-key"), session_factory=lambda: session,
                               downloader_factory=ytdlp)

        # Act
        info = await client.get_video_info(VIDEO_ID)

        # Assert
        assert info.title == "Sourdough Basics"
        assert info.author == "Bread Channel"
        assert info.duration == 212
        assert info.thumbnail == "https://i.ytimg.com/high.jpg"
        assert session.get.call_args.kwargs["params"]["part"] == "snippet,contentDetails"
        assert ytdlp.calls == 0

    @pytest.mark.asyncio
    async def test_falls_back_to_ytdlp_when_data_api_fails(self):
        # Arrange
        session = Mock()
        session.get.side_effect = requests.ConnectionError("offline")
        ytdlp = FakeInfoDL(info={"title": "From yt-dlp", "duration": 61.0, "uploader": "Uploader",
                                 "thumbnail": "https://i.ytimg.com/t.jpg"})
        client = YouTubeClient(YouTubeConfig(api_key="yt-key"), session_factory=lambda: session,
                               downloader_factory=ytdlp)

        # Act
        info = await client.get_video_info(VIDEO_ID)

        # Assert
        assert info.title == "From yt-dlp"
        assert info.duration == 61
        assert info.author == "Uploader"

    @pytest.mark.asyncio
    async def test_skips_data_api_without_key(self):
        # Arrange
        session = Mock()
        ytdlp = FakeInfoDL(info={"title": "From yt-dlp"})
        client = YouTubeClient(YouTubeConfig(api_key=""), session_factory=lambda: session,
                               downloader_factory=ytdlp)

        # Act
        info = await client.get_video_info(VIDEO_ID)

        # Assert
        assert info.title == "From yt-dlp"
        assert info.author == "Unknown Author"
        session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_placeholder_when_everything_fails(self):
        # Arrange
        ytdlp = FakeInfoDL(error=yt_dlp.utils.DownloadError("Video unavailable"))
        client = YouTubeClient(YouTubeConfig(api_key=""), downloader_factory=ytdlp)

        # Act
        info = await client.get_video_info(VIDEO_ID)

        # Assert
        assert info.video_id == VIDEO_ID
        assert info.title == "Unknown Title"
        assert info.author == "Unknown Author"
        assert info.thumbnail == f"https://img.youtube.com/vi/{VIDEO_ID}/hqdefault.jpg"
