"""
Media acquisition cascade.

Third-party conversion services are tried first, each normalized to
"return the bytes or raise". yt-dlp is the final fallback. Audio is required
for transcription; video is fetched best-effort for playback.
"""

import asyncio
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests
import yt_dlp

from ..utils.logging import get_logger
from .config import MediaConfig
from .exceptions import MediaUnavailableError, ProviderError, ProviderTimeoutError
from .http_client import YOUTUBE, new_session

logger = get_logger("media_downloader")

SessionFactory = Callable[[], requests.Session]


class MediaKind(Enum):
    AUDIO = "audio"
    VIDEO = "video"


@dataclass
class ProviderFailure:
    name: str
    reason: str

    def __str__(self) -> str:
        return f"{self.name}: {self.reason}"


@dataclass
class MediaResult:
    data: bytes
    provider: str
    attempts: List[ProviderFailure] = field(default_factory=list)


class MediaProvider(ABC):
    """A source of audio and/or video bytes for a video id."""

    name = "base"
    kinds = (MediaKind.AUDIO,)

    def supports(self, kind: MediaKind) -> bool:
        return kind in self.kinds

    def is_configured(self) -> bool:
        return True

    @abstractmethod
    def download(self, video_id: str, kind: MediaKind) -> bytes:
        """Return the media bytes or raise."""


class _HttpProvider(MediaProvider):
    """Shared plumbing for providers that end in a plain file download."""

    def __init__(self, session_factory: Optional[SessionFactory] = None, timeout: int = 60):
        self.session_factory = session_factory or (lambda: new_session(youtube=False))
        self.timeout = timeout

    def fetch_file(self, s: requests.Session, url: str) -> bytes:
        r = s.get(url, timeout=self.timeout)
        r.raise_for_status()
        if not r.content:
            raise ProviderError(f"{self.name} returned an empty file")
        return r.content


class CobaltProvider(_HttpProvider):
    """Single request returning a direct download link."""

    name = "cobalt"
    kinds = (MediaKind.AUDIO, MediaKind.VIDEO)

    def __init__(self, api_url: str, api_key: str = "", **kwargs):
        super().__init__(**kwargs)
        self.api_url = api_url
        self.api_key = api_key

    def download(self, video_id: str, kind: MediaKind) -> bytes:
        s = self.session_factory()
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Api-Key {self.api_key}"

        r = s.post(self.api_url, json={
            "url": f"{YOUTUBE}/watch?v={video_id}",
            "videoQuality": "720",
            "audioFormat": "mp3",
            "filenameStyle": "basic",
            "downloadMode": "audio" if kind is MediaKind.AUDIO else "auto",
        }, headers=headers, timeout=self.timeout)
        r.raise_for_status()
        data = r.json()

        status = data.get("status")
        if status in ("error", "rate-limit"):
            error = data.get("error") or {}
            detail = error.get("code") if isinstance(error, dict) else error
            raise ProviderError(f"cobalt {status}: {detail or data.get('text') or 'unknown'}")
        if not data.get("url"):
            raise ProviderError(f"cobalt returned no download url (status={status})")

        return self.fetch_file(s, data["url"])


class RapidApiMp3Provider(_HttpProvider):
    """Submit-then-poll MP3 conversion on RapidAPI."""

    name = "rapidapi"
    kinds = (MediaKind.AUDIO,)

    def __init__(self, api_key: str, host: str = "youtube-mp36.p.rapidapi.com", max_attempts: int = 30,
                 poll_interval: float = 1.0, sleep: Callable[[float], None] = time.sleep, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.host = host
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval
        self._sleep = sleep

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def download(self, video_id: str, kind: MediaKind) -> bytes:
        s = self.session_factory()
        headers = {"x-rapidapi-key": self.api_key, "x-rapidapi-host": self.host}

        for attempt in range(1, self.max_attempts + 1):
            r = s.get(f"https://{self.host}/dl", params={"id": video_id}, headers=headers, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
            status = data.get("status")

            if status == "ok" and data.get("link"):
                return self.fetch_file(s, data["link"])
            if status == "fail":
                raise ProviderError(f"rapidapi conversion failed: {data.get('msg') or 'unknown'}")

            logger.debug(f"rapidapi status={status} for {video_id} (attempt {attempt}/{self.max_attempts})")
            if attempt < self.max_attempts:
                self._sleep(self.poll_interval)

        raise ProviderTimeoutError(f"rapidapi conversion timed out after {self.max_attempts} attempts")


class Y2mateProvider(_HttpProvider):
    """Analyze, convert, then download."""

    name = "y2mate"
    kinds = (MediaKind.AUDIO,)

    def __init__(self, base_url: str = "https://www.y2mate.com", **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    def download(self, video_id: str, kind: MediaKind) -> bytes:
        s = self.session_factory()
        headers = {"Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
                   "X-Requested-With": "XMLHttpRequest"}

        r = s.post(f"{self.base_url}/mates/analyzeV2/ajax", data={
            "k_query": f"{YOUTUBE}/watch?v={video_id}",
            "k_page": "home",
            "hl": "en",
            "q_auto": "0",
        }, headers=headers, timeout=self.timeout)
        r.raise_for_status()
        analysis = r.json()
        mp3_links = (analysis.get("links") or {}).get("mp3") or {}
        if analysis.get("status") != "ok" or not mp3_links:
            raise ProviderError("y2mate analyze returned no mp3 links")

        first = next(iter(mp3_links.values()))
        key = first.get("k") if isinstance(first, dict) else None
        if not key:
            raise ProviderError("y2mate mp3 link has no conversion key")

        r = s.post(f"{self.base_url}/mates/convertV2/index", data={"vid": video_id, "k": key},
                   headers=headers, timeout=self.timeout)
        r.raise_for_status()
        conversion = r.json()
        if conversion.get("status") != "ok" or not conversion.get("dlink"):
            raise ProviderError("y2mate convert returned no download link")

        return self.fetch_file(s, conversion["dlink"])


# Client impersonation presets, tried in order
YTDLP_CLIENT_PRESETS: List[Dict[str, Any]] = [
    {
        "ua": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        "player_client": ["web"],
        "player_skip": ["configs", "js"],
    },
    {
        "ua": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15",
        "player_client": ["web_safari"],
    },
    {
        "ua": "Mozilla/5.0 (CrKey armv7l 1.36.159268) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/36.0.1985.67 Safari/537.36",
        "player_client": ["tv_embedded"],
    },
    {
        "ua": "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1",
        "player_client": ["ios"],
    },
    # Android clients often require a PO token, keep them last
    {
        "ua": "Mozilla/5.0 (Linux; Android 12; Pixel 5) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36",
        "player_client": ["android"],
    },
]


class YtDlpProvider(MediaProvider):
    """Local yt-dlp download, cycling through client presets."""

    name = "ytdlp"
    kinds = (MediaKind.AUDIO, MediaKind.VIDEO)

    def __init__(self, work_dir: str, ffmpeg_location: str = "", cookies_file: str = "",
                 downloader_factory: Callable[[Dict[str, Any]], Any] = yt_dlp.YoutubeDL):
        self.work_dir = Path(work_dir)
        self.ffmpeg_location = ffmpeg_location
        self.cookies_file = cookies_file
        self.downloader_factory = downloader_factory

    def _options(self, target: Path, video_id: str, kind: MediaKind, preset: Dict[str, Any]) -> Dict[str, Any]:
        youtube_args = {"player_client": preset["player_client"]}
        if preset.get("player_skip"):
            youtube_args["player_skip"] = preset["player_skip"]

        opts: Dict[str, Any] = {
            "outtmpl": {"default": str(target / f"{video_id}_{kind.value}.%(ext)s")},
            "quiet": True,
            "noprogress": True,
            "no_warnings": True,
            "noplaylist": True,
            "retries": 3,
            "socket_timeout": 15,
            "geo_bypass": True,
            "nocheckcertificate": True,
            "extractor_args": {"youtube": youtube_args},
            "http_headers": {"User-Agent": preset["ua"], "Referer": f"{YOUTUBE}/"},
        }
        if kind is MediaKind.AUDIO:
            opts["format"] = "bestaudio/best"
            opts["postprocessors"] = [{
                "key": "FFmpegExtractAudio",
                "preferredcodec": "mp3",
                "preferredquality": "0",
            }]
        else:
            opts["format"] = "bestvideo[ext=mp4]/best[ext=mp4]/best"
        if self.ffmpeg_location:
            opts["ffmpeg_location"] = self.ffmpeg_location
        if self.cookies_file:
            opts["cookiefile"] = self.cookies_file
        return opts

    def _read_output(self, target: Path, kind: MediaKind) -> Optional[bytes]:
        files = sorted(target.iterdir())
        if kind is MediaKind.AUDIO:
            mp3 = [p for p in files if p.suffix == ".mp3"]
            files = mp3 or files
        for path in files:
            if path.suffix == ".part" or not path.is_file():
                continue
            data = path.read_bytes()
            if data:
                return data
        return None

    def download(self, video_id: str, kind: MediaKind) -> bytes:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        url = f"{YOUTUBE}/watch?v={video_id}"
        errors = []
        for preset in YTDLP_CLIENT_PRESETS:
            # Each attempt writes into its own directory
            with tempfile.TemporaryDirectory(prefix=f"{video_id}_{kind.value}_", dir=self.work_dir) as temp_dir:
                target = Path(temp_dir)
                try:
                    logger.debug(f"yt-dlp {kind.value} for {video_id} with player_client={preset['player_client']}")
                    with self.downloader_factory(self._options(target, video_id, kind, preset)) as ydl:
                        ydl.download([url])
                except Exception as e:
                    errors.append(f"{preset['player_client'][0]}: {e}")
                    continue

                data = self._read_output(target, kind)
            if data:
                return data
            errors.append(f"{preset['player_client'][0]}: no output file")

        raise ProviderError("; ".join(errors))


class MediaCascade:
    """Ordered media providers; the first one to return bytes wins."""

    def __init__(self, providers: List[MediaProvider], provider_timeout: float = 180.0):
        self.providers = providers
        self.provider_timeout = provider_timeout

    @classmethod
    def from_config(cls, config: MediaConfig) -> "MediaCascade":
        registry: Dict[str, Callable[[], MediaProvider]] = {
            "cobalt": lambda: CobaltProvider(config.cobalt_api_url, config.cobalt_api_key,
                                             timeout=config.http_timeout),
            "rapidapi": lambda: RapidApiMp3Provider(
                config.rapidapi_key,
                host=config.rapidapi_host,
                max_attempts=config.rapidapi_max_attempts,
                poll_interval=config.rapidapi_poll_interval,
                timeout=config.http_timeout,
            ),
            "y2mate": lambda: Y2mateProvider(config.y2mate_base_url, timeout=config.http_timeout),
            "ytdlp": lambda: YtDlpProvider(config.work_dir, config.ytdlp_ffmpeg_location, config.ytdlp_cookies_file),
        }
        providers = []
        for name in config.providers:
            if name not in registry:
                logger.warning(f"Ignoring unknown media provider '{name}'")
                continue
            providers.append(registry[name]())
        return cls(providers, config.provider_timeout)

    async def acquire(self, video_id: str, kind: MediaKind = MediaKind.AUDIO) -> MediaResult:
        """
        Download ``kind`` media for ``video_id``.

        Raises:
            MediaUnavailableError: if every provider supporting ``kind`` failed
        """
        failures: List[ProviderFailure] = []
        for provider in self.providers:
            if not provider.supports(kind):
                continue
            if not provider.is_configured():
                logger.debug(f"Skipping unconfigured media provider '{provider.name}'")
                continue

            logger.info(f"Media provider '{provider.name}' for {kind.value} of {video_id}")
            try:
                data = await asyncio.wait_for(
                    asyncio.to_thread(provider.download, video_id, kind),
                    timeout=self.provider_timeout,
                )
            except asyncio.TimeoutError:
                failures.append(ProviderFailure(provider.name, f"timed out after {self.provider_timeout}s"))
            except Exception as e:
                failures.append(ProviderFailure(provider.name, str(e) or type(e).__name__))
            else:
                if data:
                    logger.info(f"Got {len(data)} bytes of {kind.value} for {video_id} from '{provider.name}'")
                    return MediaResult(data=data, provider=provider.name, attempts=failures)
                failures.append(ProviderFailure(provider.name, "empty payload"))

            logger.warning(f"Media provider failed for {video_id}: {failures[-1]}")

        logger.error(f"All {kind.value} providers failed for {video_id}")
        raise MediaUnavailableError(kind.value, failures)
