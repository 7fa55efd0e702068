"""
Transcript acquisition cascade.

Strategies, in default order:
- page: caption tracks scraped from the public watch page
- ytdlp: subtitle files written by yt-dlp under several option presets
- innertube: the web client's ``get_transcript`` endpoint
- transcript_api: the youtube-transcript-api package

Each strategy is synchronous and is run in a worker thread with a timeout.
The cascade returns the first transcript longer than the minimum length.
"""

import asyncio
import base64
import json
import re
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import requests
import yt_dlp
from youtube_transcript_api import YouTubeTranscriptApi

from ..utils.logging import get_logger
from ..utils.subtitle_utils import clean_text, json3_to_text, subtitle_to_text, timedtext_to_text
from .config import MediaConfig, TranscriptConfig
from .exceptions import ProviderError
from .http_client import YOUTUBE, jitter_sleep, new_session

logger = get_logger("transcript_fetcher")

SessionFactory = Callable[[], requests.Session]


@dataclass
class StrategyFailure:
    """Why one strategy did not produce a transcript."""
    name: str
    reason: str

    def __str__(self) -> str:
        return f"{self.name}: {self.reason}"


@dataclass
class TranscriptResult:
    """Transcript text plus which strategy produced it."""
    text: str
    source: str
    attempts: List[StrategyFailure] = field(default_factory=list)


class TranscriptStrategy(ABC):
    """One way of turning a video id into transcript text."""

    name = "base"

    @abstractmethod
    def extract(self, video_id: str) -> Optional[str]:
        """Return transcript text, None when there is nothing, or raise on failure."""


# =============================================================================
# PAGE CAPTIONS
# =============================================================================

_PLAYER_RESPONSE_START = re.compile(r'ytInitialPlayerResponse\s*=\s*\{')
_CAPTION_TRACKS_START = re.compile(r'"captionTracks"\s*:\s*\[')
_CAPTION_TRACKS_LAZY = re.compile(r'"captionTracks"\s*:\s*(\[.*?\])', re.S)
_TIMEDTEXT_URL = re.compile(r'"baseUrl"\s*:\s*"(https://www\.youtube\.com/api/timedtext[^"]+)"')


def _unescape_js(url: str) -> str:
    return url.replace('\\u0026', '&').replace('\\/', '/')


def _player_response_from_html(html: str) -> Optional[Dict[str, Any]]:
    decoder = json.JSONDecoder()
    for match in _PLAYER_RESPONSE_START.finditer(html):
        try:
            obj, _ = decoder.raw_decode(html, match.end() - 1)
        except ValueError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


def extract_caption_tracks(html: str) -> List[Dict[str, Any]]:
    """
    Pull caption-track descriptors out of watch-page markup.

    The embedded player response is decoded as JSON first. If that fails,
    the bare ``captionTracks`` array is decoded, and as a last resort any
    timed-text URLs are collected by pattern.
    """
    player = _player_response_from_html(html)
    if player:
        renderer = (player.get("captions") or {}).get("playerCaptionsTracklistRenderer") or {}
        tracks = renderer.get("captionTracks") or []
        if tracks:
            return tracks

    decoder = json.JSONDecoder()
    match = _CAPTION_TRACKS_START.search(html)
    if match:
        try:
            tracks, _ = decoder.raw_decode(html, match.end() - 1)
            if tracks:
                return tracks
        except ValueError:
            logger.debug("captionTracks array is not valid JSON, trying lazy match")

    match = _CAPTION_TRACKS_LAZY.search(html)
    if match:
        try:
            tracks = json.loads(match.group(1))
            if tracks:
                return tracks
        except ValueError:
            logger.debug("Lazy captionTracks match is not valid JSON, scanning for timedtext URLs")

    tracks = []
    for raw_url in _TIMEDTEXT_URL.findall(html):
        url = _unescape_js(raw_url)
        query = parse_qs(urlparse(url).query)
        tracks.append({
            "baseUrl": url,
            "languageCode": (query.get("lang") or [""])[0],
            "kind": (query.get("kind") or [""])[0],
        })
    return tracks


def _is_english(track: Dict[str, Any]) -> bool:
    return (track.get("languageCode") or "").lower().startswith("en")


def select_caption_track(tracks: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Manual English first, then any English, then whatever comes first."""
    if not tracks:
        return None
    for track in tracks:
        if _is_english(track) and track.get("kind") != "asr":
            return track
    for track in tracks:
        if _is_english(track):
            return track
    return tracks[0]


def track_language_labels(tracks: Iterable[Dict[str, Any]]) -> List[str]:
    labels = []
    for t in tracks:
        code = t.get("languageCode") or "?"
        labels.append(f"{code}-asr" if t.get("kind") == "asr" else code)
    return labels


class PageCaptionStrategy(TranscriptStrategy):
    """Scrape caption tracks from the watch page and download the chosen one."""

    name = "page"

    def __init__(self, session_factory: SessionFactory = new_session, timeout: int = 25):
        self.session_factory = session_factory
        self.timeout = timeout

    def fetch_page(self, s: requests.Session, video_id: str) -> str:
        r = s.get(f"{YOUTUBE}/watch?v={video_id}&hl=en", timeout=self.timeout)
        r.raise_for_status()
        return r.text

    def list_tracks(self, video_id: str) -> List[Dict[str, Any]]:
        s = self.session_factory()
        return extract_caption_tracks(self.fetch_page(s, video_id))

    def extract(self, video_id: str) -> Optional[str]:
        s = self.session_factory()
        tracks = extract_caption_tracks(self.fetch_page(s, video_id))
        if not tracks:
            raise ProviderError("no caption tracks in page")

        track = select_caption_track(tracks)
        logger.info(f"Page captions for {video_id}: tracks=[{', '.join(track_language_labels(tracks))}], "
                    f"selected={track.get('languageCode') or '?'}")

        base_url = _unescape_js(track.get("baseUrl") or "")
        if not base_url:
            raise ProviderError("selected caption track has no baseUrl")

        r = s.get(base_url, timeout=self.timeout)
        r.raise_for_status()
        text = timedtext_to_text(r.text)
        if not text and "fmt=" not in base_url:
            r = s.get(f"{base_url}&fmt=json3", timeout=self.timeout)
            r.raise_for_status()
            text = timedtext_to_text(r.text)
        return text


# =============================================================================
# YT-DLP SUBTITLES
# =============================================================================

SUBTITLE_PRESETS: List[Tuple[str, Dict[str, Any]]] = [
    ("auto", {"writeautomaticsub": True, "subtitleslangs": ["en.*"]}),
    ("manual", {"writesubtitles": True, "subtitleslangs": ["en.*"]}),
    ("any", {"writeautomaticsub": True, "writesubtitles": True,
             "subtitleslangs": ["en", "en-US", "en-GB", "en-orig"]}),
    ("all", {"writesubtitles": True, "allsubtitles": True}),
]

SUBTITLE_SUFFIXES = (".vtt", ".srt", ".json3", ".json")


class YtDlpSubtitleStrategy(TranscriptStrategy):
    """Ask yt-dlp to write subtitle files and read back whatever it produced."""

    name = "ytdlp"

    def __init__(self, work_dir: str, min_length: int = 50, cookies_file: str = "",
                 downloader_factory: Callable[[Dict[str, Any]], Any] = yt_dlp.YoutubeDL):
        self.work_dir = Path(work_dir)
        self.min_length = min_length
        self.cookies_file = cookies_file
        self.downloader_factory = downloader_factory

    def _options(self, target: Path, video_id: str, preset: Dict[str, Any]) -> Dict[str, Any]:
        opts = {
            "skip_download": True,
            "subtitlesformat": "vtt/srt/json3/best",
            "outtmpl": {"default": str(target / f"{video_id}_subs.%(ext)s")},
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "socket_timeout": 15,
        }
        if self.cookies_file:
            opts["cookiefile"] = self.cookies_file
        opts.update(preset)
        return opts

    def _read_output(self, target: Path) -> str:
        for path in sorted(target.iterdir()):
            if path.suffix not in SUBTITLE_SUFFIXES:
                continue
            content = path.read_text(encoding="utf-8", errors="replace")
            text = json3_to_text(content) if path.suffix in (".json3", ".json") else subtitle_to_text(content)
            if text:
                return text
        return ""

    def extract(self, video_id: str) -> Optional[str]:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        url = f"{YOUTUBE}/watch?v={video_id}"
        errors = []
        for preset_name, preset in SUBTITLE_PRESETS:
            with tempfile.TemporaryDirectory(prefix=f"{video_id}_subs_", dir=self.work_dir) as temp_dir:
                target = Path(temp_dir)
                try:
                    logger.debug(f"yt-dlp subtitles for {video_id} with preset={preset_name}")
                    with self.downloader_factory(self._options(target, video_id, preset)) as ydl:
                        ydl.download([url])
                except Exception as e:
                    errors.append(f"{preset_name}: {e}")
                    continue

                text = self._read_output(target)
            if len(text) > self.min_length:
                logger.info(f"yt-dlp preset '{preset_name}' produced {len(text)} chars for {video_id}")
                return text
            errors.append(f"{preset_name}: no usable subtitle output")

        raise ProviderError("; ".join(errors))


# =============================================================================
# INNERTUBE GET_TRANSCRIPT
# =============================================================================

_TRANSCRIPT_PARAMS = re.compile(r'"getTranscriptEndpoint"\s*:\s*\{\s*"params"\s*:\s*"([^"]+)"')


def extract_innertube_from_html(html: str) -> Optional[Tuple[str, str]]:
    """Return (api_key, client_version) from watch-page markup."""
    m_key = re.search(r'"INNERTUBE_API_KEY"\s*:\s*"([^"]+)"', html)
    m_ver = re.search(r'"INNERTUBE_CONTEXT_CLIENT_VERSION"\s*:\s*"([^"]+)"', html)
    if m_key and m_ver:
        return m_key.group(1), m_ver.group(1)
    for m in re.finditer(r'ytcfg\.set\(\s*(\{.*?\})\s*\)\s*;', html, flags=re.S):
        try:
            obj = json.loads(m.group(1))
        except ValueError:
            continue
        api = obj.get("INNERTUBE_API_KEY")
        ver = obj.get("INNERTUBE_CONTEXT_CLIENT_VERSION") or \
            ((obj.get("INNERTUBE_CONTEXT") or {}).get("client") or {}).get("clientVersion")
        if api and ver:
            return api, ver
    return None


def build_transcript_params(video_id: str) -> str:
    # Protobuf message with the video id as field 1
    raw = b"\n" + bytes([len(video_id)]) + video_id.encode("ascii")
    return base64.b64encode(raw).decode("ascii")


def _find_lists(node: Any, keys: Tuple[str, ...]) -> List[Any]:
    found: List[Any] = []
    if isinstance(node, dict):
        for key, value in node.items():
            if key in keys and isinstance(value, list):
                found.extend(value)
            else:
                found.extend(_find_lists(value, keys))
    elif isinstance(node, list):
        for item in node:
            found.extend(_find_lists(item, keys))
    return found


def _text_of(node: Any) -> str:
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, dict):
        if "simpleText" in node:
            return str(node["simpleText"])
        if "runs" in node:
            return "".join(str(run.get("text", "")) for run in node["runs"] if isinstance(run, dict))
        if "text" in node:
            return _text_of(node["text"])
    return ""


def segment_text(segment: Dict[str, Any]) -> str:
    """Text of one transcript segment, whatever shape the response uses."""
    renderer = (segment.get("transcriptSegmentRenderer")
                or segment.get("transcriptCueGroupRenderer")
                or segment)

    for key in ("snippet", "text", "cue"):
        text = _text_of(renderer.get(key))
        if text:
            return text

    cues = renderer.get("cues") or []
    parts = []
    for cue in cues:
        cue_renderer = cue.get("transcriptCueRenderer") or cue
        parts.append(_text_of(cue_renderer.get("cue")) or _text_of(cue_renderer.get("text")))
    return " ".join(p for p in parts if p)


class InnertubeTranscriptStrategy(TranscriptStrategy):
    """Call the web client's transcript panel endpoint directly."""

    name = "innertube"

    def __init__(self, session_factory: SessionFactory = new_session, timeout: int = 25):
        self.session_factory = session_factory
        self.timeout = timeout

    def extract(self, video_id: str) -> Optional[str]:
        s = self.session_factory()
        r = s.get(f"{YOUTUBE}/watch?v={video_id}&hl=en", timeout=self.timeout)
        r.raise_for_status()
        html = r.text

        pair = extract_innertube_from_html(html)
        if not pair:
            raise ProviderError("failed to extract innertube API key/client version")
        api_key, client_version = pair

        params_match = _TRANSCRIPT_PARAMS.search(html)
        params = params_match.group(1) if params_match else build_transcript_params(video_id)

        jitter_sleep(0.25)
        r = s.post(
            f"{YOUTUBE}/youtubei/v1/get_transcript",
            params={"key": api_key, "prettyPrint": "false"},
            json={
                "context": {"client": {"clientName": "WEB", "clientVersion": client_version, "hl": "en"}},
                "params": params,
            },
            headers={
                "X-YouTube-Client-Name": "1",
                "X-YouTube-Client-Version": client_version,
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        r.raise_for_status()

        segments = _find_lists(r.json(), ("initialSegments", "cueGroups"))
        if not segments:
            raise ProviderError("get_transcript returned no segments")
        return clean_text(" ".join(segment_text(seg) for seg in segments if isinstance(seg, dict)))


# =============================================================================
# YOUTUBE-TRANSCRIPT-API
# =============================================================================

class TranscriptApiStrategy(TranscriptStrategy):
    """youtube-transcript-api, tried across language hints with one delayed final retry."""

    name = "transcript_api"

    def __init__(self, language_hints: Optional[List[str]] = None, final_retry_delay: float = 2.0,
                 api_factory: Callable[[], Any] = YouTubeTranscriptApi):
        self.language_hints: List[Optional[str]] = [None] + list(language_hints or ["en", "en-US", "en-GB"])
        self.final_retry_delay = final_retry_delay
        self.api_factory = api_factory

    def _fetch(self, api: Any, video_id: str, language: Optional[str]) -> str:
        if language is None:
            transcript = next(iter(api.list(video_id)), None)
            if transcript is None:
                raise ProviderError("no transcripts listed")
            fetched = transcript.fetch()
        else:
            fetched = api.fetch(video_id, languages=[language])
        return clean_text(" ".join(snippet.text for snippet in fetched))

    def extract(self, video_id: str) -> Optional[str]:
        api = self.api_factory()
        errors = []
        for language in self.language_hints:
            try:
                text = self._fetch(api, video_id, language)
            except Exception as e:
                errors.append(f"{language or 'auto'}: {type(e).__name__}")
                continue
            if text:
                return text

        logger.debug(f"All language hints failed for {video_id} ({'; '.join(errors)}), final retry "
                     f"in {self.final_retry_delay}s")
        time.sleep(self.final_retry_delay)
        try:
            return self._fetch(api, video_id, None)
        except Exception as e:
            raise ProviderError(f"{'; '.join(errors)}; final retry: {type(e).__name__}: {e}") from e


# =============================================================================
# CASCADE
# =============================================================================

class TranscriptCascade:
    """Ordered transcript strategies, short-circuiting on the first usable result."""

    def __init__(self, strategies: List[TranscriptStrategy], min_length: int = 50,
                 strategy_timeout: float = 60.0):
        self.strategies = strategies
        self.min_length = min_length
        self.strategy_timeout = strategy_timeout

    @classmethod
    def from_config(cls, transcript_config: TranscriptConfig, media_config: MediaConfig) -> "TranscriptCascade":
        registry: Dict[str, Callable[[], TranscriptStrategy]] = {
            "page": lambda: PageCaptionStrategy(),
            "ytdlp": lambda: YtDlpSubtitleStrategy(
                media_config.work_dir,
                min_length=transcript_config.min_length,
                cookies_file=media_config.ytdlp_cookies_file,
            ),
            "innertube": lambda: InnertubeTranscriptStrategy(),
            "transcript_api": lambda: TranscriptApiStrategy(
                transcript_config.language_hints,
                final_retry_delay=transcript_config.final_retry_delay,
            ),
        }
        strategies = []
        for name in transcript_config.strategies:
            if name not in registry:
                logger.warning(f"Ignoring unknown transcript strategy '{name}'")
                continue
            strategies.append(registry[name]())
        return cls(strategies, transcript_config.min_length, transcript_config.strategy_timeout)

    async def _attempt(self, strategy: TranscriptStrategy, video_id: str) -> str:
        text = await asyncio.wait_for(
            asyncio.to_thread(strategy.extract, video_id),
            timeout=self.strategy_timeout,
        )
        return clean_text(text or "")

    async def fetch_detailed(self, video_id: str) -> Tuple[Optional[TranscriptResult], List[StrategyFailure]]:
        """Run the cascade and also return every failure seen along the way."""
        failures: List[StrategyFailure] = []
        for strategy in self.strategies:
            logger.info(f"Transcript strategy '{strategy.name}' for {video_id}")
            try:
                text = await self._attempt(strategy, video_id)
            except asyncio.TimeoutError:
                failures.append(StrategyFailure(strategy.name, f"timed out after {self.strategy_timeout}s"))
            except Exception as e:
                failures.append(StrategyFailure(strategy.name, str(e) or type(e).__name__))
            else:
                if len(text) > self.min_length:
                    logger.info(f"Transcript for {video_id} from '{strategy.name}' ({len(text)} chars)")
                    return TranscriptResult(text=text, source=strategy.name, attempts=failures), failures
                failures.append(StrategyFailure(strategy.name, f"transcript too short ({len(text)} chars)"))

            logger.warning(f"Transcript strategy failed for {video_id}: {failures[-1]}")

        logger.error(f"No transcript for {video_id} after {len(failures)} strategies")
        return None, failures

    async def fetch(self, video_id: str) -> Optional[TranscriptResult]:
        """
        Get a transcript for ``video_id``.

        Returns:
            TranscriptResult, or None when every strategy failed. Expected
            "no captions" conditions never raise.
        """
        result, _ = await self.fetch_detailed(video_id)
        return result
