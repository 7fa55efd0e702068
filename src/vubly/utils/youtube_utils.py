"""YouTube URL parsing helpers."""

import re
from typing import Optional
from urllib.parse import urlparse, parse_qs

_HOST_PATTERN = re.compile(r'^(?:www\.|m\.|music\.)?(?:youtube\.com|youtube-nocookie\.com|youtu\.be)$')

# Path forms that carry the identifier as the next path segment
_PATH_PATTERNS = [
    re.compile(r'^/(?:embed|v|shorts|live)/([^/?#&\n]+)'),
]

_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{6,}$')


def extract_video_id(url: str) -> Optional[str]:
    """
    Extract the video identifier from a YouTube URL.

    Recognizes watch URLs (``/watch?v=``), short links (``youtu.be/``),
    and the ``/embed/``, ``/v/``, ``/shorts/`` and ``/live/`` paths.

    Args:
        url: YouTube URL

    Returns:
        Video ID if found, None otherwise
    """
    if not url or not isinstance(url, str):
        return None

    candidate = url.strip()
    if '://' not in candidate:
        candidate = f"https://{candidate}"

    parsed = urlparse(candidate)
    host = (parsed.netloc or '').lower().split(':')[0]
    if not _HOST_PATTERN.match(host):
        return None

    video_id = None
    if host.endswith('youtu.be'):
        video_id = parsed.path.strip('/').split('/')[0]
    elif parsed.path.rstrip('/') == '/watch':
        values = parse_qs(parsed.query).get('v')
        video_id = values[0] if values else None
    else:
        for pattern in _PATH_PATTERNS:
            match = pattern.match(parsed.path)
            if match:
                video_id = match.group(1)
                break

    if video_id and _ID_PATTERN.match(video_id):
        return video_id
    return None


def validate_youtube_url(url: str) -> bool:
    """Return True when ``url`` resolves to a video identifier."""
    return extract_video_id(url) is not None


def normalize_youtube_url(url: str) -> Optional[str]:
    """
    Normalize YouTube URL to standard format.

    Args:
        url: YouTube URL

    Returns:
        Normalized URL if valid, None otherwise
    """
    video_id = extract_video_id(url)
    if not video_id:
        return None

    return f"https://www.youtube.com/watch?v={video_id}"


def thumbnail_url(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg"
