"""Shared ``requests`` session construction for YouTube and provider calls."""

import random
import time

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

YOUTUBE = "https://www.youtube.com"
UA_POOL = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_3_1) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124 Safari/537.36",
]


def new_session(youtube: bool = True, retries: int = 3) -> requests.Session:
    """
    Build a session with retry/backoff on transient statuses.

    Args:
        youtube: Add browser headers and consent cookies for youtube.com
        retries: Total retry budget per request
    """
    s = requests.Session()
    retry = Retry(total=retries, connect=retries, read=retries, backoff_factor=0.8,
                  status_forcelist=[429, 500, 502, 503, 504],
                  allowed_methods=["HEAD", "GET", "POST", "OPTIONS"],
                  raise_on_status=False)
    s.mount("https://", HTTPAdapter(max_retries=retry))
    s.mount("http://", HTTPAdapter(max_retries=retry))
    s.headers.update({
        "User-Agent": random.choice(UA_POOL),
        "Accept": "*/*",
        "Accept-Language": "en-US,en;q=0.8",
    })
    if youtube:
        s.headers.update({"Origin": YOUTUBE, "Referer": f"{YOUTUBE}/"})
        s.cookies.set("CONSENT", "YES+1", domain=".youtube.com")
        s.cookies.set("PREF", "hl=en", domain=".youtube.com")
    return s


def jitter_sleep(base_seconds: float) -> None:
    time.sleep(base_seconds * (0.75 + random.random() * 0.5))
