"""Conversion of caption documents (timed-text XML, json3, WebVTT, SRT) to plain text."""

import html
import json
import re
from typing import Any, Dict, List

_TEXT_TAG = re.compile(r'<text\b[^>]*>(.*?)</text>', re.S)
_S_TAG = re.compile(r'<s\b[^>]*>(.*?)</s>', re.S)
_ANY_TAG = re.compile(r'<[^>]+>')
_STYLE_BLOCK = re.compile(r'\{[^}]*\}')
_TIMESTAMP_LINE = re.compile(
    r'^\s*(?:\d{1,2}:)?\d{1,2}:\d{2}[.,]\d{1,3}\s*-->\s*(?:\d{1,2}:)?\d{1,2}:\d{2}[.,]\d{1,3}.*$'
)
_CUE_NUMBER = re.compile(r'^\s*\d+\s*$')
_VTT_HEADER_KEYS = ('WEBVTT', 'Kind:', 'Language:', 'NOTE', 'STYLE', 'REGION')


def clean_text(t: str) -> str:
    t = t.replace("\u200b", "")
    t = re.sub(r"\s+", " ", t)
    return t.strip()


def _decode_fragment(fragment: str) -> str:
    # Entities may be double-escaped (&amp;#39;), so unescape before and after stripping tags
    text = html.unescape(fragment)
    text = _ANY_TAG.sub('', text)
    return html.unescape(text)


def timedtext_xml_to_text(document: str) -> str:
    """
    Flatten a timed-text XML document to plain text.

    ``<text>`` elements (format 1) are preferred; ``<s>`` word elements
    (format 3) are used when no ``<text>`` element is present.
    """
    fragments = _TEXT_TAG.findall(document)
    if not fragments:
        fragments = _S_TAG.findall(document)
    return clean_text(' '.join(_decode_fragment(f) for f in fragments))


def event_text(ev: Dict[str, Any]) -> str:
    segs = ev.get("segs") or []
    return clean_text("".join(seg.get("utf8", "") for seg in segs))


def json3_to_text(document: str) -> str:
    """Flatten a json3 timed-text document to plain text."""
    data = json.loads(document.lstrip(")]}'\n\r\t "))
    events: List[Dict[str, Any]] = data.get("events") or []
    return clean_text(' '.join(t for t in (event_text(ev) for ev in events) if t))


def timedtext_to_text(document: str) -> str:
    """Dispatch on the document shape: json3 or XML."""
    if not document:
        return ""
    stripped = document.lstrip(")]}'\n\r\t ")
    if stripped.startswith('{'):
        return json3_to_text(stripped)
    return timedtext_xml_to_text(document)


def subtitle_to_text(content: str) -> str:
    """
    Convert WebVTT or SRT content to plain text.

    Headers, cue numbers, timestamp lines, inline tags and ``{style}`` blocks
    are removed. Rolling captions repeat the previous line, so consecutive
    duplicates are dropped.
    """
    lines: List[str] = []
    in_header_block = False

    for raw in content.replace('\r\n', '\n').replace('\r', '\n').split('\n'):
        line = raw.strip()
        if not line:
            in_header_block = False
            continue
        if line.startswith(_VTT_HEADER_KEYS):
            in_header_block = line.startswith(('NOTE', 'STYLE', 'REGION'))
            continue
        if in_header_block:
            continue
        if _TIMESTAMP_LINE.match(line) or _CUE_NUMBER.match(line):
            continue

        text = html.unescape(_STYLE_BLOCK.sub('', _ANY_TAG.sub('', line))).strip()
        if text and (not lines or lines[-1] != text):
            lines.append(text)

    return clean_text(' '.join(lines))
