"""
Video URL obfuscation.

Hides YouTube/Vimeo ids from casual inspection of lesson payloads. This is
XOR + base64 with a fixed key, not encryption.
"""
import base64
import binascii
import re
from typing import Optional

OBFUSCATION_KEY = "V1r4l4c4d3my"
PREFIX = "vob_"

_YOUTUBE_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"^([a-zA-Z0-9_-]{11})$"),
)
_VIMEO_PATTERN = re.compile(r"(?:vimeo\.com/|player\.vimeo\.com/video/)(\d+)")


def _xor(value: str) -> str:
    key_len = len(OBFUSCATION_KEY)
    return "".join(chr(ord(ch) ^ ord(OBFUSCATION_KEY[i % key_len])) for i, ch in enumerate(value))


def obfuscate_video_id(video_id: str) -> str:
    if not video_id:
        return ""
    encoded = base64.b64encode(_xor(video_id).encode("utf-8")).decode("ascii")
    return PREFIX + encoded


def deobfuscate_video_id(value: str) -> str:
    """Inverse of obfuscate_video_id; anything else comes back unchanged."""
    if not value:
        return ""
    if not value.startswith(PREFIX):
        return value
    try:
        decoded = base64.b64decode(value[len(PREFIX):], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return value
    return _xor(decoded)


def obfuscate_video_url(url: str) -> str:
    """Replace the video id inside a YouTube or Vimeo URL (or a bare YouTube id)."""
    if not url:
        return ""
    for pattern in _YOUTUBE_PATTERNS:
        match = pattern.search(url)
        if match:
            video_id = match.group(1)
            return url.replace(video_id, obfuscate_video_id(video_id), 1)

    match = _VIMEO_PATTERN.search(url)
    if match:
        video_id = match.group(1)
        return url.replace(video_id, obfuscate_video_id(video_id), 1)

    return url


def obfuscate_for_client(video_url: Optional[str]) -> Optional[str]:
    if not video_url:
        return None
    return obfuscate_video_url(video_url)
