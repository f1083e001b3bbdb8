"""Tests for lesson video URL obfuscation."""
from academy.features.video.obfuscation import (
    PREFIX,
    deobfuscate_video_id,
    obfuscate_for_client,
    obfuscate_video_id,
    obfuscate_video_url,
)

YOUTUBE_ID = "dQw4w9WgXcQ"


def test_video_id_round_trip():
    hidden = obfuscate_video_id(YOUTUBE_ID)
    assert hidden.startswith(PREFIX)
    assert YOUTUBE_ID not in hidden
    assert deobfuscate_video_id(hidden) == YOUTUBE_ID


def test_unprefixed_value_is_returned_unchanged():
    assert deobfuscate_video_id(YOUTUBE_ID) == YOUTUBE_ID
    assert deobfuscate_video_id("vob_***not-base64***") == "vob_***not-base64***"


def test_youtube_watch_url_hides_id():
    url = f"https://www.youtube.com/watch?v={YOUTUBE_ID}"
    hidden = obfuscate_video_url(url)
    assert hidden.startswith("https://www.youtube.com/watch?v=" + PREFIX)
    assert YOUTUBE_ID not in hidden


def test_short_and_embed_urls_hide_id():
    for url in (f"https://youtu.be/{YOUTUBE_ID}", f"https://www.youtube.com/embed/{YOUTUBE_ID}"):
        assert YOUTUBE_ID not in obfuscate_video_url(url)


def test_bare_youtube_id():
    assert obfuscate_video_url(YOUTUBE_ID) == obfuscate_video_id(YOUTUBE_ID)


def test_vimeo_url_hides_numeric_id():
    hidden = obfuscate_video_url("https://vimeo.com/76979871")
    assert hidden.startswith("https://vimeo.com/" + PREFIX)
    assert "76979871" not in hidden


def test_unknown_url_passes_through():
    url = "https://cdn.example.com/videos/intro.mp4"
    assert obfuscate_video_url(url) == url


def test_client_helper_handles_empty():
    assert obfuscate_for_client(None) is None
    assert obfuscate_for_client("") is None
