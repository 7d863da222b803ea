import pytest

from medba.core.errors import InvalidInput
from medba.core.security import SecurityValidator, UrlValidationResult
from medba.models.internal import MediaKind
from medba.models.request import MediaRequest
from medba.utils.filename import build_content_disposition, build_download_name, sanitize_filename
from medba.utils.locale import get_locale, safe_url_for_log


@pytest.mark.parametrize("url", [
    "https://www.youtube.com/watch?v=abc",
    "https://youtube.com/watch?v=abc",
    "http://m.youtube.com/watch?v=abc",
    "https://youtu.be/abc",
    "https://music.youtube.com/watch?v=abc",
    "https://WWW.YOUTUBE.COM/watch?v=abc",
])
def test_allowed_urls(url):
    assert SecurityValidator.validate_url(url) is UrlValidationResult.OK


@pytest.mark.parametrize("url", [
    "https://evil.example/watch?v=abc",
    "https://youtube.com.evil.example/",
    "https://127.0.0.1/",
])
def test_blocked_hosts(url):
    assert SecurityValidator.validate_url(url) is UrlValidationResult.BLOCKED


@pytest.mark.parametrize("url", [
    "",
    "youtube.com/watch?v=abc",
    "ftp://youtube.com/video",
    "file:///etc/passwd",
    "https://youtube.com/" + "a" * 3000,
])
def test_invalid_urls(url):
    assert SecurityValidator.validate_url(url) is UrlValidationResult.INVALID


@pytest.mark.parametrize("value, expected", [
    ("22", True),
    ("137+140", True),
    ("hls-720p/best", True),
    ("", False),
    ("22;rm -rf /", False),
    ("a b", False),
    ("137\n", False),
    ("x" * 65, False),
    (None, False),
])
def test_format_id_safety(value, expected):
    assert SecurityValidator.is_safe_format_id(value) is expected


def test_media_request_normalizes_fields():
    media_request = MediaRequest.build(
        MediaKind.VIDEO,
        "  https://youtu.be/abc  ",
        format_id="22",
        has_audio="TRUE",
        title="  " + "t" * 300,
    )
    assert media_request.url == "https://youtu.be/abc"
    assert media_request.has_audio is True
    assert len(media_request.title) == 180


def test_media_request_has_audio_defaults_false():
    media_request = MediaRequest.build(MediaKind.VIDEO, "https://youtu.be/abc", "22", "yes")
    assert media_request.has_audio is False


def test_media_request_rejects_bad_url():
    with pytest.raises(InvalidInput) as exc_info:
        MediaRequest.build(MediaKind.AUDIO, "https://evil.example/x")
    assert exc_info.value.message_key == "error.invalid_url"
    assert exc_info.value.status_code == 400


def test_media_request_rejects_bad_format_id_for_video_only():
    with pytest.raises(InvalidInput) as exc_info:
        MediaRequest.build(MediaKind.VIDEO, "https://youtu.be/abc", format_id="$(id)")
    assert exc_info.value.message_key == "error.invalid_format_id"

    media_request = MediaRequest.build(MediaKind.AUDIO, "https://youtu.be/abc", format_id="$(id)")
    assert media_request.format_id is None


@pytest.mark.parametrize("name, expected", [
    ('a<b>c:"d"/e\\f|g?h*i', "a b c d e f g h i"),
    ("  lots   of \t space  ", "lots of space"),
    ("CON", "_CON"),
    ("ｆｕｌｌ", "full"),
    (None, ""),
])
def test_sanitize_filename(name, expected):
    assert sanitize_filename(name) == expected


def test_download_name_keeps_extension():
    name = build_download_name("x" * 500, "mp4", "video")
    assert name.endswith(".mp4")
    assert len(name) == 124
    assert build_download_name("///", "mp3", "audio") == "audio.mp3"


def test_content_disposition_non_ascii():
    header = build_content_disposition("日本語 café.mp4")
    assert header == (
        "attachment; filename=\"cafe.mp4\"; "
        "filename*=UTF-8''%E6%97%A5%E6%9C%AC%E8%AA%9E%20caf%C3%A9.mp4"
    )


def test_content_disposition_default_name():
    assert build_content_disposition("") == (
        "attachment; filename=\"download.file\"; filename*=UTF-8''download.file"
    )


@pytest.mark.parametrize("header, expected", [
    ("ja-JP,ja;q=0.9,en;q=0.8", "ja"),
    ("fr-FR,en;q=0.5", "en"),
    ("de", "en"),
    (None, "en"),
])
def test_get_locale(header, expected):
    assert get_locale(header) == expected


def test_safe_url_for_log_hides_query():
    assert safe_url_for_log("https://youtu.be/abc?t=10&token=x") == "https://youtu.be/abc?..."
    assert safe_url_for_log("https://youtu.be/abc") == "https://youtu.be/abc"
