import json
import math
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

from medba.core.errors import MetadataUnreadable, NoQualitiesFound
from medba.models.internal import ThumbnailInfo, VideoPreview
from medba.models.response import QualityOption
from medba.utils.mime import extension_from_url, sanitize_file_extension

MAX_QUALITIES = 12
DEFAULT_TITLE = "YouTube Video"
CHANNEL_FIELDS = ("channel", "uploader", "creator", "uploader_id", "channel_id")


def _number(value: Any) -> float:
    """Numeric value of a metadata field, 0 when absent or not a number"""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _has_audio(fmt: Dict[str, Any]) -> bool:
    acodec = fmt.get("acodec")
    return bool(acodec) and acodec != "none"


def _height(fmt: Dict[str, Any]) -> Optional[int]:
    height = _number(fmt.get("height"))
    if height <= 0 or not height.is_integer():
        return None
    return int(height)


def _is_candidate(fmt: Any) -> bool:
    if not isinstance(fmt, dict):
        return False
    vcodec = fmt.get("vcodec")
    return (
        fmt.get("ext") == "mp4"
        and bool(vcodec) and vcodec != "none"
        and bool(fmt.get("format_id"))
        and _height(fmt) is not None
    )


def _rank_key(fmt: Dict[str, Any]):
    size = _number(fmt.get("filesize")) or _number(fmt.get("filesize_approx"))
    return (
        -_height(fmt),
        -int(_has_audio(fmt)),
        -_number(fmt.get("tbr")),
        -size,
    )


def normalize_http_url(value: Any) -> str:
    """Trimmed http(s) URL, protocol-relative URLs upgraded to https; '' if unusable"""
    if not isinstance(value, str) or not value.strip():
        return ""

    url = value.strip()
    if url.startswith("//"):
        url = f"https:{url}"

    try:
        parsed = urlparse(url)
    except ValueError:
        return ""

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return ""
    return url


class QualityResolver:
    """Derive the selectable renditions and preview fields from a yt-dlp JSON dump"""

    @staticmethod
    def parse(raw: Union[str, bytes]) -> Dict[str, Any]:
        try:
            metadata = json.loads(raw)
        except (TypeError, ValueError):
            raise MetadataUnreadable("Metadata dump is not valid JSON")

        if not isinstance(metadata, dict):
            raise MetadataUnreadable("Metadata dump is not a JSON object")
        return metadata

    @staticmethod
    def select_qualities(formats: Any, limit: int = MAX_QUALITIES) -> List[QualityOption]:
        """
        Best mp4 video format per height, highest first.
        Ties on height prefer streams with audio, then bitrate, then size.
        """
        candidates = [f for f in formats if _is_candidate(f)] if isinstance(formats, list) else []
        candidates.sort(key=_rank_key)

        seen_heights = set()
        qualities: List[QualityOption] = []

        for fmt in candidates:
            height = _height(fmt)
            if height in seen_heights:
                continue

            seen_heights.add(height)
            qualities.append(QualityOption(
                format_id=str(fmt["format_id"]),
                quality=f"{height}p",
                has_audio=_has_audio(fmt),
            ))

            if len(qualities) >= limit:
                break

        return qualities

    @staticmethod
    def thumbnail_score(thumbnail: Dict[str, Any]) -> float:
        return _number(thumbnail.get("width")) * _number(thumbnail.get("height")) + _number(thumbnail.get("preference"))

    @staticmethod
    def best_thumbnail(metadata: Dict[str, Any]) -> Optional[ThumbnailInfo]:
        """Largest usable thumbnail; the top-level ``thumbnail`` field is the fallback"""
        thumbnails = metadata.get("thumbnails")
        best = None
        best_score = None

        for item in thumbnails if isinstance(thumbnails, list) else []:
            if not isinstance(item, dict):
                continue
            url = normalize_http_url(item.get("url"))
            if not url:
                continue

            score = QualityResolver.thumbnail_score(item)
            if best_score is None or score > best_score:
                ext = sanitize_file_extension(item.get("ext")) or extension_from_url(url)
                best, best_score = ThumbnailInfo(url=url, ext=ext), score

        if best is not None:
            return best

        url = normalize_http_url(metadata.get("thumbnail"))
        if url:
            return ThumbnailInfo(url=url, ext=extension_from_url(url))
        return None

    @staticmethod
    def channel_name(metadata: Dict[str, Any]) -> str:
        for field_name in CHANNEL_FIELDS:
            value = metadata.get(field_name)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return ""

    @staticmethod
    def normalize_duration(value: Any) -> Optional[int]:
        seconds = _number(value)
        if seconds <= 0:
            return None
        return math.floor(seconds)

    @staticmethod
    def preview(metadata: Dict[str, Any]) -> VideoPreview:
        """Preview fields and qualities, without requiring any quality to exist"""
        title = metadata.get("title")
        return VideoPreview(
            title=title if isinstance(title, str) and title else DEFAULT_TITLE,
            duration=QualityResolver.normalize_duration(metadata.get("duration")),
            thumbnail=QualityResolver.best_thumbnail(metadata),
            channel_name=QualityResolver.channel_name(metadata),
            qualities=QualityResolver.select_qualities(metadata.get("formats")),
        )

    @staticmethod
    def resolve(raw: Union[str, bytes]) -> VideoPreview:
        preview = QualityResolver.preview(QualityResolver.parse(raw))
        if not preview.qualities:
            raise NoQualitiesFound("No mp4 video formats in metadata")
        return preview
