import os
import re
from urllib.parse import urlparse

_EXTENSION_TYPES = {
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "avif": "image/avif",
}

_TYPE_EXTENSIONS = (
    ("image/jpeg", "jpg"),
    ("image/jpg", "jpg"),
    ("image/png", "png"),
    ("image/webp", "webp"),
    ("image/avif", "avif"),
)


def sanitize_file_extension(value) -> str:
    if not isinstance(value, str):
        return ""

    ext = re.sub(r"[^a-z0-9]", "", value.lower())
    if ext == "jpeg":
        return "jpg"
    return ext[:8]


def extension_from_url(url: str) -> str:
    try:
        path = urlparse(url).path
    except ValueError:
        return ""
    _, ext = os.path.splitext(path)
    return sanitize_file_extension(ext)


def extension_from_content_type(content_type) -> str:
    normalized = str(content_type or "").lower()
    for media_type, ext in _TYPE_EXTENSIONS:
        if media_type in normalized:
            return ext
    return ""


def content_type_from_extension(ext) -> str:
    return _EXTENSION_TYPES.get(sanitize_file_extension(ext), "")
