import re
import unicodedata
from urllib.parse import quote

MAX_BASE_NAME_LENGTH = 120
DEFAULT_DOWNLOAD_NAME = "download.file"

_HOSTILE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
_WHITESPACE = re.compile(r"\s+")
_NON_PRINTABLE_ASCII = re.compile(r"[^\x20-\x7e]")

WINDOWS_RESERVED = {
    'CON', 'PRN', 'AUX', 'NUL',
    'COM1', 'COM2', 'COM3', 'COM4', 'COM5', 'COM6', 'COM7', 'COM8', 'COM9',
    'LPT1', 'LPT2', 'LPT3', 'LPT4', 'LPT5', 'LPT6', 'LPT7', 'LPT8', 'LPT9'
}


def sanitize_filename(name, max_length: int = MAX_BASE_NAME_LENGTH) -> str:
    """Sanitize a file base name for cross-platform compatibility"""
    if not isinstance(name, str):
        return ""

    name = unicodedata.normalize("NFKC", name)
    name = _HOSTILE_CHARS.sub(" ", name)
    name = _WHITESPACE.sub(" ", name).strip()

    if name.upper() in WINDOWS_RESERVED:
        name = f"_{name}"

    return name[:max_length].strip()


def build_download_name(base_name: str, ext: str, fallback: str) -> str:
    """Join a sanitized base name and extension; the extension is never cut"""
    return f"{sanitize_filename(base_name) or fallback}.{ext}"


def encode_rfc5987(value: str) -> str:
    """Percent-encode for the filename* parameter (RFC 5987 attr-chars)"""
    return quote(value, safe="!")


def build_content_disposition(file_name: str) -> str:
    """
    attachment header with an ASCII fallback plus the UTF-8 extended
    parameter, so non-ASCII titles survive in every browser.
    """
    safe_name = sanitize_filename(file_name, max_length=MAX_BASE_NAME_LENGTH + 10) or DEFAULT_DOWNLOAD_NAME

    ascii_fallback = unicodedata.normalize("NFKD", safe_name)
    ascii_fallback = _NON_PRINTABLE_ASCII.sub("", ascii_fallback)
    ascii_fallback = re.sub(r'[;"]', "", ascii_fallback).strip() or DEFAULT_DOWNLOAD_NAME

    return f"attachment; filename=\"{ascii_fallback}\"; filename*=UTF-8''{encode_rfc5987(safe_name)}"
