"""
Translate yt-dlp failure output into the API's error taxonomy.

yt-dlp reports failures as free text. The rules below are matched in order
against the cleaned, lowercased error line; the first match wins. Matching is
best-effort: anything the table does not recognise becomes
``ProcessingFailed`` rather than a guess.
"""
import re
from typing import Optional, Sequence, Tuple, Type

from medba.core.errors import (
    AgeRestricted,
    DownloadForbidden,
    MedbaError,
    ProcessingFailed,
    QualityUnavailable,
    RegionBlocked,
    UpstreamNetworkError,
    UpstreamRateLimited,
    VideoPrivate,
    VideoUnavailable,
)

ERROR_RULES: Sequence[Tuple[Tuple[str, ...], Type[MedbaError]]] = (
    (("video unavailable",), VideoUnavailable),
    (("private video",), VideoPrivate),
    (("age-restricted", "confirm your age"), AgeRestricted),
    (("not available in your country", "geo-restricted"), RegionBlocked),
    (("requested format is not available",), QualityUnavailable),
    (("too many requests", "http error 429"), UpstreamRateLimited),
    (("timed out", "network", "connection"), UpstreamNetworkError),
    (("copyright", "unavailable", "forbidden"), DownloadForbidden),
)

_ERROR_PREFIX = re.compile(r"^ERROR:\s*", re.IGNORECASE)
_EXTRACTOR_TAG = re.compile(r"^\[[^\]]+\]\s*")
_VIDEO_ID = re.compile(r"^[A-Za-z0-9_-]{6,}:\s*")
_UNABLE_TO_DOWNLOAD = re.compile(r"^Unable to download [^:]+:\s*", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def extract_error_line(output: Optional[str]) -> str:
    """Last line starting with ``ERROR:``, else the last non-empty line"""
    lines = [line.strip() for line in (output or "").splitlines()]
    lines = [line for line in lines if line]

    for line in reversed(lines):
        if _ERROR_PREFIX.match(line):
            return line

    return lines[-1] if lines else ""


def clean_error_line(line: str) -> str:
    cleaned = _ERROR_PREFIX.sub("", line)
    cleaned = _EXTRACTOR_TAG.sub("", cleaned)
    cleaned = _VIDEO_ID.sub("", cleaned)
    cleaned = _UNABLE_TO_DOWNLOAD.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def classify_error_text(text: str) -> Type[MedbaError]:
    normalized = text.lower()
    if not normalized:
        return VideoUnavailable

    for needles, error_class in ERROR_RULES:
        if any(needle in normalized for needle in needles):
            return error_class

    return ProcessingFailed


def classify_fetcher_failure(stderr: str, stdout: str = "") -> MedbaError:
    """Build the typed error for a yt-dlp run that exited non-zero"""
    line = clean_error_line(extract_error_line(stderr or stdout))
    error_class = classify_error_text(line)
    return error_class(line or None)
