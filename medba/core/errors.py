from typing import Dict, Optional


class MedbaError(Exception):
    """
    Base class for every error the API reports to a client.

    Each subclass fixes an HTTP status and the i18n key of its user-facing
    message. The message is rendered in the caller's locale by the exception
    handler registered in ``medba.main``.
    """
    status_code: int = 500
    message_key: str = "error.internal"

    def __init__(
        self,
        detail: Optional[str] = None,
        *,
        message_key: Optional[str] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        **params
    ):
        if message_key is not None:
            self.message_key = message_key
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail
        self.headers = headers or {}
        self.params = params
        super().__init__(detail or self.message_key)

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidInput(MedbaError):
    status_code = 400
    message_key = "error.invalid_url"


class VideoUnavailable(MedbaError):
    status_code = 404
    message_key = "error.video_unavailable"


class VideoPrivate(MedbaError):
    status_code = 403
    message_key = "error.video_private"


class AgeRestricted(MedbaError):
    status_code = 403
    message_key = "error.age_restricted"


class RegionBlocked(MedbaError):
    status_code = 403
    message_key = "error.region_blocked"


class QualityUnavailable(MedbaError):
    status_code = 400
    message_key = "error.quality_unavailable"


class UpstreamRateLimited(MedbaError):
    status_code = 503
    message_key = "error.upstream_rate_limited"


class UpstreamNetworkError(MedbaError):
    status_code = 502
    message_key = "error.network"


class DownloadForbidden(MedbaError):
    status_code = 403
    message_key = "error.download_forbidden"


class ProcessingFailed(MedbaError):
    status_code = 500
    message_key = "error.processing_failed"


class MetadataUnreadable(MedbaError):
    status_code = 500
    message_key = "error.metadata_unreadable"


class NoQualitiesFound(MedbaError):
    status_code = 404
    message_key = "error.no_qualities"


class ThumbnailUnavailable(MedbaError):
    status_code = 404
    message_key = "error.thumbnail_unavailable"


class ServiceUnavailable(MedbaError):
    status_code = 503
    message_key = "error.service_unavailable"

    def __init__(self, detail: Optional[str] = None, *, timed_out: bool = False, **kwargs):
        super().__init__(detail, **kwargs)
        self.timed_out = timed_out
        if timed_out and "status_code" not in kwargs:
            self.status_code = 504


class FilePreparationFailed(MedbaError):
    status_code = 500
    message_key = "error.file_preparation_failed"


class StreamInterrupted(MedbaError):
    """Raised once response headers are out; the server drops the connection."""
    status_code = 500
    message_key = "error.stream_interrupted"


class RateLimited(MedbaError):
    status_code = 429
    message_key = "error.rate_limit"

    def __init__(self, retry_after: int, **kwargs):
        super().__init__(headers={"Retry-After": str(retry_after)}, seconds=retry_after, **kwargs)
        self.retry_after = retry_after


class Internal(MedbaError):
    status_code = 500
    message_key = "error.internal"
