from typing import Optional

from pydantic import BaseModel, Field

from medba.config.settings import config
from medba.core.errors import InvalidInput
from medba.core.security import SecurityValidator, UrlValidationResult, normalize_input
from medba.models.internal import MediaKind


class FormatsRequest(BaseModel):
    url: str = Field("", description="Video URL")


class MediaRequest(BaseModel):
    """Validated input of one API call (separated from HTTP concerns)"""
    url: str
    kind: MediaKind
    format_id: Optional[str] = None
    has_audio: bool = False
    title: str = ""

    @classmethod
    def build(
        cls,
        kind: MediaKind,
        url: Optional[str],
        format_id: Optional[str] = None,
        has_audio: Optional[str] = None,
        title: Optional[str] = None,
    ) -> "MediaRequest":
        """Validate raw parameters, raising InvalidInput before any work starts"""
        normalized_url = normalize_input(url)
        if SecurityValidator.validate_url(normalized_url) is not UrlValidationResult.OK:
            raise InvalidInput("URL rejected", message_key="error.invalid_url")

        if kind is MediaKind.VIDEO and not SecurityValidator.is_safe_format_id(format_id):
            raise InvalidInput("Format id rejected", message_key="error.invalid_format_id")

        return cls(
            url=normalized_url,
            kind=kind,
            format_id=format_id if kind is MediaKind.VIDEO else None,
            has_audio=str(has_audio).strip().lower() == "true",
            title=normalize_input(title)[:config.security.max_title_length],
        )
