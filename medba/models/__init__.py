from .internal import MEDIA_PROFILES, MediaKind, MediaMetadata, ThumbnailInfo, VideoPreview
from .request import FormatsRequest, MediaRequest
from .response import ChannelInfo, ErrorResponse, FormatsResponse, QualityOption

__all__ = [
    "ChannelInfo",
    "ErrorResponse",
    "FormatsRequest",
    "FormatsResponse",
    "MEDIA_PROFILES",
    "MediaKind",
    "MediaMetadata",
    "MediaRequest",
    "QualityOption",
    "ThumbnailInfo",
    "VideoPreview",
]
