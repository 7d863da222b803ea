from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from medba.models.response import QualityOption


class MediaKind(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    THUMBNAIL = "thumbnail"
    FORMATS = "formats"


class MediaMetadata(BaseModel):
    """How a rendition kind is named and labelled on the wire"""
    ext: str
    media_type: str
    fallback_name: str


MEDIA_PROFILES = {
    MediaKind.VIDEO: MediaMetadata(ext="mp4", media_type="video/mp4", fallback_name="video"),
    MediaKind.AUDIO: MediaMetadata(ext="mp3", media_type="audio/mpeg", fallback_name="audio"),
    MediaKind.THUMBNAIL: MediaMetadata(ext="jpg", media_type="image/jpeg", fallback_name="thumbnail"),
}


class ThumbnailInfo(BaseModel):
    url: str
    ext: str = ""


class VideoPreview(BaseModel):
    """Everything the resolver derives from one metadata dump"""
    title: str
    duration: Optional[int] = None
    thumbnail: Optional[ThumbnailInfo] = None
    channel_name: str = ""
    qualities: List[QualityOption] = []
