from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QualityOption(BaseModel):
    """One selectable video rendition"""
    model_config = ConfigDict(populate_by_name=True)

    format_id: str = Field(..., alias="formatId")
    quality: str
    has_audio: bool = Field(..., alias="hasAudio")


class ChannelInfo(BaseModel):
    name: str = ""


class FormatsResponse(BaseModel):
    """Format listing response"""
    title: str
    duration: Optional[int] = None
    thumbnail: str = ""
    channel: ChannelInfo
    formats: List[QualityOption]


class ErrorResponse(BaseModel):
    error: str
