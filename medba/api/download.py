from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query, Request

from medba.api.dependencies import enforce_rate_limit, get_fetcher, get_http_client
from medba.models.internal import MediaKind
from medba.models.request import MediaRequest
from medba.services.download import DownloadService
from medba.services.thumbnail import ThumbnailService
from medba.services.ytdlp import FetcherAdapter

router = APIRouter(prefix="/api/download", dependencies=[Depends(enforce_rate_limit)])


@router.get("/video")
async def download_video(
    request: Request,
    url: Optional[str] = None,
    format_id: Optional[str] = Query(None, alias="formatId"),
    has_audio: Optional[str] = Query(None, alias="hasAudio"),
    title: Optional[str] = None,
    fetcher: FetcherAdapter = Depends(get_fetcher),
):
    """Download one quality as MP4, merged with the best audio unless it already has sound"""
    media_request = MediaRequest.build(MediaKind.VIDEO, url, format_id, has_audio, title)
    return await DownloadService.download(media_request, fetcher, request)


@router.get("/mp3")
async def download_mp3(
    request: Request,
    url: Optional[str] = None,
    title: Optional[str] = None,
    fetcher: FetcherAdapter = Depends(get_fetcher),
):
    """Extract the best audio track as MP3"""
    media_request = MediaRequest.build(MediaKind.AUDIO, url, title=title)
    return await DownloadService.download(media_request, fetcher, request)


@router.get("/thumbnail")
async def download_thumbnail(
    request: Request,
    url: Optional[str] = None,
    title: Optional[str] = None,
    fetcher: FetcherAdapter = Depends(get_fetcher),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """Relay the largest thumbnail of a video"""
    media_request = MediaRequest.build(MediaKind.THUMBNAIL, url, title=title)
    return await ThumbnailService.download(media_request, fetcher, client, request)
