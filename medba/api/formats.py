from fastapi import APIRouter, Depends, Request

from medba.api.dependencies import enforce_rate_limit, get_fetcher
from medba.models.internal import MediaKind
from medba.models.request import FormatsRequest, MediaRequest
from medba.models.response import FormatsResponse
from medba.services.formats import VideoFormatsService
from medba.services.ytdlp import FetcherAdapter

router = APIRouter(prefix="/api", dependencies=[Depends(enforce_rate_limit)])


@router.post("/formats", response_model=FormatsResponse)
async def list_formats(
    request: Request,
    body: FormatsRequest,
    fetcher: FetcherAdapter = Depends(get_fetcher),
):
    """Title, duration, thumbnail, channel and the ranked quality list of a video"""
    media_request = MediaRequest.build(MediaKind.FORMATS, body.url)
    return await VideoFormatsService.fetch(media_request, fetcher, request)
