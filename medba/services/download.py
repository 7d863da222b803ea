from fastapi import Request

from medba.core.errors import MedbaError
from medba.core.logging import log_debug, log_info, log_warning
from medba.infra.tempfiles import TemporaryMediaFile
from medba.models.internal import MEDIA_PROFILES, MediaKind
from medba.models.request import MediaRequest
from medba.services.delivery import CleanupStreamingResponse, FileDelivery
from medba.services.ytdlp import FetcherAdapter, YTDLPCommandBuilder
from medba.utils.filename import build_download_name, sanitize_filename
from medba.utils.locale import safe_url_for_log


class DownloadService:
    """Video/audio download to a temporary file, then streamed"""

    @staticmethod
    async def fetch_title(url: str, fetcher: FetcherAdapter) -> str:
        result = await fetcher.invoke(YTDLPCommandBuilder.build_title_command(url))
        for line in result.stdout.splitlines():
            if line.strip():
                return line.strip()
        return ""

    @staticmethod
    async def resolve_title(
        url: str,
        requested_title: str,
        fallback: str,
        fetcher: FetcherAdapter,
        request: Request,
    ) -> str:
        """
        Base name for the download: caller's title, else the title yt-dlp
        reports, else ``fallback``. Never fails the request.
        """
        safe_requested = sanitize_filename(requested_title)
        if safe_requested:
            return safe_requested

        try:
            fetched = sanitize_filename(await DownloadService.fetch_title(url, fetcher))
        except MedbaError as e:
            log_warning(request, f"Title lookup failed ({e.kind}), using '{fallback}'")
            return fallback

        return fetched or fallback

    @staticmethod
    def build_command(media_request: MediaRequest, media: TemporaryMediaFile):
        if media_request.kind is MediaKind.AUDIO:
            return YTDLPCommandBuilder.build_audio_command(media_request.url, media.output_template)
        return YTDLPCommandBuilder.build_video_command(
            media_request.url,
            media_request.format_id,
            media_request.has_audio,
            media.output_template,
        )

    @staticmethod
    async def download(
        media_request: MediaRequest,
        fetcher: FetcherAdapter,
        request: Request,
    ) -> CleanupStreamingResponse:
        profile = MEDIA_PROFILES[media_request.kind]
        safe_url = safe_url_for_log(media_request.url)

        base_name = await DownloadService.resolve_title(
            media_request.url, media_request.title, profile.fallback_name, fetcher, request
        )

        media = TemporaryMediaFile(media_request.kind.value, profile.ext)
        log_info(request, f"Starting {media_request.kind.value} download of {safe_url} to {media.output_template}")

        cmd = DownloadService.build_command(media_request, media)
        log_debug(request, f"yt-dlp options: {' '.join(cmd[:-1])}")

        try:
            await fetcher.invoke(cmd)
        except BaseException:
            await media.cleanup()
            raise

        return await FileDelivery.deliver(
            media,
            content_type=profile.media_type,
            download_name=build_download_name(base_name, profile.ext, profile.fallback_name),
        )
