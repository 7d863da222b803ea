import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence

from medba.config.settings import config
from medba.core.errors import ServiceUnavailable
from medba.services.classify import classify_fetcher_failure

logger = logging.getLogger(__name__)

VIDEO_MERGE_FORMAT = "mp4"
AUDIO_FORMAT = "mp3"


class InvocationState(Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    LAUNCH_FAILED = "launch_failed"


@dataclass
class FetcherInvocation:
    """One yt-dlp run, owned by the executor until it returns"""
    args: List[str]
    state: InvocationState = InvocationState.RUNNING
    returncode: Optional[int] = None
    stdout: bytes = b""
    stderr: bytes = b""
    started_at: float = field(default_factory=time.monotonic)
    elapsed: float = 0.0

    @property
    def timed_out(self) -> bool:
        return self.state is InvocationState.TIMED_OUT

    def finish(self, state: InvocationState) -> None:
        self.state = state
        self.elapsed = time.monotonic() - self.started_at


class FetcherResult(NamedTuple):
    """Decoded output of a successful yt-dlp run"""
    stdout: str
    stderr: str


class SubprocessExecutor:
    """Execute subprocess with consistent error handling"""

    @staticmethod
    async def run(cmd: Sequence[str], timeout: float) -> FetcherInvocation:
        """
        Run subprocess with timeout and proper cleanup.
        The child is always reaped before this returns, whatever the state.
        """
        invocation = FetcherInvocation(args=list(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL
            )
        except OSError as e:
            logger.error(f"Could not launch {cmd[0]}: {e}")
            invocation.finish(InvocationState.LAUNCH_FAILED)
            return invocation

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            invocation.returncode = process.returncode
            invocation.finish(InvocationState.TIMED_OUT)
            return invocation
        except BaseException:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        invocation.returncode = process.returncode
        invocation.stdout = stdout
        invocation.stderr = stderr
        invocation.finish(InvocationState.COMPLETED)
        return invocation


class FetcherAdapter:
    """
    Single entry point to the yt-dlp binary.

    ``invoke`` either returns the decoded output or raises exactly one
    classified ``MedbaError``; raw process failures never leak past it.
    """

    def __init__(self, binary: Optional[str] = None, timeout: Optional[float] = None):
        self.binary = binary or config.ytdlp.binary
        self.timeout = timeout if timeout is not None else config.download.timeout_seconds

    async def invoke(self, args: Sequence[str]) -> FetcherResult:
        invocation = await SubprocessExecutor.run([self.binary, *args], timeout=self.timeout)
        logger.debug(
            f"{self.binary} finished: state={invocation.state.value} "
            f"code={invocation.returncode} elapsed={invocation.elapsed:.2f}s"
        )

        if invocation.state is InvocationState.LAUNCH_FAILED:
            raise ServiceUnavailable(f"{self.binary} could not be started")

        if invocation.timed_out:
            logger.warning(f"{self.binary} killed after {self.timeout}s timeout")
            raise ServiceUnavailable(f"{self.binary} timed out", timed_out=True)

        stdout = invocation.stdout.decode(errors="replace")
        stderr = invocation.stderr.decode(errors="replace")

        if invocation.returncode != 0:
            error = classify_fetcher_failure(stderr, stdout)
            logger.warning(f"{self.binary} exited with {invocation.returncode}: {error.kind} ({error.detail})")
            raise error

        return FetcherResult(stdout=stdout, stderr=stderr)


class YTDLPCommandBuilder:
    """Build yt-dlp argument lists (binary excluded, URL always last)"""

    @staticmethod
    def _common_args() -> List[str]:
        args = [
            '--socket-timeout', str(config.download.socket_timeout),
            '--retries', str(config.download.retries),
        ]
        if config.ytdlp.js_runtime:
            args.extend(['--js-runtimes', config.ytdlp.js_runtime])
        return args

    @staticmethod
    def build_metadata_command(url: str) -> List[str]:
        """Full JSON metadata dump, no download"""
        return [
            '-J',
            '--no-playlist',
            '--no-warnings',
            *YTDLPCommandBuilder._common_args(),
            url,
        ]

    @staticmethod
    def build_title_command(url: str) -> List[str]:
        """Print the title only"""
        return [
            '--no-playlist',
            '--no-warnings',
            '--skip-download',
            '--print', '%(title)s',
            *YTDLPCommandBuilder._common_args(),
            url,
        ]

    @staticmethod
    def video_format_selector(format_id: str, has_audio: bool) -> str:
        if has_audio:
            return f"{format_id}/best[ext=mp4]/best"
        return (
            f"{format_id}+bestaudio[ext=m4a]/{format_id}+bestaudio/"
            f"{format_id}/best[ext=mp4]/best"
        )

    @staticmethod
    def build_video_command(url: str, format_id: str, has_audio: bool, output_template: str) -> List[str]:
        """Download one video format (merged with audio when needed) into an mp4"""
        return [
            '--no-playlist',
            '--concurrent-fragments', str(config.download.concurrent_fragments),
            '-f', YTDLPCommandBuilder.video_format_selector(format_id, has_audio),
            '--merge-output-format', VIDEO_MERGE_FORMAT,
            '--remux-video', VIDEO_MERGE_FORMAT,
            '-o', output_template,
            '--no-progress',
            *YTDLPCommandBuilder._common_args(),
            url,
        ]

    @staticmethod
    def build_audio_command(url: str, output_template: str) -> List[str]:
        """Extract best audio and convert it to mp3"""
        return [
            '--no-playlist',
            '--concurrent-fragments', str(config.download.concurrent_fragments),
            '-x',
            '--audio-format', AUDIO_FORMAT,
            '--audio-quality', '0',
            '-o', output_template,
            '--no-progress',
            *YTDLPCommandBuilder._common_args(),
            url,
        ]

    @staticmethod
    def build_version_command() -> List[str]:
        return ['--version']
