"""
Audio handling: upload storage, ffmpeg transcoding and temp-file cleanup
"""

import asyncio
import os
import subprocess
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple, Dict, Any
from mutagen import File as MutagenFile
from doctor_voice.config import settings
from doctor_voice.core.exceptions import AudioValidationError, TranscodingError
from doctor_voice.core.logging import get_logger

logger = get_logger(__name__)

# Only the tail of ffmpeg's stderr is kept for the logs
STDERR_TAIL_CHARS = 2000


@dataclass(frozen=True)
class TempAudioFiles:
    """Paths of the two files a single request may leave on disk."""
    original: Path
    converted: Path


class AudioProcessor:
    """Stores uploads and converts them to mono 16 kHz PCM WAV"""

    def __init__(
        self,
        upload_dir: Optional[str] = None,
        ffmpeg_binary: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.upload_dir = Path(upload_dir or settings.upload_dir)
        self.ffmpeg_binary = ffmpeg_binary or settings.ffmpeg_binary
        self.timeout = timeout or settings.ffmpeg_timeout
        self.sample_rate = settings.target_sample_rate
        self.channels = settings.target_channels
        self.max_bytes = settings.max_file_size_mb * 1024 * 1024

    @contextmanager
    def temp_audio_files(self) -> Iterator[TempAudioFiles]:
        """
        Reserves a unique upload path and its sibling WAV path.
        Whatever exists of the two is removed when the block exits,
        whether it returns or raises.
        """
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        original = self.upload_dir / uuid.uuid4().hex
        files = TempAudioFiles(original=original, converted=Path(f"{original}.wav"))
        try:
            yield files
        finally:
            self.cleanup(files.original)
            self.cleanup(files.converted)

    def cleanup(self, file_path: Optional[Path]) -> None:
        """Safely delete a temporary file. Errors are logged, never raised."""
        if file_path and os.path.exists(file_path):
            try:
                os.unlink(file_path)
                logger.info(f"Cleaned up temporary file: {file_path}")
            except OSError as e:
                logger.error("cleanup_failed", file_path=str(file_path), error=str(e))

    async def save_upload(self, audio_data: bytes, destination: Path) -> int:
        """Writes the uploaded bytes to destination and returns their size."""
        if len(audio_data) > self.max_bytes:
            raise AudioValidationError(
                f"Upload of {len(audio_data)} bytes exceeds the {settings.max_file_size_mb} MB limit"
            )

        await asyncio.to_thread(Path(destination).write_bytes, audio_data)
        logger.info(f"Received {len(audio_data)} bytes of audio data, saved to {destination}")
        return len(audio_data)

    def build_command(self, input_path: Path, output_path: Path) -> list:
        return [
            self.ffmpeg_binary,
            "-y",
            "-v",
            "error",
            "-i",
            str(input_path),
            "-ac",
            str(self.channels),
            "-ar",
            str(self.sample_rate),
            "-acodec",
            "pcm_s16le",
            "-f",
            "wav",
            str(output_path),
        ]

    async def convert_to_wav(self, input_path: Path, output_path: Path) -> Dict[str, Any]:
        """
        Converts any decodable audio file to a mono 16 kHz PCM WAV file.
        Returns the metadata of the converted file.
        Raises TranscodingError when ffmpeg fails, is missing or times out.
        """
        cmd = self.build_command(input_path, output_path)

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                check=False,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise TranscodingError(f"ffmpeg timed out after {self.timeout} seconds", cause=e)
        except FileNotFoundError as e:
            raise TranscodingError(f"ffmpeg binary '{self.ffmpeg_binary}' not found in PATH", cause=e)
        except OSError as e:
            raise TranscodingError(f"ffmpeg execution failed: {e}", cause=e)

        if result.returncode != 0:
            stderr = (result.stderr or b"").decode("utf-8", errors="replace")[-STDERR_TAIL_CHARS:]
            raise TranscodingError(
                f"ffmpeg exited with code {result.returncode}",
                stderr=stderr,
            )

        if not os.path.exists(output_path):
            raise TranscodingError("ffmpeg reported success but produced no output file")

        size = os.path.getsize(output_path)
        duration, metadata = self._extract_metadata(output_path)
        metadata["size_bytes"] = size
        logger.info("audio_converted", size_bytes=size, duration_seconds=duration)
        return metadata

    def _extract_metadata(self, file_path: Path) -> Tuple[float, Dict[str, Any]]:
        """Extracts duration and other metadata using mutagen."""
        try:
            audio = MutagenFile(str(file_path))
            if audio is None:
                raise ValueError("Could not load audio file with mutagen.")

            duration = audio.info.length if hasattr(audio.info, 'length') else 0.0

            metadata = {
                "duration_seconds": float(duration),
                "sample_rate": getattr(audio.info, 'sample_rate', None),
                "channels": getattr(audio.info, 'channels', None),
            }
            return float(duration), metadata
        except Exception as e:
            logger.warning(f"Could not extract metadata using mutagen: {e}")
            return 0.0, {"duration_seconds": 0.0}
