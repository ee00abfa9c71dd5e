"""Core transcoding engine - pure business logic.

No UI dependencies, no CLI concerns. Encodes downloaded podcast audio to
the MP3 settings the hosting platform expects.
"""

import subprocess
from pathlib import Path
from typing import Optional

from ..domain.models import ConversionOptions, ConversionResult
from ..errors import AudioError
from ..logging import get_logger

logger = get_logger(__name__)

MP3_ENCODER = "libmp3lame"


class TranscodeError(AudioError):
    """Raised when transcoding fails."""

    pass


class TranscodeEngine:
    """Pure transcoding logic with no UI dependencies.

    Implements the ``AudioConverter`` protocol.
    """

    def __init__(self, ffmpeg_bin: str = "ffmpeg"):
        """Initialize transcoding engine.

        Args:
            ffmpeg_bin: ffmpeg executable name or path
        """
        self.ffmpeg_bin = ffmpeg_bin
        self._encoder_checked = False

    def convert(
        self, input_path: Path, options: Optional[ConversionOptions] = None
    ) -> ConversionResult:
        """Convert audio to MP3, passing MP3 input through untouched.

        Args:
            input_path: Downloaded audio (WAV, M4A or MP3)
            options: Encoder settings; output defaults next to the input

        Returns:
            ConversionResult with output path and byte sizes

        Raises:
            FileNotFoundError: If the input file doesn't exist
            TranscodeError: If ffmpeg is missing or the encode fails
        """
        input_path = Path(input_path)
        options = options or ConversionOptions()

        if not input_path.exists():
            raise FileNotFoundError(f"Source audio file not found: {input_path}")

        original_size = input_path.stat().st_size

        if input_path.suffix.lower() == ".mp3":
            logger.info("Audio already MP3, skipping conversion", path=str(input_path))
            return ConversionResult(
                output_path=input_path,
                original_size=original_size,
                converted_size=original_size,
            )

        self._ensure_encoder()

        output = options.output_path or input_path.with_suffix(".mp3")
        output.parent.mkdir(parents=True, exist_ok=True)

        logger.info(
            "Starting MP3 conversion",
            source=str(input_path),
            output=str(output),
            bitrate=options.bitrate,
        )
        try:
            self._run_ffmpeg(
                [
                    "-y",
                    "-i",
                    str(input_path),
                    "-vn",  # No video
                    "-codec:a",
                    MP3_ENCODER,
                    "-b:a",
                    options.bitrate,
                    "-q:a",
                    str(options.quality),
                    "-ar",
                    str(options.sample_rate),
                    "-ac",
                    str(options.channels),
                    "-f",
                    "mp3",
                    str(output),
                ]
            )
        except subprocess.CalledProcessError as e:
            raise TranscodeError(f"MP3 transcoding failed: {e.stderr}")

        result = ConversionResult(
            output_path=output,
            original_size=original_size,
            converted_size=output.stat().st_size,
        )
        logger.info(
            "Conversion completed",
            original_size=result.original_size,
            converted_size=result.converted_size,
        )
        return result

    def _ensure_encoder(self) -> None:
        """Check once that ffmpeg exists and was built with libmp3lame.

        Raises:
            TranscodeError: If ffmpeg or the encoder is unavailable
        """
        if self._encoder_checked:
            return
        try:
            result = subprocess.run(
                [self.ffmpeg_bin, "-hide_banner", "-encoders"],
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError:
            raise TranscodeError("ffmpeg not found. Please install ffmpeg on your system.")
        except subprocess.CalledProcessError as e:
            raise TranscodeError(f"Failed to list ffmpeg encoders: {e.stderr}")

        if MP3_ENCODER not in result.stdout:
            raise TranscodeError(
                f"{MP3_ENCODER} encoder not found. Please install ffmpeg with {MP3_ENCODER} support."
            )
        self._encoder_checked = True

    def _run_ffmpeg(self, args: list[str]) -> None:
        """Run ffmpeg command with error handling.

        Raises:
            subprocess.CalledProcessError: If ffmpeg fails
        """
        subprocess.run(
            [self.ffmpeg_bin, "-hide_banner", "-loglevel", "error"] + args,
            capture_output=True,
            text=True,
            check=True,  # Raise on non-zero exit
        )
