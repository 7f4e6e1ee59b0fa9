"""Exception hierarchy for the analysis pipeline."""


class ReelnotesError(Exception):
    pass


class FFmpegNotFoundError(ReelnotesError):
    pass


class InputNotFound(ReelnotesError):
    """Raised when the input media file does not exist."""
    pass


class ExtractionFailed(ReelnotesError):
    """ffmpeg failed to produce frames or an audio track."""

    def __init__(self, message: str, stage: str = "frames") -> None:
        super().__init__(message)
        self.stage = stage


class ModelMissing(ReelnotesError):
    """Raised when the recognizer model file is not present."""
    pass


class DownloadFailed(ReelnotesError):
    pass


class TranscriptionFailed(ReelnotesError):
    pass


class RecognizerNotFound(TranscriptionFailed):
    """No recognizer executable on the lookup paths (a configuration problem)."""
    pass


class EncodingFailed(ReelnotesError):
    """An image could not be decoded, resized or re-encoded."""

    def __init__(self, message: str, ordinal: int | None = None) -> None:
        super().__init__(message)
        self.ordinal = ordinal


class WriteFailed(ReelnotesError):
    """An output file or directory could not be written."""

    def __init__(self, message: str, ordinal: int | None = None) -> None:
        super().__init__(message)
        self.ordinal = ordinal
