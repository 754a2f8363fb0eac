"""Shared error codes, user-facing messages and pipeline exceptions."""

from __future__ import annotations

NO_INPUT_DEVICE = "NO_INPUT_DEVICE"
EMPTY_CAPTURE = "EMPTY_CAPTURE"
STREAM_ERROR = "STREAM_ERROR"
MISSING_CREDENTIAL = "MISSING_CREDENTIAL"
REMOTE_TRANSCRIPTION_ERROR = "REMOTE_TRANSCRIPTION_ERROR"
LOCAL_MODEL_UNAVAILABLE = "LOCAL_MODEL_UNAVAILABLE"
INJECTION_ERROR = "INJECTION_ERROR"
PIPELINE_ERROR = "PIPELINE_ERROR"
BUSY = "BUSY"

ERROR_MESSAGES = {
    NO_INPUT_DEVICE: "No microphone found.",
    EMPTY_CAPTURE: "No audio was captured.",
    STREAM_ERROR: "The audio device reported an error.",
    MISSING_CREDENTIAL: "API key is not configured.",
    REMOTE_TRANSCRIPTION_ERROR: "Transcription service returned an error.",
    LOCAL_MODEL_UNAVAILABLE: "Local speech model is unavailable.",
    INJECTION_ERROR: "Could not type the transcript.",
    PIPELINE_ERROR: "Unexpected dictation failure.",
    BUSY: "Dictation already in progress.",
}


class DictationError(Exception):
    code = PIPELINE_ERROR

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES[self.code])
        self.message = message or ERROR_MESSAGES[self.code]


class NoInputDevice(DictationError):
    code = NO_INPUT_DEVICE


class EmptyCapture(DictationError):
    code = EMPTY_CAPTURE


class StreamError(DictationError):
    code = STREAM_ERROR


class MissingCredential(DictationError):
    code = MISSING_CREDENTIAL


class RemoteTranscriptionError(DictationError):
    code = REMOTE_TRANSCRIPTION_ERROR

    def __init__(self, status: int, detail: str = "") -> None:
        self.status = status
        self.detail = detail
        super().__init__(f"HTTP {status}: {detail}" if status else detail)


class LocalModelUnavailable(DictationError):
    code = LOCAL_MODEL_UNAVAILABLE


class InjectionError(DictationError):
    code = INJECTION_ERROR
