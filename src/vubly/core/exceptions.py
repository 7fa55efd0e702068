"""Domain exceptions raised by the acquisition, adapter and pipeline layers."""

from typing import Any, Dict, List, Optional


class VublyError(Exception):
    """Base class for all domain errors."""
    pass


class InvalidVideoURLError(VublyError):
    """The submitted URL does not contain a recognizable video identifier."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid YouTube URL: {url}")


class ProviderError(VublyError):
    """A single strategy or provider failed."""
    pass


class ProviderTimeoutError(ProviderError):
    """A provider did not finish within its allotted time or attempts."""
    pass


class TranscriptUnavailableError(VublyError):
    """No transcript could be obtained for the video."""
    pass


class MediaUnavailableError(VublyError):
    """Every media provider failed for the requested kind."""

    def __init__(self, kind: str, failures: Optional[List[Any]] = None):
        self.kind = kind
        self.failures = failures or []
        summary = "; ".join(str(f) for f in self.failures) or "no providers available"
        super().__init__(f"All {kind} providers failed: {summary}")


class TranscriptionError(VublyError):
    """Speech-to-text failed."""
    pass


class LanguageDetectionError(VublyError):
    """Language identification failed or returned an unusable answer."""
    pass


class TranslationError(VublyError):
    """Text translation failed."""
    pass


class SpeechSynthesisError(VublyError):
    """Text-to-speech failed."""
    pass


class WebhookDispatchError(VublyError):
    """The translation job could not be handed to the automation endpoint."""
    pass


class CallbackValidationError(VublyError):
    """A callback payload is missing required data."""

    def __init__(self, message: str, received: Optional[Dict[str, Any]] = None):
        self.received = received or {}
        super().__init__(message)


class SessionNotFoundError(VublyError):
    """The session does not exist or has expired."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class SessionConflictError(VublyError):
    """The requested change conflicts with the session's current state."""
    pass


class InvalidSessionStateError(VublyError):
    """A write would break a session invariant."""
    pass


class InvalidJobRequestError(VublyError):
    """A job request is well-formed but cannot be acted on."""
    pass
