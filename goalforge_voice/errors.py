"""Exception types shared across the live assistant components."""

from __future__ import annotations


class LiveAssistantError(Exception):
    """Base class for live assistant failures."""


class ConfigurationError(LiveAssistantError):
    """Raised when a credential or setting required to connect is missing."""


class TransportError(LiveAssistantError):
    """Raised when the streaming session cannot be opened or is lost."""


class ToolExecutionError(LiveAssistantError):
    """Raised when a function call from the model cannot be applied."""


class ToolArgumentError(ToolExecutionError):
    """Raised when function call arguments violate the declared schema."""


class UnknownFunctionError(ToolExecutionError):
    """Raised for function names that are not part of the contract."""


class AudioInputError(RuntimeError):
    """Raised when microphone capture cannot be initialised."""


class AudioOutputError(RuntimeError):
    """Raised when speaker playback cannot be initialised."""
