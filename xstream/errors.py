"""Error taxonomy shared by the generation services and workflows."""

from __future__ import annotations


class StudioError(Exception):
    """Base class for every failure surfaced to a workflow."""


class ConfigurationError(StudioError):
    """The backend client cannot be constructed, usually a missing credential."""


class BackendError(StudioError):
    """The generation backend reported a failure."""


class EmptyResultError(BackendError):
    """The backend answered successfully but returned no usable artifact."""


class CredentialRejected(StudioError):
    """The video credential is invalid or expired and must be re-selected."""


class LocalIOError(StudioError):
    """A local file or data URL could not be read or decoded."""


class InvalidTransitionError(StudioError):
    """A workflow action was requested from a stage that does not allow it."""


# Names used by the backend-facing contract.
BackendUnavailable = ConfigurationError
GenerationEmpty = EmptyResultError

__all__ = [
    "StudioError",
    "ConfigurationError",
    "BackendUnavailable",
    "BackendError",
    "EmptyResultError",
    "GenerationEmpty",
    "CredentialRejected",
    "LocalIOError",
    "InvalidTransitionError",
]
