"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so handlers can read it without
    # parsing str(exception). Never raise this directly - pick a subclass so callers can
    # catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when request input is malformed.

    Used for payloads missing required fields, unparseable share links and
    directories that don't exist. Always raised before any I/O happens.

    HTTP Status: 422
    """

    pass


class BusinessRuleViolation(DomainException):
    """A business rule was violated.

    HTTP Status: 409
    """

    pass


class EmptySnapshotRejectedError(BusinessRuleViolation):
    """An all-empty snapshot import would wipe a non-empty catalog.

    Example:
        raise EmptySnapshotRejectedError(albums=12, tracks=140, artists=30)
    """

    def __init__(self, albums: int, tracks: int, artists: int) -> None:
        super().__init__(
            "Refusing to replace a non-empty catalog with an empty snapshot "
            f"({albums} albums, {tracks} tracks, {artists} artists present)"
        )
        self.existing_counts = {"albums": albums, "tracks": tracks, "artists": artists}


class UnreadableAudioError(DomainException):
    """A file is not valid audio or its metadata cannot be parsed.

    Handled per file: the batch skips it and continues.
    """

    def __init__(self, source: str, reason: str = "not a readable audio file") -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source


class ExternalServiceError(DomainException):
    """Remote service returned an error or misbehaved (non-2xx, redirect loop).

    HTTP Status: 502
    """

    pass


class RemoteAccessDeniedError(ExternalServiceError):
    """Remote share link resolved to a markup page instead of media.

    Hey future me - Drive answers non-public files with an HTML interstitial
    (login or virus-scan warning) and status 200. That's NOT a network failure, the
    file just isn't shared publicly. Keep this distinct so callers can tell the user.

    HTTP Status: 403
    """

    def __init__(self, remote_id: str, content_type: str = "") -> None:
        super().__init__(
            f"Remote file {remote_id} returned markup ({content_type or 'text/html'}) "
            "instead of audio; it is probably not shared publicly"
        )
        self.remote_id = remote_id
        self.content_type = content_type


class RemoteListingError(ExternalServiceError):
    """No listing strategy could enumerate a remote folder."""

    def __init__(self, folder_id: str, message: str | None = None) -> None:
        super().__init__(
            message
            or f"Could not list remote folder {folder_id}; make sure it is shared publicly"
        )
        self.folder_id = folder_id


class ConfigurationError(DomainException):
    """Application misconfiguration.

    HTTP Status: 503
    """

    pass


__all__ = [
    "BusinessRuleViolation",
    "ConfigurationError",
    "DomainException",
    "EmptySnapshotRejectedError",
    "EntityNotFoundException",
    "ExternalServiceError",
    "RemoteAccessDeniedError",
    "RemoteListingError",
    "UnreadableAudioError",
    "ValidationException",
]
