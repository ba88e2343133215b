"""Exception types raised at the collaborator boundaries."""


class CosmicTunesError(RuntimeError):
    """Base class for application errors."""


class NotAuthenticatedError(CosmicTunesError):
    """No valid Spotify session exists for the current user."""

    def __init__(self, message: str = "Not authenticated with Spotify.") -> None:
        super().__init__(message)


class RefreshFailedError(CosmicTunesError):
    """Spotify rejected the refresh token."""


class UpstreamError(CosmicTunesError):
    """Non-success response from the Spotify Web API."""

    def __init__(self, status: int, message: str = "") -> None:
        super().__init__(message or f"Spotify request failed with status {status}")
        self.status = status


class RoomCapacityError(CosmicTunesError):
    """Every generated room code collided with an existing room."""
