class RescueError(Exception):
    """Raised when generative identifier rescue fails."""


class RescueNetworkError(RescueError):
    """Raised when the AI provider call fails due to network/infrastructure issues."""
