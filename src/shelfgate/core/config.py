from shelfgate.core.exceptions import IntegrationException


class CannotLoadConfiguration(IntegrationException):
    """The current configuration of a backend, or of the
    site as a whole, is in an incomplete or inconsistent state.

    This is more specific than a base IntegrationException because it
    assumes the problem is evident just by looking at the current
    configuration, with no need to actually talk to the backend.
    """

    def __init__(self, message: str | None, debug_message: str | None = None) -> None:
        super().__init__(message, debug_message)
