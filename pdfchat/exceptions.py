"""
Error taxonomy shared by the services and the HTTP layer.
"""


class ChatServiceError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ChatServiceError):
    """The user record or the requested chat does not exist."""

    status_code = 404


class InvalidInputError(ChatServiceError):
    """The request payload failed validation."""

    status_code = 400
