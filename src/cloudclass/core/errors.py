"""Exception hierarchy shared by all cloudclass modules."""

from botocore.exceptions import ClientError


class CloudClassError(Exception):
    """Base exception for cloudclass operations."""
    pass


class AbortedError(CloudClassError):
    """Raised when the user declines a confirmation prompt."""

    def __init__(self, message: str = "Aborting!") -> None:
        super().__init__(message)


class InvalidRegionError(CloudClassError):
    """Raised when a region or availability zone name is not valid."""
    pass


class InvalidSearchError(CloudClassError):
    """Raised when a search term is not a valid regular expression."""
    pass


class ResourceNotFoundError(CloudClassError):
    """Raised when a required AWS resource cannot be found."""
    pass


class RotationError(CloudClassError):
    """Raised when rotating launch configurations or images fails."""
    pass


class AwsApiError(CloudClassError):
    """Raised when a mutating AWS API call fails."""
    pass


def aws_error_message(error: Exception) -> str:
    """Unwrap an AWS error to its provider message.

    Args:
        error: Exception raised by boto3 or by cloudclass itself

    Returns:
        The provider message for ClientError, str(error) otherwise
    """
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        return details.get("Message") or details.get("Code") or str(error)
    return str(error)
