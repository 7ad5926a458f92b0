"""Error kinds raised by the campaign services.

Each error carries the HTTP status the API layer should answer with; the
services themselves never build HTTP responses.
"""

from starlette import status


class CampaignServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class CampaignNotFound(CampaignServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class CampaignNotActive(CampaignServiceError):
    status_code = status.HTTP_409_CONFLICT


class NoVariantsAvailable(CampaignServiceError):
    status_code = status.HTTP_409_CONFLICT


class AssignmentNotFound(CampaignServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class StorageConflict(CampaignServiceError):
    """A uniqueness constraint rejected an insert."""

    status_code = status.HTTP_409_CONFLICT


class StorageUnavailable(CampaignServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class CampaignValidationError(CampaignServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class CampaignUrlTaken(CampaignServiceError):
    status_code = status.HTTP_409_CONFLICT


class InvalidStatusAction(CampaignServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStatusTransition(CampaignServiceError):
    status_code = status.HTTP_409_CONFLICT


class InvalidEventReference(CampaignServiceError):
    """An event names a campaign or variant that does not exist."""

    status_code = status.HTTP_400_BAD_REQUEST
