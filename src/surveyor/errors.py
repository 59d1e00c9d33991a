# surveyor/errors.py
from typing import List, Optional


class SurveyorError(Exception):
    """Base class for all surveyor errors."""


class ConfigError(SurveyorError):
    """Raised when configuration values are missing or invalid."""


class RemoteError(SurveyorError):
    """A transport, auth or availability failure talking to the remote repository."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class RemoteListingFailed(RemoteError):
    """Listing the children of a folder or the entities of a file failed."""

    def __init__(self, folder_id: str, cause: Optional[BaseException] = None):
        super().__init__(f"Listing '{folder_id}' failed: {cause}", cause)
        self.folder_id = folder_id


class RemoteReadFailed(RemoteError):
    """Fetching attribute data for entities of a file failed."""

    def __init__(self, file_id: str, cause: Optional[BaseException] = None):
        super().__init__(f"Reading properties of '{file_id}' failed: {cause}", cause)
        self.file_id = file_id


class NoDataError(SurveyorError):
    """Aggregation produced zero attribute records; there is nothing to export."""

    def __init__(self, skipped: Optional[List] = None):
        super().__init__("No objects found to export")
        self.skipped = list(skipped or [])


class SearchCancelled(SurveyorError):
    """The folder search was cancelled before a folder was found."""
