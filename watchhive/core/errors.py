"""Domain exceptions shared by services and the HTTP layer."""


class WatchHiveError(Exception):
    """Base class for all WatchHive domain failures."""

    status_code = 500
    code = "error"
    public = True

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class ValidationError(WatchHiveError):
    """Caller input is malformed or missing a required field."""

    status_code = 400
    code = "validation_error"


class UnreleasedEpisodeError(ValidationError):
    """The episode exists upstream but has not aired yet."""

    code = "unreleased"


class NotFoundError(WatchHiveError):
    """The referenced entity is unknown."""

    status_code = 404
    code = "not_found"


class ForbiddenError(WatchHiveError):
    status_code = 403
    code = "forbidden"


class UpstreamFetchError(WatchHiveError):
    """The metadata gateway (or another upstream) failed or returned non-2xx."""

    status_code = 502
    code = "upstream_error"
    public = False


class StoreError(WatchHiveError):
    """The persistence layer failed; always fatal to the current operation."""

    status_code = 500
    code = "store_error"
    public = False
