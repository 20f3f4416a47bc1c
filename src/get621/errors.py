from typing import Annotated
from typing import Optional


class Get621Error(Exception):
    """
    Base class for every error raised by get621
    """


class NetworkError(Get621Error):
    """
    Request could not be sent or the connection broke
    """


class HttpError(Get621Error):
    """
    Request reached the server but got a non-success status
    """

    code: Annotated[int, "HTTP status code"]

    def __init__(self, code: int, url: Optional[str] = None) -> None:
        self.code = code
        self.url = url
        if url is None:
            super().__init__(f"HTTP error: {code}")
        else:
            super().__init__(f"HTTP error: {code} ({url})")


class SerializationError(Get621Error):
    """
    Response body could not be parsed into the expected form
    """


class AboveLimitError(Get621Error):
    """
    Ordered search asked for more posts than a single page can hold
    """

    requested: Annotated[int, "Requested post count"]
    maximum: Annotated[int, "Hard per-page cap"]

    def __init__(self, requested: int, maximum: int) -> None:
        self.requested = requested
        self.maximum = maximum
        super().__init__(f"Limit {requested} is above the maximum of "
                         f"{maximum} for ordered searches")


class PoolNotFoundError(Get621Error):
    """
    Pool lookup returned nothing
    """

    def __init__(self, pool_id: int) -> None:
        self.pool_id = pool_id
        super().__init__(f"Pool {pool_id} not found")


class AuthTokenNotFoundError(Get621Error):
    """
    The iqdb page did not provide a csrf token or session cookie
    """

    def __init__(self) -> None:
        super().__init__("Couldn't find the authenticity token")


class IqdbQueryError(Get621Error):
    """
    The iqdb response is missing required candidate fields
    """

    def __init__(self, detail: str = "malformed response") -> None:
        super().__init__(f"Reverse search failed: {detail}")


class MissingFileUrlError(Get621Error):
    """
    Post selected for download has no file reference
    """

    def __init__(self, post_id: int) -> None:
        self.post_id = post_id
        super().__init__(f"Post #{post_id} has no file URL")


class FileSystemError(Get621Error):
    """
    Local read or write failed
    """
