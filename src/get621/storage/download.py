import logging
import requests

from typing import BinaryIO
from typing import Optional

from get621.api import USER_AGENT
from get621.errors import FileSystemError, HttpError, NetworkError

logger = logging.getLogger(__name__)


def download(session: requests.Session,
             url: str,
             sink: BinaryIO,
             chunk_size: int = 8192,
             timeout: Optional[float] = None) -> int:
    """
    Stream url into sink
    The body is only read if the response status is a success
    :param session     Session to send the GET with
    :param url         URL to fetch
    :param sink        Writable binary file object
    :param chunk_size  Size of streamed chunks
    :param timeout     Optional request timeout
    :return            Number of bytes written
    :raises NetworkError     if the request or body transfer fails
    :raises HttpError        on a non-success status
    :raises FileSystemError  if writing to sink fails
    """
    headers: dict[str, str] = {"User-Agent": USER_AGENT}

    logger.debug(f"Downloading {url}")
    try:
        res = session.get(url, headers=headers, stream=True, timeout=timeout)
    except requests.RequestException as e:
        raise NetworkError(f"Couldn't send request to {url}: {e}") from e

    try:
        if not res.ok:
            raise HttpError(res.status_code, url)

        total = 0
        chunks = res.iter_content(chunk_size=chunk_size)
        while True:
            try:
                chunk = next(chunks, None)
            except requests.RequestException as e:
                raise NetworkError(f"Download of {url} broke off: {e}") \
                    from e
            if chunk is None:
                break
            try:
                sink.write(chunk)
            except OSError as e:
                raise FileSystemError(f"Couldn't write {url}: {e}") from e
            total += len(chunk)
    finally:
        res.close()

    logger.debug(f"Downloaded {total} bytes from {url}")
    return total
