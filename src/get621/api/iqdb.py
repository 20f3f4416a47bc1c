import logging
import mimetypes

from bs4 import BeautifulSoup
from pathlib import Path
from typing import Annotated
from typing import Any
from typing import Callable
from typing import Iterable

from get621.errors import (AuthTokenNotFoundError, FileSystemError,
                           IqdbQueryError, SerializationError)
from .client import E621ApiClient, HTTPMethod
from .types import ReverseSearchCandidate

logger = logging.getLogger(__name__)

# turns a decoded iqdb response into candidates
ResponseParser = Callable[[Any], list[ReverseSearchCandidate]]


def parse_iqdb_json(body: Any) -> list[ReverseSearchCandidate]:
    """
    Parse the /iqdb_queries.json response
    Every entry must carry a numeric score and a post id, one bad
    entry invalidates the whole response
    :param body  Decoded JSON body
    :raises IqdbQueryError  on any malformed entry
    """
    if not isinstance(body, list):
        raise IqdbQueryError("response is not a list")

    candidates: list[ReverseSearchCandidate] = []
    for entry in body:
        if not isinstance(entry, dict):
            raise IqdbQueryError("candidate is not an object")

        score = entry.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise IqdbQueryError("candidate without score")

        post = entry.get("post")
        post = post.get("posts") if isinstance(post, dict) else None
        if not isinstance(post, dict):
            post = {}

        post_id = entry.get("post_id", post.get("id"))
        if not isinstance(post_id, int) or isinstance(post_id, bool):
            raise IqdbQueryError("candidate without post id")

        candidates.append(ReverseSearchCandidate(
                id=post_id,
                score=float(score),
                file_ext=post.get("file_ext"),
                file_url=post.get("file_url"),
                md5=post.get("md5")))

    return candidates


def filter_candidates(candidates: Iterable[ReverseSearchCandidate],
                      min_similarity: float
                      ) -> list[ReverseSearchCandidate]:
    """
    Keep candidates at or above the threshold, in response order
    :param candidates      Scored candidates
    :param min_similarity  Threshold in percent
    """
    return [c for c in candidates if c.score >= min_similarity]


class IqdbClient:
    """
    Reverse image search through e621's iqdb endpoint
    """

    api: Annotated[E621ApiClient, "Client used for requests"]
    parser: Annotated[ResponseParser, "Response contract in use"]

    def __init__(self,
                 api: E621ApiClient,
                 parser: ResponseParser = parse_iqdb_json) -> None:
        """
        Constructor
        :param api     Client whose session and throttle are shared
        :param parser  Parser for the query response
        """
        self.api = api
        self.parser = parser

    def _session_token(self) -> tuple[str, str]:
        """
        Grab the csrf token and session cookie from the iqdb page
        :return  (token, cookie)
        :raises AuthTokenNotFoundError  if either is missing
        """
        res = self.api._request("/iqdb_queries")

        cookie = res.headers.get("set-cookie")
        if not cookie:
            raise AuthTokenNotFoundError()

        soup = BeautifulSoup(res.text, "html.parser")
        meta = soup.find("meta", attrs={"name": "csrf-token"})
        if meta is None or not (token := meta.get("content")):
            raise AuthTokenNotFoundError()

        return str(token), cookie

    def query(self, path: Path) -> list[ReverseSearchCandidate]:
        """
        Submit a local image and return every scored candidate
        :param path  Image to search for
        :raises FileSystemError  if the file can't be read
        """
        try:
            data = path.read_bytes()
        except OSError as e:
            raise FileSystemError(f"Couldn't read {path}: {e}") from e

        token, cookie = self._session_token()

        mime = mimetypes.guess_type(path.name)[0] \
            or "application/octet-stream"

        logger.info(f"Reverse searching {path}")
        res = self.api._request(
                "/iqdb_queries.json",
                HTTPMethod.POST,
                headers={"Cookie": cookie},
                data={"authenticity_token": token, "url": ""},
                files={"file": (path.name, data, mime)})

        try:
            body = res.json()
        except ValueError as e:
            raise SerializationError(f"Invalid iqdb response: {e}") from e

        return self.parser(body)

    def search(self,
               path: Path,
               min_similarity: float) -> list[ReverseSearchCandidate]:
        """
        Reverse search a file and drop candidates below min_similarity
        :param path            Image to search for
        :param min_similarity  Threshold in percent (0-100)
        """
        candidates = self.query(path)
        matches = filter_candidates(candidates, min_similarity)
        logger.info(f"{len(matches)} of {len(candidates)} candidates "
                    f"are at least {min_similarity}% similar")
        return matches
