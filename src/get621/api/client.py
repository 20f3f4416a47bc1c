import logging
import requests
import time

from enum import Enum
from typing import Annotated
from typing import Any
from typing import Callable
from typing import Iterator
from typing import Optional
from urllib.parse import urljoin
from requests.adapters import HTTPAdapter, Retry

from get621.config import ClientConfig
from get621.errors import (AboveLimitError, HttpError, NetworkError,
                           PoolNotFoundError, SerializationError)
from .types import (E621Pool, E621Post, ID_BATCH_SIZE, LIST_HARD_LIMIT,
                    PageCursor, PoolCursor, USER_AGENT)

logger = logging.getLogger(__name__)

# fetch one page given a cursor and a page size
PageSource = Callable[[PageCursor, int], list[E621Post]]


class HTTPMethod(Enum):
    """
    Enum for HTTP methods
    """
    GET = 1
    POST = 2


def make_session(config: ClientConfig) -> requests.Session:
    """
    Create a requests session with retries + backoff on 5xx
    :param config  Client settings
    """
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    retries = Retry(total=config.max_retries,
                    backoff_factor=config.backoff_factor,
                    status_forcelist=[500, 502, 503, 504])
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def is_ordered(tags: list[str]) -> bool:
    """
    Whether a tag query asks for an explicit ordering
    :param tags  Search tags
    """
    return any(tag.startswith("order:") for tag in tags)


def paginate(fetch_page: PageSource,
             limit: int,
             cursor: PageCursor = PageCursor()) -> Iterator[E621Post]:
    """
    Walk a newest-first listing page by page
    Each page is requested with the cursor of the previous one,
    stops once limit posts were yielded or a page comes back empty
    :param fetch_page  Callable returning one page for a cursor and size
    :param limit       Maximum number of posts to yield
    :param cursor      Starting cursor
    """
    remaining = limit
    while remaining > 0:
        batch = fetch_page(cursor, min(remaining, LIST_HARD_LIMIT))

        if not batch:
            logger.debug("Got empty batch - done")
            return

        fresh = [post for post in batch if cursor.admits(post.id)]
        logger.debug(f"Got batch with {len(batch)} posts "
                     f"({len(fresh)} new)")

        for post in fresh[:remaining]:
            yield post
        remaining -= min(len(fresh), remaining)

        next_cursor = cursor.advance(post.id for post in batch)
        if next_cursor == cursor:
            # page only repeated what we already had
            return
        cursor = next_cursor


class E621ApiClient:
    """
    API client class for E621
    """

    config: Annotated[ClientConfig, "Client settings"]
    last_request: Annotated[float, "Monotonic clock time of last request"
                                   "used to enforce E6's "
                                   "1 request per second limit"]
    requests_session: Annotated[requests.Session, "Session for requests"]

    def __init__(self,
                 config: Optional[ClientConfig] = None,
                 session: Optional[requests.Session] = None) -> None:
        """
        Constructor
        :param config   Client settings (Default ClientConfig())
        :param session  Session to use instead of a fresh one
        """
        self.config = config or ClientConfig()
        self.last_request = 0.0
        self.requests_session = session or make_session(self.config)

    def _throttle(self) -> None:
        """
        Ensure we don't send more than one request per request_delay
        """
        delay = self.config.request_delay
        if (elapsed := time.monotonic() - self.last_request) < delay:
            time.sleep(delay - elapsed)
        self.last_request = time.monotonic()

    def _request(self,
                 endpoint: str,
                 method: HTTPMethod = HTTPMethod.GET,
                 **kwargs
                 ) -> requests.Response:
        """
        Genric request method
        All requests should go through this to ensure
        proper headers and respect E6's "1 request a second" rule
        :param endpoint  Endpoint where request should go
        :param method    HTTP Method used (Default GET)
        :param kwargs    Leftover keyword args passed to requests.METHOD
        :raises NetworkError  if the request could not be sent
        :raises HttpError     on a non-success status
        """
        self._throttle()

        url = urljoin(self.config.base_url.rstrip("/") + "/",
                      endpoint.lstrip("/"))

        headers: dict[str, str] = {"User-Agent": USER_AGENT}
        headers.update(kwargs.pop("headers", {}))

        try:
            match method:
                case HTTPMethod.GET:
                    logger.debug(f"Sending GET {url}")
                    res = self.requests_session.get(
                            url, headers=headers,
                            timeout=self.config.timeout, **kwargs)
                case HTTPMethod.POST:
                    logger.debug(f"Sending POST {url}")
                    res = self.requests_session.post(
                            url, headers=headers,
                            timeout=self.config.timeout, **kwargs)
                case _:
                    raise NotImplementedError(f"HTTP method {method} "
                                              "is not implemented")
        except requests.RequestException as e:
            raise NetworkError(f"Couldn't send request to {url}: {e}") from e

        if not res.ok:
            raise HttpError(res.status_code, url)

        return res

    def _get_json(self, endpoint: str, **kwargs) -> Any:
        """
        GET an endpoint and decode its JSON body
        :raises SerializationError  if the body isn't JSON
        """
        res = self._request(endpoint, **kwargs)
        try:
            return res.json()
        except ValueError as e:
            raise SerializationError(f"Invalid JSON from {endpoint}: {e}") \
                from e

    def _search_page(self,
                     tags: list[str],
                     limit: int,
                     cursor: PageCursor = PageCursor()) -> list[E621Post]:
        """
        Fetch a single page of /posts.json
        :param tags    Search tags
        :param limit   Page size
        :param cursor  Only return posts below this cursor
        """
        params: dict[str, str] = {"tags": " ".join(tags),
                                  "limit": str(limit)}

        if (page := cursor.page) is not None:
            logger.debug(f"Fetching page {page}")
            params["page"] = page
        else:
            logger.debug("Fetching inital page")

        body = self._get_json("/posts.json", params=params)
        try:
            records: list[dict[str, Any]] = body["posts"]
        except (KeyError, TypeError) as e:
            raise SerializationError("Missing posts in search response") \
                from e

        return [E621Post.fromJson(x) for x in records]

    def search(self, tags: list[str], limit: int) -> Iterator[E621Post]:
        """
        Search posts by tags
        Ordered queries are limited to a single page, unordered ones
        are paginated with a "before id" cursor until limit is reached
        :param tags   Search tags
        :param limit  Maximum number of posts
        :raises AboveLimitError  for ordered queries above LIST_HARD_LIMIT,
                                 before anything is sent
        """
        if is_ordered(tags):
            if limit > LIST_HARD_LIMIT:
                raise AboveLimitError(limit, LIST_HARD_LIMIT)
            return self._ordered_search(tags, limit)

        return paginate(
                lambda cursor, size: self._search_page(tags, size, cursor),
                limit)

    def _ordered_search(self,
                        tags: list[str],
                        limit: int) -> Iterator[E621Post]:
        if limit <= 0:
            return
        logger.info(f"Searching {' '.join(tags)!r} (ordered)")
        yield from self._search_page(tags, limit)

    def post(self, post_id: int) -> E621Post:
        """
        Fetch a single post by id
        :param post_id  Post id
        """
        body = self._get_json(f"/posts/{post_id}.json")
        try:
            record: dict[str, Any] = body["post"]
        except (KeyError, TypeError) as e:
            raise SerializationError(f"Missing post {post_id} "
                                     "in response") from e
        return E621Post.fromJson(record)

    def posts(self, post_ids: list[int]) -> list[E621Post]:
        """
        Batch fetch posts by id
        Results follow the order of post_ids, ids the API
        doesn't return are skipped
        :param post_ids  Post ids
        """
        found: dict[int, E621Post] = {}
        for start in range(0, len(post_ids), ID_BATCH_SIZE):
            chunk = post_ids[start:start + ID_BATCH_SIZE]
            tags = ["id:" + ",".join(str(x) for x in chunk)]
            for post in self._search_page(tags, len(chunk)):
                found[post.id] = post

        results: list[E621Post] = []
        for post_id in post_ids:
            if (post := found.get(post_id)) is None:
                logger.warning(f"Post #{post_id} was not returned by the API")
                continue
            results.append(post)
        return results

    def pool(self, pool_id: int) -> E621Pool:
        """
        Fetch a pool by id
        :param pool_id  Pool id
        :raises PoolNotFoundError  if no pool has this id
        """
        body = self._get_json("/pools.json",
                              params={"search[id]": str(pool_id)})
        if not isinstance(body, list):
            raise SerializationError("Pool response is not a list")
        for record in body:
            pool = E621Pool.fromJson(record)
            if pool.id == pool_id:
                return pool
        raise PoolNotFoundError(pool_id)

    def pool_posts(self, pool: E621Pool) -> Iterator[E621Post]:
        """
        Iterate over a pool's posts in pool order, one page at a time
        :param pool  A pool
        """
        cursor = PoolCursor()
        while page := cursor.slice(pool.post_ids):
            logger.debug(f"Fetching pool {pool.id} page {cursor.page + 1}")
            yield from self.posts(list(page))
            cursor = cursor.advance()
