import requests
import pytest

from requests.structures import CaseInsensitiveDict
from typing import Any
from typing import Callable
from typing import Optional
from typing import Union

from get621.api import E621Pool, E621Post
from get621.config import ClientConfig
from get621.errors import HttpError, PoolNotFoundError

_MISSING = object()


def make_record(post_id: int, **overrides: Any) -> dict[str, Any]:
    """
    A /posts.json record with sensible defaults
    """
    record: dict[str, Any] = {
        "id": post_id,
        "created_at": "2020-03-04T05:06:07.890-05:00",
        "updated_at": "2020-03-05T05:06:07.890-05:00",
        "file": {
            "width": 800,
            "height": 600,
            "ext": "png",
            "size": 1234,
            "md5": f"{post_id:032x}",
            "url": f"https://static1.e621.net/data/{post_id}.png",
        },
        "score": {"up": 12, "down": -2, "total": 10},
        "tags": {
            "general": ["solo", "smile"],
            "species": ["wolf"],
            "character": [],
            "copyright": [],
            "artist": ["someartist"],
            "invalid": [],
            "lore": [],
            "meta": ["hi_res"],
        },
        "rating": "s",
        "fav_count": 5,
        "sources": [],
        "relationships": {
            "parent_id": None,
            "has_children": False,
            "has_active_children": False,
            "children": [],
        },
        "flags": {"pending": False, "flagged": False, "deleted": False},
        "description": "A description",
    }
    record.update(overrides)
    return record


def make_post(post_id: int, **overrides: Any) -> E621Post:
    return E621Post.fromJson(make_record(post_id, **overrides))


def deleted_record(post_id: int) -> dict[str, Any]:
    record = make_record(post_id)
    record["flags"] = {"pending": False, "flagged": False, "deleted": True}
    record["file"] = dict(record["file"], url=None)
    return record


class FakeResponse:
    """
    Just enough of requests.Response
    """

    def __init__(self,
                 status_code: int = 200,
                 json_data: Any = _MISSING,
                 text: str = "",
                 headers: Optional[dict[str, str]] = None,
                 chunks: tuple[bytes, ...] = (),
                 broken: bool = False) -> None:
        self.status_code = status_code
        self._json = json_data
        self.text = text
        self.headers = CaseInsensitiveDict(headers or {})
        self.chunks = chunks
        self.broken = broken
        self.body_read = False
        self.closed = False

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._json is _MISSING:
            raise requests.JSONDecodeError("Expecting value", "", 0)
        return self._json

    def iter_content(self, chunk_size: int = 1):
        self.body_read = True
        for chunk in self.chunks:
            yield chunk
        if self.broken:
            raise requests.ConnectionError("connection reset")

    def close(self) -> None:
        self.closed = True


Route = Union[FakeResponse, Exception, Callable[..., FakeResponse]]


class FakeSession:
    """
    requests.Session stand-in answering from a url -> route table
    Unknown urls get a 404
    """

    def __init__(self, routes: Optional[dict[str, Route]] = None) -> None:
        self.routes: dict[str, Route] = routes or {}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def _respond(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        route = self.routes.get(url, FakeResponse(404))
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(**kwargs)
        return route

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._respond("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._respond("POST", url, **kwargs)

    def urls(self, method: str = "GET") -> list[str]:
        return [url for m, url, _ in self.calls if m == method]


class FakeApi:
    """
    In-memory stand-in for E621ApiClient used by pipeline tests
    """

    def __init__(self,
                 posts: list[E621Post],
                 pools: Optional[dict[int, tuple[int, ...]]] = None,
                 session: Optional[FakeSession] = None) -> None:
        self.by_id = {post.id: post for post in posts}
        self.listing = list(posts)
        self.pools = pools or {}
        self.config = ClientConfig(request_delay=0.0, download_workers=2)
        self.requests_session = session or FakeSession()
        self.fetched: list[int] = []

    def search(self, tags: list[str], limit: int):
        return iter(self.listing[:limit])

    def pool(self, pool_id: int) -> E621Pool:
        if pool_id not in self.pools:
            raise PoolNotFoundError(pool_id)
        return E621Pool(id=pool_id, name="a_pool", description="",
                        post_ids=self.pools[pool_id])

    def pool_posts(self, pool: E621Pool):
        return iter([self.by_id[x] for x in pool.post_ids])

    def post(self, post_id: int) -> E621Post:
        self.fetched.append(post_id)
        if post_id not in self.by_id:
            raise HttpError(404)
        return self.by_id[post_id]


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(request_delay=0.0, download_workers=3)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()
