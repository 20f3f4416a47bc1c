from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from enum import Enum
from typing import Annotated
from typing import Any
from typing import Iterable
from typing import Optional

from get621.__about__ import __version__
from get621.errors import SerializationError

USER_AGENT = f"get621/{__version__} (by nasso on e621)"

# max posts the API hands out per page
LIST_HARD_LIMIT = 320

# max ids per id:a,b,c search and per pool page
ID_BATCH_SIZE = 100

TAG_CATEGORIES = ("artist", "copyright", "character", "species",
                  "general", "lore", "meta", "invalid", "contributor")


class PostStatus(Enum):
    """
    Moderation state of a post
    """
    ACTIVE = "active"
    PENDING = "pending"
    FLAGGED = "flagged"
    DELETED = "deleted"


class PostRating(Enum):
    """
    Content rating
    """
    SAFE = "s"
    QUESTIONABLE = "q"
    EXPLICIT = "e"

    def __str__(self) -> str:
        return self.name.capitalize()


class FileExt(Enum):
    """
    File formats served by e621
    """
    JPG = "jpg"
    PNG = "png"
    GIF = "gif"
    SWF = "swf"
    WEBM = "webm"
    WEBP = "webp"
    MP4 = "mp4"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PostScore:
    total: int
    up: int
    down: int


@dataclass(frozen=True)
class PostFile:
    """
    Primary file of a post
    """
    url: str
    ext: FileExt
    size: Optional[int] = None
    md5: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class E621Post:
    """
    An e621 post normalized from a /posts.json record
    https://e621.net/wiki_pages/2425#posts_list
    """
    id: int
    status: PostStatus
    rating: PostRating
    score: PostScore
    fav_count: int
    created_at: datetime
    description: str
    tags: Annotated[dict[str, tuple[str, ...]], "tags by category"] = \
        field(hash=False)
    file: Optional[PostFile]
    parent_id: Optional[int]
    children: tuple[int, ...]
    sources: tuple[str, ...] = ()
    delete_reason: Optional[str] = None
    raw: Annotated[dict[str, Any], "Record as sent by the API"] = \
        field(default_factory=dict, compare=False, repr=False, hash=False)

    @property
    def is_deleted(self) -> bool:
        return self.status is PostStatus.DELETED

    @property
    def artists(self) -> tuple[str, ...]:
        return self.tags.get("artist", ())

    @staticmethod
    def fromJson(data: dict[str, Any]) -> E621Post:
        """
        Parse a single API post record
        :param data  Decoded JSON object of one post
        :raises SerializationError  if a required field is missing
                                    or has the wrong shape
        """
        try:
            flags: dict[str, Any] = data["flags"]
            if flags.get("deleted"):
                status = PostStatus.DELETED
            elif flags.get("flagged"):
                status = PostStatus.FLAGGED
            elif flags.get("pending"):
                status = PostStatus.PENDING
            else:
                status = PostStatus.ACTIVE

            score = PostScore(total=int(data["score"]["total"]),
                              up=int(data["score"]["up"]),
                              down=int(data["score"]["down"]))

            tags: dict[str, tuple[str, ...]] = {}
            for category, names in data["tags"].items():
                tags[category] = tuple(names)

            # deleted posts and some restricted ones come without url
            post_file: Optional[PostFile] = None
            file_data: dict[str, Any] = data.get("file") or {}
            if file_data.get("url"):
                post_file = PostFile(url=file_data["url"],
                                     ext=FileExt(file_data["ext"]),
                                     size=file_data.get("size"),
                                     md5=file_data.get("md5"),
                                     width=file_data.get("width"),
                                     height=file_data.get("height"))

            relationships: dict[str, Any] = data.get("relationships") or {}

            return E621Post(
                    id=int(data["id"]),
                    status=status,
                    rating=PostRating(data["rating"]),
                    score=score,
                    fav_count=int(data["fav_count"]),
                    created_at=datetime.strptime(data["created_at"],
                                                 "%Y-%m-%dT%H:%M:%S.%f%z"),
                    description=data.get("description") or "",
                    tags=tags,
                    file=post_file,
                    parent_id=relationships.get("parent_id"),
                    children=tuple(relationships.get("children") or ()),
                    sources=tuple(data.get("sources") or ()),
                    delete_reason=data.get("delreason"),
                    raw=data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            post_id = data.get("id") if isinstance(data, dict) else None
            raise SerializationError(f"Invalid post record {post_id}: "
                                     f"{e!r}") from e


@dataclass(frozen=True)
class E621Pool:
    """
    An e621 pool as returned by /pools.json
    """
    id: int
    name: str
    description: str
    post_ids: tuple[int, ...]

    @staticmethod
    def fromJson(data: dict[str, Any]) -> E621Pool:
        try:
            return E621Pool(id=int(data["id"]),
                            name=str(data["name"]),
                            description=data.get("description") or "",
                            post_ids=tuple(int(x) for x in data["post_ids"]))
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Invalid pool record: {e!r}") from e


@dataclass(frozen=True)
class ReverseSearchCandidate:
    """
    A post matched by iqdb
    """
    id: int
    score: Annotated[float, "Similarity in percent"]
    file_ext: Optional[str] = None
    file_url: Optional[str] = None
    md5: Optional[str] = None


@dataclass(frozen=True)
class PageCursor:
    """
    "Lowest id seen so far" cursor for newest-first listings
    None means the initial page
    """
    before_id: Optional[int] = None

    @property
    def page(self) -> Optional[str]:
        """
        Value for the page= parameter
        """
        if self.before_id is None:
            return None
        return f"b{self.before_id}"

    def admits(self, post_id: int) -> bool:
        """
        Whether a post id is strictly below the cursor
        """
        return self.before_id is None or post_id < self.before_id

    def advance(self, ids: Iterable[int]) -> PageCursor:
        """
        Cursor for the page after a batch with these ids
        """
        lowest = min(ids, default=None)
        if lowest is None:
            return self
        if self.before_id is not None:
            lowest = min(lowest, self.before_id)
        return PageCursor(before_id=lowest)


@dataclass(frozen=True)
class PoolCursor:
    """
    Page counter over a pool's member ids
    """
    page: int = 0
    page_size: int = ID_BATCH_SIZE

    def slice(self, post_ids: tuple[int, ...]) -> tuple[int, ...]:
        start = self.page * self.page_size
        return post_ids[start:start + self.page_size]

    def advance(self) -> PoolCursor:
        return PoolCursor(page=self.page + 1, page_size=self.page_size)
