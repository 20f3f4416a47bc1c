from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path
from typing import Annotated
from typing import Optional
from typing import Union

from get621.api import E621Post
from get621.storage import ItemFailure


class RelationshipMode(Enum):
    """
    What to replace each search result with
    """
    NONE = "none"
    PARENTS = "parents"
    CHILDREN = "children"


class ReverseStrategy(Enum):
    """
    How reverse search matches are turned into output
    RESOLVED fetches the full post for every match,
    DIRECT downloads the matched files without extra API requests
    """
    RESOLVED = "resolved"
    DIRECT = "direct"


@dataclass(frozen=True)
class TagQuery:
    tags: tuple[str, ...]
    limit: int = 1


@dataclass(frozen=True)
class PoolQuery:
    pool_id: int


@dataclass(frozen=True)
class ReverseQuery:
    paths: tuple[Path, ...]
    min_similarity: float = 90.0
    strategy: ReverseStrategy = ReverseStrategy.RESOLVED


Query = Union[TagQuery, PoolQuery, ReverseQuery]


@dataclass(frozen=True)
class Materialized:
    """
    Resolved, expanded post list ready for output
    """
    posts: tuple[E621Post, ...]
    pool_id: Annotated[Optional[int], "Set when the posts come "
                                      "from a single pool"] = None


@dataclass
class RunReport:
    """
    Outcome of a pipeline run
    Only item level failures end up here, anything
    fatal is raised instead
    """
    posts: list[E621Post] = field(default_factory=list)
    saved: list[Path] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
