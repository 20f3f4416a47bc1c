import logging

from typing import Iterable
from typing import Iterator
from typing import Optional

from get621.api import E621ApiClient, E621Post, IqdbClient
from get621.api import ReverseSearchCandidate
from get621.errors import Get621Error
from .relations import expand
from .types import (Materialized, PoolQuery, RelationshipMode, ReverseQuery,
                    TagQuery)

logger = logging.getLogger(__name__)


def drop_repeats(posts: Iterable[E621Post]) -> Iterator[E621Post]:
    """
    Drop a post if it has the same id as the one right before it
    :param posts  Posts from a single source
    """
    last_id: Optional[int] = None
    for post in posts:
        if post.id == last_id:
            logger.debug(f"Dropping repeated post #{post.id}")
            continue
        last_id = post.id
        yield post


class Resolver:
    """
    Turns queries into fully resolved, expanded post lists
    Errors from the API propagate, nothing is returned partially
    """

    def __init__(self,
                 api: E621ApiClient,
                 iqdb: Optional[IqdbClient] = None) -> None:
        """
        Constructor
        :param api   API client
        :param iqdb  Reverse search client (Default built from api)
        """
        self.api = api
        self.iqdb = iqdb or IqdbClient(api)

    def materialize(self,
                    query: TagQuery | PoolQuery,
                    mode: RelationshipMode = RelationshipMode.NONE
                    ) -> Materialized:
        """
        Run a tag or pool query and expand its results
        :param query  Tag search or pool query
        :param mode   Relationship mode
        """
        match query:
            case TagQuery(tags=tags, limit=limit):
                logger.info(f"Searching {' '.join(tags)!r} (limit {limit})")
                found = list(drop_repeats(self.api.search(list(tags),
                                                          limit)))
                pool_id = None
            case PoolQuery(pool_id=pool_id):
                pool = self.api.pool(pool_id)
                logger.info(f"Listing pool {pool.id} ({pool.name}, "
                            f"{len(pool.post_ids)} posts)")
                found = list(drop_repeats(self.api.pool_posts(pool)))
            case _:
                raise ValueError(f"Unsupported query {query!r}")

        logger.info(f"Found {len(found)} posts")
        posts = drop_repeats(expand(found, mode, self.api.post))
        return Materialized(posts=tuple(posts), pool_id=pool_id)

    def matches(self, query: ReverseQuery
                ) -> list[tuple[str, list[ReverseSearchCandidate]]]:
        """
        Reverse search every path of a query
        :param query  Reverse search query
        :return       (path, matches) per searched file
        """
        return [(str(path), self.iqdb.search(path, query.min_similarity))
                for path in query.paths]

    def resolve_candidates(self,
                           candidates: Iterable[ReverseSearchCandidate]
                           ) -> list[E621Post]:
        """
        Fetch the full post of every match
        Matches that fail to resolve are skipped with a warning
        :param candidates  Reverse search matches
        """
        posts: list[E621Post] = []
        for candidate in candidates:
            try:
                posts.append(self.api.post(candidate.id))
            except Get621Error as e:
                logger.warning(f"Couldn't resolve #{candidate.id}: {e}")
        return posts
