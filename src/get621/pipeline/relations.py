import logging

from itertools import chain
from typing import Callable
from typing import Iterable

from get621.api import E621Post
from .types import RelationshipMode

logger = logging.getLogger(__name__)

# resolves one post id, raising on failure
PostFetcher = Callable[[int], E621Post]


def related(post: E621Post,
            mode: RelationshipMode,
            fetch: PostFetcher) -> list[E621Post]:
    """
    Map a post to the posts that replace it under mode
    :param post   A resolved post
    :param mode   Relationship mode
    :param fetch  Fetches a post by id, errors propagate
    """
    match mode:
        case RelationshipMode.NONE:
            return [post]
        case RelationshipMode.PARENTS:
            if post.parent_id is None:
                logger.info(f"#{post.id} doesn't have a parent")
                return []
            logger.info(f"#{post.parent_id} is the parent of #{post.id}")
            return [fetch(post.parent_id)]
        case RelationshipMode.CHILDREN:
            if not post.children:
                logger.info(f"#{post.id} doesn't have any children")
            return [fetch(child) for child in post.children]
        case _:
            raise ValueError(f"Unknown relationship mode {mode}")


def expand(posts: Iterable[E621Post],
           mode: RelationshipMode,
           fetch: PostFetcher) -> list[E621Post]:
    """
    Flat-map every post through related(), keeping input order
    :param posts  Resolved posts
    :param mode   Relationship mode
    :param fetch  Fetches a post by id
    """
    if mode is RelationshipMode.NONE:
        return list(posts)
    return list(chain.from_iterable(related(post, mode, fetch)
                                    for post in posts))
