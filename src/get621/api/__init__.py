from .client import E621ApiClient, HTTPMethod, is_ordered, paginate
from .iqdb import IqdbClient, filter_candidates, parse_iqdb_json
from .types import (E621Pool, E621Post, FileExt, LIST_HARD_LIMIT,
                    PageCursor, PoolCursor, PostFile, PostRating, PostScore,
                    PostStatus, ReverseSearchCandidate, USER_AGENT)

__all__ = [
    "E621ApiClient",
    "E621Pool",
    "E621Post",
    "FileExt",
    "HTTPMethod",
    "IqdbClient",
    "LIST_HARD_LIMIT",
    "PageCursor",
    "PoolCursor",
    "PostFile",
    "PostRating",
    "PostScore",
    "PostStatus",
    "ReverseSearchCandidate",
    "USER_AGENT",
    "filter_candidates",
    "is_ordered",
    "paginate",
    "parse_iqdb_json",
]
