import json
import logging
import requests

from typing import BinaryIO
from typing import Optional
from typing import Sequence
from typing import TextIO

from get621.api import E621Post
from get621.api.types import TAG_CATEGORIES
from get621.errors import HttpError, MissingFileUrlError, NetworkError
from get621.storage import ItemFailure, download
from .types import OutputMode

logger = logging.getLogger(__name__)

DIVIDER = "----------------"
NO_RESULTS = "No post found."


def _join_names(names: Sequence[str]) -> str:
    """
    a, b and c
    """
    if len(names) < 2:
        return "".join(names)
    return ", ".join(names[:-1]) + " and " + names[-1]


def format_post(post: E621Post) -> str:
    """
    Human readable multi-line summary of a post
    :param post  A post
    """
    lines: list[str] = []

    if post.is_deleted:
        lines.append(f"#{post.id} (deleted: "
                     f"{post.delete_reason or 'no reason given'})")
    elif post.artists:
        lines.append(f"#{post.id} by {_join_names(post.artists)}")
    else:
        lines.append(f"#{post.id}")

    lines.append(f"Rating: {post.rating}")
    lines.append(f"Score: {post.score.total} "
                 f"(+{post.score.up} / -{abs(post.score.down)})")
    lines.append(f"Favs: {post.fav_count}")

    if post.file is not None:
        lines.append(f"Type: {post.file.ext}")

    lines.append(f"Created at: {post.created_at}")

    # known categories first, then anything else the API sent
    categories = [c for c in TAG_CATEGORIES if c in post.tags]
    categories += [c for c in post.tags if c not in TAG_CATEGORIES]
    tag_lines = [f"  {c}: {', '.join(post.tags[c])}"
                 for c in categories if post.tags[c]]
    if tag_lines:
        lines.append("Tags:")
        lines += tag_lines

    lines.append(f"Description: {post.description}")

    return "\n".join(lines)


def stream_posts(posts: Sequence[E621Post],
                 session: requests.Session,
                 out: BinaryIO,
                 chunk_size: int = 8192,
                 timeout: Optional[float] = None) -> list[ItemFailure]:
    """
    Write the file of every non-deleted post to out, back to back
    A post that fails to download is logged and skipped,
    failing to write to out aborts
    :param posts    Posts in output order
    :param session  Session for the downloads
    :param out      Binary output, usually stdout
    :return         Failed posts
    """
    failures: list[ItemFailure] = []
    for post in posts:
        if post.is_deleted or post.file is None:
            continue
        try:
            download(session, post.file.url, out,
                     chunk_size=chunk_size, timeout=timeout)
        except (NetworkError, HttpError, MissingFileUrlError) as e:
            logger.error(f"Error when streaming #{post.id}: {e}")
            failures.append(ItemFailure(post.id, e))
    out.flush()
    return failures


def output_posts(posts: Sequence[E621Post],
                 mode: OutputMode,
                 out: TextIO,
                 session: Optional[requests.Session] = None,
                 binary_out: Optional[BinaryIO] = None,
                 chunk_size: int = 8192,
                 timeout: Optional[float] = None) -> list[ItemFailure]:
    """
    Print posts according to mode
    :param posts       Posts in output order
    :param mode        Output mode
    :param out         Text output
    :param session     Session for STREAM downloads
    :param binary_out  Binary output for STREAM
    :return            Item failures (only STREAM produces any)
    """
    match mode:
        case OutputMode.ID:
            for post in posts:
                print(post.id, file=out)
        case OutputMode.RAW:
            print(json.dumps([post.raw for post in posts]), file=out)
        case OutputMode.VERBOSE:
            if not posts:
                print(NO_RESULTS, file=out)
            else:
                print(f"\n{DIVIDER}\n".join(format_post(p) for p in posts),
                      file=out)
        case OutputMode.STREAM:
            if session is None or binary_out is None:
                raise ValueError("STREAM output needs a session "
                                 "and a binary output")
            return stream_posts(posts, session, binary_out,
                                chunk_size=chunk_size, timeout=timeout)
        case _:
            raise ValueError(f"Unknown output mode {mode}")

    return []
