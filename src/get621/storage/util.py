import glob
import logging
import os

from pathlib import Path
from typing import Iterable
from typing import Optional
from urllib.parse import urlparse

from get621.api import E621Post, ReverseSearchCandidate
from get621.errors import MissingFileUrlError

logger = logging.getLogger(__name__)

STATIC_URL = "https://static1.e621.net/data"

# tried in order when a candidate's extension is unknown
GUESS_EXTENSIONS = ("jpg", "png", "gif", "webm", "swf")


def post_filename(post: E621Post,
                  pool_id: Optional[int] = None,
                  index: int = 1) -> str:
    """
    File name a post gets saved under
    POOL-INDEX_ID.EXT inside a pool, ID.EXT otherwise
    :param post     A post with a file
    :param pool_id  Pool the post was listed from
    :param index    1-based position within the pool listing
    """
    if post.file is None:
        raise MissingFileUrlError(post.id)

    if pool_id is not None:
        return f"{pool_id}-{index}_{post.id}.{post.file.ext}"
    return f"{post.id}.{post.file.ext}"


def static_url(md5: str, ext: str) -> str:
    """
    URL of a file on e621's static server
    :param md5  File md5
    :param ext  File extension without dot
    """
    return f"{STATIC_URL}/{md5[0:2]}/{md5[2:4]}/{md5}.{ext}"


def candidate_urls(candidate: ReverseSearchCandidate
                   ) -> list[tuple[str, str]]:
    """
    (url, extension) pairs to try for a reverse search match
    :param candidate  A reverse search candidate
    """
    if (url := candidate.file_url):
        ext = candidate.file_ext \
            or os.path.splitext(urlparse(url).path)[1].lstrip(".")
        if ext:
            return [(url, ext)]

    if (md5 := candidate.md5):
        exts = ((candidate.file_ext,) if candidate.file_ext
                else GUESS_EXTENSIONS)
        return [(static_url(md5, ext), ext) for ext in exts]

    raise MissingFileUrlError(candidate.id)


def expand_paths(patterns: Iterable[str]) -> list[Path]:
    """
    Expand glob patterns and directories into a list of files
    :param patterns  Paths, directories or glob patterns
    """
    results: list[Path] = []
    for pattern in patterns:
        matches = sorted(glob.glob(pattern))
        if not matches:
            logger.warning(f"No file matches {pattern}")

        for match in matches:
            path = Path(match)
            if path.is_dir():
                results += sorted(p.resolve() for p in path.iterdir()
                                  if p.is_file())
            elif path.is_file():
                results.append(path.resolve())

    return results
