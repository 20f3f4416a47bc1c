import logging
import os
import requests
import tempfile

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from tqdm import tqdm
from typing import Annotated
from typing import Iterable
from typing import Optional

from get621.api import E621Post, ReverseSearchCandidate
from get621.api.client import make_session
from get621.config import ClientConfig
from get621.errors import FileSystemError, Get621Error, HttpError
from .download import download
from .types import SaveResult, SaveStatus, StatCounter
from .util import candidate_urls, post_filename

logger = logging.getLogger(__name__)


class AssetRepository:
    """
    Storage for downloaded post files
    """

    root: Annotated[Path, "Storage root"]
    config: Annotated[ClientConfig, "Client settings"]
    requests_session: Annotated[requests.Session, "Session for requests"]
    stats: Annotated[StatCounter, "Counters over all saves"]

    def __init__(self,
                 root: Optional[Path] = None,
                 config: Optional[ClientConfig] = None,
                 session: Optional[requests.Session] = None) -> None:
        """
        Constructor
        :param root     Storage root (Default current directory)
        :param config   Client settings
        :param session  Session to use instead of a fresh one
        """
        if root:
            self.root = root
        else:
            self.root = Path(os.getcwd())

        self.config = config or ClientConfig()
        self.requests_session = session or make_session(self.config)
        self.stats = StatCounter()

    def _fetch(self, url: str, dest: Path) -> int:
        """
        Fetch url and store it in dest
        Will initially fetch to a temporary file that then gets moved
        Every call gets its own temporary file
        :param url   URL to fetch from
        :param dest  Destination file
        :return      Bytes written
        """
        temp: Optional[Path] = None

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=dest.parent,
                                             prefix=f"{dest.name}.",
                                             suffix=".__part__",
                                             delete=False) as fd:
                temp = Path(fd.name)
                size = download(self.requests_session, url, fd,
                                chunk_size=self.config.chunk_size,
                                timeout=self.config.timeout)
            temp.replace(dest)
        except OSError as e:
            raise FileSystemError(f"Couldn't write {dest}: {e}") from e
        finally:
            if temp is not None:
                temp.unlink(missing_ok=True)

        return size

    def save_post(self,
                  post: E621Post,
                  pool_id: Optional[int] = None,
                  index: int = 1) -> Path:
        """
        Download a single post's file
        :param post     A non-deleted post
        :param pool_id  Pool the post was listed from, if any
        :param index    1-based position in the listing
        :return         Path of the written file
        """
        dest = self.root / post_filename(post, pool_id, index)

        # post_filename() already checked for a file
        if post.file is None:
            raise ValueError(f"Post #{post.id} has no file")

        size = self._fetch(post.file.url, dest)
        logger.info(f"Saved #{post.id} to {dest} ({size} bytes)")
        return dest

    def save_candidate(self, candidate: ReverseSearchCandidate) -> Path:
        """
        Download a reverse search match without resolving its post
        Extensions are tried in order until one downloads
        :param candidate  A reverse search candidate
        :return           Path of the written file
        """
        last_error: Optional[HttpError] = None
        for url, ext in candidate_urls(candidate):
            dest = self.root / f"{candidate.id}.{ext}"
            try:
                size = self._fetch(url, dest)
            except HttpError as e:
                logger.debug(f"No .{ext} file for #{candidate.id}: {e}")
                last_error = e
                continue
            logger.info(f"Saved #{candidate.id} to {dest} ({size} bytes)")
            return dest

        # candidate_urls() never returns an empty list
        if last_error is None:
            raise ValueError(f"No URL to try for #{candidate.id}")
        raise last_error

    def _save_isolated(self,
                       post: E621Post,
                       pool_id: Optional[int],
                       index: int) -> SaveResult:
        try:
            path = self.save_post(post, pool_id, index)
        except Get621Error as e:
            return SaveResult(post.id, SaveStatus.FAILED, error=e)
        return SaveResult(post.id, SaveStatus.SAVED, path=path)

    def _candidate_isolated(self,
                            candidate: ReverseSearchCandidate) -> SaveResult:
        try:
            path = self.save_candidate(candidate)
        except Get621Error as e:
            return SaveResult(candidate.id, SaveStatus.FAILED, error=e)
        return SaveResult(candidate.id, SaveStatus.SAVED, path=path)

    def _record(self, result: SaveResult) -> SaveResult:
        self.stats.processed += 1
        match result.status:
            case SaveStatus.SAVED:
                self.stats.saved += 1
            case SaveStatus.SKIPPED:
                self.stats.skipped += 1
            case SaveStatus.FAILED:
                self.stats.failed += 1
                logger.error(f"Error when saving #{result.post_id}: "
                             f"{result.error}")
        return result

    def save_posts(self,
                   posts: Iterable[E621Post],
                   pool_id: Optional[int] = None,
                   progress: bool = False) -> list[SaveResult]:
        """
        Save every non-deleted post
        A failing post is logged and reported in its result,
        the rest of the batch still gets saved
        :param posts     Posts in listing order
        :param pool_id   Pool the posts were listed from, if any
        :param progress  Show a progress bar on stderr
        :return          One result per post, in input order
        """
        numbered = list(enumerate(posts, start=1))

        # a post listed twice is saved once, under its first index
        results: dict[int, SaveResult] = {}
        active: list[tuple[int, E621Post]] = []
        seen: set[int] = set()
        for i, post in numbered:
            if post.is_deleted:
                logger.debug(f"Skipping deleted post #{post.id}")
                results[i] = self._record(
                        SaveResult(post.id, SaveStatus.SKIPPED))
            elif post.id in seen:
                logger.debug(f"Skipping repeated post #{post.id}")
                results[i] = self._record(
                        SaveResult(post.id, SaveStatus.SKIPPED))
            else:
                seen.add(post.id)
                active.append((i, post))

        with ThreadPoolExecutor(
                max_workers=max(1, self.config.download_workers)
                ) as executor:
            saves = executor.map(
                    lambda item: self._save_isolated(item[1], pool_id,
                                                     item[0]),
                    active)
            for (i, _), result in tqdm(zip(active, saves),
                                       total=len(active),
                                       desc="Saving",
                                       unit="post",
                                       disable=not progress):
                results[i] = self._record(result)

        return [results[i] for i, _ in numbered]

    def save_candidates(self,
                        candidates: Iterable[ReverseSearchCandidate],
                        progress: bool = False) -> list[SaveResult]:
        """
        Directly save reverse search matches, isolating failures
        :param candidates  Matches in response order
        :param progress    Show a progress bar on stderr
        :return            One result per candidate, in input order
        """
        candidates = list(candidates)
        with ThreadPoolExecutor(
                max_workers=max(1, self.config.download_workers)
                ) as executor:
            saves = executor.map(self._candidate_isolated, candidates)
            return [self._record(result)
                    for result in tqdm(saves,
                                       total=len(candidates),
                                       desc="Saving",
                                       unit="file",
                                       disable=not progress)]

    def log_stats(self) -> None:
        """
        Log a summary of all saves so far
        """
        logger.info(f"Processed {self.stats.processed} posts: "
                    f"{self.stats.saved} saved, "
                    f"{self.stats.skipped} skipped, "
                    f"{self.stats.failed} failed")
