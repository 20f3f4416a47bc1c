import logging
import sys

from typing import BinaryIO
from typing import Optional
from typing import TextIO

from get621.api import E621ApiClient, E621Post, ReverseSearchCandidate
from get621.output import OutputMode, output_posts
from get621.storage import (AssetRepository, ItemFailure, SaveResult,
                            SaveStatus)
from .relations import expand
from .resolve import Resolver, drop_repeats
from .types import (PoolQuery, Query, RelationshipMode,
                    ReverseQuery, ReverseStrategy, RunReport, TagQuery)

logger = logging.getLogger(__name__)

HEADER_RULE = "=" * 32


class Pipeline:
    """
    Query -> relationship expansion -> output/save
    """

    def __init__(self,
                 api: E621ApiClient,
                 repo: Optional[AssetRepository] = None,
                 resolver: Optional[Resolver] = None,
                 out: Optional[TextIO] = None,
                 binary_out: Optional[BinaryIO] = None,
                 progress: bool = False) -> None:
        """
        Constructor
        :param api         API client
        :param repo        Where saved files go (Default current directory)
        :param resolver    Query resolver (Default built from api)
        :param out         Text output (Default stdout)
        :param binary_out  Binary output for STREAM (Default stdout)
        :param progress    Show progress bars while saving
        """
        self.api = api
        self.repo = repo or AssetRepository(config=api.config,
                                            session=api.requests_session)
        self.resolver = resolver or Resolver(api)
        self.out = out or sys.stdout
        self.binary_out = binary_out or sys.stdout.buffer
        self.progress = progress

    @staticmethod
    def _record(results: list[SaveResult], report: RunReport) -> None:
        for result in results:
            if result.status is SaveStatus.FAILED:
                report.failures.append(ItemFailure.fromResult(result))
            elif result.path is not None:
                report.saved.append(result.path)

    def _consume(self,
                 posts: list[E621Post],
                 output: OutputMode,
                 save: bool,
                 report: RunReport,
                 pool_id: Optional[int] = None) -> None:
        """
        Save and print an already materialized list
        Item failures are collected in report
        """
        report.posts += posts

        if save:
            self._record(self.repo.save_posts(posts, pool_id=pool_id,
                                              progress=self.progress),
                         report)

        report.failures += output_posts(
                posts, output, self.out,
                session=self.repo.requests_session,
                binary_out=self.binary_out,
                chunk_size=self.api.config.chunk_size,
                timeout=self.api.config.timeout)

    def _reverse(self,
                 query: ReverseQuery,
                 relationship: RelationshipMode,
                 output: OutputMode,
                 save: bool,
                 report: RunReport) -> None:
        direct = query.strategy is ReverseStrategy.DIRECT
        if direct:
            if relationship is not RelationshipMode.NONE:
                raise ValueError("Direct downloads can't be combined "
                                 "with parents or children")
            if output is not OutputMode.VERBOSE:
                raise ValueError("Direct downloads only support "
                                 "verbose output")

        # search and resolve every file before printing anything
        searched: list[tuple[str, list[ReverseSearchCandidate],
                             list[E621Post]]] = []
        for path, matches in self.resolver.matches(query):
            posts: list[E621Post] = []
            if matches and not direct:
                posts = list(drop_repeats(expand(
                        self.resolver.resolve_candidates(matches),
                        relationship, self.api.post)))
            searched.append((path, matches, posts))

        if output is not OutputMode.VERBOSE:
            # one listing over every file, RAW stays a single array
            self._consume([post for _, _, posts in searched
                           for post in posts],
                          output, save, report)
            return

        for path, matches, posts in searched:
            print(f"Looking for {path}", file=self.out)
            print(HEADER_RULE, file=self.out)

            if not matches:
                print("No result.", file=self.out)
            elif direct:
                for candidate in matches:
                    print(f"Downloading #{candidate.id} "
                          f"({candidate.score}% similar)", file=self.out)
                self._record(self.repo.save_candidates(
                        matches, progress=self.progress), report)
            else:
                self._consume(posts, output, save, report)

            print(file=self.out)

    def run(self,
            query: Query,
            relationship: RelationshipMode = RelationshipMode.NONE,
            output: OutputMode = OutputMode.VERBOSE,
            save: bool = False) -> RunReport:
        """
        Run a query end to end
        Errors while producing or expanding posts are raised,
        failures of single saves or streams end up in the report
        :param query         Tag search, pool or reverse search query
        :param relationship  Replace results by their parents/children
        :param output        Output mode
        :param save          Also save every non-deleted post's file
        """
        report = RunReport()

        match query:
            case ReverseQuery():
                self._reverse(query, relationship, output, save, report)
            case TagQuery() | PoolQuery():
                materialized = self.resolver.materialize(query, relationship)
                self._consume(list(materialized.posts), output, save, report,
                              pool_id=materialized.pool_id)
            case _:
                raise ValueError(f"Unsupported query {query!r}")

        if save or isinstance(query, ReverseQuery):
            self.repo.log_stats()

        return report
