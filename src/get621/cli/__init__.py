# SPDX-FileCopyrightText: 2025-present Xarblu <xarblu@protonmail.com>
#
# SPDX-License-Identifier: MIT
import logging
import sys

from argparse import ArgumentParser, Namespace
from dataclasses import replace
from typing import Optional

from get621.__about__ import __version__
from get621.api import E621ApiClient
from get621.config import ClientConfig
from get621.errors import Get621Error
from get621.pipeline import (OutputMode, Pipeline, PoolQuery, Query,
                             RelationshipMode, ReverseQuery, ReverseStrategy,
                             TagQuery)
from get621.storage import expand_paths

logger = logging.getLogger(__name__)


def _add_common(parser: ArgumentParser) -> None:
    """
    Options shared by every command
    """
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-p", "--parents",
                       action="store_true",
                       help="Take the parent post of each "
                            "search result, if any")
    group.add_argument("-c", "--children",
                       action="store_true",
                       help="Take the children of search results")
    parser.add_argument("-o", "--output",
                        type=OutputMode,
                        default=None,
                        choices=list(OutputMode),
                        metavar="{id,raw,verbose,stream}",
                        help="Set output mode (Default verbose)")


def _parser() -> ArgumentParser:
    parser = ArgumentParser(
            prog="get621",
            description="E621/926 command line tool "
                        f"(Version {__version__})")

    parser.add_argument("-u", "--url",
                        required=False,
                        help="The URL of the server where requests "
                             "should be made (Default $GET621_URL "
                             "or https://e926.net)")
    parser.add_argument("--log",
                        required=False,
                        default="WARN",
                        type=str.upper,
                        choices=["DEBUG", "INFO", "WARN", "ERROR",
                                 "CRITICAL"])
    parser.add_argument("--version",
                        action="version",
                        version=f"%(prog)s {__version__}")

    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Search posts by tags")
    _add_common(search)
    search.add_argument("-l", "--limit",
                        type=int,
                        default=1,
                        help="Maximum search result count")
    search.add_argument("-s", "--save",
                        action="store_true",
                        help="Download every result to ./<post_id>.<ext>")
    search.add_argument("tags",
                        nargs="*",
                        help="Search tags")

    pool = commands.add_parser("pool", help="Pool related commands")
    _add_common(pool)
    pool.add_argument("-s", "--save",
                      action="store_true",
                      help="Download every result to "
                           "./<pool_id>-<i>_<post_id>.<ext>")
    pool.add_argument("id",
                      type=int,
                      help="The ID of the pool")

    reverse = commands.add_parser("reverse",
                                  help="Similar image search")
    _add_common(reverse)
    reverse.add_argument("-S", "--similarity",
                         type=float,
                         default=90.0,
                         help="Set the similarity threshold for matching "
                              "posts (in percents)")
    saving = reverse.add_mutually_exclusive_group()
    saving.add_argument("-s", "--save",
                        action="store_true",
                        help="Download all matching posts to "
                             "./<post_id>.<ext>")
    saving.add_argument("-d", "--direct-save",
                        action="store_true",
                        help="Download posts directly without requesting "
                             "other post information (faster)")
    reverse.add_argument("source",
                         nargs="+",
                         help="Files or folders to reverse search; "
                              "can be a glob pattern")

    return parser


def _relationship(args: Namespace) -> RelationshipMode:
    if args.parents:
        return RelationshipMode.PARENTS
    if args.children:
        return RelationshipMode.CHILDREN
    return RelationshipMode.NONE


def _query(parser: ArgumentParser, args: Namespace) -> Query:
    match args.command:
        case "pool":
            return PoolQuery(pool_id=args.id)
        case "reverse":
            if args.direct_save and (args.output is not None
                                     or args.parents or args.children):
                parser.error("--direct-save can't be combined with "
                             "--output, --parents or --children")
            if not 0.0 <= args.similarity <= 100.0:
                parser.error("--similarity must be between 0 and 100")
            strategy = (ReverseStrategy.DIRECT if args.direct_save
                        else ReverseStrategy.RESOLVED)
            return ReverseQuery(paths=tuple(expand_paths(args.source)),
                                min_similarity=args.similarity,
                                strategy=strategy)
        case _:
            if args.limit < 1:
                parser.error("--limit must be a positive integer")
            return TagQuery(tags=tuple(args.tags), limit=args.limit)


def get621(argv: Optional[list[str]] = None) -> int:
    """
    CLI entry point
    """
    parser = _parser()

    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log)

    config = ClientConfig.from_env()
    if args.url:
        config = replace(config, base_url=args.url)

    query = _query(parser, args)
    output = args.output or OutputMode.VERBOSE

    api = E621ApiClient(config=config)
    pipeline = Pipeline(api, progress=output is not OutputMode.STREAM)

    try:
        report = pipeline.run(query,
                              relationship=_relationship(args),
                              output=output,
                              save=args.save)
    except Get621Error as e:
        print(e, file=sys.stderr)
        return 1
    except BrokenPipeError:
        # reader went away, nothing left to report to
        return 1

    if report.failures:
        logger.warning(f"{len(report.failures)} posts failed")

    return 0
