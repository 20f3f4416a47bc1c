from get621.output import OutputMode
from .relations import expand, related
from .resolve import Resolver, drop_repeats
from .run import Pipeline
from .types import (Materialized, PoolQuery, Query, RelationshipMode,
                    ReverseQuery, ReverseStrategy, RunReport, TagQuery)

__all__ = [
    "Materialized",
    "OutputMode",
    "Pipeline",
    "PoolQuery",
    "Query",
    "RelationshipMode",
    "Resolver",
    "ReverseQuery",
    "ReverseStrategy",
    "RunReport",
    "TagQuery",
    "drop_repeats",
    "expand",
    "related",
]
