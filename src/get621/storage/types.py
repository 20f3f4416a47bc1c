from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Annotated
from typing import Optional

from get621.errors import Get621Error


@dataclass
class StatCounter:
    """
    Repository stat counter
    """

    processed: Annotated[int, "Total processed posts"] = 0
    saved: Annotated[int, "Saved files"] = 0
    skipped: Annotated[int, "Deleted or repeated posts left out"] = 0
    failed: Annotated[int, "Failed downloads"] = 0


class SaveStatus(Enum):
    """
    Outcome of saving one post
    """
    SAVED = 0
    SKIPPED = 1
    FAILED = 2


@dataclass(frozen=True)
class SaveResult:
    post_id: int
    status: SaveStatus
    path: Optional[Path] = None
    error: Optional[Get621Error] = None


@dataclass(frozen=True)
class ItemFailure:
    """
    A post that failed in the output stage
    """
    post_id: int
    error: Get621Error

    @staticmethod
    def fromResult(result: SaveResult) -> "ItemFailure":
        if result.error is None:
            raise ValueError(f"Result for #{result.post_id} has no error")
        return ItemFailure(result.post_id, result.error)
