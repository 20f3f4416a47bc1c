from .render import (DIVIDER, NO_RESULTS, format_post, output_posts,
                     stream_posts)
from .types import OutputMode

__all__ = [
    "DIVIDER",
    "NO_RESULTS",
    "OutputMode",
    "format_post",
    "output_posts",
    "stream_posts",
]
