from .download import download
from .repo import AssetRepository
from .types import ItemFailure, SaveResult, SaveStatus, StatCounter
from .util import candidate_urls, expand_paths, post_filename, static_url

__all__ = [
    "AssetRepository",
    "ItemFailure",
    "SaveResult",
    "SaveStatus",
    "StatCounter",
    "candidate_urls",
    "download",
    "expand_paths",
    "post_filename",
    "static_url",
]
