from __future__ import annotations

import os

from dataclasses import dataclass
from typing import Annotated
from typing import Optional


def _env_float(name: str) -> Optional[float]:
    if (val := os.getenv(name)) is None or val == "":
        return None
    return float(val)


@dataclass(frozen=True)
class ClientConfig:
    """
    Settings shared by the API client, iqdb client and downloads
    """

    base_url: Annotated[str, "Site to query (e621 or e926)"] = \
        "https://e926.net"
    request_delay: Annotated[float, "Minimum seconds between "
                                    "API requests"] = 1.0
    max_retries: Annotated[int, "Retries on 5xx responses"] = 5
    backoff_factor: Annotated[float, "urllib3 retry backoff"] = 0.1
    timeout: Annotated[Optional[float], "Per request timeout, "
                                        "None means no ceiling"] = None
    download_workers: Annotated[int, "Concurrent file downloads"] = 4
    chunk_size: Annotated[int, "Streamed body chunk size"] = 8192

    @classmethod
    def from_env(cls) -> ClientConfig:
        """
        Build a config from GET621_* environment variables,
        falling back to defaults for anything unset
        """
        defaults = cls()
        delay = _env_float("GET621_REQUEST_DELAY")
        retries = os.getenv("GET621_MAX_RETRIES")
        workers = os.getenv("GET621_WORKERS")
        return cls(
                base_url=os.getenv("GET621_URL", defaults.base_url),
                request_delay=(defaults.request_delay
                               if delay is None else delay),
                max_retries=(int(retries) if retries
                             else defaults.max_retries),
                timeout=_env_float("GET621_TIMEOUT"),
                download_workers=(int(workers) if workers
                                  else defaults.download_workers))
