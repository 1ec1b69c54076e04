"""
Probe targets.

A target is a remote URL plus the byte length it is expected to serve.  The
length is either given explicitly or inferred from the URL shape used by the
public payload endpoints (``?bytes=N`` on Cloudflare, ``/stream-bytes/N`` and
``/bytes/N`` on httpbin).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs, urlparse

_PATH_SIZE = re.compile(r"/(?:stream-bytes|bytes)/(\d+)/?$")


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass
class ProbeTarget:
    """A fixed-size remote payload used for one download probe."""

    url: str
    size_bytes: Optional[int] = None

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_url(cls, url: str) -> ProbeTarget:
        return cls(url=url, size_bytes=infer_size(url))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ProbeTarget:
        url = data.get("url", "")
        size = data.get("size_bytes", data.get("bytes"))
        return cls(url=url, size_bytes=int(size) if size is not None else infer_size(url))

    # -- Derived ------------------------------------------------------------

    @property
    def host(self) -> str:
        return urlparse(self.url).hostname or ""

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "size_bytes": self.size_bytes}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def infer_size(url: str) -> Optional[int]:
    """Byte length encoded in *url*, or None when the URL carries none."""
    parsed = urlparse(url)

    query = parse_qs(parsed.query)
    for key in ("bytes", "size"):
        values = query.get(key)
        if values and values[0].isdigit():
            return int(values[0])

    m = _PATH_SIZE.search(parsed.path)
    return int(m.group(1)) if m else None


def parse_targets(entries: List[Union[str, Dict[str, Any]]]) -> List[ProbeTarget]:
    """Config entries (plain URLs or ``{"url", "size_bytes"}`` dicts) -> targets."""
    targets = []
    for entry in entries:
        if isinstance(entry, dict):
            targets.append(ProbeTarget.from_dict(entry))
        else:
            targets.append(ProbeTarget.from_url(str(entry)))
    return targets
