"""Line normalization applied before every classification attempt."""

import re

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")

# Optional source tag added when several process outputs are interleaved,
# e.g. "route-service    | 2025-08-14 00:45:23.093 ..."
_SOURCE_PREFIX_RE = re.compile(r"^[^|]*\|\s+")


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def preprocess(line: str) -> str:
    """Strip color sequences and a leading '<source> | ' prefix."""
    return _SOURCE_PREFIX_RE.sub("", strip_ansi(line), count=1)
