from __future__ import annotations

import re

_LEADING_DIR_NOISE_RE = re.compile(r"^[./\\]+")
_TRAILING_SEPARATORS_RE = re.compile(r"[\\/]+$")
_SEPARATOR_RE = re.compile(r"[/\\]")

SOURCE_EXTENSIONS: tuple[str, ...] = ("tsx", "jsx", "ts", "js")


def normalize_path(value: str) -> str:
    return value.replace("\\", "/")


def normalize_directory(value: str) -> str:
    """Trim a configured directory down to its relative, separator-free form."""
    trimmed = _LEADING_DIR_NOISE_RE.sub("", value.strip())
    return _TRAILING_SEPARATORS_RE.sub("", trimmed)


def split_segments(value: str) -> list[str]:
    return _SEPARATOR_RE.split(value)


def directory_segments(value: str) -> list[str]:
    return [segment for segment in normalize_path(value).split("/") if segment]


def dirname(value: str) -> str:
    normalized = normalize_path(value)
    idx = normalized.rfind("/")
    return "." if idx == -1 else normalized[:idx]


def find_last_sub_path_index(haystack: list[str], needle: list[str]) -> int:
    """Index of the last run of ``needle`` in ``haystack``, or -1.

    The last run wins so that an ancestor directory sharing the app
    directory's name (``/app/project/app/...``) is never taken for it.
    """
    if not needle or len(needle) > len(haystack):
        return -1
    width = len(needle)
    for idx in range(len(haystack) - width, -1, -1):
        if haystack[idx : idx + width] == needle:
            return idx
    return -1


def has_source_extension(value: str) -> bool:
    return value.rsplit(".", 1)[-1] in SOURCE_EXTENSIONS if "." in value else False
