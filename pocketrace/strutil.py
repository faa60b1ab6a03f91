"""Small string helpers with C-library semantics (ASCII case folding, bounded copies)."""

from __future__ import annotations

from collections.abc import Iterator

_UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_LOWER = "abcdefghijklmnopqrstuvwxyz"
_FOLD = str.maketrans(_UPPER, _LOWER)


def _ascii_lower(text: str) -> str:
    return text.translate(_FOLD)


def strcasecmp(a: str, b: str) -> int:
    """Compare two strings ignoring ASCII case.

    Returns the difference of the first differing folded characters, or of
    the folded character and zero when one string is a prefix of the other.
    """
    for ca, cb in zip(_ascii_lower(a), _ascii_lower(b)):
        if ca != cb:
            return ord(ca) - ord(cb)
    tail_a = ord(_ascii_lower(a[len(b)])) if len(a) > len(b) else 0
    tail_b = ord(_ascii_lower(b[len(a)])) if len(b) > len(a) else 0
    return tail_a - tail_b


def strcasestr(haystack: str, needle: str) -> int | None:
    """Return the index of the first case-insensitive match of needle, or None."""
    if len(needle) > len(haystack):
        return None
    folded_hay = _ascii_lower(haystack)
    folded_needle = _ascii_lower(needle)
    for start in range(len(haystack) - len(needle) + 1):
        if folded_hay.startswith(folded_needle, start):
            return start
    return None


def strlcpy(source: str, size: int) -> tuple[str, int]:
    """Copy at most ``size - 1`` characters of source.

    Returns the copied text and the full length of source, so truncation
    happened when the length is ``>= size``.
    """
    if size < 0:
        raise ValueError("size must not be negative")
    copied = source[: size - 1] if size else ""
    return copied, len(source)


def strlcat(dest: str, source: str, size: int) -> tuple[str, int]:
    """Append source to dest within a buffer of ``size`` characters.

    Returns the resulting text and the length the full result would have had.
    """
    if size < 0:
        raise ValueError("size must not be negative")
    length = len(dest)
    remaining = 0 if length > size else size - length
    appended, source_len = strlcpy(source, remaining)
    return dest + appended, length + source_len


def strldup(text: str, n: int) -> str:
    """Return a bounded copy of text holding at most ``n - 1`` characters."""
    copied, _ = strlcpy(text, max(n, 0))
    return copied


def isblank(char: str) -> bool:
    """True for a space or a horizontal tab."""
    return char in (" ", "\t") and len(char) == 1


def tokenize(text: str, delimiters: str) -> Iterator[str]:
    """Yield the non-empty runs of text separated by any delimiter character."""
    current: list[str] = []
    for char in text:
        if char in delimiters:
            if current:
                yield "".join(current)
                current = []
        else:
            current.append(char)
    if current:
        yield "".join(current)