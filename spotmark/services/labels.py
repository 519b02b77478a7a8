"""Short alphabetic labels: A, B, ..., Z, AA, AB, ...

Labels are scoped per (owner, annotation type) and derived from the labels
currently in use. A label freed by a deletion is never handed out again while
a larger one exists: the next label always extends past the current maximum.
"""

from __future__ import annotations

import re
from collections.abc import Iterable


_LABEL_RE = re.compile(r"[A-Z]+")


def label_sort_key(label: str) -> tuple[int, str]:
    # Shorter labels first, so Z < AA.
    return (len(label), label)


def increment_label(label: str) -> str:
    chars = list(label)
    for i in range(len(chars) - 1, -1, -1):
        if chars[i] != "Z":
            chars[i] = chr(ord(chars[i]) + 1)
            return "".join(chars)
        chars[i] = "A"
    # Carry ran off the left end.
    return "A" + "".join(chars)


def next_label(existing: Iterable[str]) -> str:
    valid = [label for label in existing if _LABEL_RE.fullmatch(label)]
    if not valid:
        return "A"
    return increment_label(max(valid, key=label_sort_key))
