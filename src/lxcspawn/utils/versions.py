"""Version-aware ordering for template names."""

import re
from typing import List, Tuple, Union


_TOKEN_RE = re.compile(r"(\d+)")


def version_key(value: str) -> List[Tuple[int, Union[int, str]]]:
    """Sort key comparing digit runs numerically, like ``sort -V``.

    >>> sorted(["9.9", "12.1"], key=version_key)
    ['9.9', '12.1']
    """
    key = []
    for token in _TOKEN_RE.split(value):
        if not token:
            continue
        if token.isdigit():
            key.append((0, int(token)))
        else:
            key.append((1, token))
    return key
