from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

ACTIONS = ("edit", "save", "view")
IDENTIFIER_PATTERN = r"[A-Za-z0-9-]+"

_IDENTIFIER_RE = re.compile(rf"^{IDENTIFIER_PATTERN}$")
_PAGE_PATH_RE = re.compile(rf"^/({'|'.join(ACTIONS)})/({IDENTIFIER_PATTERN})$")


@dataclass(frozen=True)
class PageRoute:
    action: str
    identifier: str


def is_valid_identifier(identifier: str) -> bool:
    return bool(_IDENTIFIER_RE.fullmatch(identifier))


def match_path(path: str) -> Optional[PageRoute]:
    """
    Split ``/<action>/<identifier>`` into its parts.

    Returns ``None`` for anything outside the allow-list: unknown actions,
    empty identifiers, separators, traversal sequences or other characters.
    """
    match = _PAGE_PATH_RE.fullmatch(path)
    if match is None:
        return None
    return PageRoute(action=match.group(1), identifier=match.group(2))
