from __future__ import annotations

import contextlib
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import List, Set
from uuid import uuid4

from .routing import is_valid_identifier

PAGE_EXTENSION = ".txt"

logger = logging.getLogger("notes.storage")


class PageNotFoundError(LookupError):
    """Raised when a page file is missing or cannot be read."""


class InvalidIdentifierError(ValueError):
    """Raised when an identifier could escape the storage directory."""


class PageStoreError(Exception):
    """Raised when a page cannot be written to disk."""


@dataclass
class Page:
    title: str
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class PageStore:
    """
    Flat-file page store: one ``<identifier><extension>`` file per page.

    Nothing is cached, every load goes back to disk. Writes replace the whole
    file, so concurrent saves of the same page resolve as last writer wins.
    """

    def __init__(self, root: Path, extension: str = PAGE_EXTENSION) -> None:
        self.root = root
        self.extension = extension
        self.root.mkdir(mode=0o777, parents=True, exist_ok=True)

    def path_for(self, identifier: str) -> Path:
        if (
            not identifier
            or identifier in {".", ".."}
            or "/" in identifier
            or "\\" in identifier
            or "\x00" in identifier
        ):
            raise InvalidIdentifierError(f"Invalid page identifier: {identifier!r}")
        return self.root / f"{identifier}{self.extension}"

    def load(self, identifier: str) -> Page:
        path = self.path_for(identifier)
        try:
            body = path.read_bytes()
        except OSError as exc:
            logger.debug("Page %s not loaded from %s: %s", identifier, path, exc)
            raise PageNotFoundError(identifier) from exc
        logger.debug("Loaded page %s (%d bytes)", identifier, len(body))
        return Page(title=identifier, body=body)

    def save(self, page: Page) -> None:
        path = self.path_for(page.title)
        tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        try:
            with tmp_path.open("wb") as handle:
                handle.write(page.body)
            tmp_path.chmod(0o600)
            os.replace(tmp_path, path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise PageStoreError(f"Could not save page {page.title!r}: {exc}") from exc
        logger.info("Saved page %s (%d bytes)", page.title, len(page.body))

    def list_pages(self) -> List[str]:
        return scan_index(self.root, self.extension)


def scan_index(root: Path, extension: str) -> List[str]:
    """
    Collect the identifiers of every page file below ``root``.

    Subdirectories are walked too. Names outside the identifier allow-list
    are left out since no page route could reach them. Entries that fail to
    list or stat are logged and skipped so one broken entry never hides the
    whole index.
    """

    def on_walk_error(exc: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", exc.filename, exc)

    names: Set[str] = set()
    for dirpath, _dirnames, filenames in os.walk(root, onerror=on_walk_error):
        for filename in filenames:
            stem, ext = os.path.splitext(filename)
            if ext != extension or not stem:
                continue
            path = os.path.join(dirpath, filename)
            try:
                mode = os.stat(path).st_mode
            except OSError as exc:
                logger.warning("Skipping unreadable index entry %s: %s", path, exc)
                continue
            if not stat.S_ISREG(mode):
                continue
            if not is_valid_identifier(stem):
                logger.debug("Leaving %s out of the index: name is not routable", path)
                continue
            names.add(stem)
    identifiers = sorted(names)
    logger.debug("Scanned %s: %d pages", root, len(identifiers))
    return identifiers
