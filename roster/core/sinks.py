"""Emission sinks that receive exported pages.

A sink sees ``emit(payload, content_type)`` followed by ``commit()`` once per
non-empty page, in offset order. A committed page is final; later failures
in the same run never undo it.
"""
from __future__ import annotations
import json
import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional

logger = logging.getLogger(__name__)


class EmissionSink:
    """Base class for page sinks."""

    def emit(self, payload: bytes, content_type: str, attributes: Optional[Dict[str, Any]] = None) -> None:
        """Stage one page. Nothing is visible downstream until commit()."""
        raise NotImplementedError

    def commit(self) -> None:
        """Make the staged page final."""
        raise NotImplementedError


class DirectorySink(EmissionSink):
    """Write each committed page to ``page-NNNNNN.json`` under a directory.

    Pages are staged in a hidden temp file and linked into place on commit,
    so a reader listing the directory never sees a partial page. Page
    attributes (content type, realm, offset, count) go to a sidecar file.
    """

    PAGE_GLOB = "page-*[0-9].json"
    PAGE_NAME = re.compile(r"page-(\d{6,})\.json")

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._sequence = self._highest_sequence()
        self._staged: Optional[Path] = None
        self._staged_attrs: Dict[str, Any] = {}

    def emit(self, payload: bytes, content_type: str, attributes: Optional[Dict[str, Any]] = None) -> None:
        if self._staged is not None:
            raise RuntimeError("previous page was emitted but never committed")
        staged = self.directory / f".page-{self._sequence + 1:06d}.json.tmp"
        with staged.open("wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        self._staged = staged
        self._staged_attrs = {"content-type": content_type, **(attributes or {})}

    def commit(self) -> None:
        if self._staged is None:
            raise RuntimeError("commit() called with no emitted page")
        name = f"page-{self._sequence + 1:06d}"
        target = self.directory / f"{name}.json"
        if target.exists():
            raise FileExistsError(f"refusing to overwrite committed page {target}")
        (self.directory / f"{name}.attrs.json").write_text(
            json.dumps(self._staged_attrs, sort_keys=True), encoding="utf-8"
        )
        # link fails on an existing target, so a committed page is never replaced
        os.link(self._staged, target)
        self._staged.unlink()
        self._sequence += 1
        logger.debug("Committed %s", name)
        self._staged = None
        self._staged_attrs = {}

    def pages(self) -> List[Path]:
        """Committed page files in the order they were written."""
        return sorted(self.directory.glob(self.PAGE_GLOB), key=self._page_number)

    def _page_number(self, page: Path) -> int:
        match = self.PAGE_NAME.fullmatch(page.name)
        return int(match.group(1)) if match else 0

    def _highest_sequence(self) -> int:
        return max((self._page_number(p) for p in self.pages()), default=0)

    def attributes(self, page: Path) -> Dict[str, Any]:
        sidecar = page.with_name(page.name.replace(".json", ".attrs.json"))
        return json.loads(sidecar.read_text(encoding="utf-8"))


class StreamSink(EmissionSink):
    """Write each committed page as one line on a binary stream (stdout by default)."""

    def __init__(self, stream: Optional[BinaryIO] = None):
        self.stream = stream if stream is not None else sys.stdout.buffer
        self._staged: Optional[bytes] = None

    def emit(self, payload: bytes, content_type: str, attributes: Optional[Dict[str, Any]] = None) -> None:
        if self._staged is not None:
            raise RuntimeError("previous page was emitted but never committed")
        self._staged = payload.replace(b"\r", b"").replace(b"\n", b"")

    def commit(self) -> None:
        if self._staged is None:
            raise RuntimeError("commit() called with no emitted page")
        self.stream.write(self._staged + b"\n")
        self.stream.flush()
        self._staged = None
