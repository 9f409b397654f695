"""
Idea Archiver - Delivery tracker.

Remembers which archive files have already been delivered so a sync can be
interrupted and resumed without re-sending. State is a pretty-printed JSON
list of paths; deleting the file forces a full re-send.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile

from idea_archiver.exceptions import CorruptStateError

logger = logging.getLogger(__name__)


def _parse_state(raw: str) -> list[str]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CorruptStateError(f"invalid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise CorruptStateError(f"expected a list, got {type(data).__name__}")
    if not all(isinstance(item, str) for item in data):
        raise CorruptStateError("expected a list of path strings")
    return data


class DeliveryTracker:
    """Persistent set of delivered file paths."""

    def __init__(self, state_path: str) -> None:
        self.state_path = state_path
        # Insertion order is kept so the state file lists files in send order.
        self._delivered: dict[str, None] = {}

    def __len__(self) -> int:
        return len(self._delivered)

    def __contains__(self, path: str) -> bool:
        return self.has(path)

    @property
    def delivered(self) -> frozenset[str]:
        return frozenset(self._delivered)

    def load(self) -> frozenset[str]:
        """
        Read the state file into memory and return the delivered set.

        A missing file is an empty record. A malformed file is logged and
        treated as empty; it is never fatal.
        """
        self._delivered = {}
        if not os.path.isfile(self.state_path):
            logger.debug("No delivery state at %s; starting empty", self.state_path)
            return self.delivered

        try:
            with open(self.state_path, "r", encoding="utf-8") as fh:
                paths = _parse_state(fh.read())
        except (CorruptStateError, UnicodeDecodeError) as exc:
            logger.warning(
                "Could not parse delivery state %s (%s); starting fresh.",
                self.state_path,
                exc,
            )
            return self.delivered
        except OSError as exc:
            logger.warning(
                "Could not read delivery state %s: %s; starting fresh.",
                self.state_path,
                exc,
            )
            return self.delivered

        for path in paths:
            self._delivered[os.path.normpath(path)] = None
        logger.debug(
            "Loaded %d delivered path(s) from %s", len(self._delivered), self.state_path
        )
        return self.delivered

    def has(self, path: str) -> bool:
        return os.path.normpath(path) in self._delivered

    def record_success(self, path: str) -> None:
        """Mark ``path`` delivered and flush the whole record to disk."""
        self._delivered[os.path.normpath(path)] = None
        self._save()

    def reset(self) -> bool:
        """
        Forget every delivery and remove the state file.

        Returns True if a state file was removed.
        """
        self._delivered = {}
        try:
            os.unlink(self.state_path)
        except FileNotFoundError:
            return False
        logger.info("Removed delivery state %s", self.state_path)
        return True

    def _save(self) -> None:
        # Write-then-rename so an interrupted save never leaves a truncated file.
        directory = os.path.dirname(os.path.abspath(self.state_path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=".delivery-", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(list(self._delivered), fh, indent=2)
                fh.write("\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.state_path)
        except OSError:
            try:
                os.unlink(tmp_path)
            except OSError as exc:
                logger.debug("Could not remove temp state %s: %s", tmp_path, exc)
            raise
        logger.debug(
            "Saved %d delivered path(s) to %s", len(self._delivered), self.state_path
        )
