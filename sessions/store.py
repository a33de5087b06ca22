"""
SessionStore: named, saved analysis runs persisted as one JSON array.

Storage layout (``data/sessions.json`` by default):
    [
      {"id": "...", "name": "...", "timestamp": "2026-10-19T05:37:00.000Z",
       "results": [AnalysisResult, ...], "imageDataUrl": "data:image/jpeg;base64,..."},
      ...
    ]

Newest session first. Every mutation writes the new list to a temp file and
swaps it in with ``os.replace`` before the in-memory list changes, so the file
always matches the in-memory list and a failed write leaves both untouched
(raised as StorageError). There is a single writer (one local
user, one app process); concurrent writers are not supported.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from checkers.base_checker import AnalysisResult
from errors import StorageError

logger = logging.getLogger(__name__)

SESSIONS_PATH = Path("data") / "sessions.json"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(dt: datetime) -> str:
    """ISO-8601 UTC with milliseconds and a 'Z' suffix."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def default_session_name(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"ผลการวิเคราะห์ {now.strftime('%Y-%m-%d %H:%M')}"


@dataclass
class SavedSession:
    """One saved analysis run. Only ``name`` changes after creation."""

    id: str
    name: str
    timestamp: str
    results: List[AnalysisResult] = field(default_factory=list)
    image_data_url: Optional[str] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "timestamp": self.timestamp,
            "results": [r.to_dict() for r in self.results],
        }
        if self.image_data_url:
            d["imageDataUrl"] = self.image_data_url
        return d

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SavedSession":
        """Raises TypeError/ValueError/KeyError on an entry that is not a session."""
        results = d.get("results")
        if results is None:
            results = []
        if not isinstance(results, list):
            raise TypeError(f"'results' must be a list, got {type(results).__name__}")
        url = d.get("imageDataUrl")
        if url is not None and not isinstance(url, str):
            raise TypeError(f"'imageDataUrl' must be a string, got {type(url).__name__}")
        return SavedSession(
            id=str(d["id"]),
            name=str(d.get("name", "")),
            timestamp=str(d.get("timestamp", "")),
            results=[AnalysisResult.from_dict(r) for r in results if isinstance(r, dict)],
            image_data_url=d.get("imageDataUrl") or None,
        )


class SessionStore:
    """
    CRUD over the saved-session list, write-through to ``path``.

    Usage:
        store = SessionStore("data/sessions.json")
        store.load_all()
        s = store.save("เดือนตุลาคม", results, image_data_url=thumb)
        store.rename(s.id, "ตุลาคม 2569")
        store.delete(s.id)
    """

    def __init__(self, path: Path | str = SESSIONS_PATH, clock: Optional[Callable[[], datetime]] = None):
        self.path = Path(path)
        self._clock = clock or _utc_now
        self._sessions: List[SavedSession] = []

    @property
    def sessions(self) -> Tuple[SavedSession, ...]:
        return tuple(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load_all(self) -> List[SavedSession]:
        """
        Read the stored list. A corrupted file is logged, removed and treated
        as empty; this never raises to the caller.
        """
        self._sessions = []
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
        except (OSError, ValueError) as exc:
            logger.warning("Discarding unreadable session store %s: %s", self.path, exc)
            self._discard_corrupted()
            return []

        sessions: List[SavedSession] = []
        for entry in data:
            if not isinstance(entry, dict) or "id" not in entry:
                logger.warning("Skipping malformed session entry in %s", self.path)
                continue
            try:
                sessions.append(SavedSession.from_dict(entry))
            except (TypeError, ValueError, KeyError) as exc:
                logger.warning("Skipping corrupted session %r in %s: %s", entry.get("id"), self.path, exc)

        self._sessions = sessions
        logger.info("Loaded %d saved sessions from %s", len(sessions), self.path)
        return list(sessions)

    # ------------------------------------------------------------------
    # Mutations (each one persists the full list)
    # ------------------------------------------------------------------

    def save(
        self,
        name: str,
        results: Sequence[AnalysisResult],
        image_data_url: Optional[str] = None,
    ) -> SavedSession:
        name = name.strip()
        if not name:
            raise ValueError("Session name must not be empty")

        now = self._clock()
        session = SavedSession(
            id=self._new_id(now),
            name=name,
            timestamp=iso_timestamp(now),
            results=list(results),
            image_data_url=image_data_url,
        )
        self._persist([session] + self._sessions)
        logger.info("Saved session %s (%s) with %d rows", session.id, session.name, len(session.results))
        return session

    def rename(self, session_id: str, new_name: str) -> bool:
        new_name = new_name.strip()
        if not new_name:
            raise ValueError("Session name must not be empty")

        if self.find(session_id) is None:
            return False
        self._persist([
            replace(s, name=new_name) if s.id == session_id else s
            for s in self._sessions
        ])
        return True

    def delete(self, session_id: str) -> bool:
        remaining = [s for s in self._sessions if s.id != session_id]
        if len(remaining) == len(self._sessions):
            return False
        self._persist(remaining)
        logger.info("Deleted session %s", session_id)
        return True

    def find(self, session_id: str) -> Optional[SavedSession]:
        for s in self._sessions:
            if s.id == session_id:
                return s
        return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _new_id(self, now: datetime) -> str:
        candidate = int(now.timestamp() * 1000)
        taken = {s.id for s in self._sessions}
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    def _persist(self, sessions: List[SavedSession]) -> None:
        """
        Write ``sessions`` to a sibling temp file and swap it in with os.replace,
        then adopt it as the in-memory list. On failure neither changes.
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump([s.to_dict() for s in sessions], f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.error("Could not write session store %s: %s", self.path, exc)
            self._remove_temp(tmp_path)
            raise StorageError(detail=str(exc)) from exc
        self._sessions = list(sessions)

    @staticmethod
    def _remove_temp(tmp_path: Path) -> None:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove temp file %s: %s", tmp_path, exc)

    def _discard_corrupted(self) -> None:
        try:
            self.path.unlink()
        except OSError as exc:
            logger.warning("Could not remove corrupted session store %s: %s", self.path, exc)
