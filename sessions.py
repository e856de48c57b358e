"""
Session persistence for Bedrock Planner.
Stores each planning session as one JSON document so a conversation can be
resumed after the process exits, including while it waits for a human answer.
"""

import json
import logging
import os
import re
from typing import Dict, Any, List, Optional

from planner.errors import SessionCorruption
from planner.models import SessionRecord, now_iso

logger = logging.getLogger(__name__)

SESSIONS_SUBDIR = "sessions"
MAX_SLUG_LENGTH = 50


def slugify(text: str) -> str:
    """Turn a feature description into a kebab-case session id."""
    s = text.lower()
    s = re.sub(r"[^\w\s-]", "", s)
    s = re.sub(r"[\s_]+", "-", s)
    s = re.sub(r"-+", "-", s)
    s = s.strip("-")[:MAX_SLUG_LENGTH].strip("-")
    return s or "session"


def display_name(session_id: str) -> str:
    """Convert a kebab-case id to Title Case for listings."""
    return " ".join(w[:1].upper() + w[1:] for w in session_id.split("-") if w)


class SessionStore:
    """
    Manages session files on disk.

    File layout:  {base_dir}/{session_id}.json
    Concurrent writers from several processes are not coordinated (last write wins).
    """

    def __init__(self, base_dir: str):
        self.base_dir = base_dir
        os.makedirs(self.base_dir, exist_ok=True)

    @classmethod
    def for_project(cls, project_path: str, state_dir_name: str = ".bedrock-planner") -> "SessionStore":
        return cls(os.path.join(os.path.abspath(project_path), state_dir_name, SESSIONS_SUBDIR))

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def save(self, session_id: str, record: SessionRecord) -> str:
        """Save a session to disk. Returns the file path."""
        record.last_updated = now_iso()
        path = self._path_for(session_id)
        data = record.to_dict()

        tmp_path = path + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
            logger.debug(f"Session saved: {path}")
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        return path

    def load(self, session_id: str) -> Optional[SessionRecord]:
        """Load a session by ID. None if absent; SessionCorruption if unreadable."""
        path = self._path_for(session_id)
        if not os.path.exists(path):
            return None
        return self._read_file(path)

    def exists(self, session_id: str) -> bool:
        return os.path.exists(self._path_for(session_id))

    def delete(self, session_id: str) -> bool:
        """Delete a session file. Returns True if deleted."""
        path = self._path_for(session_id)
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"Session deleted: {path}")
            return True
        return False

    def list(self) -> List[Dict[str, Any]]:
        """List sessions, newest first: [{id, display_name, last_updated}]."""
        entries: List[Dict[str, Any]] = []
        for fname in os.listdir(self.base_dir):
            if not fname.endswith(".json"):
                continue
            session_id = fname[:-len(".json")]
            try:
                record = self._read_file(os.path.join(self.base_dir, fname))
            except SessionCorruption as e:
                logger.warning(f"Skipping unreadable session in listing: {e}")
                continue
            entries.append({
                "id": session_id,
                "display_name": display_name(session_id),
                "last_updated": record.last_updated,
            })

        entries.sort(key=lambda e: e["last_updated"] or "", reverse=True)
        return entries

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def make_session_id(self, feature_request: str) -> str:
        """Derive a free session id from the feature request."""
        base = slugify(feature_request)
        candidate = base
        n = 2
        while self.exists(candidate):
            candidate = f"{base}-{n}"
            n += 1
        return candidate

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _path_for(self, session_id: str) -> str:
        if not session_id or os.sep in session_id or session_id.startswith("."):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return os.path.join(self.base_dir, f"{session_id}.json")

    def _read_file(self, path: str) -> SessionRecord:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SessionCorruption(f"Invalid JSON in session file ({e})", path) from e
        except (OSError, UnicodeDecodeError) as e:
            raise SessionCorruption(f"Unreadable session file ({e})", path) from e
        return SessionRecord.from_dict(data, path=path)
