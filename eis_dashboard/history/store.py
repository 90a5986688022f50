"""Run Store: JSONL-based persistence of committed analysis runs.

Each owner scope gets its own file: ``<data_dir>/<owner>/runs.jsonl``,
one SavedRun per line, append-only. Runs are never rewritten after they
are committed.

Reads support what the history views and the context retriever need:
an exact ``subject`` filter, newest-first ordering and a result limit.
Any failure to read is raised as RetrievalError so callers can decide
whether it is fatal.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from eis_dashboard.config import settings
from eis_dashboard.errors import RetrievalError
from eis_dashboard.models.conversation import SavedRun

logger = logging.getLogger(__name__)

_SAFE_OWNER = re.compile(r"[^A-Za-z0-9_.-]")


class RunStore:
    """JSONL-backed store of SavedRun records keyed by owner scope."""

    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir = Path(data_dir or settings.eis_data_dir)

    def _runs_file(self, owner: str) -> Path:
        # Owner scopes are opaque; keep them from escaping the data dir
        safe = _SAFE_OWNER.sub("_", owner) or "_"
        return self.data_dir / safe / "runs.jsonl"

    def save(self, owner: str, run: SavedRun) -> SavedRun:
        """Append a committed run."""
        path = self._runs_file(owner)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(run.model_dump_json() + "\n")
        logger.info("Saved %s run for subject %r (%d points)", run.kind, run.subject, len(run.points))
        return run

    def query(
        self,
        owner: str,
        subject: str | None = None,
        limit: int | None = None,
    ) -> list[SavedRun]:
        """Runs for ``owner``, newest first, optionally filtered by exact subject."""
        runs = self._load_runs(owner)
        if subject is not None:
            runs = [r for r in runs if r.subject == subject]
        # Ties on created_at: last appended first
        runs.reverse()
        try:
            runs.sort(key=lambda r: r.created_at, reverse=True)
        except TypeError as e:
            raise RetrievalError(f"Could not order saved runs for {owner!r}: {e}") from e
        if limit is not None:
            runs = runs[:limit]
        return runs

    def _load_runs(self, owner: str) -> list[SavedRun]:
        path = self._runs_file(owner)
        if not path.exists():
            return []
        runs = []
        try:
            with open(path, encoding="utf-8") as f:
                for lineno, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        runs.append(SavedRun.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        raise RetrievalError(f"{path}:{lineno}: corrupt run record: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise RetrievalError(f"Could not read saved runs from {path}: {e}") from e
        return runs


# Singleton
_store: RunStore | None = None


def get_run_store() -> RunStore:
    """Get or create the global RunStore singleton."""
    global _store
    if _store is None:
        _store = RunStore()
    return _store
