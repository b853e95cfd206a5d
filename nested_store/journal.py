import os
import time
import json
import threading


class CommitJournal:
    """Append-only JSON-lines record of every change that reaches the value store."""

    def __init__(self, path=None):
        """
        Args:
            path (str | os.PathLike | None): File the records are appended to.
                None disables the journal.
        """
        self.path = os.fspath(path) if path is not None else None
        self._lock = threading.Lock()

    @property
    def enabled(self):
        return self.path is not None

    def append(self, *, commit_type, writes, deletes):
        """
        Append one record to the journal.

        Args:
            commit_type (str): "transaction" or "autocommit".
            writes (dict): keys assigned by this change and their values.
            deletes (Iterable[str]): keys removed by this change.
        """
        if not self.enabled:
            return
        record = {
            "iso": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "thread": threading.current_thread().name,
            "type": commit_type,
            "writes": writes,
            "deletes": sorted(deletes),
        }
        # values are opaque; anything json can't encode goes in as its repr
        line = json.dumps(record, separators=(",", ":"), default=repr)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def read(self):
        """Return the entire journal as plain text."""
        if not self.enabled:
            return ""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return ""

    def records(self):
        """Return the journal parsed back into a list of dicts."""
        return [json.loads(line) for line in self.read().splitlines() if line]
