import os

from nested_store.journal import CommitJournal
from nested_store.store import Engine, LockedEngine

JOURNAL_ENV = "NESTED_STORE_JOURNAL"


def create_engine(journal_path=None, locked=False):
    """
    Build an Engine for a host application.

    Args:
        journal_path (str, optional): File the commit journal is appended to.
            Falls back to the NESTED_STORE_JOURNAL environment variable; when
            neither is set the journal is disabled.
        locked (bool): Return a LockedEngine, for hosts that call in from
            several threads.
    """
    path = journal_path or os.getenv(JOURNAL_ENV) or None
    cls = LockedEngine if locked else Engine
    return cls(journal=CommitJournal(path))
