import threading
from dataclasses import dataclass

from nested_store.exceptions import KeyNotFound, NoActiveTransaction
from nested_store.journal import CommitJournal

# Returned by lookups when a key resolves to nothing.
_MISSING = object()

# What one transaction did to one key. A Delete is a tombstone: it hides any
# value held further down until the frame is merged or discarded.
@dataclass(frozen=True)
class Assign:
    value: object


@dataclass(frozen=True)
class Delete:
    pass


DELETE = Delete()


class ValueStore:
    """The committed key -> value mapping. Knows nothing about transactions."""

    def __init__(self):
        self._data = {}

    def lookup(self, key):
        return self._data.get(key, _MISSING)

    def assign(self, key, value):
        self._data[key] = value

    def delete(self, key):
        """
        Remove a key.

        Raises:
            KeyNotFound: If the key is not in the store.
        """
        try:
            del self._data[key]
        except KeyError:
            raise KeyNotFound(key) from None

    def apply(self, key, op):
        """Apply an Operation coming out of a merged frame."""
        if isinstance(op, Assign):
            self.assign(key, op.value)
            return
        try:
            self.delete(key)
        except KeyNotFound:
            # the tombstone already describes the result
            pass

    def keys(self):
        return self._data.keys()

    def items(self):
        return self._data.items()

    def __len__(self):
        return len(self._data)


class TransactionFrame:
    """
    Pending operations of one Begin...Commit/Rollback span.

    Only keys touched while this frame was on top are recorded, and only the
    latest Operation per key is kept. Keys it never touched are transparent
    to lookups.
    """

    def __init__(self):
        self._ops = {}

    def record_assign(self, key, value):
        self._ops[key] = Assign(value)

    def record_delete(self, key, shadows_below):
        """
        Record the removal of a key in this frame.

        Args:
            key (str): The key being removed.
            shadows_below (bool): Whether an outer frame or the value store
                currently holds a visible value for the key.

        Returns:
            bool: True if a tombstone was recorded. False when nothing below
            needed hiding, in which case the frame just forgets its own
            pending assignment.
        """
        if not shadows_below:
            self._ops.pop(key, None)
            return False
        self._ops[key] = DELETE
        return True

    def resolve(self, key):
        """Return this frame's own Operation for key, or None if untouched."""
        return self._ops.get(key)

    def apply(self, key, op):
        """Apply an Operation merged up from a child frame."""
        self._ops[key] = op

    def entries(self):
        return self._ops.items()

    def writes(self):
        return {k: op.value for k, op in self._ops.items() if isinstance(op, Assign)}

    def deletes(self):
        return [k for k, op in self._ops.items() if isinstance(op, Delete)]

    def __len__(self):
        return len(self._ops)


class TransactionStack:
    """Open frames ordered outermost (index 0) to innermost (top)."""

    def __init__(self):
        self._frames = []

    def push(self):
        frame = TransactionFrame()
        self._frames.append(frame)
        return frame

    def pop(self):
        return self._frames.pop()

    @property
    def top(self):
        return self._frames[-1] if self._frames else None

    def lookup(self, key, values, skip_top=False):
        """
        Resolve key against the frames top-down, then against values.

        The first frame holding an Operation for the key decides: an Assign
        yields its value and a Delete yields _MISSING without looking further.

        Args:
            key (str): The key to resolve.
            values (ValueStore): The committed store underneath the frames.
            skip_top (bool): Start from the frame below the top one.

        Returns:
            Any: The visible value, or _MISSING.
        """
        frames = self._frames[:-1] if skip_top else self._frames
        for frame in reversed(frames):
            op = frame.resolve(key)
            if op is None:
                continue
            if isinstance(op, Assign):
                return op.value
            return _MISSING
        return values.lookup(key)

    def collapsed(self):
        """Return a new frame holding the net effect of every open frame."""
        merged = TransactionFrame()
        for frame in self._frames:
            for key, op in frame.entries():
                merged.apply(key, op)
        return merged

    def merge_top(self, values):
        """
        Pop the top frame and apply its operations to the exposed context.

        The exposed context is the new top frame, or `values` when the popped
        frame was the outermost one. Operations are carried over as-is so
        tombstones keep shadowing at every depth.

        Returns:
            TransactionFrame: The merged frame.
        """
        frame = self.pop()
        target = self.top if self._frames else values
        for key, op in frame.entries():
            target.apply(key, op)
        return frame

    def keys(self):
        seen = set()
        for frame in self._frames:
            seen.update(k for k, _ in frame.entries())
        return seen

    def __len__(self):
        return len(self._frames)


class Engine:
    """
    In-memory key-value store with nested transactions.

    With no open transaction, set/unset write straight to the value store
    (autocommit). After begin(), changes are buffered in the top frame until
    commit() merges every open frame down into the store, or rollback()
    discards the innermost one.

    Use:
        db = Engine()
        db.set("a", 10)
        db.begin()
        db.set("a", 20)
        db.begin()
        db.unset("a")
        db.rollback()  # a == 20 again
        db.commit()    # a == 20 in the store
    """

    def __init__(self, journal=None):
        """
        Args:
            journal (CommitJournal, optional): Where changes reaching the
                value store are recorded. Defaults to a disabled journal.
        """
        self._values = ValueStore()
        self._stack = TransactionStack()
        self.journal = journal if journal is not None else CommitJournal()

    # --- Transaction control ---
    def begin(self):
        """Open a new (possibly nested) transaction frame."""
        self._stack.push()

    def commit(self):
        """
        Commit every open transaction.

        Frames are merged innermost first, each into the one below it, and
        the outermost into the value store. The engine is idle afterwards.
        Committing a frame that touched nothing is legal.

        Raises:
            NoActiveTransaction: If no transaction is open.
        """
        if not self._stack:
            raise NoActiveTransaction("commit")
        # journal first so a failed write leaves the store untouched
        net = self._stack.collapsed()
        self.journal.append(
            commit_type="transaction",
            writes=net.writes(),
            deletes=net.deletes(),
        )
        while self._stack:
            self._stack.merge_top(self._values)

    def rollback(self):
        """
        Discard the innermost transaction frame.

        Raises:
            NoActiveTransaction: If no transaction is open.
        """
        if not self._stack:
            raise NoActiveTransaction("rollback")
        self._stack.pop()

    # --- Data operations ---
    def set(self, key, value):
        """
        Set (create or update) a key.

        Notes:
            - Inside a transaction the change is buffered in the top frame.
            - With no active transaction the write goes straight to the store.
        """
        if not self._stack:
            self.journal.append(commit_type="autocommit", writes={key: value}, deletes=[])
            self._values.assign(key, value)
            return
        self._stack.top.record_assign(key, value)

    def get(self, key, default=None):
        """
        Get the value visible from the current context.

        Returns:
            Any: The value, or `default` if the key is absent or hidden by a
            pending unset.
        """
        value = self._stack.lookup(key, self._values)
        return default if value is _MISSING else value

    def unset(self, key):
        """
        Remove a key from the current context.

        Inside a transaction a tombstone is recorded in the top frame, so a
        later rollback brings the hidden value back.

        Raises:
            KeyNotFound: If the key does not currently resolve to a value.
                Nothing is changed in that case.
        """
        if key not in self:
            raise KeyNotFound(key)
        if not self._stack:
            self.journal.append(commit_type="autocommit", writes={}, deletes=[key])
            self._values.delete(key)
            return
        below = self._stack.lookup(key, self._values, skip_top=True)
        self._stack.top.record_delete(key, shadows_below=below is not _MISSING)

    def __contains__(self, key):
        return self._stack.lookup(key, self._values) is not _MISSING

    def contains(self, key):
        return key in self

    # --- Utility ---
    def depth(self):
        """Return the number of open transactions (0 means autocommit)."""
        return len(self._stack)

    def visible_keys(self):
        """Return the sorted keys that resolve to a value right now."""
        candidates = set(self._values.keys()) | self._stack.keys()
        return sorted(k for k in candidates if k in self)

    def snapshot(self):
        """Return ALL committed (key, value) pairs, ignoring open transactions."""
        return sorted(self._values.items())

    def print_log(self):
        return self.journal.read()


class LockedEngine(Engine):
    """Engine whose public operations are serialized behind a single lock."""

    def __init__(self, journal=None):
        super().__init__(journal)
        self._lock = threading.RLock()

    def begin(self):
        with self._lock:
            super().begin()

    def commit(self):
        with self._lock:
            super().commit()

    def rollback(self):
        with self._lock:
            super().rollback()

    def set(self, key, value):
        with self._lock:
            super().set(key, value)

    def get(self, key, default=None):
        with self._lock:
            return super().get(key, default)

    def unset(self, key):
        with self._lock:
            super().unset(key)

    def __contains__(self, key):
        with self._lock:
            return super().__contains__(key)

    def depth(self):
        with self._lock:
            return super().depth()

    def visible_keys(self):
        with self._lock:
            return super().visible_keys()

    def snapshot(self):
        with self._lock:
            return super().snapshot()
