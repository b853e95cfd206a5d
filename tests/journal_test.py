import pytest
from nested_store.journal import CommitJournal
from nested_store.store import Engine

# RUN USING python -m pytest -v

def test_disabled_journal_records_nothing():
    db = Engine()
    db.set("a", 1)
    assert db.journal.enabled is False
    assert db.print_log() == ""
    assert db.journal.records() == []


def test_missing_journal_file_reads_empty(tmp_path):
    journal = CommitJournal(tmp_path / "nothing.jsonl")
    assert journal.read() == ""


def test_autocommit_writes_and_deletes_are_journaled(tmp_path):
    db = Engine(journal=CommitJournal(tmp_path / "commits.jsonl"))
    db.set("a", {"n": 1})
    db.unset("a")

    records = db.journal.records()
    assert [r["type"] for r in records] == ["autocommit", "autocommit"]
    assert records[0]["writes"] == {"a": {"n": 1}}
    assert records[0]["deletes"] == []
    assert records[1]["writes"] == {}
    assert records[1]["deletes"] == ["a"]
    assert records[0]["iso"].endswith("Z")


def test_only_outermost_commit_is_journaled(tmp_path):
    db = Engine(journal=CommitJournal(tmp_path / "commits.jsonl"))
    db.set("gone", 0)
    db.set("kept", 0)

    db.begin()
    db.set("x", 1)
    db.begin()
    db.unset("gone")
    db.set("y", 2)
    db.begin()
    db.set("never", 3)
    db.rollback()
    assert len(db.journal.records()) == 2

    db.commit()
    records = db.journal.records()
    assert len(records) == 3
    last = records[-1]
    assert last["type"] == "transaction"
    assert last["writes"] == {"x": 1, "y": 2}
    assert last["deletes"] == ["gone"]


def test_unencodable_values_are_written_as_repr(tmp_path):
    db = Engine(journal=CommitJournal(tmp_path / "commits.jsonl"))
    db.set("s", {1, 2})

    (record,) = db.journal.records()
    assert record["writes"] == {"s": repr({1, 2})}
    assert db.get("s") == {1, 2}


def test_failed_journal_write_leaves_commit_unapplied(tmp_path):
    db = Engine(journal=CommitJournal(tmp_path / "missing_dir" / "commits.jsonl"))
    db.begin()
    db.begin()
    db.set("b", 2)

    with pytest.raises(OSError):
        db.commit()
    assert db.depth() == 2
    assert db.snapshot() == []
    assert db.get("b") == 2


def test_failed_journal_write_leaves_autocommit_unapplied(tmp_path):
    path = tmp_path / "commits.jsonl"
    db = Engine(journal=CommitJournal(path))
    db.set("a", 1)

    db.journal.path = str(tmp_path / "missing_dir" / "commits.jsonl")
    with pytest.raises(OSError):
        db.set("c", 3)
    with pytest.raises(OSError):
        db.unset("a")
    assert db.depth() == 0
    assert db.snapshot() == [("a", 1)]
    assert db.get("c") is None
