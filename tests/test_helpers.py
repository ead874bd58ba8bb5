import lmdb
import pytest

from milli.helpers import copy_main_database, main

MAP_SIZE = 10 * 1024 * 1024


@pytest.fixture
def database(tmp_path):
    path = tmp_path / "db"
    env = lmdb.open(str(path), map_size=MAP_SIZE)
    with env.begin(write=True) as txn:
        txn.put(b"first", b"one")
        txn.put(b"second", b"two")
    env.close()
    return path


def _read_copy(path):
    env = lmdb.open(str(path), subdir=False, readonly=True, lock=False)
    try:
        with env.begin() as txn:
            return dict(txn.cursor())
    finally:
        env.close()


@pytest.mark.parametrize("compact", [False, True])
def test_copy_round_trips_content(database, tmp_path, compact):
    target = tmp_path / "copy.mdb"
    with open(target, "wb") as out:
        copy_main_database(database, MAP_SIZE, compact, out)
    assert _read_copy(target) == {b"first": b"one", b"second": b"two"}


def test_copy_missing_database_raises(tmp_path):
    with open(tmp_path / "copy.mdb", "wb") as out:
        with pytest.raises(FileNotFoundError, match="does not exist"):
            copy_main_database(tmp_path / "missing", MAP_SIZE, False, out)


def test_main_writes_copy_to_stdout(database, tmp_path, capfdbinary):
    status = main(["--db", str(database), "--db-size", "10 MiB", "copy-main-database", "-c"])
    assert status == 0
    target = tmp_path / "stdout.mdb"
    target.write_bytes(capfdbinary.readouterr().out)
    assert _read_copy(target) == {b"first": b"one", b"second": b"two"}


def test_main_reports_missing_database(tmp_path, capsys):
    status = main(["--db", str(tmp_path / "missing"), "copy-main-database"])
    assert status == 1
    assert "does not exist" in capsys.readouterr().err


def test_main_rejects_invalid_size(database):
    with pytest.raises(SystemExit) as raised:
        main(["--db", str(database), "--db-size", "lots", "copy-main-database"])
    assert raised.value.code == 2