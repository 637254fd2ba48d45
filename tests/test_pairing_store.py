import json

import pytest

from enstoreader.exceptions import (
    InvalidPairingRecordError,
    NotFoundError,
    PairingStoreError,
    UsageError,
)
from enstoreader.pairing_store import PairingStore

from conftest import ADDRESS


def test_save_then_load(tmp_path):
    store = PairingStore(tmp_path)
    store.save(ADDRESS, b"\x01\x02\xfe\xff")
    assert store.load(ADDRESS) == b"\x01\x02\xfe\xff"


def test_file_format(tmp_path):
    store = PairingStore(tmp_path)
    path = store.save(ADDRESS, bytes([1, 2, 3, 4]))
    assert path == tmp_path / "pairing-90fd9f123456.json"
    assert json.loads(path.read_text()) == {"resetCode": [1, 2, 3, 4]}
    assert [p.name for p in tmp_path.iterdir()] == ["pairing-90fd9f123456.json"]


def test_address_case_is_normalized(tmp_path):
    store = PairingStore(tmp_path)
    store.save("90:FD:9F:12:34:56", b"abcd")
    assert store.load(ADDRESS) == b"abcd"


def test_save_overwrites(tmp_path):
    store = PairingStore(tmp_path)
    store.save(ADDRESS, b"aaaa")
    store.save(ADDRESS, b"bbbb")
    assert store.load(ADDRESS) == b"bbbb"


def test_load_missing(tmp_path):
    with pytest.raises(NotFoundError):
        PairingStore(tmp_path).load(ADDRESS)


def test_save_creates_directory(tmp_path):
    store = PairingStore(tmp_path / "nested" / "dir")
    store.save(ADDRESS, b"wxyz")
    assert store.load(ADDRESS) == b"wxyz"


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[]",
        '{"resetCode": [1, 2, 3]}',
        '{"resetCode": [1, 2, 3, 256]}',
        '{"resetCode": "abcd"}',
        '{"other": [1, 2, 3, 4]}',
    ],
)
def test_invalid_record(tmp_path, content):
    store = PairingStore(tmp_path)
    store.path_for(ADDRESS).write_text(content)
    with pytest.raises(InvalidPairingRecordError):
        store.load(ADDRESS)


def test_invalid_record_is_not_found(tmp_path):
    store = PairingStore(tmp_path)
    store.path_for(ADDRESS).write_text("{}")
    with pytest.raises(NotFoundError):
        store.load(ADDRESS)


def test_rejects_wrong_credential_length(tmp_path):
    with pytest.raises(ValueError):
        PairingStore(tmp_path).save(ADDRESS, b"abc")


def test_rejects_bad_address(tmp_path):
    with pytest.raises(UsageError):
        PairingStore(tmp_path).load("not-an-address")


def test_save_into_file_path_raises_store_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    with pytest.raises(PairingStoreError):
        PairingStore(blocker).save(ADDRESS, b"abcd")


def test_boolean_bytes_are_rejected(tmp_path):
    store = PairingStore(tmp_path)
    store.path_for(ADDRESS).write_text('{"resetCode": [true, 2, 3, 4]}')
    with pytest.raises(InvalidPairingRecordError):
        store.load(ADDRESS)
