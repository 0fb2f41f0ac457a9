import pytest

from gander.controller import StoreController, UnsupportedOperationError


class _PlainStore:
    def tablename(self):
        return "goose_db_version"


class _ExtendedStore(_PlainStore):
    def __init__(self, exists):
        self.exists = exists
        self.seen = []

    def table_exists(self, conn):
        self.seen.append(conn)
        return self.exists


@pytest.mark.parametrize("exists", [True, False])
def test_table_exists_delegates(exists):
    store = _ExtendedStore(exists)
    conn = object()
    assert StoreController(store).table_exists(conn) is exists
    assert store.seen == [conn]


def test_table_exists_unsupported():
    with pytest.raises(UnsupportedOperationError):
        StoreController(_PlainStore()).table_exists(object())


def test_forwards_store_methods():
    controller = StoreController(_PlainStore())
    assert controller.tablename() == "goose_db_version"


def test_unknown_attribute_raises():
    with pytest.raises(AttributeError):
        StoreController(_PlainStore()).no_such_method