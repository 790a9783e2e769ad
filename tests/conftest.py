"""公共 pytest fixtures"""

from __future__ import annotations

import pytest

from papercut_toolkit.store import RecordStore
from papercut_toolkit.sync import RepositorySynchronizer


@pytest.fixture()
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'papercut.db'}"


@pytest.fixture()
def store(db_url):
    s = RecordStore(db_url).open()
    yield s
    s.close()


@pytest.fixture()
def sync(store):
    return RepositorySynchronizer(store)
