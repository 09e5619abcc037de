# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import pytest

from feedpoller.stores import open_store


@pytest.fixture
def db_path(tmp_path) -> str:
    path = str(tmp_path / 'feeds.sqlite3')
    with open_store(path) as store:
        store.init_store()
        store.commit()
    return path


@pytest.fixture
def store_opener(db_path):
    return lambda: open_store(db_path)
