from __future__ import annotations

import pytest

from tests.fakes import make_ledger


@pytest.fixture
def ledger_env(tmp_path):
    """(connection, ledger) over a fresh SQLite file; open() is left to the test's event loop."""
    conn, ledger = make_ledger(tmp_path)
    yield conn, ledger
    conn.dispose()


@pytest.fixture
def ledger(ledger_env):
    return ledger_env[1]
