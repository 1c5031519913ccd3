# pyright: reportUnusedFunction=false
import os
import sys
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Settings are read at import time, so the throw-away database has to be
# configured before anything under beertracker is imported.
_TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="beertracker-tests-"))
_ = os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB_DIR / 'ledger.db'}")
os.environ["ENV"] = "dev"
os.environ["OPENAI_MODE"] = "fake"


def _ensure_test_schema() -> None:
    from beertracker.db.base import Base
    from beertracker.db.session import engine

    Base.metadata.create_all(bind=engine)


_ensure_test_schema()


@pytest.fixture(autouse=True)
def _isolate_db() -> Iterator[None]:
    from beertracker.db.base import Base
    from beertracker.db.session import engine
    from beertracker.main import app

    tables = list(Base.metadata.sorted_tables)
    with engine.begin() as conn:
        for t in reversed(tables):
            _ = conn.execute(t.delete())

    yield

    app.dependency_overrides.clear()
