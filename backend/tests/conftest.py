from pathlib import Path
import os
import tempfile
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

# The API tests import `linkhub.main`, which creates its tables on import;
# point it at a throwaway SQLite file before that happens.
_DB_DIR = Path(tempfile.mkdtemp(prefix="linkhub-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'app.db'}"

from linkhub.database import create_db_and_tables, make_engine  # noqa: E402


@pytest.fixture()
def session():
    """A session on a fresh in-memory database."""
    engine = make_engine("sqlite://", poolclass=StaticPool)
    create_db_and_tables(engine)
    with Session(engine) as s:
        yield s
    engine.dispose()
