import os
import tempfile

import pytest

# Settings and the engine are built at import time, so the database must be
# chosen before anything from seller_hub is imported.
_DB_DIR = tempfile.mkdtemp(prefix="seller_hub_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"

from seller_hub.database import SessionLocal, engine  # noqa: E402
from seller_hub.models_sqlalchemy import Base  # noqa: E402
from seller_hub.models_sqlalchemy import models  # noqa: E402,F401
from seller_hub.utils.logger import upstream_call_log  # noqa: E402

from fake_seller_api import FakeSellerApi  # noqa: E402


@pytest.fixture
def fake_api() -> FakeSellerApi:
    return FakeSellerApi()


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clear_upstream_logs():
    upstream_call_log.clear()
    yield
    upstream_call_log.clear()
