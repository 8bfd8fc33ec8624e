import os

# 必須在 import database 之前設定
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEOCODER"] = "static"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
import models  # noqa: F401
from core.round_manager import RoundController
from services.geocoding_service import CAMPUS_COORDINATES
from services.score_service import HighScoreStore
from tests.helpers import FakeClock, FakeGeocoder


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store():
    return HighScoreStore(key="csunMapQuizHighScore", total_rounds=5)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def geocoder():
    return FakeGeocoder(CAMPUS_COORDINATES)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def controller(geocoder, store, session_factory, clock):
    return RoundController(geocoder, store, session_factory=session_factory, advance_delay=0, clock=clock)
