import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from partpal import models
from partpal.db import Base, get_db
from partpal.main import app

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_part(i, **overrides):
    created = BASE_TIME + timedelta(days=i)
    data = dict(
        id=str(i),
        vehicle_id="v1",
        seller_id="s1",
        category_id="engine",
        name=f"Part {i}",
        part_number=f"PN-{i:03d}",
        description=f"Description of part {i}",
        condition=models.PartCondition.GOOD,
        price=100 * i,
        currency="ZAR",
        status=models.PartStatus.AVAILABLE,
        location="A1-B2",
        images=[],
        is_listed_on_marketplace=True,
        created_at=created,
        updated_at=created,
    )
    data.update(overrides)
    return models.Part(**data)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    session.add(models.User(id="u1", email="yard@example.com", role="SELLER"))
    session.add(models.Seller(id="s1", user_id="u1", business_name="Scrap Yard"))
    session.add(models.Vehicle(id="v1", seller_id="s1", make="BMW", model="320i", year=2012))
    session.add(models.Vehicle(id="v2", seller_id="s1", make="Toyota", model="Corolla", year=2015))
    session.add(models.Category(id="engine", name="Engine"))
    session.add(models.Category(id="lighting", name="Lighting"))
    session.commit()
    yield session
    session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
