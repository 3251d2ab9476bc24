"""
Pytest configuration and fixtures for carpool tests.

Provides a file-backed SQLite database per test, a session factory for the
slot store, a fixed clock, and a seeded world of three families sharing
two carpool groups.
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Generator

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from carpool.clock import FixedClock
from carpool.config import Settings
from carpool.database import create_db_engine, create_session_factory, drop_all_tables, init_db
from carpool.models.family import Child, Family, FamilyMembership, Person
from carpool.models.groups import Group, GroupFamilyMember
from carpool.models.resources import Vehicle
from carpool.services.slot_store import SlotStore

# Friday before the week under test
NOW = datetime(2025, 6, 20, 12, 0, tzinfo=timezone.utc)

# Monday of the week under test
SLOT_TIME = datetime(2025, 6, 23, 8, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def engine(tmp_path) -> Generator[Engine, None, None]:
    """
    Create a clean SQLite database for each test.

    File-backed so that separate sessions use separate connections, the way
    concurrent request handlers would.
    """
    engine = create_db_engine(f"sqlite:///{tmp_path / 'carpool.db'}", timeout_seconds=5.0)
    init_db(engine)

    try:
        yield engine
    finally:
        drop_all_tables(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Session for seeding and verification.

    Seed data must be committed before the store runs, since the store
    writes through its own connections.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, database_url="sqlite://")


@pytest.fixture
def store(session_factory: sessionmaker, clock: FixedClock, settings: Settings) -> SlotStore:
    return SlotStore(session_factory, clock=clock, settings=settings)


@pytest.fixture
def slot_time() -> datetime:
    return SLOT_TIME


@pytest.fixture
def world(db_session: Session) -> SimpleNamespace:
    """
    Seed three families, their people, vehicles and children, and two groups.

    - Anderson (A): Alice, Adam; van (4 seats); Emma, Liam, Olivia
    - Brown (B): Bob; sedan (3 seats); Noah
    - Zimmer (Z): Zoe; SUV (5 seats); Mia, Ava
    - Carl belongs to no family
    - "Lincoln Elementary" is owned by A with B invited as a member
    - "Soccer Club" is owned by Z
    """
    anderson = Family(name="Anderson")
    brown = Family(name="Brown")
    zimmer = Family(name="Zimmer")
    db_session.add_all([anderson, brown, zimmer])

    alice = Person(name="Alice Anderson", email="alice@example.com")
    adam = Person(name="Adam Anderson", email="adam@example.com")
    bob = Person(name="Bob Brown", email="bob@example.com")
    zoe = Person(name="Zoe Zimmer", email="zoe@example.com")
    carl = Person(name="Carl Nobody", email="carl@example.com")
    db_session.add_all([alice, adam, bob, zoe, carl])
    db_session.flush()

    db_session.add_all([
        FamilyMembership(family_id=anderson.id, person_id=alice.id, role="ADMIN"),
        FamilyMembership(family_id=anderson.id, person_id=adam.id, role="MEMBER"),
        FamilyMembership(family_id=brown.id, person_id=bob.id, role="ADMIN"),
        FamilyMembership(family_id=zimmer.id, person_id=zoe.id, role="ADMIN"),
    ])

    van = Vehicle(name="Anderson Van", capacity=4, family_id=anderson.id)
    sedan = Vehicle(name="Brown Sedan", capacity=3, family_id=brown.id)
    suv = Vehicle(name="Zimmer SUV", capacity=5, family_id=zimmer.id)
    db_session.add_all([van, sedan, suv])

    emma = Child(name="Emma", family_id=anderson.id)
    liam = Child(name="Liam", family_id=anderson.id)
    olivia = Child(name="Olivia", family_id=anderson.id)
    noah = Child(name="Noah", family_id=brown.id)
    mia = Child(name="Mia", family_id=zimmer.id)
    ava = Child(name="Ava", family_id=zimmer.id)
    db_session.add_all([emma, liam, olivia, noah, mia, ava])

    school = Group(name="Lincoln Elementary", family_id=anderson.id)
    soccer = Group(name="Soccer Club", family_id=zimmer.id)
    db_session.add_all([school, soccer])
    db_session.flush()

    db_session.add(GroupFamilyMember(group_id=school.id, family_id=brown.id, role="MEMBER"))
    db_session.commit()

    return SimpleNamespace(
        anderson=anderson,
        brown=brown,
        zimmer=zimmer,
        alice=alice,
        adam=adam,
        bob=bob,
        zoe=zoe,
        carl=carl,
        van=van,
        sedan=sedan,
        suv=suv,
        emma=emma,
        liam=liam,
        olivia=olivia,
        noah=noah,
        mia=mia,
        ava=ava,
        school=school,
        soccer=soccer,
    )
