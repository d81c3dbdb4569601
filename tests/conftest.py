from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import pytest
import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.pool import StaticPool

from sqla_associations import Model, Registry, association_cache_clear, init_registry

from .models import Course, Order, Payment, Person, Profile, School, Student, courses_students, metadata


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--db",
        default="sqlite",
        choices=["sqlite", "postgres"],
        help="Database backend to test against",
    )


@pytest.fixture(scope="session")
def db_backend(request: pytest.FixtureRequest) -> str:
    value: str = request.config.getoption("--db")

    return value


@pytest.fixture(scope="session")
def db_config(db_backend: str) -> Iterator[str]:
    match db_backend:
        case "postgres":
            from testcontainers.postgres import PostgresContainer

            pg = PostgresContainer(image="postgres:latest")
            if os.name == "nt":
                pg.get_container_host_ip = lambda: "127.0.0.1"
            with pg:
                host = pg.get_container_host_ip()
                dsn = (
                    f"postgresql+psycopg://{pg.username}:{pg.password}"
                    f"@{host}:{pg.get_exposed_port(pg.port)}/{pg.dbname}"
                )
                yield dsn

        case "sqlite":
            yield "sqlite://"


@pytest.fixture(scope="session")
def engine(db_config: str) -> Iterator[sa.Engine]:
    if db_config.startswith("sqlite"):
        # one shared in-memory database for the whole session
        engine = sa.create_engine(
            db_config,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = sa.create_engine(db_config)

    yield engine
    engine.dispose()


@pytest.fixture(scope="session")
def _create_tables(engine: sa.Engine) -> Iterator[None]:
    metadata.create_all(engine)
    yield
    metadata.drop_all(engine)


@pytest.fixture
def connection(engine: sa.Engine, _create_tables: None) -> Iterator[sa.Connection]:
    with engine.connect() as conn:
        trans = conn.begin()
        init_registry(conn)
        yield conn
        trans.rollback()


@dataclass(eq=False)
class StatementCounter:
    statements: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.statements)

    def reset(self) -> None:
        self.statements.clear()

    def __call__(self, conn: Any, cursor: Any, statement: str, *args: Any) -> None:
        self.statements.append(statement)


@pytest.fixture
def queries(connection: sa.Connection) -> Iterator[StatementCounter]:
    """Count the statements sent to the database while the test runs."""
    counter = StatementCounter()
    event.listen(connection, "before_cursor_execute", counter)
    yield counter
    event.remove(connection, "before_cursor_execute", counter)


@pytest.fixture
def seed_data(connection: sa.Connection) -> dict[str, list[Model]]:
    hogwarts = School.create({"name": "Hogwarts"})
    beauxbatons = School.create({"name": "Beauxbatons"})
    durmstrang = School.create({"name": "Durmstrang"})

    def person(name: str, school: Model | None, role: str | None = None) -> Model:
        return Person.create(
            {"name": name, "role": role, "school_id": school.id if school else None},
            guard_attributes=False,
        )

    harry = person("Harry", hogwarts)
    hermione = person("Hermione", hogwarts)
    albus = person("Albus", hogwarts, role="head")
    fleur = person("Fleur", beauxbatons)
    viktor = person("Viktor", None)

    profile_harry = Profile.create({"bio": "The boy who lived", "person_id": harry.id})
    profile_fleur = Profile.create({"bio": "Triwizard champion", "person_id": fleur.id})

    first = Order.create({"number": "A-1"})
    second = Order.create({"number": "A-2"})
    third = Order.create({"number": "A-3"})

    def payment(amount: int, order: Model, paid_by: Model) -> Model:
        return Payment.create(
            {"amount": amount, "order_id": order.id, "person_id": paid_by.id},
            guard_attributes=False,
        )

    payments = [
        payment(100, first, harry),
        payment(250, first, hermione),
        payment(300, second, harry),
    ]

    maths = Course.create({"title": "Arithmancy"})
    potions = Course.create({"title": "Potions"})
    flying = Course.create({"title": "Flying"})
    neville = Student.create({"name": "Neville"})
    luna = Student.create({"name": "Luna"})
    ginny = Student.create({"name": "Ginny"})

    connection.execute(
        courses_students.insert().values([
            {"student_id": neville.id, "course_id": potions.id},
            {"student_id": neville.id, "course_id": maths.id},
            {"student_id": luna.id, "course_id": maths.id},
        ])
    )

    return {
        "schools": [hogwarts, beauxbatons, durmstrang],
        "people": [harry, hermione, albus, fleur, viktor],
        "profiles": [profile_harry, profile_fleur],
        "orders": [first, second, third],
        "payments": payments,
        "courses": [maths, potions, flying],
        "students": [neville, luna, ginny],
    }


@pytest.fixture(autouse=True)
def clear_lru_caches() -> Iterator[None]:
    yield
    association_cache_clear()


@pytest.fixture
def reset_registry_singleton() -> Iterator[None]:
    saved = Registry._Registry__instance  # type: ignore[attr-defined]
    yield
    Registry._Registry__instance = saved  # type: ignore[attr-defined]
