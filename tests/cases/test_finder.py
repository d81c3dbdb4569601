from __future__ import annotations

import pytest

from sqla_associations import Model, ReadOnlyModelError, UndefinedRelationshipError, find
from sqla_associations.finder import normalize_includes, render_joins

from ..conftest import StatementCounter
from ..models import Order, Person, School


class TestFindOptions:
    def test_unknown_option(self, connection: object) -> None:
        with pytest.raises(ValueError, match="bogus"):
            find(School, "all", {"bogus": 1})

    def test_unknown_mode(self, connection: object) -> None:
        with pytest.raises(ValueError, match="'many'"):
            find(School, "many", {})  # type: ignore[call-overload]

    def test_first_returns_none(self, seed_data: dict[str, list[Model]]) -> None:
        assert School.first(conditions="schools.name = 'Nowhere'") is None

    def test_first_limits_query(self, seed_data: dict[str, list[Model]], queries: StatementCounter) -> None:
        queries.reset()
        School.first(order="schools.id")

        assert "LIMIT" in queries.statements[0].upper()

    def test_limit_and_offset(self, seed_data: dict[str, list[Model]]) -> None:
        (school,) = School.all(order="schools.id", limit=1, offset=1)

        assert school.name == "Beauxbatons"

    def test_group_and_having(self, seed_data: dict[str, list[Model]]) -> None:
        schools = School.all(
            select="schools.id, schools.name",
            joins=["people"],
            group="schools.id, schools.name",
            having="COUNT(people.id) > 1",
        )

        assert [school.name for school in schools] == ["Hogwarts"]

    def test_find_mode(self, seed_data: dict[str, list[Model]]) -> None:
        assert len(School.find("all")) == 3
        assert School.find("first", order="schools.id").name == "Hogwarts"

    def test_readonly(self, seed_data: dict[str, list[Model]]) -> None:
        school = School.first(readonly=True)

        assert school is not None
        assert school.is_readonly()
        with pytest.raises(ReadOnlyModelError):
            school.save()


class TestJoins:
    def test_relationship_name(self, seed_data: dict[str, list[Model]]) -> None:
        people = Person.all(joins=["school"], conditions="schools.name = 'Hogwarts'")

        assert sorted(person.name for person in people) == ["Albus", "Harry", "Hermione"]

    def test_raw_sql(self, seed_data: dict[str, list[Model]]) -> None:
        orders = Order.all(
            select="DISTINCT orders.*",
            joins="INNER JOIN payments ON(payments.order_id = orders.id)",
            conditions=("payments.amount > :amount", {"amount": 200}),
            order="orders.id",
        )

        assert [order.number for order in orders] == ["A-1", "A-2"]

    def test_mixed_sequence(self, seed_data: dict[str, list[Model]]) -> None:
        people = Person.all(
            joins=["school", "INNER JOIN profiles ON(profiles.person_id = people.id)"],
            conditions="schools.name = 'Hogwarts'",
        )

        assert [person.name for person in people] == ["Harry"]

    def test_same_table_twice_is_aliased(self, seed_data: dict[str, list[Model]]) -> None:
        assert render_joins(School.table(), ["people", "staff"]) == (
            "INNER JOIN people ON(schools.id = people.school_id) "
            'INNER JOIN people "staff" ON(schools.id = "staff".school_id)'
        )

        schools = School.all(
            select="DISTINCT schools.*",
            joins=["people", "staff"],
            conditions="\"staff\".role = 'head'",
        )

        assert [school.name for school in schools] == ["Hogwarts"]

    def test_unknown_relationship(self, seed_data: dict[str, list[Model]]) -> None:
        with pytest.raises(UndefinedRelationshipError, match="'wizards'"):
            School.all(joins=["wizards"])


class TestNormalizeIncludes:
    def test_string(self) -> None:
        assert normalize_includes("people") == [("people", None)]

    def test_merges_repeated_names(self) -> None:
        assert normalize_includes(["school", {"payments": "order"}, "payments"]) == [
            ("school", None),
            ("payments", ("order",)),
        ]

    def test_nested_mapping(self) -> None:
        assert normalize_includes({"people": {"payments": "order"}}) == [
            ("people", ({"payments": "order"},)),
        ]
