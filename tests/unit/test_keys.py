from __future__ import annotations

import pytest

from sqla_associations import ConfigurationError, KeyPair, RelationshipKind
from sqla_associations.keys import infer_join_table, normalize_keys

from ..models import Entry, Ledger, Order, Owner, Person, School, Student


class TestKeyPair:
    def test_empty_foreign_key_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="Empty key list"):
            KeyPair((), ("id",))

    def test_length_mismatch_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="same number of columns"):
            KeyPair(("a_id", "b_id"), ("id",))

    def test_frozen(self) -> None:
        keys = KeyPair(("school_id",), ("id",))
        with pytest.raises(AttributeError):
            keys.foreign_key = ("other_id",)  # type: ignore[misc]


class TestResolveKeys:
    def test_has_many_infers_from_owner(self) -> None:
        assert School.people.resolve_keys(School) == KeyPair(("school_id",), ("id",))

    def test_belongs_to_infers_from_target(self) -> None:
        assert Person.school.resolve_keys(Person) == KeyPair(("school_id",), ("id",))

    def test_has_one_infers_from_owner(self) -> None:
        assert Person.profile.resolve_keys(Person) == KeyPair(("person_id",), ("id",))

    def test_explicit_composite_keys(self) -> None:
        assert Ledger.entries.resolve_keys(Ledger) == KeyPair(
            ("ledger_book", "ledger_page"), ("book", "page")
        )
        assert Entry.ledger.resolve_keys(Entry) == KeyPair(
            ("ledger_book", "ledger_page"), ("book", "page")
        )

    def test_habtm_owner_side(self) -> None:
        assert Student.courses.resolve_keys(Student) == KeyPair(("student_id",), ("id",))
        assert Student.courses.association_keys() == KeyPair(("course_id",), ("id",))

    def test_memoized_per_owner(self) -> None:
        assert Order.payments.resolve_keys(Order) is Order.payments.resolve_keys(Order)

    def test_belongs_to_named_after_target(self) -> None:
        assert Owner.target.resolve_keys(Owner).foreign_key == ("target_id",)


class TestHelpers:
    @pytest.mark.parametrize(
        ("owner", "target", "expected"),
        [
            ("Student", "Course", "courses_students"),
            ("Course", "Student", "courses_students"),
            ("Person", "Group", "groups_people"),
        ],
    )
    def test_infer_join_table(self, owner: str, target: str, expected: str) -> None:
        assert infer_join_table(owner, target) == expected

    def test_join_table_inferred_at_declaration(self) -> None:
        assert Student.courses.join_table == "courses_students"

    def test_normalize_keys(self) -> None:
        assert normalize_keys(None) == ()
        assert normalize_keys("school_id") == ("school_id",)
        assert normalize_keys(["a", "b"]) == ("a", "b")

    def test_kind_flags(self) -> None:
        assert RelationshipKind.HAS_MANY.is_plural
        assert RelationshipKind.HAS_AND_BELONGS_TO_MANY.is_plural
        assert not RelationshipKind.HAS_ONE.is_plural
        assert RelationshipKind.HAS_ONE.key_on_target
        assert not RelationshipKind.BELONGS_TO.key_on_target
