from __future__ import annotations

import sqlalchemy as sa

from sqla_associations import Model

from ..models import Order, Person, School, Student, courses_students


class TestBuildAssociation:
    def test_has_many_sets_foreign_key(self, seed_data: dict[str, list[Model]]) -> None:
        durmstrang = seed_data["schools"][2]
        person = School.people.build_association(durmstrang, {"name": "Igor"})

        assert person.is_new_record()
        assert person.school_id == durmstrang.id
        assert person.name == "Igor"

    def test_appends_to_loaded_collection(self, seed_data: dict[str, list[Model]]) -> None:
        hogwarts = seed_data["schools"][0]
        before = len(hogwarts.people)
        person = hogwarts.build_association("people", {"name": "Ron"})

        assert len(hogwarts.people) == before + 1
        assert hogwarts.people[-1] is person

    def test_guarded_attributes(self, seed_data: dict[str, list[Model]]) -> None:
        hogwarts = seed_data["schools"][0]
        person = School.people.build_association(hogwarts, {"name": "Ron", "role": "head", "school_id": 99})

        assert "role" not in person.attributes
        assert person.school_id == 99

    def test_unguarded_attributes_override_key(self, seed_data: dict[str, list[Model]]) -> None:
        hogwarts = seed_data["schools"][0]
        person = School.people.build_association(
            hogwarts, {"name": "Ron", "role": "head"}, guard_attributes=False
        )

        assert person.role == "head"
        assert person.school_id == hogwarts.id

    def test_has_one_replaces_related(self, seed_data: dict[str, list[Model]]) -> None:
        hermione = seed_data["people"][1]
        profile = Person.profile.build_association(hermione, {"bio": "Brightest witch"})

        assert hermione.profile is profile
        assert profile.person_id == hermione.id

    def test_belongs_to_builds_plain_record(self, seed_data: dict[str, list[Model]]) -> None:
        viktor = seed_data["people"][4]
        school = Person.school.build_association(viktor, {"name": "Durmstrang II"})

        assert school.attributes == {"name": "Durmstrang II"}
        assert viktor.school is school
        assert viktor.school_id is None

    def test_through_does_not_seed_keys(self, seed_data: dict[str, list[Model]]) -> None:
        first = seed_data["orders"][0]
        person = Order.people.build_association(first, {"name": "Dobby"})

        assert person.attributes == {"name": "Dobby"}


class TestCreateAssociation:
    def test_has_many_persists(self, seed_data: dict[str, list[Model]]) -> None:
        durmstrang = seed_data["schools"][2]
        person = durmstrang.create_association("people", {"name": "Igor"})

        assert not person.is_new_record()
        assert person.id is not None

        durmstrang.reset_relationship("people")
        assert [p.name for p in durmstrang.people] == ["Igor"]

    def test_no_duplicate_after_create(self, seed_data: dict[str, list[Model]]) -> None:
        durmstrang = seed_data["schools"][2]
        durmstrang.create_association("people", {"name": "Igor"})

        assert [p.name for p in durmstrang.people] == ["Igor"]

    def test_belongs_to_updates_owner_key(self, seed_data: dict[str, list[Model]]) -> None:
        viktor = seed_data["people"][4]
        school = Person.school.create_association(viktor, {"name": "Koldovstoretz"})

        assert viktor.school_id == school.id
        viktor.save()

        reloaded = Person.first(conditions=("people.id = :id", {"id": viktor.id}))
        assert reloaded is not None
        assert reloaded.school.name == "Koldovstoretz"

    def test_habtm_inserts_join_row(self, seed_data: dict[str, list[Model]], connection: sa.Connection) -> None:
        ginny = seed_data["students"][2]
        course = Student.courses.create_association(ginny, {"title": "Quidditch"})

        rows = connection.execute(
            sa.select(courses_students.c.course_id).where(courses_students.c.student_id == ginny.id)
        ).all()

        assert [row.course_id for row in rows] == [course.id]
        assert [c.title for c in ginny.courses] == ["Quidditch"]

        ginny.reset_relationship("courses")
        assert [c.title for c in ginny.courses] == ["Quidditch"]


class TestPersistence:
    def test_update(self, seed_data: dict[str, list[Model]]) -> None:
        hogwarts = seed_data["schools"][0]
        hogwarts.name = "Hogwarts School"
        hogwarts.save()

        reloaded = School.first(conditions=("schools.id = :id", {"id": hogwarts.id}))
        assert reloaded is not None
        assert reloaded.name == "Hogwarts School"

    def test_create_assigns_primary_key(self, connection: sa.Connection) -> None:
        school = School.create({"name": "Uagadou"})

        assert school.id is not None
        assert not school.is_new_record()
