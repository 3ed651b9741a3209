"""
Integration tests for dumbo against a real PostgreSQL instance.

These tests verify that:
1. Generic records are seeded, inserted and returned with identity values
2. Typed targets receive returned values, including NULL handling
3. Savepoint scopes keep uniqueness reservations and rows in step

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import psycopg
import pytest
from faker import Faker

from dumbo import Factory, GenerationExhausted, Nullable, Schema, Seeder, StoreError
from dumbo.testing import begin

SCRIPTS = Path(__file__).parent / "scripts"
FAKER_SEED = 7

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)


@dataclass
class User:
    id: Nullable[int] = field(default_factory=Nullable)
    username: Nullable[str] = field(default_factory=Nullable)
    nickname: str = ""
    age: Nullable[int] = field(default_factory=Nullable)
    is_silly: Nullable[bool] = field(default_factory=Nullable)


USER_SCHEMA = Schema(
    table="user",
    columns={
        "id": "id",
        "username": "username",
        "nickname": "nickname",
        "age": "age",
        "is_silly": "is_silly",
    },
)


@pytest.fixture
def conn(db_connection: psycopg.Connection, db_schema_initialized: bool) -> psycopg.Connection:
    return db_connection


@pytest.fixture
def generating_seeder(test_settings) -> Seeder:
    fake = Faker()
    fake.seed_instance(FAKER_SEED)
    return Seeder(
        Factory(
            table="user",
            new_record=lambda: {"username": fake.user_name()},
            indexers=(lambda record: record["username"],),
        ),
        settings=test_settings,
    )


class TestGenericRecords:
    """Seeding and inserting plain records without factories."""

    def test_seeding_a_single_record(self, conn, test_settings):
        seeder = Seeder(settings=test_settings)
        with begin(conn) as store:
            user = seeder.seed_one(store, "user", {"username": "gopher"})

        assert user["id"] == 1
        assert user["username"] == "gopher"

    def test_seeding_multiple_records(self, conn, test_settings):
        seeder = Seeder(settings=test_settings)
        with begin(conn) as store:
            gopher, rustacean = seeder.seed_many(
                store, "user", [{"username": "gopher"}, {"username": "rustacean"}]
            )

        assert (gopher["id"], gopher["username"]) == (1, "gopher")
        assert (rustacean["id"], rustacean["username"]) == (2, "rustacean")
        assert set(gopher) == {"id", "username", "nickname", "age", "is_silly"}

    def test_adding_records_after_a_seed(self, conn, test_settings):
        seeder = Seeder(settings=test_settings)
        with begin(conn) as store:
            seeder.seed_one(store, "user", {"username": "gopher"})
            rust, ocaml = seeder.insert_many(
                store, "user", [{"username": "rust"}, {"username": "ocaml"}]
            )

        assert (rust["id"], ocaml["id"]) == (2, 3)

    def test_seed_restarts_identity(self, conn, test_settings):
        seeder = Seeder(settings=test_settings)
        with begin(conn) as store:
            seeder.seed_many(store, "user", [{"username": u} for u in ("a", "b", "c")])
            [x] = seeder.seed_many(store, "user", [{"username": "x"}])
            rows = seeder.fetch_rows(store, 'select "id", "username" from "user"')

        assert x["id"] == 1
        assert rows == [{"id": 1, "username": "x"}]

    def test_constraint_violations_surface_as_store_errors(self, conn, test_settings):
        seeder = Seeder(settings=test_settings)
        with begin(conn) as store:
            seeder.seed_one(store, "user", {"username": "gopher"})
            with pytest.raises(StoreError) as excinfo:
                seeder.insert_one(store, "user", {"username": "gopher"})

        assert isinstance(excinfo.value.__cause__, psycopg.errors.UniqueViolation)


class TestGeneratedRecords:
    """Seeding through a registered factory."""

    def test_generating_records(self, conn, generating_seeder):
        with begin(conn) as store:
            randoms = generating_seeder.seed_many(store, "user", [{}, {}, {}])

        assert [r["id"] for r in randoms] == [1, 2, 3]
        assert all(r["username"] for r in randoms)

    def test_overriding_generated_fields(self, conn, generating_seeder):
        with begin(conn) as store:
            gopher = generating_seeder.seed_one(store, "user", {"username": "gopher"})

        assert (gopher["id"], gopher["username"]) == (1, "gopher")

    def test_savepoint_scopes_follow_nested_tests(self, conn, generating_seeder):
        with begin(conn) as store:
            generating_seeder.seed_one(store, "user", {"username": "gopher"})

            with generating_seeder.savepoint(conn, "nested") as nested:
                generating_seeder.insert_one(nested, "user", {"username": "rustacean"})
                with pytest.raises(GenerationExhausted):
                    generating_seeder.insert_one(nested, "user", {"username": "gopher"})

            # The nested row and its reservation are both gone.
            [again] = generating_seeder.insert_many(store, "user", [{"username": "rustacean"}])
            assert again["username"] == "rustacean"
            assert generating_seeder.scopes.depth == 1


class TestTypedTargets:
    """Seeding objects and reconciling returned values onto them."""

    def test_seeding_a_single_record(self, conn, test_settings):
        seeder = Seeder(schemas=[USER_SCHEMA], settings=test_settings)
        user = User(username=Nullable.of("gopher"), age=Nullable.of(24), nickname="f")

        with begin(conn) as store:
            seeder.seed(store, "user", user)

        assert user.id == Nullable(1, True)
        assert user.username.value == "gopher"
        assert user.age.value == 24
        assert not user.is_silly.valid
        assert user.nickname == "f"

    def test_seeding_multiple_records(self, conn, test_settings):
        seeder = Seeder(schemas=[USER_SCHEMA], settings=test_settings)
        users = [
            User(username=Nullable.of("gopher"), age=Nullable.of(24)),
            User(
                username=Nullable.of("rustacean"),
                age=Nullable.of(42),
                is_silly=Nullable.of(True),
            ),
        ]

        with begin(conn) as store:
            seeder.seed(store, "user", users)

        gopher, rustacean = users
        assert (gopher.id.value, rustacean.id.value) == (1, 2)
        assert gopher.is_silly == Nullable(False, False)
        assert rustacean.is_silly == Nullable(True, True)
        assert rustacean.nickname == ""


class TestScripts:
    def test_seeding_from_a_script_file(self, conn, test_settings):
        seeder = Seeder(settings=test_settings)

        with begin(conn) as store:
            seeder.run_script(store, SCRIPTS / "insert_users.sql")
            rows = seeder.fetch_rows(
                store,
                'select "id", "username", "nickname", "age", "is_silly" from "user" order by "id"',
            )

        gopher, rustacean = rows
        assert gopher == {
            "id": 1,
            "username": "gopher",
            "nickname": "nibbles",
            "age": 24,
            "is_silly": None,
        }
        assert (rustacean["nickname"], rustacean["is_silly"]) == ("crab", True)
