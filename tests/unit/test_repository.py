"""
Unit tests for MangoRepository.

Tests the CRUD lifecycle (create, patch, delete, save, clear, set_cache),
copy-on-write caches and write logging.
"""

import copy
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from mdb_mango import MangoRepository, RepositoryOptions
from mdb_mango.exceptions import (BadRequestError, ConflictError, ErrorCode,
                                  InternalError, NotFoundError,
                                  UnprocessableError)
from mdb_mango.observability import get_correlation_id


def assert_cache_duality(cache):
    assert {doc["vin"] for doc in cache.collection} == set(cache.root)


@pytest.mark.unit
class TestMangoRepositoryInitialization:
    """Test MangoRepository construction."""

    def test_defaults(self):
        """Test a repository with no model or options."""
        repo = MangoRepository()

        assert repo.uid() == "id"
        assert repo.cache.collection == ()
        assert repo.validator.enabled is False
        assert isinstance(repo.options, RepositoryOptions)

    def test_seeded(self, repo, cars):
        """Test a repository seeded with entities."""
        assert list(repo.cache.collection) == cars
        assert set(repo.cache.root) == {car["vin"] for car in cars}
        assert repo.validator.enabled is True
        assert repo.validator.model_name == "Car"

    def test_seed_with_duplicates(self, cars):
        """Test that duplicate seed identities keep the last entity."""
        duplicate = {**cars[0], "model": "xB"}
        repo = MangoRepository(
            options={"cache": {"collection": [*cars, duplicate]}, "mingo": {"id_key": "vin"}}
        )

        assert len(repo.cache.collection) == 5
        assert repo.find_one(cars[0]["vin"])["model"] == "xB"


@pytest.mark.unit
class TestMangoRepositoryCreate:
    """Test MangoRepository.create."""

    def test_create(self, repo):
        """Test creating an entity with an identity."""
        dto = {"vin": "new-vin", "make": "Ford", "model": "Focus", "model_year": 2012}
        entity = repo.create(dto)

        assert entity == dto
        assert repo.find_one("new-vin") == dto
        assert len(repo.cache.collection) == 6
        assert_cache_duality(repo.cache)

    def test_create_generates_identity(self, repo):
        """Test that a missing identity is generated."""
        entity = repo.create({"make": "Ford", "model": "Focus", "model_year": 2012})

        assert uuid.UUID(entity["vin"]).version == 4
        assert repo.find_one_or_fail(entity["vin"])["model"] == "Focus"

    def test_create_empty_identity_is_generated(self, repo):
        """Test that an empty identity is treated as missing."""
        entity = repo.create({"vin": "", "make": "Ford", "model": "Ka", "model_year": 2001})

        assert entity["vin"]

    def test_create_trims_identity(self, repo):
        """Test that string identities are trimmed."""
        entity = repo.create({"vin": "  abc  ", "make": "Ford", "model": "Ka", "model_year": 2001})

        assert entity["vin"] == "abc"
        assert repo.find_one("abc") is not None

    def test_create_conflict(self, repo, cars, car_uid):
        """Test that an existing identity raises CONFLICT."""
        previous = repo.cache

        with pytest.raises(ConflictError) as exc_info:
            repo.create(cars[0])

        error = exc_info.value
        assert error.code == ErrorCode.CONFLICT
        assert error.message == f'Entity with vin "{car_uid}" already exists'
        assert error.errors == {"vin": car_uid}
        assert error.context["dto"] == cars[0]
        assert repo.cache is previous

    def test_create_validation_failure(self, repo):
        """Test that validation failures raise BAD_REQUEST."""
        previous = repo.cache

        with pytest.raises(BadRequestError) as exc_info:
            repo.create({"vin": "new-vin"})

        error = exc_info.value
        assert error.message == "Car entity validation failure: [make,model,model_year]"
        assert [e["property"] for e in error.errors] == ["make", "model", "model_year"]
        assert repo.cache is previous

    def test_create_coerces_values(self, repo):
        """Test that validated values come from the entity model."""
        entity = repo.create({"vin": "v1", "make": "Ford", "model": "Ka", "model_year": "2001"})

        assert entity["model_year"] == 2001
        assert repo.find_one("v1")["model_year"] == 2001

    def test_create_without_validation(self, cars):
        """Test that disabled validation stores DTOs unchanged."""
        repo = MangoRepository(
            options={
                "cache": {"collection": cars},
                "mingo": {"id_key": "vin"},
                "validation": {"enabled": False},
            }
        )
        entity = repo.create({"vin": "v1", "anything": {"goes": True}})

        assert entity == {"vin": "v1", "anything": {"goes": True}}

    def test_create_with_json_schema(self, cars, car_schema):
        """Test validation against a JSON schema."""
        options = {"cache": {"collection": cars}, "mingo": {"id_key": "vin"}}
        repo = MangoRepository(car_schema, options)

        with pytest.raises(BadRequestError, match="Car entity validation failure"):
            repo.create({"vin": "v1", "make": "Ford", "model": "Ka", "model_year": 1800})

        assert repo.create({"vin": "v2", "make": "Ford", "model": "Ka", "model_year": 2001})


@pytest.mark.unit
class TestMangoRepositoryPatch:
    """Test MangoRepository.patch."""

    def test_patch(self, repo, cars, car_uid):
        """Test merging a DTO into an entity."""
        entity = repo.patch(car_uid, {"model_year": 2011})

        assert entity == {**cars[0], "model_year": 2011}
        assert repo.find_one(car_uid)["model_year"] == 2011
        assert len(repo.cache.collection) == 5
        assert_cache_duality(repo.cache)

    def test_patch_preserves_identity(self, repo, car_uid):
        """Test that the identity field is readonly."""
        entity = repo.patch(car_uid, {"vin": "other", "model": "xB"})

        assert entity["vin"] == car_uid
        assert entity["model"] == "xB"
        assert repo.find_one("other") is None

    def test_patch_readonly_fields(self, repo, car_uid):
        """Test additional readonly fields."""
        entity = repo.patch(car_uid, {"make": "Toyota", "model": "xB"}, ["make"])

        assert entity["make"] == "Scion"
        assert entity["model"] == "xB"

    def test_patch_deep_merges(self):
        """Test that nested objects are merged key-wise."""
        documents = [{"id": 1, "specs": {"hp": 160, "doors": 2}}]
        repo = MangoRepository(options={"cache": {"collection": documents}})
        entity = repo.patch(1, {"specs": {"hp": 180}})

        assert entity == {"id": 1, "specs": {"hp": 180, "doors": 2}}

    def test_patch_keeps_untouched_values_exact(self):
        """Test that fields outside the DTO keep their exact values and types."""
        stamp = datetime(2021, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc)
        documents = [{"id": "a", "ts": stamp, "tags": ("x",), "price": Decimal("1.10"), "n": 1}]
        repo = MangoRepository(options={"cache": {"collection": documents}})

        entity = repo.patch("a", {"n": 2})
        stored = repo.find_one("a")

        for document in (entity, stored):
            assert document["ts"] == stamp
            assert document["ts"].tzinfo is not None
            assert document["tags"] == ("x",)
            assert document["price"] == Decimal("1.10")
            assert document["n"] == 2

    def test_patch_keeps_identity_dropped_by_validator(self, cars, car_model, car_uid):
        """Test that the entity is stored under its identity whatever the validator returns."""
        options = {
            "cache": {"collection": cars},
            "mingo": {"id_key": "vin"},
            "validation": {"transformer_opts": {"exclude": {"vin"}}},
        }
        repo = MangoRepository(car_model, options)

        entity = repo.patch(car_uid, {"model": "xB"})

        assert entity["vin"] == car_uid
        assert repo.find_one(car_uid)["model"] == "xB"
        assert_cache_duality(repo.cache)

    def test_writes_with_values_outside_bson(self):
        """Test that values BSON cannot encode do not block any write."""
        documents = [{"id": "a", "price": Decimal("1.10"), "sizes": {3, 5}}]
        repo = MangoRepository(options={"cache": {"collection": documents}})

        created = repo.create({"id": "b", "price": Decimal("2.00")})
        patched = repo.patch("a", {"sizes": {7}})

        assert created == {"id": "b", "price": Decimal("2.00")}
        assert patched == {"id": "a", "price": Decimal("1.10"), "sizes": {7}}
        assert repo.find({"price": {"$gt": 1.5}}) == [created]
        assert repo.delete(["a", "b"], should_exist=True) == ["a", "b"]

    def test_patch_not_found(self, repo):
        """Test that patching a missing entity raises NOT_FOUND."""
        previous = repo.cache

        with pytest.raises(NotFoundError) as exc_info:
            repo.patch("bad-vin", {"make": "Ford"})

        assert exc_info.value.context["uid"] == "bad-vin"
        assert exc_info.value.context["dto"] == {"make": "Ford"}
        assert repo.cache is previous

    def test_patch_invalid_identity(self, repo):
        """Test that identities must be strings or integers."""
        with pytest.raises(UnprocessableError):
            repo.patch(3.14, {"make": "Ford"})

    def test_patch_validation_failure(self, repo, car_uid):
        """Test that a patched entity is validated."""
        with pytest.raises(BadRequestError) as exc_info:
            repo.patch(car_uid, {"model_year": 1800})

        assert [e["property"] for e in exc_info.value.errors] == ["model_year"]
        assert repo.find_one(car_uid)["model_year"] == 2010


@pytest.mark.unit
class TestMangoRepositoryDelete:
    """Test MangoRepository.delete."""

    def test_delete_one(self, repo, car_uid):
        """Test deleting a single entity."""
        assert repo.delete(car_uid) == [car_uid]
        assert repo.find_one(car_uid) is None
        assert len(repo.cache.collection) == 4
        assert_cache_duality(repo.cache)

    def test_delete_many(self, repo, cars):
        """Test deleting a list of entities."""
        uids = [cars[0]["vin"], cars[1]["vin"]]

        assert repo.delete(uids) == uids
        assert len(repo.cache.collection) == 3

    def test_delete_missing_is_ignored(self, repo, cars):
        """Test that missing entities are skipped by default."""
        assert repo.delete("bad-vin") == []
        assert repo.delete([cars[0]["vin"], "bad-vin"]) == [cars[0]["vin"]]
        assert len(repo.cache.collection) == 4

    def test_delete_should_exist_is_atomic(self, repo, cars):
        """Test that a missing entity aborts the whole batch."""
        previous = repo.cache
        uids = [cars[0]["vin"], "bad-vin"]

        with pytest.raises(NotFoundError) as exc_info:
            repo.delete(uids, should_exist=True)

        assert exc_info.value.context["uids"] == uids
        assert exc_info.value.context["should_exist"] is True
        assert repo.cache is previous
        assert len(repo.cache.collection) == 5

    def test_delete_nothing(self, repo):
        """Test deleting with no identities."""
        assert repo.delete() == []
        assert repo.delete([]) == []

    def test_delete_invalid_identity(self, repo):
        """Test that identities must be strings or integers."""
        with pytest.raises(UnprocessableError):
            repo.delete([{"vin": "x"}])


@pytest.mark.unit
class TestMangoRepositorySave:
    """Test MangoRepository.save."""

    def test_save_patches_existing(self, repo, car_uid):
        """Test that an existing identity is patched in place."""
        results = repo.save({"vin": car_uid, "make": "NEW"})

        assert results[0]["make"] == "NEW"
        assert results[0]["model"] == "tC"
        assert len(repo.cache.collection) == 5

    def test_save_creates_new(self, repo):
        """Test that a DTO without an identity is created."""
        results = repo.save({"make": "NEW", "model": "Car", "model_year": 2020})

        assert len(repo.cache.collection) == 6
        assert repo.find_one(results[0]["vin"])["make"] == "NEW"

    def test_save_many(self, repo, car_uid):
        """Test upserting a list of DTOs."""
        results = repo.save(
            [
                {"vin": car_uid, "model_year": 2012},
                {"vin": "v1", "make": "Ford", "model": "Ka", "model_year": 2001},
            ]
        )

        assert [r["vin"] for r in results] == [car_uid, "v1"]
        assert len(repo.cache.collection) == 6

    def test_save_commits_each_dto(self, repo):
        """Test that a failing DTO leaves earlier DTOs saved."""
        with pytest.raises(BadRequestError):
            repo.save(
                [
                    {"vin": "v1", "make": "Ford", "model": "Ka", "model_year": 2001},
                    {"vin": "v2", "make": "Ford"},
                ]
            )

        assert repo.find_one("v1") is not None
        assert repo.find_one("v2") is None

    def test_save_nothing(self, repo):
        """Test saving no DTOs."""
        assert repo.save() == []
        assert repo.save([]) == []


@pytest.mark.unit
class TestMangoRepositoryCache:
    """Test cache publishing and copy-on-write."""

    @pytest.mark.parametrize(
        "write",
        [
            lambda r, uid: r.create({"make": "Ford", "model": "Ka", "model_year": 2001}),
            lambda r, uid: r.patch(uid, {"model": "xB"}),
            lambda r, uid: r.delete(uid),
            lambda r, uid: r.save({"vin": uid, "model": "xB"}),
            lambda r, uid: r.clear(),
            lambda r, uid: r.set_cache([]),
        ],
    )
    def test_copy_on_write(self, repo, car_uid, write):
        """Test that writes replace the cache and leave the old one unchanged."""
        previous = repo.cache
        snapshot = copy.deepcopy(list(previous.collection))
        root_snapshot = copy.deepcopy(dict(previous.root))

        write(repo, car_uid)

        assert repo.cache is not previous
        assert list(previous.collection) == snapshot
        assert dict(previous.root) == root_snapshot

    def test_clear(self, repo):
        """Test removing every entity."""
        assert repo.clear() is True
        assert repo.cache.collection == ()
        assert dict(repo.cache.root) == {}

    def test_set_cache(self, repo, cars):
        """Test replacing the cache."""
        cache = repo.set_cache(cars[:2])

        assert repo.cache is cache
        assert cache.uids() == [cars[0]["vin"], cars[1]["vin"]]

    def test_set_cache_unindexable(self, repo):
        """Test that an unindexable collection leaves the cache unchanged."""
        previous = repo.cache

        with pytest.raises(InternalError):
            repo.set_cache([{"make": "Ford"}])

        assert repo.cache is previous

    def test_reads_do_not_replace_cache(self, repo, car_uid):
        """Test that reads never publish a new cache."""
        previous = repo.cache

        repo.find({"make": "Scion"})
        repo.query("make=Scion")
        repo.find_one(car_uid)
        repo.aggregate({"$match": {}})

        assert repo.cache is previous


@pytest.mark.unit
class TestMangoRepositoryLogging:
    """Test write logging."""

    def test_successful_write_logs_debug(self, repo, car_uid, caplog):
        """Test that successful writes log at DEBUG."""
        with caplog.at_level(logging.DEBUG, logger="mdb_mango"):
            repo.patch(car_uid, {"model": "xB"})

        records = [r for r in caplog.records if getattr(r, "operation", None) == "patch"]
        assert len(records) == 1
        assert records[0].levelno == logging.DEBUG
        assert records[0].success is True
        assert records[0].store == "MangoRepositoryCore"
        assert records[0].id_key == "vin"

    def test_failed_write_logs_warning(self, repo, caplog):
        """Test that failed writes log at WARNING."""
        with caplog.at_level(logging.DEBUG, logger="mdb_mango"):
            with pytest.raises(NotFoundError):
                repo.patch("bad-vin", {"model": "xB"})

        records = [r for r in caplog.records if getattr(r, "operation", None) == "patch"]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        assert records[0].success is False
        assert records[0].error_type == "NotFoundError"

    def test_save_writes_share_correlation_id(self, repo, car_uid, caplog):
        """Test that the writes of one save log under one correlation ID."""
        dtos = [
            {"vin": car_uid, "model": "xB"},
            {"make": "Ford", "model": "Ka", "model_year": 2000},
        ]

        with caplog.at_level(logging.DEBUG, logger="mdb_mango"):
            repo.save(dtos)
            repo.patch(car_uid, {"model": "tC"})

        records = [r for r in caplog.records if getattr(r, "operation", None) in ("create", "patch")]
        assert [r.operation for r in records] == ["patch", "create", "patch"]
        assert records[0].correlation_id == records[1].correlation_id
        assert records[2].correlation_id != records[0].correlation_id
        assert get_correlation_id() is None
