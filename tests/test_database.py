from __future__ import annotations

import pytest

import database
from database import LedgerStore, SkillStore, create_document, get_documents
from errors import ConcurrentModification, DatabaseNotConfigured, RecordNotFound
from ledger import credit
from schemas import Skill


def test_unconfigured_database_is_reported(monkeypatch) -> None:
    monkeypatch.setattr(database, "db", None)
    with pytest.raises(DatabaseNotConfigured):
        SkillStore()
    with pytest.raises(DatabaseNotConfigured):
        get_documents("skill")


def test_create_document_stamps_timestamps(mongo_db) -> None:
    inserted = create_document("skill", Skill(id="abc", user_id="u1", name="Git"), database=mongo_db)
    assert inserted == "abc"
    doc = get_documents("skill", {"user_id": "u1"}, database=mongo_db)[0]
    assert doc["_id"] == "abc"
    assert "created_at" in doc
    assert "updated_at" in doc


def test_skill_round_trip_keeps_integer_star_keys(mongo_db) -> None:
    store = SkillStore(mongo_db)
    store.insert(Skill(id="s1", user_id="u1", name="Git", unlocked_level=3, level_stars={1: 2, 2: 3}, level=15))
    loaded = store.get("u1", "s1")
    assert loaded.level_stars == {1: 2, 2: 3}
    assert mongo_db["skill"].find_one({"_id": "s1"})["level_stars"] == {"1": 2, "2": 3}


def test_skill_scoped_to_owner(mongo_db) -> None:
    store = SkillStore(mongo_db)
    store.insert(Skill(id="s1", user_id="u1", name="Git"))
    with pytest.raises(RecordNotFound):
        store.get("intruder", "s1")
    assert store.delete("intruder", "s1") is False


def test_save_bumps_version(mongo_db) -> None:
    store = SkillStore(mongo_db)
    store.insert(Skill(id="s1", user_id="u1", name="Git"))
    skill = store.get("u1", "s1")
    skill.target = "Expert"
    saved = store.save(skill)
    assert saved.version == 1
    assert store.get("u1", "s1").target == "Expert"


def test_stale_write_is_retried_on_fresh_copy(mongo_db) -> None:
    store = LedgerStore(mongo_db)
    store.get_or_create("u1")
    raced = {"done": False}

    def apply(ledger) -> None:
        if not raced["done"]:
            # another request lands between our read and our write
            raced["done"] = True
            other = store.get("u1")
            credit(other, 40)
            store.save(other)
        credit(ledger, 100)

    result = store.mutate("u1", apply)
    assert result.spendable_xp == 140
    assert result.lifetime_xp == 140
    assert store.get("u1").version == 2


def test_persistent_conflict_gives_up(mongo_db) -> None:
    store = LedgerStore(mongo_db)
    store.get_or_create("u1")

    def apply(ledger) -> None:
        other = store.get("u1")
        store.save(other)
        credit(ledger, 100)

    with pytest.raises(ConcurrentModification):
        store.mutate("u1", apply)
    assert store.get("u1").spendable_xp == 0


def test_mutating_deleted_skill_is_not_found(mongo_db) -> None:
    store = SkillStore(mongo_db)
    store.insert(Skill(id="s1", user_id="u1", name="Git"))
    skill = store.get("u1", "s1")
    store.delete("u1", "s1")
    with pytest.raises(RecordNotFound):
        store.save(skill)


def test_legacy_ledger_without_version_can_be_saved(mongo_db) -> None:
    mongo_db["ledger"].insert_one({"_id": "old", "user_id": "old", "xp": 120, "streak": 3})
    store = LedgerStore(mongo_db)
    updated = store.mutate("old", lambda l: credit(l, 30), create=False)
    assert updated.spendable_xp == 150
    assert updated.lifetime_xp == 150
    assert updated.version == 1


def test_missing_ledger_without_create_is_not_found(mongo_db) -> None:
    with pytest.raises(RecordNotFound):
        LedgerStore(mongo_db).mutate("ghost", lambda l: credit(l, 1), create=False)


def test_pre_ledger_progress_is_imported_on_first_access(mongo_db) -> None:
    mongo_db["userprogresses"].insert_one(
        {"userId": "old", "xp": 250, "lifetimeXP": 700, "streak": 6, "equipped": {"theme": "light", "title": "Novice"}}
    )
    store = LedgerStore(mongo_db)

    acct = store.get_or_create("old")
    assert acct.spendable_xp == 250
    assert acct.lifetime_xp == 700
    assert acct.streak == 6
    assert mongo_db["ledger"].find_one({"_id": "old"})["spendable_xp"] == 250
    assert mongo_db["userprogresses"].count_documents({"userId": "old"}) == 1

    updated = store.mutate("old", lambda l: credit(l, 50))
    assert updated.lifetime_xp == 750
    assert store.get_or_create("old").spendable_xp == 300


def test_pre_ledger_progress_counts_as_existing_ledger(mongo_db) -> None:
    mongo_db["userprogresses"].insert_one({"userId": "old", "xp": 80})
    updated = LedgerStore(mongo_db).mutate("old", lambda l: credit(l, 20), create=False)
    assert updated.spendable_xp == 100
