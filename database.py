"""
MongoDB access for the Skill Tracker.

``db`` is the configured database, or None when DATABASE_URL/DATABASE_NAME are
not set. Skill and ledger records are written with optimistic concurrency:
each carries a ``version`` and a save only lands if nobody else saved since
the record was read.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel
from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

from errors import ConcurrentModification, DatabaseNotConfigured, RecordNotFound
from ledger import ledger_from_document, new_ledger
from schemas import EconomyLedger, Skill, utcnow

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

db = None
if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL, tz_aware=True)
    db = client[DATABASE_NAME]

MAX_SAVE_ATTEMPTS = 3


def _resolve(database):
    database = database if database is not None else db
    if database is None:
        raise DatabaseNotConfigured()
    return database


def _to_document(data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return dict(data)


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]], database=None) -> str:
    """Insert a document, stamping created_at/updated_at. Returns its _id."""
    database = _resolve(database)
    doc = _to_document(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    if "id" in doc:
        doc.setdefault("_id", doc["id"])
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None, database=None) -> List[dict]:
    database = _resolve(database)
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


class _VersionConflict(Exception):
    pass


T = TypeVar("T", bound=BaseModel)


class VersionedStore(Generic[T]):
    collection_name = ""

    def __init__(self, database=None):
        self.database = _resolve(database)
        self.collection = self.database[self.collection_name]

    def _from_document(self, doc: Dict[str, Any]) -> T:
        raise NotImplementedError

    def _record_id(self, record: T) -> str:
        raise NotImplementedError

    def save(self, record: T) -> T:
        """Write ``record`` if its version still matches the stored one."""
        doc = _to_document(record)
        doc.pop("version", None)
        doc["updated_at"] = datetime.now(timezone.utc)
        key = self._record_id(record)
        match: Dict[str, Any] = {"_id": key, "version": record.version}
        if record.version == 0:
            # records written before versioning have no field at all
            match = {"_id": key, "$or": [{"version": 0}, {"version": {"$exists": False}}]}
        updated = self.collection.find_one_and_update(
            match,
            {"$set": doc, "$inc": {"version": 1}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            if self.collection.find_one({"_id": key}) is None:
                raise RecordNotFound(f"{self.collection_name} {key} not found")
            raise _VersionConflict(key)
        return self._from_document(updated)

    def _mutate(self, load: Callable[[], T], apply: Callable[[T], Any]) -> T:
        for attempt in range(1, MAX_SAVE_ATTEMPTS + 1):
            record = load()
            apply(record)
            try:
                return self.save(record)
            except _VersionConflict:
                logger.info("%s version conflict, re-reading (attempt %d)", self.collection_name, attempt)
        raise ConcurrentModification(f"{self.collection_name} changed concurrently, please retry")


class SkillStore(VersionedStore[Skill]):
    collection_name = "skill"

    def _from_document(self, doc):
        return Skill(**{k: v for k, v in doc.items() if k != "_id"})

    def _record_id(self, record):
        return record.id

    def get(self, user_id: str, skill_id: str) -> Skill:
        doc = self.collection.find_one({"_id": skill_id, "user_id": user_id})
        if not doc:
            raise RecordNotFound(f"Skill {skill_id} not found")
        return self._from_document(doc)

    def list(self, user_id: str) -> List[Skill]:
        cursor = self.collection.find({"user_id": user_id}).sort("last_practiced", DESCENDING)
        return [self._from_document(doc) for doc in cursor]

    def insert(self, skill: Skill) -> Skill:
        create_document(self.collection_name, skill, database=self.database)
        return skill

    def delete(self, user_id: str, skill_id: str) -> bool:
        return self.collection.delete_one({"_id": skill_id, "user_id": user_id}).deleted_count > 0

    def mutate(self, user_id: str, skill_id: str, apply: Callable[[Skill], Any]) -> Skill:
        return self._mutate(lambda: self.get(user_id, skill_id), apply)


class LedgerStore(VersionedStore[EconomyLedger]):
    collection_name = "ledger"
    # progress records from before the ledger collection, keyed by userId
    legacy_collection_name = "userprogresses"

    def __init__(self, database=None, clock: Callable[[], datetime] = utcnow):
        super().__init__(database)
        self.clock = clock

    def _from_document(self, doc):
        return ledger_from_document(doc)

    def _record_id(self, record):
        return record.user_id

    def find(self, user_id: str) -> Optional[EconomyLedger]:
        doc = self.collection.find_one({"_id": user_id})
        return self._from_document(doc) if doc else None

    def get(self, user_id: str) -> EconomyLedger:
        ledger = self.find(user_id) or self._import_legacy(user_id)
        if ledger is None:
            raise RecordNotFound(f"Ledger for {user_id} not found")
        return ledger

    def get_or_create(self, user_id: str) -> EconomyLedger:
        ledger = self.find(user_id) or self._import_legacy(user_id)
        if ledger is not None:
            return ledger
        ledger = self._insert(new_ledger(user_id, self.clock()))
        logger.info("created ledger for %s", user_id)
        return ledger

    def _import_legacy(self, user_id: str) -> Optional[EconomyLedger]:
        """Copy a pre-ledger progress record into the ledger collection. The old record is kept."""
        legacy = self.database[self.legacy_collection_name].find_one({"userId": user_id})
        if legacy is None:
            return None
        ledger = ledger_from_document(legacy)
        ledger.user_id = user_id
        ledger.version = 0
        ledger = self._insert(ledger)
        logger.info("imported legacy progress for %s", user_id)
        return ledger

    def _insert(self, ledger: EconomyLedger) -> EconomyLedger:
        doc = _to_document(ledger)
        doc["_id"] = ledger.user_id
        try:
            create_document(self.collection_name, doc, database=self.database)
        except DuplicateKeyError:
            # Created by a concurrent request in between
            return self.get(ledger.user_id)
        return ledger

    def mutate(self, user_id: str, apply: Callable[[EconomyLedger], Any], create: bool = True) -> EconomyLedger:
        load = (lambda: self.get_or_create(user_id)) if create else (lambda: self.get(user_id))
        return self._mutate(load, apply)
