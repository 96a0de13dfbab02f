from abc import ABC, abstractmethod
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Optional, Any

from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database

from logger import get_logger, mask
from schemas import StoreRecord, OAuthSession, default_selections

logger = get_logger(__name__)

STORES = "stores"
OAUTH_SESSIONS = "oauth_sessions"


@lru_cache
def get_client(database_url: str) -> MongoClient:
    # MongoClient keeps its own pool and is safe to share between threads
    client = MongoClient(database_url, serverSelectionTimeoutMS=10000)
    logger.info("MongoDB client created")
    return client


def get_database(database_url: str, database_name: str) -> Database:
    return get_client(database_url)[database_name]


def ensure_indexes(db: Database) -> None:
    db[STORES].create_index([("shop", ASCENDING)], unique=True)
    # Sparse so records created before a key was minted do not collide on null
    db[STORES].create_index([("api_key", ASCENDING)], unique=True, sparse=True)
    db[OAUTH_SESSIONS].create_index([("session_id", ASCENDING)], unique=True)
    logger.info("MongoDB indexes ensured")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StoreRepository(ABC):
    """Persistence for one record per connected shop."""

    @abstractmethod
    def find_by_shop(self, shop: str) -> Optional[StoreRecord]:
        ...

    @abstractmethod
    def find_by_api_key(self, api_key: str) -> Optional[StoreRecord]:
        ...

    @abstractmethod
    def save_authentication(self, shop: str, access_token: str, new_api_key: str) -> StoreRecord:
        """
        Store a fresh access token for `shop`, creating the record if needed.
        `new_api_key` and default selections are only written on creation.
        """

    @abstractmethod
    def replace_selections(self, shop: str, selections: Dict[str, bool]) -> Optional[StoreRecord]:
        """Overwrite the selection flags. Returns None when the shop is unknown."""


class MongoStoreRepository(StoreRepository):
    def __init__(self, db: Database):
        self.collection = db[STORES]

    def find_by_shop(self, shop: str) -> Optional[StoreRecord]:
        doc = self.collection.find_one({"shop": shop})
        return StoreRecord.from_document(doc) if doc else None

    def find_by_api_key(self, api_key: str) -> Optional[StoreRecord]:
        doc = self.collection.find_one({"api_key": api_key})
        return StoreRecord.from_document(doc) if doc else None

    def save_authentication(self, shop: str, access_token: str, new_api_key: str) -> StoreRecord:
        now = _now()
        doc = self.collection.find_one_and_update(
            {"shop": shop},
            {
                "$set": {"access_token": access_token, "updated_at": now},
                "$setOnInsert": {
                    "api_key": new_api_key,
                    "data_selections": default_selections(),
                    "created_at": now,
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        logger.info(f"Saved access token {mask(access_token)} for {shop}")
        return StoreRecord.from_document(doc)

    def replace_selections(self, shop: str, selections: Dict[str, bool]) -> Optional[StoreRecord]:
        doc = self.collection.find_one_and_update(
            {"shop": shop},
            {"$set": {"data_selections": selections, "updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
        )
        return StoreRecord.from_document(doc) if doc else None


class SessionStore(ABC):
    """Short-lived install handshake state, keyed by a browser session id."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[OAuthSession]:
        ...

    @abstractmethod
    def set(self, session_id: str, session: OAuthSession) -> None:
        ...

    @abstractmethod
    def delete(self, session_id: str) -> None:
        ...


class MongoSessionStore(SessionStore):
    def __init__(self, db: Database):
        self.collection = db[OAUTH_SESSIONS]

    def get(self, session_id: str) -> Optional[OAuthSession]:
        doc = self.collection.find_one({"session_id": session_id})
        if not doc:
            return None
        return OAuthSession(shop=doc["shop"], state=doc["state"])

    def set(self, session_id: str, session: OAuthSession) -> None:
        data: Dict[str, Any] = session.model_dump()
        data["updated_at"] = _now()
        self.collection.update_one({"session_id": session_id}, {"$set": data}, upsert=True)

    def delete(self, session_id: str) -> None:
        self.collection.delete_one({"session_id": session_id})
