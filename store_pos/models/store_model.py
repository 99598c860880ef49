# store_pos/models/store_model.py
from pymongo import ASCENDING, ReturnDocument

from ..extensions.db import db
from ..utils.logger import Log
from ..utils.helpers import normalise_store_id, to_naive_utc, utcnow


class Store:
    """
    A tenant store and its subscription window.

    `is_active` is the gate checked on every authenticated store request.
    """

    collection_name = "stores"

    def __init__(self, store_id, name, subscription_end_date, subscription_start_date=None, is_active=True):
        self.store_id = normalise_store_id(store_id)
        self.name = name
        self.subscription_start_date = to_naive_utc(subscription_start_date) or utcnow()
        self.subscription_end_date = to_naive_utc(subscription_end_date)
        self.is_active = bool(is_active)
        self.created_at = utcnow()
        self.updated_at = utcnow()

    def to_dict(self):
        return dict(self.__dict__)

    def save(self):
        result = self.get_collection().insert_one(self.to_dict())
        Log.info(f"[store_model.py][Store][save][{self.store_id}] Store created")
        return str(result.inserted_id)

    @classmethod
    def get_collection(cls):
        return db.get_collection(cls.collection_name)

    @classmethod
    def get_by_store_id(cls, store_id):
        return cls.get_collection().find_one({"store_id": normalise_store_id(store_id)})

    @classmethod
    def set_active(cls, store_id, is_active):
        """Flip the store's active flag; returns the updated document or None."""
        return cls.get_collection().find_one_and_update(
            {"store_id": normalise_store_id(store_id)},
            {"$set": {"is_active": bool(is_active), "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    @classmethod
    def deactivate_if_active(cls, store_id):
        """
        Latch an active store to inactive. The `is_active: True` filter makes
        the write a no-op when another request already latched it.
        """
        result = cls.get_collection().update_one(
            {"store_id": normalise_store_id(store_id), "is_active": True},
            {"$set": {"is_active": False, "updated_at": utcnow()}},
        )
        return result.modified_count > 0

    @classmethod
    def reactivate(cls, store_id, new_end_date=None):
        updates = {"is_active": True, "updated_at": utcnow()}
        if new_end_date is not None:
            updates["subscription_start_date"] = utcnow()
            updates["subscription_end_date"] = to_naive_utc(new_end_date)

        return cls.get_collection().find_one_and_update(
            {"store_id": normalise_store_id(store_id)},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )

    @classmethod
    def deactivate_expired(cls, now=None):
        """Set every active store whose subscription ended before `now` inactive."""
        now = now or utcnow()
        result = cls.get_collection().update_many(
            {"subscription_end_date": {"$lt": now}, "is_active": True},
            {"$set": {"is_active": False, "updated_at": now}},
        )
        return result.modified_count

    @classmethod
    def create_indexes(cls):
        collection = cls.get_collection()
        collection.create_index([("store_id", ASCENDING)], unique=True, name="uniq_store_id")
        collection.create_index(
            [("is_active", ASCENDING), ("subscription_end_date", ASCENDING)],
            name="active_subscription_end_idx",
        )
        Log.info("[store_model.py][Store][create_indexes] Indexes created successfully")
        return True
