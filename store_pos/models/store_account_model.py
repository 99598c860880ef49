# store_pos/models/store_account_model.py
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from ..extensions.db import db
from ..utils.logger import Log
from ..utils.helpers import normalise_store_id, serialise_doc, utcnow


class StoreAccount:
    """
    Per-store earnings ledger: what the store earned, what was paid out, and
    the outstanding due balance that drives pausing.
    """

    collection_name = "store_accounts"

    DEFAULT_THRESHOLD = 10000

    def __init__(self, store_id, store_name=None, total_earned=0, total_paid=0, due_balance=0, threshold=None):
        self.store_id = normalise_store_id(store_id)
        self.store_name = store_name
        self.total_earned = float(total_earned or 0)
        self.total_paid = float(total_paid or 0)
        self.due_balance = float(due_balance or 0)
        self.threshold = float(threshold if threshold is not None else self.DEFAULT_THRESHOLD)
        self.is_paused = False
        self.paused_at = None
        self.paused_reason = None
        self.last_payment_date = None
        self.last_payment_amount = None
        self.version = 0
        self.created_at = utcnow()
        self.updated_at = utcnow()

    def to_dict(self):
        return dict(self.__dict__)

    def save(self):
        result = self.get_collection().insert_one(self.to_dict())
        return str(result.inserted_id)

    @classmethod
    def get_collection(cls):
        return db.get_collection(cls.collection_name)

    @classmethod
    def get_by_store_id(cls, store_id):
        return cls.get_collection().find_one({"store_id": normalise_store_id(store_id)})

    @classmethod
    def list_all(cls):
        cursor = cls.get_collection().find({}).sort([("due_balance", DESCENDING)])
        return [serialise_doc(doc) for doc in cursor]

    @classmethod
    def compare_and_set(cls, account, updates):
        """
        Apply `updates` only if the account still carries the version it was
        read with. Returns the updated document, or None when another writer
        got there first.

        Accounts written before versioning have no `version` field; they are
        matched on its absence and start at version 1.
        """
        version = account.get("version")
        query = {"_id": account["_id"]}
        if version is None:
            query["version"] = {"$exists": False}
        else:
            query["version"] = version

        update = {
            "$set": dict(updates, updated_at=utcnow(), version=(version or 0) + 1),
        }

        doc = cls.get_collection().find_one_and_update(
            query,
            update,
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            Log.info(
                f"[store_account_model.py][StoreAccount][compare_and_set][{account.get('store_id')}] "
                f"version {version} is stale"
            )
        return doc

    @classmethod
    def create_indexes(cls):
        collection = cls.get_collection()
        collection.create_index([("store_id", ASCENDING)], unique=True, name="uniq_account_store_id")
        collection.create_index([("due_balance", DESCENDING)], name="due_balance_idx")
        Log.info("[store_account_model.py][StoreAccount][create_indexes] Indexes created successfully")
        return True
