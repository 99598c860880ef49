# store_pos/models/base_model.py

from math import ceil

from bson.objectid import ObjectId
from bson.errors import InvalidId

from ..extensions.db import db
from ..utils.helpers import normalise_store_id, serialise_doc, utcnow


class BaseModel:
    """
    A base class for store-scoped models providing common collection helpers.

    Every record carries a lower-cased `store_id`; every query built through
    these helpers is filtered by it.
    """
    collection_name = None

    def __init__(self, store_id, **kwargs):
        self.store_id = normalise_store_id(store_id)
        self.created_at = utcnow()
        self.updated_at = utcnow()

        # Initialize model attributes based on kwargs
        for key, value in kwargs.items():
            setattr(self, key, value)

    def to_dict(self):
        """
        Convert the model object to a dictionary representation.
        """
        return {key: getattr(self, key) for key in self.__dict__}

    @classmethod
    def get_collection(cls):
        return db.get_collection(cls.collection_name)

    @staticmethod
    def to_object_id(record_id):
        """Return an ObjectId, or None when `record_id` is not a valid id."""
        if isinstance(record_id, ObjectId):
            return record_id
        try:
            return ObjectId(str(record_id))
        except (InvalidId, TypeError):
            return None

    def save(self):
        collection = self.get_collection()
        result = collection.insert_one(self.to_dict())
        return str(result.inserted_id)

    @classmethod
    def get_by_id(cls, record_id, store_id):
        object_id = cls.to_object_id(record_id)
        if object_id is None:
            return None
        return cls.get_collection().find_one({
            "_id": object_id,
            "store_id": normalise_store_id(store_id),
        })

    @classmethod
    def delete(cls, record_id, store_id):
        object_id = cls.to_object_id(record_id)
        if object_id is None:
            return False
        result = cls.get_collection().delete_one({
            "_id": object_id,
            "store_id": normalise_store_id(store_id),
        })
        return result.deleted_count > 0

    @classmethod
    def paginate(cls, query, page=None, per_page=None, sort=None, max_per_page=100):
        """
        Paginate `query`, newest first by default.

        Returns {"items", "total_count", "total_pages", "current_page", "per_page"}.
        """
        collection = cls.get_collection()
        page = max(1, int(page or 1))
        per_page = min(max_per_page, max(1, int(per_page or 20)))
        sort = sort or [("created_at", -1)]

        total_count = collection.count_documents(query)
        cursor = (
            collection.find(query)
            .sort(sort)
            .skip((page - 1) * per_page)
            .limit(per_page)
        )

        return {
            "items": [serialise_doc(doc) for doc in cursor],
            "total_count": total_count,
            "total_pages": max(1, ceil(total_count / per_page)),
            "current_page": page,
            "per_page": per_page,
        }
