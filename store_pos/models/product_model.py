# store_pos/models/product_model.py
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..utils.logger import Log
from ..utils.helpers import (
    normalise_store_id, normalise_barcode, escape_search_term, serialise_doc, utcnow
)
from .base_model import BaseModel


class Product(BaseModel):
    """
    A Product sold by a store, identified by (store_id, barcode).

    A product may also be sold in other units (box, pack, piece...). Each unit
    carries its own barcode, and every barcode of a product must resolve to
    that same product.
    """

    collection_name = "products"

    STATUS_ACTIVE = "active"
    STATUS_INACTIVE = "inactive"
    STATUS_HIDDEN = "hidden"

    DEFAULT_LOW_STOCK_ALERT = 10

    def __init__(
        self,
        store_id,
        name,
        barcode,
        cost_price,
        price,
        stock=0,
        status="active",
        low_stock_alert=None,
        vat_percentage=0,
        vat_inclusive=False,
        units=None,
        multi_warehouse_distribution=None,
        warehouse_id=None,
        category_id=None,
        brand_id=None,
        main_unit_id=None,
        description=None,
        internal_sku=None,
        wholesale_price=None,
        show_in_quick_products=False,
    ):
        super().__init__(
            store_id,
            name=(name or "").strip(),
            barcode=normalise_barcode(barcode),
            cost_price=float(cost_price),
            price=float(price),
            stock=int(stock or 0),
            status=status or self.STATUS_ACTIVE,
            low_stock_alert=(
                int(low_stock_alert) if low_stock_alert is not None else self.DEFAULT_LOW_STOCK_ALERT
            ),
            vat_percentage=float(vat_percentage or 0),
            vat_inclusive=bool(vat_inclusive),
            units=self._normalise_units(units),
            multi_warehouse_distribution=list(multi_warehouse_distribution or []),
            show_in_quick_products=bool(show_in_quick_products),
        )

        # Optional fields are only persisted when provided
        optional = {
            "warehouse_id": warehouse_id,
            "category_id": category_id,
            "brand_id": brand_id,
            "main_unit_id": main_unit_id,
            "description": description,
            "internal_sku": internal_sku,
        }
        for key, value in optional.items():
            if value:
                setattr(self, key, str(value).strip())
        if wholesale_price is not None and float(wholesale_price) > 0:
            self.wholesale_price = float(wholesale_price)

    @staticmethod
    def _normalise_units(units):
        normalised = []
        for unit in units or []:
            normalised.append({
                "unit_name": (unit.get("unit_name") or "").strip(),
                "barcode": normalise_barcode(unit.get("barcode")),
                "selling_price": float(unit.get("selling_price") or 0),
                "conversion_factor": float(unit.get("conversion_factor") or 1),
            })
        return normalised

    def save(self):
        """Insert the product. A duplicate (store_id, barcode) raises DuplicateKeyError."""
        log_tag = f"[product_model.py][Product][save][{self.store_id}][{self.barcode}]"
        product_id = super().save()
        Log.info(f"{log_tag} Product created with id={product_id}")
        return product_id

    # ------------------------ BARCODE LOOKUPS ------------------------ #

    @classmethod
    def find_active_by_barcode(cls, store_id, barcode):
        doc = cls.get_collection().find_one({
            "store_id": normalise_store_id(store_id),
            "barcode": normalise_barcode(barcode),
            "status": cls.STATUS_ACTIVE,
        })
        return serialise_doc(doc)

    @classmethod
    def find_active_by_unit_barcode(cls, store_id, barcode):
        doc = cls.get_collection().find_one({
            "store_id": normalise_store_id(store_id),
            "units.barcode": normalise_barcode(barcode),
            "status": cls.STATUS_ACTIVE,
        })
        return serialise_doc(doc)

    @classmethod
    def find_existing_barcodes(cls, store_id, barcodes):
        """
        Return the subset of `barcodes` already used by any product of the store,
        either as a primary barcode or as a unit barcode.
        """
        wanted = {normalise_barcode(b) for b in barcodes if normalise_barcode(b)}
        if not wanted:
            return set()

        cursor = cls.get_collection().find({
            "store_id": normalise_store_id(store_id),
            "$or": [
                {"barcode": {"$in": sorted(wanted)}},
                {"units.barcode": {"$in": sorted(wanted)}},
            ],
        })

        found = set()
        for doc in cursor:
            if doc.get("barcode") in wanted:
                found.add(doc["barcode"])
            for unit in doc.get("units") or []:
                if unit.get("barcode") in wanted:
                    found.add(unit["barcode"])
        return found

    # ------------------------ QUERIES ------------------------ #

    @classmethod
    def get_by_id(cls, product_id, store_id):
        return serialise_doc(super().get_by_id(product_id, store_id))

    @classmethod
    def list_by_store(cls, store_id, search=None, status=None, page=None, per_page=None):
        """
        Paginated product listing for a store.

        `search` matches name, barcode or internal_sku, case-insensitively.
        """
        query = {"store_id": normalise_store_id(store_id)}
        if status:
            query["status"] = status

        if search and search.strip():
            pattern = escape_search_term(search)
            query["$or"] = [
                {"name": {"$regex": pattern, "$options": "i"}},
                {"barcode": {"$regex": pattern, "$options": "i"}},
                {"internal_sku": {"$regex": pattern, "$options": "i"}},
            ]

        payload = cls.paginate(query, page, per_page)
        payload["products"] = payload.pop("items")
        return payload

    # ------------------------ UPDATE / DELETE ------------------------ #

    @classmethod
    def update(cls, product_id, store_id, updates):
        """
        Update a product in place and return the updated document (None if absent).

        `store_id` can never be changed through an update.
        """
        object_id = cls.to_object_id(product_id)
        if object_id is None:
            return None

        updates = dict(updates)
        updates.pop("store_id", None)
        updates.pop("_id", None)
        if "barcode" in updates:
            updates["barcode"] = normalise_barcode(updates["barcode"])
        if "units" in updates:
            updates["units"] = cls._normalise_units(updates["units"])
        updates["updated_at"] = utcnow()

        doc = cls.get_collection().find_one_and_update(
            {"_id": object_id, "store_id": normalise_store_id(store_id)},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        return serialise_doc(doc)

    @classmethod
    def bulk_upsert(cls, store_id, rows, mode="upsert"):
        """
        `rows` are (row_number, validated_data) pairs.

        mode:
        - create: insert only (duplicate barcodes are reported per row)
        - upsert: update if (store_id, barcode) exists, else insert
        """
        log_tag = f"[product_model.py][Product][bulk_upsert][{store_id}][{mode}]"
        collection = cls.get_collection()
        store_id = normalise_store_id(store_id)
        now = utcnow()

        results = {"inserted": 0, "updated": 0, "errors": []}

        for row, data in rows:
            try:
                doc = cls(store_id=store_id, **data).to_dict()
            except (TypeError, ValueError) as e:
                results["errors"].append({"row": row, "error": str(e)})
                continue

            if not doc.get("barcode"):
                results["errors"].append({"row": row, "error": "BARCODE_REQUIRED"})
                continue

            if mode == "create":
                try:
                    collection.insert_one(doc)
                    results["inserted"] += 1
                except DuplicateKeyError:
                    results["errors"].append({"row": row, "error": "DUPLICATE_BARCODE"})
                continue

            created_at = doc.pop("created_at", now)
            res = collection.update_one(
                {"store_id": store_id, "barcode": doc["barcode"]},
                {"$set": doc, "$setOnInsert": {"created_at": created_at}},
                upsert=True,
            )
            if res.upserted_id is not None:
                results["inserted"] += 1
            else:
                results["updated"] += 1

        Log.info(
            f"{log_tag} inserted={results['inserted']} updated={results['updated']} "
            f"errors={len(results['errors'])}"
        )
        return results

    @classmethod
    def create_indexes(cls):
        """
        Create database indexes. (store_id, barcode) uniqueness is the only
        guard against duplicate-barcode races on create.
        """
        log_tag = "[product_model.py][Product][create_indexes]"
        collection = cls.get_collection()

        try:
            collection.create_index(
                [("store_id", ASCENDING), ("barcode", ASCENDING)],
                unique=True,
                name="uniq_store_barcode",
            )
            collection.create_index(
                [("store_id", ASCENDING), ("units.barcode", ASCENDING)],
                name="store_unit_barcode_idx",
            )
            collection.create_index(
                [("store_id", ASCENDING), ("status", ASCENDING)],
                name="store_status_idx",
            )
            collection.create_index(
                [("store_id", ASCENDING), ("created_at", DESCENDING)],
                name="store_created_at_idx",
            )
            collection.create_index(
                [("store_id", ASCENDING), ("internal_sku", ASCENDING)],
                name="store_internal_sku_idx",
            )
            Log.info(f"{log_tag} Indexes created successfully")
            return True

        except Exception as e:
            Log.error(f"{log_tag} Error creating indexes: {str(e)}")
            raise
