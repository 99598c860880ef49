# store_pos/services/product_service.py
from marshmallow import ValidationError

from ..models.product_model import Product
from ..schemas.product_schema import ProductSchema
from ..utils.errors import NotFoundError, ValidationFailure
from ..utils.logger import Log
from ..utils.helpers import normalise_store_id, normalise_barcode
from .barcode_cache import matched_unit, product_barcodes
from .unit_conversion import calculate_unit_chain, conversion_factors, validate_unit_chain


IMPORT_MODES = ("create", "upsert")


class ProductService:
    """
    Product writes that keep the barcode cache coherent with the repository.

    Duplicate barcodes on create are left to the unique (store_id, barcode)
    index: `DuplicateKeyError` propagates to the caller.
    """

    def __init__(self, barcode_cache, product_repo=Product):
        self.cache = barcode_cache
        self.products = product_repo

    # ------------------------ READS ------------------------ #

    def get_by_barcode(self, store_id, barcode):
        barcode = normalise_barcode(barcode)
        product = self.cache.lookup(store_id, barcode)
        if product is None:
            raise NotFoundError("Product not found")
        return {
            "product": product,
            "matched_unit": matched_unit(product, barcode),
            "matched_barcode": barcode,
        }

    def get_product(self, store_id, product_id):
        product = self.products.get_by_id(product_id, store_id)
        if not product:
            raise NotFoundError("Product not found")
        return product

    def list_products(self, store_id, search=None, status=None, page=None, per_page=None):
        return self.products.list_by_store(
            store_id, search=search, status=status, page=page, per_page=per_page
        )

    # ------------------------ WRITES ------------------------ #

    def create_product(self, store_id, data):
        store_id = normalise_store_id(store_id)
        product = self.products(store_id=store_id, **data)
        product_id = product.save()

        created = self.products.get_by_id(product_id, store_id)
        self.cache.invalidate_all_barcodes(store_id, created)
        return created

    def update_product(self, store_id, product_id, updates):
        store_id = normalise_store_id(store_id)
        existing = self.get_product(store_id, product_id)

        updated = self.products.update(product_id, store_id, updates)
        if updated is None:
            raise NotFoundError("Product not found")

        stale = product_barcodes(existing)
        for barcode in product_barcodes(updated):
            if barcode not in stale:
                stale.append(barcode)
        for barcode in stale:
            self.cache.invalidate(store_id, barcode)

        Log.info(
            f"[product_service.py][ProductService][update_product][{store_id}][{product_id}] "
            f"invalidated {len(stale)} barcodes"
        )
        return updated

    def delete_product(self, store_id, product_id):
        store_id = normalise_store_id(store_id)
        existing = self.get_product(store_id, product_id)

        if not self.products.delete(product_id, store_id):
            raise NotFoundError("Product not found")

        self.cache.invalidate_all_barcodes(store_id, existing)
        return existing

    def calculate_multi_unit(self, initial_quantity, total_purchase_price, levels):
        return {
            "units": calculate_unit_chain(initial_quantity, total_purchase_price, levels),
            "conversion_factors": conversion_factors(levels),
        }

    def create_multi_unit_product(self, store_id, data):
        """
        Persist a product sold in several units. The highest unit's barcode is
        the primary barcode; stock is counted in the highest unit.
        """
        store_id = normalise_store_id(store_id)
        levels = data.get("unit_levels") or []
        initial_quantity = data.get("initial_quantity_highest_unit")
        total_purchase_price = data.get("total_purchase_price")

        existing = self.products.find_existing_barcodes(
            store_id, [level.get("barcode") for level in levels]
        )
        errors = validate_unit_chain(
            levels,
            existing_barcodes=existing,
            initial_quantity=initial_quantity,
            total_purchase_price=total_purchase_price,
        )
        if errors:
            raise ValidationFailure("Validation failed", errors=errors)

        chain = calculate_unit_chain(initial_quantity, total_purchase_price, levels)
        factors = conversion_factors(levels)

        units = [
            {
                "unit_name": calc["unit_name"],
                "barcode": calc["barcode"],
                "selling_price": float(level.get("selling_price")),
                "conversion_factor": factor,
            }
            for level, calc, factor in zip(levels, chain, factors)
        ]

        product_data = {
            key: data[key]
            for key in (
                "category_id", "brand_id", "warehouse_id", "description",
                "vat_percentage", "vat_inclusive", "low_stock_alert", "status",
            )
            if data.get(key) is not None
        }
        product_data.update(
            name=data.get("name"),
            barcode=units[0]["barcode"],
            cost_price=chain[0]["cost_per_unit"],
            price=units[0]["selling_price"],
            stock=int(initial_quantity),
            units=units,
        )

        created = self.create_product(store_id, product_data)
        return {"product": created, "calculated": chain}

    def import_products(self, store_id, items, mode="upsert", dry_run=False):
        store_id = normalise_store_id(store_id)
        log_tag = f"[product_service.py][ProductService][import_products][{store_id}][{mode}]"

        if mode not in IMPORT_MODES:
            raise ValidationFailure(
                "Invalid import mode",
                errors={"mode": [f"Must be one of: {', '.join(IMPORT_MODES)}."]},
            )

        rows, errors = validate_import_rows(items)

        if dry_run:
            preview = self._preview_import(store_id, rows, mode)
            preview["errors"] = _by_row(errors + preview["errors"])
            return preview

        results = self.products.bulk_upsert(store_id, rows, mode=mode)
        results["errors"] = _by_row(errors + results["errors"])
        self.cache.invalidate_store(store_id)
        Log.info(f"{log_tag} imported {len(rows)} of {len(items)} rows")
        return dict(results, dry_run=False)

    def _preview_import(self, store_id, rows, mode):
        existing = self.products.find_existing_barcodes(
            store_id, [data["barcode"] for _, data in rows]
        )
        preview = {"would_insert": 0, "would_update": 0, "errors": [], "dry_run": True}

        for row, data in rows:
            if data["barcode"] in existing:
                if mode == "create":
                    preview["errors"].append({"row": row, "error": "DUPLICATE_BARCODE"})
                else:
                    preview["would_update"] += 1
            else:
                preview["would_insert"] += 1

        return preview


def _by_row(errors):
    return sorted(errors, key=lambda e: e["row"])


def validate_import_rows(items):
    """
    Load every import row through `ProductSchema`.

    Returns (rows, errors): `rows` are (row_number, data) pairs ready to be
    written, `errors` one entry per rejected row. A barcode repeated within
    the same file is rejected after its first occurrence.
    """
    schema = ProductSchema()
    rows, errors = [], []
    seen = set()

    for i, raw in enumerate(items):
        row = i + 1
        if not normalise_barcode((raw or {}).get("barcode")):
            errors.append({"row": row, "error": "BARCODE_REQUIRED"})
            continue

        try:
            data = schema.load(raw)
        except ValidationError as err:
            errors.append({"row": row, "error": err.messages})
            continue

        data["barcode"] = normalise_barcode(data["barcode"])
        if data["barcode"] in seen:
            errors.append({
                "row": row,
                "error": "DUPLICATE_BARCODE_IN_FILE",
                "message": f'Duplicate barcode "{data["barcode"]}" found in file',
            })
            continue
        seen.add(data["barcode"])
        rows.append((row, data))

    return rows, errors
