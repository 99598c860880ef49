# store_pos/services/barcode_cache.py
from ..constants.service_code import PRODUCT_CACHE_KEY_PREFIX
from ..utils.logger import Log
from ..utils.helpers import normalise_store_id, normalise_barcode


DEFAULT_TTL_SECONDS = 3600


def cache_key(store_id, barcode):
    return f"{PRODUCT_CACHE_KEY_PREFIX}:{normalise_store_id(store_id)}:{normalise_barcode(barcode)}"


def product_barcodes(product):
    """Primary barcode plus every non-empty unit barcode, de-duplicated, in order."""
    barcodes = []
    primary = normalise_barcode((product or {}).get("barcode"))
    if primary:
        barcodes.append(primary)
    for unit in (product or {}).get("units") or []:
        barcode = normalise_barcode(unit.get("barcode"))
        if barcode and barcode not in barcodes:
            barcodes.append(barcode)
    return barcodes


def matched_unit(product, barcode):
    """Return the unit whose barcode is `barcode`, or None for the primary barcode."""
    barcode = normalise_barcode(barcode)
    if not product or normalise_barcode(product.get("barcode")) == barcode:
        return None
    for unit in product.get("units") or []:
        if normalise_barcode(unit.get("barcode")) == barcode:
            return unit
    return None


class BarcodeCache:
    """
    Read-through, write-invalidate cache in front of the product repository.

    The cache is an optimisation only. The cache client already degrades to
    "miss" / "no-op" when the backend is unreachable, so nothing here raises
    on a cache failure.
    """

    def __init__(self, cache_client, product_repo, ttl_seconds=DEFAULT_TTL_SECONDS):
        self.cache = cache_client
        self.products = product_repo
        self.ttl_seconds = ttl_seconds

    def lookup(self, store_id, barcode):
        store_id = normalise_store_id(store_id)
        barcode = normalise_barcode(barcode)
        key = cache_key(store_id, barcode)
        log_tag = f"[barcode_cache.py][BarcodeCache][lookup][{key}]"

        cached = self.cache.get(key)
        if cached is not None:
            Log.info(f"{log_tag} cache hit")
            return cached

        product = self.products.find_active_by_barcode(store_id, barcode)
        if product is None:
            product = self.products.find_active_by_unit_barcode(store_id, barcode)

        if product is None:
            # Absence is never cached
            Log.info(f"{log_tag} not found")
            return None

        # Keyed by the requested barcode, even when it matched a unit
        self.cache.set_with_ttl(key, product, self.ttl_seconds)
        Log.info(f"{log_tag} cache miss, populated from repository")
        return product

    def invalidate(self, store_id, barcode):
        barcode = normalise_barcode(barcode)
        if not barcode:
            return 0
        return self.cache.delete(cache_key(store_id, barcode))

    def invalidate_all_barcodes(self, store_id, product):
        keys = [cache_key(store_id, barcode) for barcode in product_barcodes(product)]
        if not keys:
            return 0
        deleted = self.cache.delete_many(keys)
        Log.info(
            f"[barcode_cache.py][BarcodeCache][invalidate_all_barcodes][{normalise_store_id(store_id)}] "
            f"keys={len(keys)} deleted={deleted}"
        )
        return deleted

    def invalidate_store(self, store_id):
        pattern = f"{PRODUCT_CACHE_KEY_PREFIX}:{normalise_store_id(store_id)}:*"
        deleted = self.cache.delete_pattern(pattern)
        Log.info(f"[barcode_cache.py][BarcodeCache][invalidate_store][{pattern}] deleted={deleted}")
        return deleted
