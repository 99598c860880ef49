# resources/product_resource.py
import time
from flask import current_app, g, request
from flask.views import MethodView
from flask_smorest import Blueprint
from pymongo.errors import PyMongoError, DuplicateKeyError

from ..security.auth import token_required
from ..utils.rate_limits import (
    crud_read_limiter,
    crud_write_limiter,
    crud_delete_limiter,
)
from ..utils.helpers import make_log_tag, resolve_target_store_id
from ..schemas.product_schema import (
    ProductSchema,
    ProductUpdateSchema,
    ProductListQuerySchema,
    MultiUnitCalculateSchema,
    MultiUnitProductSchema,
    ProductImportSchema,
)
from ..utils.json_response import prepared_response
from ..constants.service_code import HTTP_STATUS_CODES, ERROR_MESSAGES
from ..utils.logger import Log


blp_product = Blueprint("Products", __name__, url_prefix="/v1/products", description="Product management operations")


def _product_service():
    return current_app.extensions["product_service"]


def _request_context(resource, method):
    """Return (store_id, log_tag) for the authenticated user."""
    user_info = g.get("current_user", {}) or {}
    store_id = resolve_target_store_id(request.args.get("store_id"))
    log_tag = make_log_tag(
        "product_resource.py",
        resource,
        method,
        request.remote_addr,
        user_info.get("user_id"),
        user_info.get("role"),
        user_info.get("store_id"),
        store_id,
    )
    return store_id, log_tag


def _store_id_required():
    return prepared_response(
        status=False,
        status_code="BAD_REQUEST",
        message=ERROR_MESSAGES["STORE_ID_REQUIRED"],
    )


@blp_product.route("/barcode/<string:barcode>")
class ProductBarcodeResource(MethodView):

    @token_required
    @crud_read_limiter(entity_name="product-barcode", limit_str="600 per minute")
    @blp_product.response(HTTP_STATUS_CODES["OK"])
    @blp_product.doc(
        summary="Look up an active product by barcode",
        description="Matches the primary barcode first, then any unit barcode. Served from cache when possible.",
        security=[{"Bearer": []}],
    )
    def get(self, barcode):
        store_id, log_tag = _request_context("ProductBarcodeResource", "get")
        if not store_id:
            return _store_id_required()

        result = _product_service().get_by_barcode(store_id, barcode)
        Log.info(f"{log_tag} barcode {barcode} resolved to {result['product'].get('_id')}")

        return prepared_response(
            status=True,
            status_code="OK",
            message="Product retrieved successfully.",
            data=result,
        )


@blp_product.route("")
class ProductsResource(MethodView):

    # ---------- CREATE ----------
    @token_required
    @crud_write_limiter(entity_name="product")
    @blp_product.arguments(ProductSchema, location="json")
    @blp_product.response(HTTP_STATUS_CODES["CREATED"])
    @blp_product.doc(
        summary="Create a new product",
        description="A product with an existing (store, barcode) pair is rejected with 409.",
        security=[{"Bearer": []}],
    )
    def post(self, item_data):
        store_id, log_tag = _request_context("ProductsResource", "post")
        if not store_id:
            return _store_id_required()

        try:
            Log.info(f"{log_tag} Saving product: {item_data.get('name')}")
            start_time = time.time()

            product = _product_service().create_product(store_id, item_data)

            duration = time.time() - start_time
            Log.info(f"{log_tag} Product created with id={product.get('_id')} in {duration:.2f}s")

            return prepared_response(
                status=True,
                status_code="CREATED",
                message="Product created successfully.",
                data={"product": product},
            )

        except DuplicateKeyError as e:
            # real race-condition duplicate caught by Mongo's unique index
            Log.info(f"{log_tag} DuplicateKeyError on products insert: {e}")
            return prepared_response(False, "CONFLICT", ERROR_MESSAGES["DUPLICATE_BARCODE"])

        except PyMongoError as e:
            Log.error(f"{log_tag} PyMongoError while saving product: {e}")
            return prepared_response(
                status=False,
                status_code="INTERNAL_SERVER_ERROR",
                message="An unexpected error occurred while saving the product.",
                errors=[str(e)],
            )

    # ---------- LIST ----------
    @token_required
    @crud_read_limiter(entity_name="product")
    @blp_product.arguments(ProductListQuerySchema, location="query")
    @blp_product.response(HTTP_STATUS_CODES["OK"])
    @blp_product.doc(
        summary="List products for a store",
        description="`search` matches name, barcode or internal SKU (case-insensitive).",
        security=[{"Bearer": []}],
    )
    def get(self, query_args):
        store_id, log_tag = _request_context("ProductsResource", "get")
        if not store_id:
            return _store_id_required()

        try:
            payload = _product_service().list_products(
                store_id,
                search=query_args.get("search"),
                status=query_args.get("status"),
                page=query_args.get("page"),
                per_page=query_args.get("limit"),
            )
        except PyMongoError as e:
            Log.error(f"{log_tag} PyMongoError while listing products: {e}")
            return prepared_response(
                status=False,
                status_code="INTERNAL_SERVER_ERROR",
                message="An unexpected error occurred while retrieving products.",
                errors=[str(e)],
            )

        Log.info(f"{log_tag} Retrieved {len(payload['products'])} of {payload['total_count']} products")
        return prepared_response(
            status=True,
            status_code="OK",
            message="Products retrieved successfully.",
            data=payload,
        )


@blp_product.route("/<string:product_id>")
class ProductResource(MethodView):

    @token_required
    @crud_read_limiter(entity_name="product")
    @blp_product.response(HTTP_STATUS_CODES["OK"])
    @blp_product.doc(summary="Get a product by id", security=[{"Bearer": []}])
    def get(self, product_id):
        store_id, _ = _request_context("ProductResource", "get")
        if not store_id:
            return _store_id_required()

        product = _product_service().get_product(store_id, product_id)
        return prepared_response(
            status=True,
            status_code="OK",
            message="Product retrieved successfully.",
            data={"product": product},
        )

    @token_required
    @crud_write_limiter(entity_name="product")
    @blp_product.arguments(ProductUpdateSchema, location="json")
    @blp_product.response(HTTP_STATUS_CODES["OK"])
    @blp_product.doc(
        summary="Update a product",
        description="Cached entries for the product's old and new barcodes are invalidated.",
        security=[{"Bearer": []}],
    )
    def patch(self, item_data, product_id):
        store_id, log_tag = _request_context("ProductResource", "patch")
        if not store_id:
            return _store_id_required()

        try:
            product = _product_service().update_product(store_id, product_id, item_data)
        except DuplicateKeyError as e:
            Log.info(f"{log_tag} DuplicateKeyError on products update: {e}")
            return prepared_response(False, "CONFLICT", ERROR_MESSAGES["DUPLICATE_BARCODE"])

        Log.info(f"{log_tag} Product {product_id} updated")
        return prepared_response(
            status=True,
            status_code="OK",
            message="Product updated successfully.",
            data={"product": product},
        )

    @token_required
    @crud_delete_limiter(entity_name="product")
    @blp_product.response(HTTP_STATUS_CODES["OK"])
    @blp_product.doc(
        summary="Delete a product",
        description="Cached entries for every barcode of the product are invalidated.",
        security=[{"Bearer": []}],
    )
    def delete(self, product_id):
        store_id, log_tag = _request_context("ProductResource", "delete")
        if not store_id:
            return _store_id_required()

        _product_service().delete_product(store_id, product_id)
        Log.info(f"{log_tag} Product {product_id} deleted")
        return prepared_response(
            status=True,
            status_code="OK",
            message="Product deleted successfully.",
        )


@blp_product.route("/multi-unit/calculate")
class MultiUnitCalculateResource(MethodView):

    @token_required
    @crud_read_limiter(entity_name="product-calculate", limit_str="300 per minute")
    @blp_product.arguments(MultiUnitCalculateSchema, location="json")
    @blp_product.response(HTTP_STATUS_CODES["OK"])
    @blp_product.doc(
        summary="Preview quantities and costs across a unit chain",
        security=[{"Bearer": []}],
    )
    def post(self, item_data):
        result = _product_service().calculate_multi_unit(
            item_data["initial_quantity_highest_unit"],
            item_data["total_purchase_price"],
            item_data["unit_levels"],
        )
        return prepared_response(
            status=True,
            status_code="OK",
            message="Unit chain calculated.",
            data=result,
        )


@blp_product.route("/multi-unit")
class MultiUnitProductResource(MethodView):

    @token_required
    @crud_write_limiter(entity_name="product")
    @blp_product.arguments(MultiUnitProductSchema, location="json")
    @blp_product.response(HTTP_STATUS_CODES["CREATED"])
    @blp_product.doc(
        summary="Create a product sold in several units",
        description="Unit names and barcodes must be unique; errors are reported per unit index.",
        security=[{"Bearer": []}],
    )
    def post(self, item_data):
        store_id, log_tag = _request_context("MultiUnitProductResource", "post")
        if not store_id:
            return _store_id_required()

        try:
            result = _product_service().create_multi_unit_product(store_id, item_data)
        except DuplicateKeyError as e:
            Log.info(f"{log_tag} DuplicateKeyError on multi-unit insert: {e}")
            return prepared_response(False, "CONFLICT", ERROR_MESSAGES["DUPLICATE_BARCODE"])

        Log.info(f"{log_tag} Multi-unit product created with id={result['product'].get('_id')}")
        return prepared_response(
            status=True,
            status_code="CREATED",
            message="Product created successfully.",
            data=result,
        )


@blp_product.route("/import")
class ProductImportResource(MethodView):

    @token_required
    @crud_write_limiter(entity_name="product-import", limit_str="5 per minute; 30 per hour")
    @blp_product.arguments(ProductImportSchema, location="json")
    @blp_product.response(HTTP_STATUS_CODES["OK"])
    @blp_product.doc(
        summary="Bulk import products",
        description="""
            mode=create inserts only; mode=upsert updates by barcode or inserts.
            dry_run=true reports what would happen without writing.
        """,
        security=[{"Bearer": []}],
    )
    def post(self, item_data):
        store_id, log_tag = _request_context("ProductImportResource", "post")
        if not store_id:
            return _store_id_required()

        try:
            result = _product_service().import_products(
                store_id,
                item_data["items"],
                mode=item_data["mode"],
                dry_run=item_data["dry_run"],
            )
        except PyMongoError as e:
            Log.error(f"{log_tag} PyMongoError during import: {e}")
            return prepared_response(
                status=False,
                status_code="INTERNAL_SERVER_ERROR",
                message="An unexpected error occurred during import.",
                errors=[str(e)],
            )

        return prepared_response(
            status=True,
            status_code="OK",
            message="Import preview generated." if item_data["dry_run"] else "Import completed.",
            data=result,
        )
