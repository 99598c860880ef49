# schemas/product_schema.py
from marshmallow import (
    Schema, fields, validate, validates_schema, ValidationError, EXCLUDE
)

from ..constants.service_code import PRODUCT_STATUSES


# Barcodes are trimmed before storage, so whitespace alone is no barcode
NOT_BLANK = validate.Regexp(r"\s*\S", error="Must not be blank.")


class ProductUnitSchema(Schema):
    unit_name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    barcode = fields.Str(required=True, validate=[validate.Length(min=1, max=100), NOT_BLANK])
    selling_price = fields.Float(required=True, validate=validate.Range(min=0))
    conversion_factor = fields.Float(load_default=1, validate=validate.Range(min=1))


class WarehouseDistributionSchema(Schema):
    warehouse_id = fields.Str(required=True, validate=validate.Length(min=1))
    quantity = fields.Int(required=True, validate=validate.Range(min=0))


class ProductSchema(Schema):
    """Schema for creating a product."""

    class Meta:
        unknown = EXCLUDE

    # Required fields
    name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    barcode = fields.Str(required=True, validate=[validate.Length(min=1, max=100), NOT_BLANK])
    cost_price = fields.Float(required=True, validate=validate.Range(min=0))
    price = fields.Float(required=True, validate=validate.Range(min=0))

    # Inventory
    stock = fields.Int(load_default=0, validate=validate.Range(min=0))
    low_stock_alert = fields.Int(allow_none=True, validate=validate.Range(min=0))
    status = fields.Str(load_default="active", validate=validate.OneOf(PRODUCT_STATUSES))

    # Tax
    vat_percentage = fields.Float(load_default=0, validate=validate.Range(min=0, max=100))
    vat_inclusive = fields.Bool(load_default=False)

    units = fields.List(fields.Nested(ProductUnitSchema), load_default=list)
    multi_warehouse_distribution = fields.List(
        fields.Nested(WarehouseDistributionSchema), load_default=list
    )

    # Optional references / metadata
    warehouse_id = fields.Str(allow_none=True)
    category_id = fields.Str(allow_none=True)
    brand_id = fields.Str(allow_none=True)
    main_unit_id = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True, validate=validate.Length(max=2000))
    internal_sku = fields.Str(allow_none=True, validate=validate.Length(max=100))
    wholesale_price = fields.Float(allow_none=True, validate=validate.Range(min=0))
    show_in_quick_products = fields.Bool(load_default=False)

    @validates_schema
    def validate_unit_barcodes(self, data, **kwargs):
        barcodes = [u["barcode"].strip() for u in data.get("units") or []]
        if len(barcodes) != len(set(barcodes)):
            raise ValidationError("Unit barcodes must be unique.", field_name="units")


class ProductUpdateSchema(Schema):
    """Every field optional; `store_id` is never accepted."""

    class Meta:
        unknown = EXCLUDE

    name = fields.Str(validate=validate.Length(min=1, max=200))
    barcode = fields.Str(validate=[validate.Length(min=1, max=100), NOT_BLANK])
    cost_price = fields.Float(validate=validate.Range(min=0))
    price = fields.Float(validate=validate.Range(min=0))
    stock = fields.Int(validate=validate.Range(min=0))
    low_stock_alert = fields.Int(validate=validate.Range(min=0))
    status = fields.Str(validate=validate.OneOf(PRODUCT_STATUSES))
    vat_percentage = fields.Float(validate=validate.Range(min=0, max=100))
    vat_inclusive = fields.Bool()
    units = fields.List(fields.Nested(ProductUnitSchema))
    multi_warehouse_distribution = fields.List(fields.Nested(WarehouseDistributionSchema))
    warehouse_id = fields.Str(allow_none=True)
    category_id = fields.Str(allow_none=True)
    brand_id = fields.Str(allow_none=True)
    main_unit_id = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True, validate=validate.Length(max=2000))
    internal_sku = fields.Str(allow_none=True, validate=validate.Length(max=100))
    wholesale_price = fields.Float(allow_none=True, validate=validate.Range(min=0))
    show_in_quick_products = fields.Bool()

    @validates_schema
    def validate_not_empty(self, data, **kwargs):
        if not data:
            raise ValidationError("At least one field must be provided.")


class ProductListQuerySchema(Schema):

    class Meta:
        unknown = EXCLUDE

    search = fields.Str(load_default=None)
    status = fields.Str(load_default=None, validate=validate.OneOf(PRODUCT_STATUSES))
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=20, validate=validate.Range(min=1, max=100))


class UnitLevelSchema(Schema):
    """One level of a multi-unit chain, highest unit first."""
    unit_name = fields.Str(load_default="")
    barcode = fields.Str(load_default="")
    sub_units_per_this_unit = fields.Float(load_default=0)
    selling_price = fields.Float(load_default=0)


class MultiUnitCalculateSchema(Schema):
    initial_quantity_highest_unit = fields.Float(required=True)
    total_purchase_price = fields.Float(required=True)
    unit_levels = fields.List(fields.Nested(UnitLevelSchema), required=True)


class MultiUnitProductSchema(MultiUnitCalculateSchema):
    """Field-level rules for the unit chain are applied by the calculator's validator."""

    class Meta:
        unknown = EXCLUDE

    name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    category_id = fields.Str(allow_none=True)
    brand_id = fields.Str(allow_none=True)
    warehouse_id = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True)
    vat_percentage = fields.Float(allow_none=True, validate=validate.Range(min=0, max=100))
    vat_inclusive = fields.Bool(allow_none=True)
    low_stock_alert = fields.Int(allow_none=True, validate=validate.Range(min=0))
    status = fields.Str(load_default="active", validate=validate.OneOf(PRODUCT_STATUSES))


class ProductImportSchema(Schema):
    items = fields.List(fields.Dict(), required=True, validate=validate.Length(min=1, max=5000))
    mode = fields.Str(load_default="upsert", validate=validate.OneOf(["create", "upsert"]))
    dry_run = fields.Bool(load_default=False)
