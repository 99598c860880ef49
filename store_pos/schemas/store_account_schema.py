# schemas/store_account_schema.py
from marshmallow import Schema, fields, validate


class ThresholdUpdateSchema(Schema):
    threshold = fields.Float(required=True, validate=validate.Range(min=0))


class PaymentSchema(Schema):
    amount = fields.Float(
        required=True,
        validate=validate.Range(min=0, min_inclusive=False, error="Amount must be greater than 0."),
    )
    description = fields.Str(allow_none=True, validate=validate.Length(max=500))


class AccountStatusSchema(Schema):
    is_paused = fields.Bool(required=True)
    reason = fields.Str(allow_none=True, validate=validate.Length(max=500))
