# schemas/subscription_schema.py
from marshmallow import Schema, fields


class ReactivateStoreSchema(Schema):
    subscription_end_date = fields.DateTime(allow_none=True, load_default=None)
