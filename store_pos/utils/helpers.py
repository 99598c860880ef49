import re
from bson import ObjectId
from datetime import datetime, timezone
from flask import g

from ..constants.service_code import ROLES


def make_log_tag(file, resource, method, ip, user_id, role, store_id, target_store_id=None, **kwargs):
    log_tag = (
        f"[{file}]"
        f"[{resource}]"
        f"[{method}]"
        f"[ip:{ip}]"
        f"[user:{user_id}]"
        f"[role:{role}]"
        f"[store:{store_id}]"
    )
    if target_store_id is not None:
        log_tag += f"[target_store:{target_store_id}]"

    # Append extra context fields
    for key, value in kwargs.items():
        log_tag += f"[{key}:{value}]"

    return log_tag


def normalise_store_id(store_id):
    """Store ids are compared lower-cased and trimmed everywhere."""
    return str(store_id or "").strip().lower()


def normalise_barcode(barcode):
    return str(barcode or "").strip()


def escape_search_term(term):
    """Collapse whitespace and escape regex metacharacters for a `$regex` filter."""
    normalised = re.sub(r"\s+", " ", term or "").strip()
    return re.escape(normalised)


def serialise_doc(doc):
    """Convert a Mongo document into JSON-safe values (ObjectId -> str, datetime -> ISO)."""
    if doc is None:
        return None
    if isinstance(doc, list):
        return [serialise_doc(d) for d in doc]
    if isinstance(doc, dict):
        out = {}
        for key, value in doc.items():
            if key == "_id":
                out["_id"] = str(value)
            else:
                out[key] = serialise_doc(value)
        return out
    if isinstance(doc, datetime):
        return doc.isoformat()
    if isinstance(doc, ObjectId):
        return str(doc)
    return doc


def utcnow():
    """Naive UTC timestamp, matching what pymongo hands back by default."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def resolve_target_store_id(requested_store_id=None):
    """
    Admins may act on any store by passing `store_id`; everyone else is
    pinned to the store in their token.
    """
    user = g.get("current_user", {}) or {}
    if user.get("role") == ROLES["ADMIN"] and requested_store_id:
        return normalise_store_id(requested_store_id)
    return normalise_store_id(user.get("store_id"))
