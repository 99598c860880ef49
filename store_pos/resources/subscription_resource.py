# resources/subscription_resource.py
from flask import current_app, g, request
from flask.views import MethodView
from flask_smorest import Blueprint

from ..security.auth import token_required, admin_required
from ..utils.rate_limits import crud_read_limiter, crud_write_limiter
from ..utils.helpers import make_log_tag, serialise_doc
from ..schemas.subscription_schema import ReactivateStoreSchema
from ..utils.json_response import prepared_response
from ..constants.service_code import HTTP_STATUS_CODES, ERROR_MESSAGES
from ..utils.logger import Log


blp_subscription = Blueprint(
    "Subscriptions", __name__, url_prefix="/v1", description="Store subscription status and administration"
)


def _subscription_manager():
    return current_app.extensions["subscription_manager"]


def _log_tag(resource, method, target_store_id=None):
    user_info = g.get("current_user", {}) or {}
    return make_log_tag(
        "subscription_resource.py",
        resource,
        method,
        request.remote_addr,
        user_info.get("user_id"),
        user_info.get("role"),
        user_info.get("store_id"),
        target_store_id,
    )


@blp_subscription.route("/subscriptions/status")
class SubscriptionStatusResource(MethodView):

    @token_required
    @crud_read_limiter(entity_name="subscription")
    @blp_subscription.response(HTTP_STATUS_CODES["OK"])
    @blp_subscription.doc(summary="Subscription status of the caller's store", security=[{"Bearer": []}])
    def get(self):
        store_id = (g.get("current_user", {}) or {}).get("store_id")
        if not store_id:
            return prepared_response(False, "BAD_REQUEST", ERROR_MESSAGES["STORE_ID_REQUIRED"])

        status = _subscription_manager().check_subscription(store_id)
        return prepared_response(
            status=True,
            status_code="OK",
            message="Subscription status retrieved successfully.",
            data=serialise_doc(status),
        )


@blp_subscription.route("/admin/stores/<string:store_id>/reactivate")
class StoreReactivateResource(MethodView):

    @token_required
    @admin_required
    @crud_write_limiter(entity_name="subscription")
    @blp_subscription.arguments(ReactivateStoreSchema, location="json")
    @blp_subscription.response(HTTP_STATUS_CODES["OK"])
    @blp_subscription.doc(
        summary="Reactivate a store",
        description="Optionally starts a new subscription window ending at subscription_end_date.",
        security=[{"Bearer": []}],
    )
    def post(self, item_data, store_id):
        log_tag = _log_tag("StoreReactivateResource", "post", store_id)

        store = _subscription_manager().reactivate(store_id, item_data.get("subscription_end_date"))
        Log.info(f"{log_tag} store reactivated")

        return prepared_response(
            status=True,
            status_code="OK",
            message="Store reactivated successfully.",
            data={"store": serialise_doc(store)},
        )


@blp_subscription.route("/admin/subscriptions/sweep")
class SubscriptionSweepResource(MethodView):

    @token_required
    @admin_required
    @crud_write_limiter(entity_name="subscription-sweep", limit_str="5 per minute")
    @blp_subscription.response(HTTP_STATUS_CODES["OK"])
    @blp_subscription.doc(summary="Deactivate every store whose subscription has ended", security=[{"Bearer": []}])
    def post(self):
        count = _subscription_manager().sweep_expired()
        Log.info(f"{_log_tag('SubscriptionSweepResource', 'post')} deactivated={count}")
        return prepared_response(
            status=True,
            status_code="OK",
            message="Expired subscriptions processed.",
            data={"deactivated": count},
        )
