# resources/store_account_resource.py
from flask import current_app, g, request
from flask.views import MethodView
from flask_smorest import Blueprint

from ..security.auth import token_required, admin_required
from ..utils.rate_limits import crud_read_limiter, crud_write_limiter
from ..utils.helpers import make_log_tag, normalise_store_id
from ..schemas.store_account_schema import (
    ThresholdUpdateSchema,
    PaymentSchema,
    AccountStatusSchema,
)
from ..utils.json_response import prepared_response
from ..constants.service_code import HTTP_STATUS_CODES, ROLES, ERROR_MESSAGES
from ..utils.logger import Log


blp_store_account = Blueprint(
    "Store Accounts", __name__, url_prefix="/v1/store-accounts", description="Store account management"
)


def _account_service():
    return current_app.extensions["store_account_service"]


def _log_tag(resource, method, target_store_id=None):
    user_info = g.get("current_user", {}) or {}
    return make_log_tag(
        "store_account_resource.py",
        resource,
        method,
        request.remote_addr,
        user_info.get("user_id"),
        user_info.get("role"),
        user_info.get("store_id"),
        target_store_id,
    )


@blp_store_account.route("")
class StoreAccountsResource(MethodView):

    @token_required
    @admin_required
    @crud_read_limiter(entity_name="store-account")
    @blp_store_account.response(HTTP_STATUS_CODES["OK"])
    @blp_store_account.doc(summary="List store accounts, highest due balance first", security=[{"Bearer": []}])
    def get(self):
        accounts = _account_service().list_accounts()
        Log.info(f"{_log_tag('StoreAccountsResource', 'get')} Retrieved {len(accounts)} accounts")
        return prepared_response(
            status=True,
            status_code="OK",
            message="Store accounts retrieved successfully.",
            data={"accounts": accounts},
        )


@blp_store_account.route("/<string:store_id>")
class StoreAccountResource(MethodView):

    @token_required
    @crud_read_limiter(entity_name="store-account")
    @blp_store_account.response(HTTP_STATUS_CODES["OK"])
    @blp_store_account.doc(
        summary="Get a store account",
        description="Admins may view any account; store users only see their own.",
        security=[{"Bearer": []}],
    )
    def get(self, store_id):
        user_info = g.get("current_user", {}) or {}
        if user_info.get("role") != ROLES["ADMIN"]:
            if not user_info.get("store_id"):
                return prepared_response(False, "BAD_REQUEST", ERROR_MESSAGES["STORE_ID_REQUIRED"])
            store_id = user_info.get("store_id")

        account = _account_service().get_account(normalise_store_id(store_id))
        return prepared_response(
            status=True,
            status_code="OK",
            message="Store account retrieved successfully.",
            data={"account": account},
        )


@blp_store_account.route("/<string:store_id>/threshold")
class StoreAccountThresholdResource(MethodView):

    @token_required
    @admin_required
    @crud_write_limiter(entity_name="store-account")
    @blp_store_account.arguments(ThresholdUpdateSchema, location="json")
    @blp_store_account.response(HTTP_STATUS_CODES["OK"])
    @blp_store_account.doc(
        summary="Update a store account's pause threshold",
        description="A paused account whose due balance is below the new threshold is unpaused and its store reactivated.",
        security=[{"Bearer": []}],
    )
    def patch(self, item_data, store_id):
        log_tag = _log_tag("StoreAccountThresholdResource", "patch", store_id)

        account = _account_service().update_threshold(store_id, item_data["threshold"])
        Log.info(f"{log_tag} threshold={account.get('threshold')} is_paused={account.get('is_paused')}")

        return prepared_response(
            status=True,
            status_code="OK",
            message="Store account threshold updated successfully",
            data={"account": account},
        )


@blp_store_account.route("/<string:store_id>/payments")
class StoreAccountPaymentResource(MethodView):

    @token_required
    @admin_required
    @crud_write_limiter(entity_name="store-account-payment")
    @blp_store_account.arguments(PaymentSchema, location="json")
    @blp_store_account.response(HTTP_STATUS_CODES["OK"])
    @blp_store_account.doc(
        summary="Record a payment to a store",
        description="The applied amount is capped at the due balance.",
        security=[{"Bearer": []}],
    )
    def post(self, item_data, store_id):
        log_tag = _log_tag("StoreAccountPaymentResource", "post", store_id)

        account, paid = _account_service().record_payment(store_id, item_data["amount"])
        Log.info(f"{log_tag} paid={paid} due_balance={account.get('due_balance')}")

        return prepared_response(
            status=True,
            status_code="OK",
            message="Payment processed successfully",
            data={
                "account": account,
                "payment": {
                    "amount": paid,
                    "description": item_data.get("description"),
                },
            },
        )


@blp_store_account.route("/<string:store_id>/status")
class StoreAccountStatusResource(MethodView):

    @token_required
    @admin_required
    @crud_write_limiter(entity_name="store-account")
    @blp_store_account.arguments(AccountStatusSchema, location="json")
    @blp_store_account.response(HTTP_STATUS_CODES["OK"])
    @blp_store_account.doc(
        summary="Pause or unpause a store account",
        description="Pausing deactivates the store; unpausing reactivates it.",
        security=[{"Bearer": []}],
    )
    def patch(self, item_data, store_id):
        log_tag = _log_tag("StoreAccountStatusResource", "patch", store_id)

        account = _account_service().set_paused(store_id, item_data["is_paused"], item_data.get("reason"))
        Log.info(f"{log_tag} is_paused={account.get('is_paused')}")

        return prepared_response(
            status=True,
            status_code="OK",
            message=f"Store account {'paused' if account.get('is_paused') else 'unpaused'} successfully",
            data={"account": account},
        )
