# store_pos/services/store_account_service.py
from ..models.store_account_model import StoreAccount
from ..models.store_model import Store
from ..utils.errors import ConcurrentMutationConflict, NotFoundError, ValidationFailure
from ..utils.logger import Log
from ..utils.helpers import normalise_store_id, serialise_doc, utcnow
from ..constants.service_code import ERROR_MESSAGES


MAX_RETRIES = 5
DEFAULT_PAUSE_REASON = "Manually paused by admin"


def _unpaused_fields():
    return {"is_paused": False, "paused_at": None, "paused_reason": None}


class StoreAccountService:
    """
    Admin operations on store accounts.

    Every mutation is read -> compute -> version-checked write, retried on a
    lost race. Pausing or unpausing the account always flips the store's
    `is_active` flag in the same operation.
    """

    def __init__(self, account_repo=StoreAccount, store_repo=Store, max_retries=MAX_RETRIES):
        self.accounts = account_repo
        self.stores = store_repo
        self.max_retries = max_retries

    # ------------------------ READS ------------------------ #

    def get_account(self, store_id):
        account = self.accounts.get_by_store_id(store_id)
        if not account:
            raise NotFoundError("Store account not found")
        return serialise_doc(account)

    def list_accounts(self):
        return self.accounts.list_all()

    # ------------------------ MUTATIONS ------------------------ #

    def record_payment(self, store_id, amount):
        """
        Apply a payment, capped at the due balance. Returns (account, paid).
        """
        if amount is None or float(amount) <= 0:
            raise ValidationFailure(
                "Store ID and valid payment amount are required",
                errors={"amount": ["Must be greater than 0."]},
            )
        amount = float(amount)
        applied = {}

        def compute(account):
            due = float(account.get("due_balance") or 0)
            paid = min(amount, due)
            remaining = due - paid
            applied["paid"] = paid

            updates = {
                "total_paid": float(account.get("total_paid") or 0) + paid,
                "due_balance": remaining,
                "last_payment_date": utcnow(),
                "last_payment_amount": paid,
            }
            unpause = bool(account.get("is_paused")) and remaining < float(account.get("threshold") or 0)
            if unpause:
                updates.update(_unpaused_fields())
            return updates, unpause

        account = self._mutate(store_id, "record_payment", compute)
        return account, applied["paid"]

    def update_threshold(self, store_id, threshold):
        if threshold is None or float(threshold) < 0:
            raise ValidationFailure(
                "Store ID and valid threshold are required",
                errors={"threshold": ["Must be greater than or equal to 0."]},
            )
        threshold = float(threshold)

        def compute(account):
            updates = {"threshold": threshold}
            unpause = bool(account.get("is_paused")) and float(account.get("due_balance") or 0) < threshold
            if unpause:
                updates.update(_unpaused_fields())
            return updates, unpause

        return self._mutate(store_id, "update_threshold", compute)

    def set_paused(self, store_id, is_paused, reason=None):
        is_paused = bool(is_paused)

        def compute(account):
            if is_paused:
                updates = {
                    "is_paused": True,
                    "paused_at": utcnow(),
                    "paused_reason": reason or DEFAULT_PAUSE_REASON,
                }
            else:
                updates = _unpaused_fields()
            return updates, True

        return self._mutate(store_id, "set_paused", compute, store_active=not is_paused)

    # ------------------------ INTERNALS ------------------------ #

    def _mutate(self, store_id, operation, compute, store_active=True):
        """
        `compute(account)` returns (updates, touch_store). When touch_store is
        true, the store's `is_active` is set to `store_active` after the
        account write lands.
        """
        store_id = normalise_store_id(store_id)
        log_tag = f"[store_account_service.py][StoreAccountService][{operation}][{store_id}]"

        for attempt in range(1, self.max_retries + 1):
            account = self.accounts.get_by_store_id(store_id)
            if not account:
                raise NotFoundError("Store account not found")

            updates, touch_store = compute(account)
            updated = self.accounts.compare_and_set(account, updates)
            if updated is None:
                Log.info(f"{log_tag} lost update race on attempt {attempt}, retrying")
                continue

            if touch_store:
                self.stores.set_active(store_id, store_active)
                Log.info(f"{log_tag} store is_active={store_active} is_paused={updated.get('is_paused')}")

            return serialise_doc(updated)

        Log.warning(f"{log_tag} giving up after {self.max_retries} attempts")
        raise ConcurrentMutationConflict(ERROR_MESSAGES["CONCURRENT_UPDATE"])
