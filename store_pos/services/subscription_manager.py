# store_pos/services/subscription_manager.py
from ..models.store_model import Store
from ..utils.errors import NotFoundError
from ..utils.logger import Log
from ..utils.helpers import normalise_store_id, utcnow


class SubscriptionManager:
    """
    Per-store subscription state: Active -> Inactive happens automatically
    once the end date has passed; Inactive -> Active only through `reactivate`.
    """

    def __init__(self, store_repo=Store, clock=utcnow):
        self.stores = store_repo
        self.clock = clock

    def check_subscription(self, store_id):
        store_id = normalise_store_id(store_id)
        log_tag = f"[subscription_manager.py][SubscriptionManager][check_subscription][{store_id}]"

        store = self.stores.get_by_store_id(store_id)
        if not store:
            raise NotFoundError("Store not found")

        end_date = store.get("subscription_end_date")
        is_active = bool(store.get("is_active"))
        is_expired = end_date is not None and end_date < self.clock()

        if is_expired and is_active:
            self.stores.deactivate_if_active(store_id)
            is_active = False
            Log.info(f"{log_tag} subscription ended {end_date}; store deactivated")

        return {
            "is_active": is_active,
            "subscription_end_date": end_date,
            "subscription_expired": is_expired,
        }

    def reactivate(self, store_id, new_end_date=None):
        store_id = normalise_store_id(store_id)
        store = self.stores.reactivate(store_id, new_end_date)
        if not store:
            raise NotFoundError("Store not found")

        Log.info(
            f"[subscription_manager.py][SubscriptionManager][reactivate][{store_id}] "
            f"reactivated until {store.get('subscription_end_date')}"
        )
        return store

    def sweep_expired(self):
        count = self.stores.deactivate_expired(self.clock())
        Log.info(f"[subscription_manager.py][SubscriptionManager][sweep_expired] deactivated={count}")
        return count
