# store_pos/jobs/subscription_expiry_job.py

from typing import Dict

from ..services.subscription_manager import SubscriptionManager
from ..utils.logger import Log


# =========================================================
# PROCESS EXPIRED SUBSCRIPTIONS
# =========================================================

def process_expired_subscriptions(manager: SubscriptionManager = None) -> Dict:
    """
    Background job deactivating stores whose subscription has ended.

    Recommended schedule:
    - Run hourly via Celery beat, or `flask expire-subscriptions` from cron

    Complements the per-request check done by the auth gate; it never
    reactivates anything.
    """
    log_tag = "[subscription_expiry_job][process_expired_subscriptions]"
    manager = manager or SubscriptionManager()

    try:
        Log.info(f"{log_tag} Starting job")
        deactivated = manager.sweep_expired()
        Log.info(f"{log_tag} Completed | deactivated={deactivated}")

        return {
            "success": True,
            "deactivated": deactivated,
        }

    except Exception as e:
        Log.critical(f"{log_tag} Job failed: {e}", exc_info=True)
        return {
            "success": False,
            "deactivated": 0,
            "error": str(e),
        }
