#POS Resources
from .product_resource import blp_product
from .store_account_resource import blp_store_account
from .subscription_resource import blp_subscription
