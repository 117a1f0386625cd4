from retail_api.models.tenant import Tenant, SubscriptionStatus, LocationStatus
from retail_api.models.user import User, UserTenant
from retail_api.models.category import PlatformCategory, TaxonomyCategory
from retail_api.models.inventory import InventoryItem, ItemStatus, ItemVisibility
from retail_api.models.order import (
    Order, OrderItem, OrderStatusHistory, OrderStatus, PaymentStatus, FulfillmentStatus
)
from retail_api.models.payment import Payment, StripeWebhookEvent
from retail_api.models.feature_flag import PlatformFeatureFlag, TenantFeatureFlag, TenantFeatureOverride
from retail_api.models.gdpr import ConsentRecord, ConsentType, SecurityAuditLog
from retail_api.models.directory import (
    DirectoryListing, DirectoryCategoryListing, DirectoryFeaturedProduct, DirectoryRefreshLog
)
