from .auth import User, Role, ROLE_VENDOR, ROLE_ROOT, ROLE_NAMES
from .vendors import VendorProfile, Brand, CatalogShareLink
from .catalog import Category, Product, ProductImage, ProductVariant, PRODUCT_STATUSES
from .sales import (
    ProductSale,
    ProductEvent,
    EVENT_PENDING,
    EVENT_RESOLVED,
    EVENT_DISCARDED,
    EVENT_STATUSES,
    EVENT_TYPE_PURCHASE_INTENT,
)

__all__ = [
    'User', 'Role', 'ROLE_VENDOR', 'ROLE_ROOT', 'ROLE_NAMES',
    'VendorProfile', 'Brand', 'CatalogShareLink',
    'Category', 'Product', 'ProductImage', 'ProductVariant', 'PRODUCT_STATUSES',
    'ProductSale', 'ProductEvent',
    'EVENT_PENDING', 'EVENT_RESOLVED', 'EVENT_DISCARDED', 'EVENT_STATUSES',
    'EVENT_TYPE_PURCHASE_INTENT',
]
