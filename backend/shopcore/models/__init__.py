from .tenancy import Organization
from .auth import User, OrganizationMember, PlatformAdmin, SessionToken
from .security import SecurityEvent
from .catalog import Product, ProductVariant
from .orders import Order, OrderItem
from .inventory import InventoryMovement
from .customers import Customer
from .carts import Cart, CartItem

__all__ = [
    'Organization',
    'User', 'OrganizationMember', 'PlatformAdmin', 'SessionToken',
    'SecurityEvent',
    'Product', 'ProductVariant',
    'Order', 'OrderItem',
    'InventoryMovement',
    'Customer',
    'Cart', 'CartItem',
]
