"""
Role and order status enumerations.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Manages agents and assigns orders
        CUSTOMER: Places and tracks orders
        AGENT: Delivers assigned orders and shares live location
    """
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
    AGENT = "AGENT"


class OrderStatus(str, enum.Enum):
    """
    Order status enumeration.

    Status flow:
        Pending → Processing → Shipped → Delivered
        Pending/Processing/Shipped can transition to Cancelled
    """
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


# Orders whose agent is (or may soon be) moving
IN_MOTION_STATUSES = frozenset({OrderStatus.PROCESSING, OrderStatus.SHIPPED})

# Orders that no longer accept location updates or reassignment
CLOSED_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Statuses an agent may set from the dashboard
AGENT_SETTABLE_STATUSES = (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED)
