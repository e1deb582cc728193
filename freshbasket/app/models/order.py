"""
Order database model.

Besides the customer details, an order carries three locations used by live
tracking: the store it ships from, the geocoded delivery address, and the
last coordinate published by the assigned delivery agent.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from freshbasket.app.db.session import Base
from freshbasket.app.models.enums import OrderStatus


class Order(Base):
    """
    Order model.

    The agent location is a single overwritten slot, not a trail: each
    publish replaces the previous coordinate (last write wins).
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_code = Column(String(20), unique=True, nullable=False, index=True)

    # Customer
    customer_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    customer_name = Column(String(100), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(20), nullable=False)
    customer_address = Column(String(500), nullable=False)
    notes = Column(String(500), nullable=True)

    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)

    # Delivery agent assignment
    assigned_agent_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)

    # Store (pickup) location
    store_latitude = Column(Float, nullable=True)
    store_longitude = Column(Float, nullable=True)
    store_address = Column(String(500), nullable=True)

    # Delivery location (geocoded from customer address)
    delivery_latitude = Column(Float, nullable=True)
    delivery_longitude = Column(Float, nullable=True)
    delivery_address = Column(String(500), nullable=True)

    # Last known agent location
    agent_latitude = Column(Float, nullable=True)
    agent_longitude = Column(Float, nullable=True)
    agent_accuracy_meters = Column(Float, nullable=True)
    agent_location_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def has_agent_location(self) -> bool:
        return self.agent_latitude is not None and self.agent_longitude is not None

    @property
    def tracking_enabled(self) -> bool:
        """True once an agent is assigned and has published a coordinate."""
        return self.assigned_agent_id is not None and self.has_agent_location

    def __repr__(self):
        return f"<Order(id={self.id}, code='{self.order_code}', status='{self.status.value}')>"
