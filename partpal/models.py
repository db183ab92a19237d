# partpal/models.py
"""SQLAlchemy ORM models for persisted entities.

Tables are declared in foreign-key dependency order, which is also the order
the migration script copies them in. JSON columns are serialized text in the
legacy SQLite database and structured JSON here.
"""
import enum
from sqlalchemy import (
    Column, Text, Integer, Float, Numeric, Boolean, JSON, TIMESTAMP, ForeignKey, Enum, func, Index
)
from .db import Base


class PartStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"
    LISTED = "LISTED"


class PartCondition(str, enum.Enum):
    NEW = "NEW"
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"


class Category(Base):
    __tablename__ = "categories"
    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    description = Column(Text)
    parent_id = Column(Text, ForeignKey("categories.id"))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class User(Base):
    __tablename__ = "users"
    id = Column(Text, primary_key=True)
    email = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text)
    name = Column(Text)
    role = Column(Text, nullable=False, default="SELLER")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"
    id = Column(Text, primary_key=True)
    token = Column(Text, nullable=False, unique=True)
    user_id = Column(Text, ForeignKey("users.id"), nullable=False)
    expires_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class Seller(Base):
    __tablename__ = "sellers"
    id = Column(Text, primary_key=True)
    user_id = Column(Text, ForeignKey("users.id"), nullable=False)
    business_name = Column(Text, nullable=False)
    business_hours = Column(JSON)
    phone = Column(Text)
    city = Column(Text)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class Vehicle(Base):
    __tablename__ = "vehicles"
    id = Column(Text, primary_key=True)
    seller_id = Column(Text, ForeignKey("sellers.id"), nullable=False)
    vin = Column(Text)
    make = Column(Text, nullable=False)
    model = Column(Text, nullable=False)
    year = Column(Integer)
    condition = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class Part(Base):
    __tablename__ = "parts"
    id = Column(Text, primary_key=True)
    vehicle_id = Column(Text, ForeignKey("vehicles.id"), nullable=False)
    seller_id = Column(Text, ForeignKey("sellers.id"), nullable=False)
    category_id = Column(Text, ForeignKey("categories.id"), nullable=False)
    name = Column(Text, nullable=False)
    part_number = Column(Text)
    description = Column(Text, nullable=False)
    condition = Column(Enum(PartCondition, native_enum=False), nullable=False, default=PartCondition.GOOD)
    price = Column(Numeric(12, 2), nullable=False)
    currency = Column(Text, nullable=False, default="ZAR")
    status = Column(Enum(PartStatus, native_enum=False), nullable=False, default=PartStatus.AVAILABLE)
    location = Column(Text)
    images = Column(JSON)
    is_listed_on_marketplace = Column(Boolean, nullable=False, default=False)
    weight = Column(Float)  # kg
    dimensions = Column(JSON)
    compatibility = Column(JSON)
    warranty = Column(Integer)  # months
    installation_notes = Column(Text)
    reserved_until = Column(TIMESTAMP(timezone=True))
    sold_date = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"
    id = Column(Text, primary_key=True)
    event_type = Column(Text, nullable=False)
    user_id = Column(Text)
    event_metadata = Column("metadata", JSON)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    id = Column(Text, primary_key=True)
    user_id = Column(Text)
    action = Column(Text, nullable=False)
    entity_type = Column(Text)
    entity_id = Column(Text)
    event_metadata = Column("metadata", JSON)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

Index("idx_parts_price", Part.price)
Index("idx_parts_status", Part.status)
Index("idx_parts_category", Part.category_id)
