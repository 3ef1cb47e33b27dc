from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)

from .core import Base


class RestaurantRecord(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(255), nullable=True, unique=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    cuisine = Column(String(255), nullable=False, default="", server_default=text("''"))
    address = Column(Text, nullable=False, default="", server_default=text("''"))
    phone = Column(String(32), nullable=True)
    rating = Column(Float, nullable=True)
    review_count = Column(Integer, nullable=False, default=0, server_default=text("0"))
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    photos = Column(JSON, nullable=False, default=list)
    price_level = Column(Integer, nullable=True)
    categories = Column(JSON, nullable=False, default=list)
    hours = Column(JSON, nullable=False, default=list)
    url = Column(Text, nullable=True)
    is_closed = Column(Boolean, nullable=False, default=False)
    transactions = Column(JSON, nullable=False, default=list)
    attributes = Column(JSON, nullable=False, default=dict)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class FavoriteRecord(Base):
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "restaurant_id", name="uq_favorite_user"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    collection = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    priority = Column(Integer, nullable=False, default=3, server_default=text("3"))
    is_visited = Column(Boolean, nullable=False, default=False)
    visit_date = Column(Date, nullable=True)
    personal_rating = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class MenuItemRecord(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=True)
    currency = Column(String(3), nullable=False, default="USD", server_default=text("'USD'"))
    category = Column(String(100), nullable=True)
    image_url = Column(Text, nullable=True)
    dietary_tags = Column(JSON, nullable=False, default=list)
    allergens = Column(JSON, nullable=False, default=list)
    popularity_score = Column(Integer, nullable=False, default=0, server_default=text("0"))
    is_available = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class SearchHistoryRecord(Base):
    __tablename__ = "search_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=True, index=True)
    query = Column(String(500), nullable=False, default="")
    location = Column(String(255), nullable=False, default="")
    filters = Column(JSON, nullable=False, default=dict)
    results_count = Column(Integer, nullable=False, default=0)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    response_time_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
