from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.corpsite.models import Base

if TYPE_CHECKING:
    from app.corpsite.models import User


class Business(Base):
    """
    A business micro-site owned by one user, served publicly at /api/businesses/<slug>.
    Names and descriptions are kept in Thai and English.
    """

    __tablename__ = "businesses"
    __table_args__ = (Index("idx_businesses_owner", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    slug: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    name_th: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name_en: Mapped[str | None] = mapped_column(String(255), nullable=True)
    desc_th: Mapped[str | None] = mapped_column(Text, nullable=True)
    desc_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    cover_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="draft")  # draft, published
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    owner: Mapped["User"] = relationship(lazy="joined")
    contact: Mapped["BusinessContact | None"] = relationship(
        back_populates="business",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )
    hours: Mapped[list["BusinessHour"]] = relationship(
        back_populates="business",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BusinessHour.day_of_week",
    )
    gallery: Mapped[list["GalleryImage"]] = relationship(
        back_populates="business",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=lambda: (GalleryImage.sort_order, GalleryImage.id),
    )
    service_categories: Mapped[list["ServiceCategory"]] = relationship(
        back_populates="business",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=lambda: (ServiceCategory.sort_order, ServiceCategory.id),
    )
    services: Mapped[list["BusinessService"]] = relationship(
        back_populates="business",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=lambda: (BusinessService.sort_order, BusinessService.id),
    )


class BusinessContact(Base):
    __tablename__ = "business_contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    line_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    facebook: Mapped[str | None] = mapped_column(String(512), nullable=True)
    instagram: Mapped[str | None] = mapped_column(String(512), nullable=True)
    website: Mapped[str | None] = mapped_column(String(512), nullable=True)
    map_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    map_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    address_th: Mapped[str | None] = mapped_column(Text, nullable=True)
    address_en: Mapped[str | None] = mapped_column(Text, nullable=True)

    business: Mapped[Business] = relationship(back_populates="contact")


class BusinessHour(Base):
    __tablename__ = "business_hours"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Sunday .. 6=Saturday
    open_time: Mapped[str | None] = mapped_column(String(5), nullable=True)  # "09:00"
    close_time: Mapped[str | None] = mapped_column(String(5), nullable=True)  # "18:00"
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    business: Mapped[Business] = relationship(back_populates="hours")


class GalleryImage(Base):
    __tablename__ = "gallery_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    image_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    caption: Mapped[str | None] = mapped_column(String(512), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    business: Mapped[Business] = relationship(back_populates="gallery")


class ServiceCategory(Base):
    """Grouping for a business's services/menu, e.g. "Drinks" or "Hair"."""

    __tablename__ = "business_service_categories"
    __table_args__ = (Index("idx_business_service_categories_business", "business_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    name_th: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name_en: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    business: Mapped[Business] = relationship(back_populates="service_categories")


class BusinessService(Base):
    """A service or product a business offers. Deleting its category leaves it uncategorised."""

    __tablename__ = "business_services"
    __table_args__ = (
        Index("idx_business_services_business", "business_id"),
        Index("idx_business_services_category", "category_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("business_service_categories.id", ondelete="SET NULL"), nullable=True)
    name_th: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name_en: Mapped[str | None] = mapped_column(String(255), nullable=True)
    desc_th: Mapped[str | None] = mapped_column(Text, nullable=True)
    desc_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    price_text: Mapped[str | None] = mapped_column(String(255), nullable=True)  # "from 500 THB"
    duration_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    business: Mapped[Business] = relationship(back_populates="services")
    category: Mapped[ServiceCategory | None] = relationship(lazy="joined")
