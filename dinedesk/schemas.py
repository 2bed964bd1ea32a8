from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .changefeed import ChangeKind
from .models import BrandingDisplay, ItemStatus, OrderStatus, PaymentStatus, UserRole
from .permissions import Permissions


# ---- Menu ----


class CategoryOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    display_order: int = 0
    is_active: bool = True

    class Config:
        from_attributes = True


class MenuItemOut(BaseModel):
    id: str
    category_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    price: float
    image_url: Optional[str] = None
    is_available: bool = True
    is_featured: bool = False
    display_order: int = 0

    class Config:
        from_attributes = True


class MenuOut(BaseModel):
    categories: List[CategoryOut] = Field(default_factory=list)
    menu_items: List[MenuItemOut] = Field(default_factory=list)


# ---- Orders ----


class MenuItemRef(BaseModel):
    name: str
    image_url: Optional[str] = None

    class Config:
        from_attributes = True


class OrderItemOut(BaseModel):
    id: str
    order_id: str
    menu_item_id: str
    quantity: int
    completed_quantity: int = 0
    unit_price: float
    total_price: float
    item_status: ItemStatus = ItemStatus.pending
    notes: Optional[str] = None
    menu_item: Optional[MenuItemRef] = None

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: str
    customer_name: str
    customer_phone: str
    status: OrderStatus
    payment_status: PaymentStatus
    total_amount: float
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    order_items: List[OrderItemOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


class CheckoutItem(BaseModel):
    menu_item_id: str
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_phone: str = Field(..., min_length=1, max_length=32)
    notes: Optional[str] = None
    items: List[CheckoutItem] = Field(..., min_length=1)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class OrderCancel(BaseModel):
    reason: str = Field(..., min_length=1)


class ItemStatusUpdate(BaseModel):
    item_status: ItemStatus


# ---- Realtime ----


class RealtimeEventType(str, enum.Enum):
    connected = "connected"
    order_update = "order_update"
    order_item_update = "order_item_update"
    order_delete = "order_delete"
    heartbeat = "heartbeat"


class RealtimeEvent(BaseModel):
    type: RealtimeEventType
    event: Optional[ChangeKind] = None
    order: Optional[OrderOut] = None
    order_id: Optional[str] = Field(None, alias="orderId")
    item_id: Optional[str] = Field(None, alias="itemId")
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---- Inventory ----


class StockStatus(str, enum.Enum):
    in_stock = "in-stock"
    low_stock = "low-stock"
    out_of_stock = "out-of-stock"


class InventoryItemBase(BaseModel):
    name: str = Field(..., max_length=255)
    unit: str = Field(..., max_length=32)
    current_stock: float = 0
    minimum_stock: float = Field(0, ge=0)
    cost_per_unit: float = Field(0, ge=0)
    supplier: Optional[str] = Field(None, max_length=255)


class InventoryItemCreate(InventoryItemBase):
    pass


class InventoryItemUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    unit: Optional[str] = Field(None, max_length=32)
    current_stock: Optional[float] = None
    minimum_stock: Optional[float] = Field(None, ge=0)
    cost_per_unit: Optional[float] = Field(None, ge=0)
    supplier: Optional[str] = Field(None, max_length=255)


class InventoryItemOut(InventoryItemBase):
    id: str
    last_restocked: Optional[datetime] = None
    status: StockStatus = StockStatus.in_stock

    class Config:
        from_attributes = True


class InventoryAlert(BaseModel):
    id: str
    name: str
    current_stock: float
    minimum_stock: float
    status: StockStatus


class InventoryOverview(BaseModel):
    items: List[InventoryItemOut] = Field(default_factory=list)
    alerts: List[InventoryAlert] = Field(default_factory=list)
    total_value: float = 0
    low_stock_count: int = 0
    out_of_stock_count: int = 0


class RestockRequest(BaseModel):
    quantity: float = Field(..., gt=0)


class RequirementCreate(BaseModel):
    inventory_item_id: str
    quantity_required: float = Field(..., gt=0)


class RequirementOut(RequirementCreate):
    id: str
    menu_item_id: str

    class Config:
        from_attributes = True


class DeductRequest(BaseModel):
    order_id: Optional[str] = Field(None, alias="orderId")

    class Config:
        populate_by_name = True


class DeductResult(BaseModel):
    success: bool = True
    message: str
    deductions: Dict[str, float] = Field(default_factory=dict)


# ---- Restaurant settings ----


class RestaurantSettingsOut(BaseModel):
    id: str
    restaurant_name: str
    logo_url: Optional[str] = None
    tagline: Optional[str] = None
    branding_display: BrandingDisplay
    primary_color: str
    secondary_color: str
    accent_color: str
    text_color: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    operating_hours: Optional[Dict[str, Any]] = None
    currency: str
    timezone: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RestaurantSettingsUpdate(BaseModel):
    restaurant_name: Optional[str] = Field(None, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=512)
    tagline: Optional[str] = Field(None, max_length=255)
    branding_display: Optional[BrandingDisplay] = None
    primary_color: Optional[str] = Field(None, max_length=16)
    secondary_color: Optional[str] = Field(None, max_length=16)
    accent_color: Optional[str] = Field(None, max_length=16)
    text_color: Optional[str] = Field(None, max_length=16)
    phone: Optional[str] = Field(None, max_length=32)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    operating_hours: Optional[Dict[str, Any]] = None
    currency: Optional[str] = Field(None, max_length=8)
    timezone: Optional[str] = Field(None, max_length=64)


class BrandingColors(BaseModel):
    primary: str
    secondary: str
    accent: str
    text: str


class Branding(BaseModel):
    name: str
    logo: Optional[str] = None
    tagline: Optional[str] = None
    display: BrandingDisplay
    colors: BrandingColors

    @classmethod
    def from_settings(cls, settings: RestaurantSettingsOut) -> "Branding":
        return cls(
            name=settings.restaurant_name,
            logo=settings.logo_url,
            tagline=settings.tagline,
            display=settings.branding_display,
            colors=BrandingColors(
                primary=settings.primary_color,
                secondary=settings.secondary_color,
                accent=settings.accent_color,
                text=settings.text_color,
            ),
        )


# ---- Roles & users ----


class RoleOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    permissions: Permissions
    user_count: int = 0
    is_system: bool = False


class RoleUpdate(BaseModel):
    id: Optional[str] = None
    permissions: Optional[Permissions] = None
    description: Optional[str] = None


class UserOut(BaseModel):
    id: str
    email: str
    role: UserRole
    permissions: Permissions
    is_active: bool
    created_by: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.staff
    permissions: Optional[Permissions] = Field(
        None, description="Defaults to the role's standard permissions."
    )


class UserUpdate(BaseModel):
    role: Optional[UserRole] = None
    permissions: Optional[Permissions] = None
    is_active: Optional[bool] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class SessionOut(BaseModel):
    session_token: str
    expires_at: datetime
    user: UserOut
