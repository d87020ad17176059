"""
Database Schemas for the Storefront

Each Pydantic model correlates to a MongoDB collection. The collection name is the lowercase of the class name.
- User -> "user"
- Product -> "product"
- Cart -> "cart"
- Order -> "order"
- Collection -> "collection"
- Banner -> "banner"
- BestSelling -> "bestselling"
- Quote, NavItem, Media, Instruction, TimingBanner -> "quote", "navitem", "media", "instruction", "timingbanner"

Documents are stored with camelCase keys (the wire format of the storefront
frontend); Python attributes stay snake_case through an alias generator.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True, validate_default=True)


class StockLabel(str, Enum):
    IN_STOCK = "In Stock"
    LOW_STOCK = "Low Stock"
    OUT_OF_STOCK = "Out of Stock"


class OrderStatus(str, Enum):
    ORDER_PLACED = "Order Placed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentMethod(str, Enum):
    ONLINE = "online"
    COD = "cod"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class StockCell(Document):
    quantity: int = Field(0, ge=0, description="Units available for this size/color")
    codename: Optional[str] = None
    images: List[str] = Field(default_factory=list, description="Image URLs for this color")


class Product(Document):
    id: str = Field(..., min_length=1, description="External product identifier")
    collection: str = Field(..., description="Collection name")
    title: str = Field(..., description="Product title")
    description: str = ""
    price: float = Field(..., ge=0, description="MRP")
    selling_price: float = Field(..., ge=0, description="Price charged")
    discount: float = 0
    stock: StockLabel = StockLabel.IN_STOCK
    stock_details: Dict[str, Dict[str, StockCell]] = Field(
        default_factory=dict, description="size -> color -> stock cell"
    )
    colors: str = ""
    size: str = ""
    age: str = ""
    color_images: Dict[str, List[str]] = Field(default_factory=dict)
    saree_type: str = ""
    sleeve_type: str = ""
    instruction_id: str = ""
    is_active: bool = True
    created_by: str = "admin"


class User(Document):
    name: str = Field(..., max_length=50, description="Full name")
    phone: str = Field(..., pattern=r"^[6-9]\d{9}$", description="10 digit mobile number")
    password: str = Field(..., description="BCrypt password hash")
    is_phone_verified: bool = False
    otp: Optional[str] = None
    otp_expiry: Optional[datetime] = None


class CartItem(Document):
    product_id: str
    title: str
    image: str = ""
    price: float
    original_price: Optional[float] = None
    discount: float = 0
    selected_size: str
    selected_color: str
    quantity: int = Field(1, ge=1)
    collection: Optional[str] = None


class Cart(Document):
    user_id: str
    items: List[CartItem] = Field(default_factory=list)


class OrderItem(Document):
    id: Optional[str] = Field(None, description="Product id")
    product_id: Optional[str] = Field(None, description="Legacy spelling of the product id")
    title: str = ""
    price: float = 0
    quantity: int = Field(..., ge=1)
    selected_size: str = ""
    selected_color: str = ""
    image: Optional[str] = None
    collection: Optional[str] = None
    original_price: Optional[float] = None
    discount: Optional[float] = None

    @property
    def resolved_id(self) -> Optional[str]:
        return self.id or self.product_id


class ShippingAddress(Document):
    street: Optional[str] = None
    village: Optional[str] = None
    po: Optional[str] = None
    taluk: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: Optional[str] = None


class PaymentDetails(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    paid_at: Optional[datetime] = None


class StatusEntry(Document):
    status: OrderStatus
    timestamp: datetime
    note: Optional[str] = None


class Order(Document):
    order_id: str
    user_id: str
    user_email: str = "N/A"
    user_name: str = "Customer"
    items: List[OrderItem]
    total_amount: float = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.ONLINE
    payment_details: Optional[PaymentDetails] = None
    shipping_address: ShippingAddress
    status: OrderStatus = OrderStatus.ORDER_PLACED
    status_history: List[StatusEntry] = Field(default_factory=list)


class Collection(Document):
    name: str
    normalized_name: str
    enabled: bool = True
    image: str = ""
    offer_enabled: bool = False
    is_default: bool = False
    order: int = 0


class Banner(Document):
    image: str = Field(..., min_length=1)
    link: str = ""


class BestSelling(Document):
    product_id: str
    order: int = 0
    is_active: bool = True


class Quote(Document):
    text: str = Field(..., min_length=1)
    author: str = ""


class NavItem(Document):
    label: str = Field(..., min_length=1)
    link: str = ""
    order: int = 0


class Media(Document):
    url: str = Field(..., min_length=1)
    type: str = "image"
    title: str = ""
    link: str = ""


class Instruction(Document):
    title: str = Field(..., min_length=1)
    description: str = ""
    steps: List[str] = Field(default_factory=list, description="Care / wash steps")
    is_active: bool = True


class TimingBanner(Document):
    title: str = ""
    image: str = ""
    link: str = ""
    end_time: Optional[datetime] = None
    is_active: bool = True
