"""
Database Schemas for the Storefront

Each Pydantic model maps to a MongoDB collection (lowercased class name).

Collections:
- user
- category
- product
- order
- wishlist
"""
from datetime import datetime
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, EmailStr

OrderStatus = Literal["New", "Accepted", "Shipped", "Cancelled", "Completed"]
PaymentMethod = Literal["COD", "Bank Transfer", "Online Payment", "Razorpay"]
DeliveryMethod = Literal["store_pickup", "home_delivery"]
ProductTag = Literal["new", "sale"]

ORDER_STATUSES = ["New", "Accepted", "Shipped", "Cancelled", "Completed"]
MAX_PRODUCT_IMAGES = 5


class Address(BaseModel):
    id: Optional[str] = Field(None, description="Address id inside the user document")
    type: Literal["Home", "Work", "Other"] = "Home"
    address_line1: str
    address_line2: Optional[str] = None
    landmark: Optional[str] = None
    city: str
    state: str
    pincode: str
    country: str = "India"
    is_default: bool = False


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, stored lower-cased")
    phone: str = Field(..., description="Contact phone number")
    password_hash: str = Field(..., description="BCrypt password hash")
    role: Literal["user", "admin"] = Field("user", description="user | admin")
    is_banned: bool = Field(False, description="Banned users cannot log in")
    is_verified: bool = Field(False, description="Email address verified")
    verification_token: Optional[str] = None
    addresses: List[Address] = Field(default_factory=list)


class Category(BaseModel):
    """
    Categories collection schema
    Collection name: "category"
    """
    name: str = Field(..., description="Unique category name")
    description: Optional[str] = None
    image: Optional[str] = Field(None, description="Image URL")
    order: int = Field(0, description="Display position")
    is_active: bool = True


class ProductImage(BaseModel):
    url: str
    order: int = 0
    is_main: bool = False


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: str = Field(..., description="Product name")
    description: str = Field("", description="Product description")
    price: float = Field(..., ge=0, description="Current price")
    original_price: Optional[float] = Field(None, ge=0, description="Price before discount")
    stock_quantity: int = Field(0, ge=0, description="Units in stock")
    category: str = Field(..., description="Category id")
    image: Optional[str] = Field(None, description="Legacy single image URL")
    images: List[ProductImage] = Field(default_factory=list)
    tags: List[ProductTag] = Field(default_factory=list)
    view_count: int = 0
    add_to_cart_count: int = 0
    sold_last_24_hours: int = 0
    out_of_stock: bool = Field(False, description="Forced out of stock, independent of stock_quantity")


class OrderItem(BaseModel):
    product_id: str
    name: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    image: Optional[str] = None


class ShippingAddress(BaseModel):
    address_line1: str
    address_line2: Optional[str] = None
    landmark: Optional[str] = None
    city: str
    state: str
    pincode: str
    country: str = "India"


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    user_id: Optional[str] = None
    customer_name: str
    customer_phone: str
    delivery_method: DeliveryMethod = "store_pickup"
    shipping_address: Optional[ShippingAddress] = None
    items: List[OrderItem]
    shipping_cost: float = Field(0, ge=0)
    total: float = Field(..., ge=0)
    status: OrderStatus = "New"
    payment_method: PaymentMethod = "COD"
    payment_proof: Optional[str] = Field(None, description="Payment screenshot (data URL or link)")
    payment_id: Optional[str] = None


class WishlistItem(BaseModel):
    product_id: str
    added_at: datetime


class Wishlist(BaseModel):
    """
    Wishlists collection schema
    Collection name: "wishlist"
    """
    user_id: str = Field(..., description="Owner user id (one wishlist per user)")
    items: List[WishlistItem] = Field(default_factory=list)
