"""
Database Schemas for the BuzzMart storefront

Each Pydantic model describes one document shape in the store.
Collections: categories, products, carts, guest_carts, address_books, orders.
"""
from typing import List, Optional, Literal
from pydantic import BaseModel, Field
from datetime import datetime

AddressType = Literal["Home", "Work", "Other"]
PaymentMethod = Literal["COD", "UPI", "Card"]
OrderStatus = Literal["preparing", "dispatched", "delivered", "cancelled"]
StockStatus = Literal["ok", "not-found", "out-of-stock", "insufficient"]

class Category(BaseModel):
    name: str
    emoji: str
    display_order: int = 0

class Product(BaseModel):
    name: str
    description: str = ""
    price: float = Field(..., gt=0)
    category: str
    stock_quantity: int = Field(0, ge=0)
    emoji: str = ""

class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    category: Optional[str] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    emoji: Optional[str] = None

class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    added_at: Optional[datetime] = None

class Cart(BaseModel):
    user_id: str
    items: List[CartItem] = []
    updated_at: Optional[datetime] = None

class CartItemIn(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)

class CartItemQuantity(BaseModel):
    quantity: int

class AddressIn(BaseModel):
    full_name: str = Field(..., min_length=1)
    phone: str = Field(..., pattern=r"^\d{10}$")
    address_line1: str = Field(..., min_length=1)
    address_line2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pin_code: str = Field(..., pattern=r"^\d{6}$")
    address_type: AddressType = "Home"
    is_default: bool = False

class Address(AddressIn):
    id: str

class DeliveryPartner(BaseModel):
    name: str
    phone: str

class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float
    quantity: int = Field(..., ge=1)
    emoji: str = ""

class Order(BaseModel):
    id: str
    user_id: str
    order_number: str
    items: List[OrderItem]
    delivery_address: Address
    total_amount: float = Field(..., ge=0)
    payment_method: PaymentMethod = "COD"
    status: OrderStatus = "preparing"
    delivery_partner: Optional[DeliveryPartner] = None
    order_date: datetime
    dispatched_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

class PlaceOrderRequest(BaseModel):
    address_id: str
    total_amount: float = Field(..., ge=0)
    payment_method: PaymentMethod = "COD"
    # Defaults to the caller's saved cart when omitted
    items: Optional[List[CartItemIn]] = None

class StatusUpdate(BaseModel):
    status: Literal["dispatched", "delivered"]

class StockCheck(BaseModel):
    product_id: str
    requested: int
    available: int = 0
    status: StockStatus

class StockValidationResult(BaseModel):
    valid: bool
    errors: List[str] = []
    checks: List[StockCheck] = []

class CheckoutSummary(BaseModel):
    items: List[OrderItem]
    subtotal: float
    delivery_charge: float
    grand_total: float
