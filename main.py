import os
import re
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional

import structlog
from fastapi import FastAPI, HTTPException, Depends, Header, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, EmailStr, Field
from jose import jwt, JWTError
from passlib.context import CryptContext
import razorpay
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from database import db, create_document, get_documents
from schemas import (
    Address,
    Category as CategorySchema,
    DeliveryMethod,
    MAX_PRODUCT_IMAGES,
    Order as OrderSchema,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    Product as ProductSchema,
    ProductImage,
    ProductTag,
    ShippingAddress,
    User as UserSchema,
    Wishlist as WishlistSchema,
)

logger = structlog.get_logger(__name__)

# App init
app = FastAPI(title="Storefront API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security/JWT
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
TOKEN_EXPIRE_HOURS = int(os.getenv("TOKEN_EXPIRE_HOURS", "1"))
VERIFY_EXPIRE_HOURS = int(os.getenv("VERIFY_EXPIRE_HOURS", "1"))
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")

# Upper bound for the admin "fetch all" listing
ADMIN_FETCH_LIMIT = 1000
PRODUCT_SORT_FIELDS = {"created_at", "updated_at", "price", "name", "stock_quantity", "view_count", "sold_last_24_hours"}


# Utils
def col(name: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db[name]


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid id")


def razorpay_client() -> razorpay.Client:
    return razorpay.Client(auth=(RAZORPAY_KEY_ID or "", RAZORPAY_KEY_SECRET or ""))


def _plain(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return serialize_doc(value)
    return value


def serialize_doc(doc: Optional[Dict[str, Any]]):
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    for k, v in list(doc.items()):
        doc[k] = _plain(v)
    return doc


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    user = serialize_doc(doc)
    user.pop("password_hash", None)
    user.pop("verification_token", None)
    return user


def main_image(images: List[ProductImage]) -> Optional[str]:
    if not images:
        return None
    for img in images:
        if img.is_main:
            return img.url
    return sorted(images, key=lambda i: i.order)[0].url


def populate_categories(products: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Replace each product's category id with {id, name} when the category still exists"""
    ids = {p.get("category") for p in products if ObjectId.is_valid(str(p.get("category")))}
    found = {}
    if ids:
        for c in col("category").find({"_id": {"$in": [ObjectId(i) for i in ids]}}):
            found[str(c["_id"])] = {"id": str(c["_id"]), "name": c["name"]}
    out = []
    for p in products:
        item = serialize_doc(p)
        item["category"] = found.get(str(p.get("category")), p.get("category"))
        out.append(item)
    return out


# Auth helpers
def create_token(user: dict) -> str:
    payload = {
        "sub": str(user["_id"]),
        "role": user.get("role", "user"),
        "exp": datetime.now(timezone.utc) + timedelta(hours=TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def create_verification_token(email: str) -> str:
    payload = {
        "sub": email,
        "purpose": "verify",
        "exp": datetime.now(timezone.utc) + timedelta(hours=VERIFY_EXPIRE_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def get_current_user(authorization: Optional[str] = Header(None)):
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    token = authorization.replace("Bearer ", "").strip()
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("sub")
    if payload.get("purpose") == "verify" or not ObjectId.is_valid(str(user_id)):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = col("user").find_one({"_id": ObjectId(user_id)})
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token user")
    if user.get("is_banned"):
        raise HTTPException(status_code=403, detail="Your account has been banned.")
    return user


def get_optional_user(authorization: Optional[str] = Header(None)):
    if not authorization:
        return None
    return get_current_user(authorization)


def require_admin(user=Depends(get_current_user)):
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin only")
    return user


def ensure_self_or_admin(user: dict, user_id: str):
    if user.get("role") != "admin" and str(user["_id"]) != user_id:
        raise HTTPException(status_code=403, detail="Not allowed")


def send_verification_email(email: str, name: str, token: str):
    # Mail delivery is handled outside this service; the link is logged for the relay to pick up.
    url = f"{BASE_URL}/api/auth/verify-email?token={token}"
    logger.info("verification_email_queued", email=email, name=name, url=url)
    return url


# Request models
class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class CategoryCreateRequest(BaseModel):
    name: str
    description: Optional[str] = None
    image: Optional[str] = None


class CategoryUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


class CategoryReorderRequest(BaseModel):
    category_ids: List[str]


class ProductCreateRequest(BaseModel):
    name: str
    description: str = ""
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: str
    image: Optional[str] = None
    images: List[ProductImage] = []
    stock_quantity: int = Field(0, ge=0)
    tags: List[ProductTag] = []
    view_count: int = 0
    add_to_cart_count: int = 0
    sold_last_24_hours: int = 0
    out_of_stock: Optional[bool] = None


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    image: Optional[str] = None
    images: Optional[List[ProductImage]] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    tags: Optional[List[ProductTag]] = None
    view_count: Optional[int] = None
    add_to_cart_count: Optional[int] = None
    sold_last_24_hours: Optional[int] = None
    out_of_stock: Optional[bool] = None


class OrderCreateRequest(BaseModel):
    customer_name: str
    customer_phone: str
    delivery_method: DeliveryMethod = "store_pickup"
    shipping_address: Optional[ShippingAddress] = None
    items: List[OrderItem]
    shipping_cost: float = Field(0, ge=0)
    total: float = Field(..., ge=0)
    payment_method: PaymentMethod = "COD"
    payment_proof: Optional[str] = None
    payment_id: Optional[str] = None


class OrderUpdateRequest(BaseModel):
    status: Optional[OrderStatus] = None


class UserCreateRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    phone: str
    role: str = "user"
    is_banned: bool = False


class UserUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    is_banned: Optional[bool] = None


class BanRequest(BaseModel):
    ban: bool


class AddressRequest(BaseModel):
    type: Literal["Home", "Work", "Other"] = "Home"
    address_line1: str
    address_line2: Optional[str] = None
    landmark: Optional[str] = None
    city: str
    state: str
    pincode: str
    country: str = "India"
    is_default: bool = False


class AddressUpdateRequest(BaseModel):
    type: Optional[Literal["Home", "Work", "Other"]] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    landmark: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: Optional[str] = None
    is_default: Optional[bool] = None


class WishlistItemRequest(BaseModel):
    user_id: str
    product_id: str


class WishlistClearRequest(BaseModel):
    user_id: str


class PaymentOrderRequest(BaseModel):
    amount: float = Field(..., gt=0)
    currency: str = "INR"
    receipt: Optional[str] = None


class PaymentVerifyRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


# Routes
@app.get("/")
def root():
    return {"message": "Storefront API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "running",
        "database": "not configured",
        "database_name": None,
        "collections": [],
    }
    if db is not None:
        response["database_name"] = db.name
        try:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "connected"
        except PyMongoError as e:
            response["database"] = f"error: {str(e)[:80]}"
    return response


# Auth
@app.post("/api/auth/register", status_code=201)
def register(req: RegisterRequest):
    email = req.email.lower()
    if col("user").find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")
    token = create_verification_token(email)
    user = UserSchema(
        name=req.name.strip(),
        email=email,
        phone=req.phone,
        password_hash=pwd_context.hash(req.password),
        verification_token=token,
    )
    user_id = create_document("user", user)
    send_verification_email(email, user.name, token)
    return {"id": user_id, "message": "User registered. Please check your email for verification."}


@app.get("/api/auth/verify-email", response_class=HTMLResponse)
def verify_email(token: str):
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError:
        raise HTTPException(status_code=400, detail="The verification link is invalid or has expired.")
    if payload.get("purpose") != "verify":
        raise HTTPException(status_code=400, detail="The verification link is invalid or has expired.")
    result = col("user").update_one(
        {"email": payload.get("sub")},
        {"$set": {"is_verified": True, "verification_token": None, "updated_at": datetime.now(timezone.utc)}},
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=400, detail="Invalid token or user not found")
    return (
        "<!DOCTYPE html><html><head><title>Email Verified</title></head><body>"
        "<h1>Email Verified!</h1><p>You can now log in and start shopping.</p>"
        f'<a href="{FRONTEND_URL}/?view=auth">Go to Login</a></body></html>'
    )


@app.post("/api/auth/login")
def login(req: LoginRequest):
    user = col("user").find_one({"email": req.email.lower()})
    if not user:
        raise HTTPException(status_code=400, detail="Invalid Credentials")
    if not user.get("is_verified"):
        raise HTTPException(status_code=400, detail="Please verify your email first.")
    if user.get("is_banned"):
        raise HTTPException(status_code=403, detail="Your account has been banned.")
    if not pwd_context.verify(req.password, user.get("password_hash", "")):
        raise HTTPException(status_code=400, detail="Invalid Credentials")
    return {"token": create_token(user), "user": public_user(user)}


# Categories
@app.get("/api/categories")
def list_categories():
    categories = col("category").find().sort([("order", 1), ("_id", 1)])
    return [serialize_doc(c) for c in categories]


@app.post("/api/categories", status_code=201)
def create_category(req: CategoryCreateRequest, admin=Depends(require_admin)):
    name = req.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")
    if col("category").find_one({"name": name}):
        raise HTTPException(status_code=400, detail="Category already exists")
    last = col("category").find_one(sort=[("order", -1)])
    order = (last.get("order", 0) + 1) if last else 0
    image = req.image.strip() if req.image and req.image.strip() else None
    category = CategorySchema(name=name, description=req.description, image=image, order=order)
    category_id = create_document("category", category)
    return serialize_doc(col("category").find_one({"_id": ObjectId(category_id)}))


@app.post("/api/categories/reorder")
def reorder_categories(req: CategoryReorderRequest, admin=Depends(require_admin)):
    for index, category_id in enumerate(req.category_ids):
        col("category").update_one({"_id": oid(category_id)}, {"$set": {"order": index}})
    return list_categories()


@app.get("/api/categories/{category_id}")
def get_category(category_id: str):
    category = col("category").find_one({"_id": oid(category_id)})
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return serialize_doc(category)


@app.put("/api/categories/{category_id}")
def update_category(category_id: str, req: CategoryUpdateRequest, admin=Depends(require_admin)):
    updates: Dict[str, Any] = {}
    if req.name is not None:
        name = req.name.strip()
        clash = col("category").find_one({"name": name, "_id": {"$ne": oid(category_id)}})
        if clash:
            raise HTTPException(status_code=400, detail="Category already exists")
        updates["name"] = name
    if req.description is not None:
        updates["description"] = req.description
    # A blank image keeps the current one
    if req.image is not None and req.image.strip():
        updates["image"] = req.image.strip()
    updates["updated_at"] = datetime.now(timezone.utc)
    category = col("category").find_one_and_update(
        {"_id": oid(category_id)}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return serialize_doc(category)


@app.patch("/api/categories/{category_id}/toggle-active")
def toggle_category_active(category_id: str, admin=Depends(require_admin)):
    category = col("category").find_one({"_id": oid(category_id)})
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    is_active = not category.get("is_active", True)
    col("category").update_one({"_id": category["_id"]}, {"$set": {"is_active": is_active}})
    category["is_active"] = is_active
    return serialize_doc(category)


@app.delete("/api/categories/{category_id}")
def delete_category(category_id: str, admin=Depends(require_admin)):
    # Products keep their (now dangling) category reference
    result = col("category").delete_one({"_id": oid(category_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Category not found")
    return {"message": "Category deleted"}


# Products
@app.get("/api/products")
def list_products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=ADMIN_FETCH_LIMIT),
    sort: str = "-created_at",
):
    query: Dict[str, Any] = {}
    if category and category.lower() != "all":
        query["category"] = category
    if search and search.strip():
        pattern = re.escape(search.strip())
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    field = sort.lstrip("-")
    if field not in PRODUCT_SORT_FIELDS:
        field = "created_at"
    direction = -1 if sort.startswith("-") else 1

    skip = (page - 1) * limit
    docs = list(col("product").find(query).sort([(field, direction), ("_id", direction)]).skip(skip).limit(limit))
    total = col("product").count_documents(query)
    return {
        "products": populate_categories(docs),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
            "has_more": skip + len(docs) < total,
        },
    }


@app.get("/api/products/new-arrivals")
def new_arrivals(limit: int = Query(20, ge=1, le=100)):
    docs = list(col("product").find({"tags": "new"}).sort([("created_at", -1), ("_id", -1)]).limit(limit))
    return populate_categories(docs)


@app.get("/api/products/{product_id}")
def get_product(product_id: str):
    product = col("product").find_one({"_id": oid(product_id)})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return populate_categories([product])[0]


@app.post("/api/products", status_code=201)
def create_product(req: ProductCreateRequest, admin=Depends(require_admin)):
    if not req.name.strip() or not req.category:
        raise HTTPException(status_code=400, detail="Missing required fields")
    if not col("category").find_one({"_id": oid(req.category)}):
        raise HTTPException(status_code=400, detail="Invalid category")
    if len(req.images) > MAX_PRODUCT_IMAGES:
        raise HTTPException(status_code=400, detail=f"Maximum {MAX_PRODUCT_IMAGES} images allowed per product")

    data = req.model_dump()
    if data["out_of_stock"] is None:
        data["out_of_stock"] = req.stock_quantity <= 0
    data["image"] = req.image or main_image(req.images)
    product = ProductSchema(**data)
    product_id = create_document("product", product)
    return get_product(product_id)


@app.put("/api/products/{product_id}")
def update_product(product_id: str, req: ProductUpdateRequest, admin=Depends(require_admin)):
    updates = req.model_dump(exclude_unset=True)
    if updates.get("category") and not col("category").find_one({"_id": oid(updates["category"])}):
        raise HTTPException(status_code=400, detail="Invalid category")
    if req.images is not None:
        if len(req.images) > MAX_PRODUCT_IMAGES:
            raise HTTPException(status_code=400, detail=f"Maximum {MAX_PRODUCT_IMAGES} images allowed per product")
        if "image" not in updates:
            updates["image"] = main_image(req.images)
    # Stock at or below zero marks the product out of stock unless the flag is sent explicitly
    if updates.get("out_of_stock") is None:
        updates.pop("out_of_stock", None)
        if updates.get("stock_quantity") is not None and updates["stock_quantity"] <= 0:
            updates["out_of_stock"] = True
    updates["updated_at"] = datetime.now(timezone.utc)
    product = col("product").find_one_and_update(
        {"_id": oid(product_id)}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return populate_categories([product])[0]


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, admin=Depends(require_admin)):
    result = col("product").delete_one({"_id": oid(product_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"message": "Product deleted"}


# Orders
@app.get("/api/orders")
def list_orders(status: Optional[OrderStatus] = None, user=Depends(get_current_user)):
    query: Dict[str, Any] = {}
    if user.get("role") != "admin":
        query["$or"] = [{"user_id": str(user["_id"])}, {"customer_phone": user.get("phone")}]
    if status:
        query["status"] = status
    orders = col("order").find(query).sort([("created_at", -1), ("_id", -1)])
    return [serialize_doc(o) for o in orders]


@app.post("/api/orders", status_code=201)
def create_order(req: OrderCreateRequest, user=Depends(get_optional_user)):
    if not req.items:
        raise HTTPException(status_code=400, detail="No items in order")
    if req.delivery_method == "home_delivery" and req.shipping_address is None:
        raise HTTPException(status_code=400, detail="Shipping address is required for home delivery")

    data = req.model_dump()
    if req.delivery_method == "store_pickup":
        data["shipping_address"] = None
    data["user_id"] = str(user["_id"]) if user else None
    data["status"] = "New"
    order = OrderSchema(**data)
    order_id = create_document("order", order)
    logger.info("order_created", order_id=order_id, total=order.total, items=len(order.items))

    # Best-effort, non-atomic stock decrement floored at zero
    for item in order.items:
        try:
            product_id = ObjectId(item.product_id)
            result = col("product").update_one(
                {"_id": product_id, "stock_quantity": {"$gte": item.quantity}},
                {"$inc": {"stock_quantity": -item.quantity, "sold_last_24_hours": item.quantity}},
            )
            if result.matched_count == 0:
                col("product").update_one(
                    {"_id": product_id},
                    {"$set": {"stock_quantity": 0}, "$inc": {"sold_last_24_hours": item.quantity}},
                )
        except (InvalidId, PyMongoError) as e:
            logger.warning("stock_decrement_failed", order_id=order_id, product_id=item.product_id, error=str(e))

    return serialize_doc(col("order").find_one({"_id": ObjectId(order_id)}))


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, user=Depends(get_current_user)):
    order = col("order").find_one({"_id": oid(order_id)})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if user.get("role") != "admin" and order.get("user_id") != str(user["_id"]):
        raise HTTPException(status_code=403, detail="Not allowed")
    return serialize_doc(order)


@app.put("/api/orders/{order_id}")
def update_order(order_id: str, req: OrderUpdateRequest, admin=Depends(require_admin)):
    order = col("order").find_one({"_id": oid(order_id)})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if req.status:
        # Any status is accepted from any other status
        col("order").update_one(
            {"_id": order["_id"]},
            {"$set": {"status": req.status, "updated_at": datetime.now(timezone.utc)}},
        )
        logger.info("order_status_changed", order_id=order_id, old=order.get("status"), new=req.status)
    return serialize_doc(col("order").find_one({"_id": order["_id"]}))


@app.delete("/api/orders/{order_id}")
def delete_order(order_id: str, admin=Depends(require_admin)):
    result = col("order").delete_one({"_id": oid(order_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"message": "Order deleted"}


# Users
@app.get("/api/users")
def list_users(admin=Depends(require_admin)):
    return [public_user(u) for u in get_documents("user")]


@app.post("/api/users", status_code=201)
def create_user(req: UserCreateRequest, admin=Depends(require_admin)):
    email = req.email.lower()
    if col("user").find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")
    role = "admin" if req.role == "admin" else "user"
    user = UserSchema(
        name=req.name,
        email=email,
        phone=req.phone,
        password_hash=pwd_context.hash(req.password),
        role=role,
        is_banned=req.is_banned,
        is_verified=True,
    )
    user_id = create_document("user", user)
    return public_user(col("user").find_one({"_id": ObjectId(user_id)}))


@app.get("/api/users/{user_id}")
def get_user(user_id: str, user=Depends(get_current_user)):
    ensure_self_or_admin(user, user_id)
    found = col("user").find_one({"_id": oid(user_id)})
    if not found:
        raise HTTPException(status_code=404, detail="User not found")
    return public_user(found)


@app.put("/api/users/{user_id}")
def update_user(user_id: str, req: UserUpdateRequest, user=Depends(get_current_user)):
    ensure_self_or_admin(user, user_id)
    updates = {k: v for k, v in req.model_dump().items() if v is not None}
    if ("role" in updates or "is_banned" in updates) and user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin only")
    if "role" in updates:
        updates["role"] = "admin" if updates["role"] == "admin" else "user"
    if "email" in updates:
        updates["email"] = updates["email"].lower()
    updates["updated_at"] = datetime.now(timezone.utc)
    found = col("user").find_one_and_update(
        {"_id": oid(user_id)}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not found:
        raise HTTPException(status_code=404, detail="User not found")
    return public_user(found)


@app.post("/api/users/{user_id}/ban")
def ban_user(user_id: str, req: BanRequest, admin=Depends(require_admin)):
    found = col("user").find_one_and_update(
        {"_id": oid(user_id)},
        {"$set": {"is_banned": req.ban, "updated_at": datetime.now(timezone.utc)}},
        return_document=ReturnDocument.AFTER,
    )
    if not found:
        raise HTTPException(status_code=404, detail="User not found")
    return public_user(found)


@app.delete("/api/users/{user_id}")
def delete_user(user_id: str, admin=Depends(require_admin)):
    result = col("user").delete_one({"_id": oid(user_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted"}


# Addresses
def _load_addresses(user_id: str, user: dict) -> List[Dict[str, Any]]:
    ensure_self_or_admin(user, user_id)
    found = col("user").find_one({"_id": oid(user_id)})
    if not found:
        raise HTTPException(status_code=404, detail="User not found")
    return list(found.get("addresses", []))


def _save_addresses(user_id: str, addresses: List[Dict[str, Any]]):
    col("user").update_one(
        {"_id": oid(user_id)},
        {"$set": {"addresses": addresses, "updated_at": datetime.now(timezone.utc)}},
    )
    return addresses


def _set_default(addresses: List[Dict[str, Any]], address_id: str):
    # Unset every default before marking the new one
    for a in addresses:
        a["is_default"] = False
    for a in addresses:
        if a["id"] == address_id:
            a["is_default"] = True


@app.get("/api/users/{user_id}/addresses")
def list_addresses(user_id: str, user=Depends(get_current_user)):
    return _load_addresses(user_id, user)


@app.post("/api/users/{user_id}/addresses", status_code=201)
def add_address(user_id: str, req: AddressRequest, user=Depends(get_current_user)):
    addresses = _load_addresses(user_id, user)
    address = Address(id=str(ObjectId()), **req.model_dump()).model_dump()
    address["is_default"] = False
    addresses.append(address)
    if req.is_default or len(addresses) == 1:
        _set_default(addresses, address["id"])
    return _save_addresses(user_id, addresses)


@app.put("/api/users/{user_id}/addresses/{address_id}")
def update_address(user_id: str, address_id: str, req: AddressUpdateRequest, user=Depends(get_current_user)):
    addresses = _load_addresses(user_id, user)
    target = next((a for a in addresses if a.get("id") == address_id), None)
    if target is None:
        raise HTTPException(status_code=404, detail="Address not found")
    updates = {k: v for k, v in req.model_dump().items() if v is not None}
    make_default = updates.pop("is_default", None)
    target.update(updates)
    if make_default:
        _set_default(addresses, address_id)
    elif make_default is False:
        target["is_default"] = False
    return _save_addresses(user_id, addresses)


@app.delete("/api/users/{user_id}/addresses/{address_id}")
def delete_address(user_id: str, address_id: str, user=Depends(get_current_user)):
    addresses = _load_addresses(user_id, user)
    remaining = [a for a in addresses if a.get("id") != address_id]
    if len(remaining) == len(addresses):
        raise HTTPException(status_code=404, detail="Address not found")
    return _save_addresses(user_id, remaining)


# Wishlist
def _wishlist_response(wishlist: Dict[str, Any]) -> Dict[str, Any]:
    ids = [i["product_id"] for i in wishlist.get("items", []) if ObjectId.is_valid(i["product_id"])]
    products = {}
    if ids:
        docs = list(col("product").find({"_id": {"$in": [ObjectId(i) for i in ids]}}))
        products = {p["id"]: p for p in populate_categories(docs)}
    out = serialize_doc(wishlist)
    for item in out["items"]:
        item["product"] = products.get(item["product_id"])
    return out


@app.get("/api/wishlist")
def get_wishlist(user_id: str = Query(..., alias="userId")):
    wishlist = col("wishlist").find_one({"user_id": user_id})
    if not wishlist:
        wishlist_id = create_document("wishlist", WishlistSchema(user_id=user_id))
        wishlist = col("wishlist").find_one({"_id": ObjectId(wishlist_id)})
    return _wishlist_response(wishlist)


@app.post("/api/wishlist/add")
def add_to_wishlist(req: WishlistItemRequest):
    if not col("product").find_one({"_id": oid(req.product_id)}):
        raise HTTPException(status_code=404, detail="Product not found")
    item = {"product_id": req.product_id, "added_at": datetime.now(timezone.utc)}
    wishlist = col("wishlist").find_one({"user_id": req.user_id})
    if not wishlist:
        create_document("wishlist", {"user_id": req.user_id, "items": [item]})
    else:
        if any(i["product_id"] == req.product_id for i in wishlist.get("items", [])):
            raise HTTPException(status_code=400, detail="Product already in wishlist")
        col("wishlist").update_one(
            {"_id": wishlist["_id"]},
            {"$push": {"items": item}, "$set": {"updated_at": datetime.now(timezone.utc)}},
        )
    return _wishlist_response(col("wishlist").find_one({"user_id": req.user_id}))


@app.delete("/api/wishlist/remove")
def remove_from_wishlist(req: WishlistItemRequest):
    wishlist = col("wishlist").find_one({"user_id": req.user_id})
    if not wishlist:
        raise HTTPException(status_code=404, detail="Wishlist not found")
    col("wishlist").update_one(
        {"_id": wishlist["_id"]},
        {"$pull": {"items": {"product_id": req.product_id}}, "$set": {"updated_at": datetime.now(timezone.utc)}},
    )
    return _wishlist_response(col("wishlist").find_one({"_id": wishlist["_id"]}))


@app.delete("/api/wishlist/clear")
def clear_wishlist(req: WishlistClearRequest):
    wishlist = col("wishlist").find_one({"user_id": req.user_id})
    if not wishlist:
        raise HTTPException(status_code=404, detail="Wishlist not found")
    col("wishlist").update_one(
        {"_id": wishlist["_id"]},
        {"$set": {"items": [], "updated_at": datetime.now(timezone.utc)}},
    )
    return _wishlist_response(col("wishlist").find_one({"_id": wishlist["_id"]}))


# Payment gateway
@app.post("/api/payment/orders")
def create_payment_order(req: PaymentOrderRequest):
    if not RAZORPAY_KEY_ID or not RAZORPAY_KEY_SECRET:
        raise HTTPException(status_code=500, detail="Payment gateway is not configured")
    payload = {
        "amount": round(req.amount * 100),  # lowest currency unit
        "currency": req.currency,
        "receipt": req.receipt,
        "payment_capture": 1,
    }
    try:
        return razorpay_client().order.create(data=payload)
    except (BadRequestError, GatewayError, ServerError) as e:
        logger.error("payment_order_failed", error=str(e), receipt=req.receipt)
        raise HTTPException(status_code=502, detail="Something went wrong")


@app.post("/api/payment/verify")
def verify_payment(req: PaymentVerifyRequest):
    params = {
        "razorpay_order_id": req.razorpay_order_id,
        "razorpay_payment_id": req.razorpay_payment_id,
        "razorpay_signature": req.razorpay_signature,
    }
    try:
        razorpay_client().utility.verify_payment_signature(params)
    except SignatureVerificationError:
        raise HTTPException(status_code=400, detail="Invalid signature sent!")
    return {"message": "Payment verified successfully"}


# Seed demo catalog on startup
DEMO_CATEGORIES: List[dict] = [
    {"name": "Electronics", "description": "Gadgets and electronic devices",
     "image": "https://images.unsplash.com/photo-1518770660439-4636190af475?w=1200&q=80"},
    {"name": "Books", "description": "Fiction and non-fiction titles",
     "image": "https://images.unsplash.com/photo-1512820790803-83ca734da794?w=1200&q=80"},
    {"name": "Apparel", "description": "Clothing and accessories",
     "image": "https://images.unsplash.com/photo-1520975698510-330c7a5d3f48?w=1200&q=80"},
    {"name": "Home & Kitchen", "description": "Home essentials and kitchenware",
     "image": "https://images.unsplash.com/photo-1507089947368-19c1da9775ae?w=1200&q=80"},
]

DEMO_PRODUCTS: List[dict] = [
    {"name": "Laptop Pro 15", "description": "High performance laptop for professionals and gamers",
     "price": 1499, "original_price": 1699, "category": "Electronics", "stock_quantity": 12, "tags": ["new"],
     "image": "https://images.unsplash.com/photo-1517336714731-489689fd1ca8?w=1200&q=80"},
    {"name": "Smartphone X", "description": "Flagship smartphone with excellent camera",
     "price": 999, "original_price": 1099, "category": "Electronics", "stock_quantity": 30,
     "image": "https://images.unsplash.com/photo-1511707171634-5f897ff02aa9?w=1200&q=80"},
    {"name": "Wireless Headphones", "description": "Noise cancelling wireless over-ear headphones",
     "price": 199, "category": "Electronics", "stock_quantity": 60, "tags": ["sale"],
     "image": "https://images.unsplash.com/photo-1511367461989-f85a21fda167?w=1200&q=80"},
    {"name": "The Great Gatsby", "description": "Classic novel by F. Scott Fitzgerald",
     "price": 12.99, "category": "Books", "stock_quantity": 120,
     "image": "https://images.unsplash.com/photo-1524995997946-a1c2e315a42f?w=1200&q=80"},
    {"name": "Sapiens", "description": "A brief history of humankind",
     "price": 18.5, "category": "Books", "stock_quantity": 75, "tags": ["new"],
     "image": "https://images.unsplash.com/photo-1519681393784-d120267933ba?w=1200&q=80"},
    {"name": "Classic T-Shirt", "description": "Comfortable cotton t-shirt",
     "price": 19.99, "category": "Apparel", "stock_quantity": 200,
     "image": "https://images.unsplash.com/photo-1514996937319-344454492b37?w=1200&q=80"},
    {"name": "Denim Jeans", "description": "Stylish and durable denim jeans",
     "price": 49.99, "category": "Apparel", "stock_quantity": 0,
     "image": "https://images.unsplash.com/photo-1541099649105-f69ad21f3246?w=1200&q=80"},
    {"name": "Non-Stick Frying Pan", "description": "12-inch non-stick frying pan for everyday cooking",
     "price": 34.99, "category": "Home & Kitchen", "stock_quantity": 40,
     "image": "https://images.unsplash.com/photo-1498654896293-37aacf113fd9?w=1200&q=80"},
]


def seed_demo_data():
    if col("product").count_documents({}) > 0:
        return 0
    category_ids = {}
    for order, cat in enumerate(DEMO_CATEGORIES):
        existing = col("category").find_one({"name": cat["name"]})
        if existing:
            category_ids[cat["name"]] = str(existing["_id"])
        else:
            category_ids[cat["name"]] = create_document("category", CategorySchema(order=order, **cat))
    for prod in DEMO_PRODUCTS:
        data = {**prod, "category": category_ids[prod["category"]]}
        data["out_of_stock"] = data["stock_quantity"] <= 0
        create_document("product", ProductSchema(**data))
    logger.info("demo_catalog_seeded", categories=len(category_ids), products=len(DEMO_PRODUCTS))
    return len(DEMO_PRODUCTS)


def seed_admin_user():
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password or col("user").find_one({"email": email.lower()}):
        return None
    admin = UserSchema(
        name="Admin User",
        email=email.lower(),
        phone=os.getenv("ADMIN_PHONE", "0000000000"),
        password_hash=pwd_context.hash(password),
        role="admin",
        is_verified=True,
    )
    return create_document("user", admin)


@app.on_event("startup")
def seed_on_startup():
    if db is None:
        logger.warning("database_not_configured")
        return
    try:
        seed_admin_user()
        if os.getenv("SEED_DEMO_DATA", "1") == "1":
            seed_demo_data()
    except PyMongoError as e:
        logger.error("seeding_failed", error=str(e))


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
