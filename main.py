import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Literal, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import catalog
from auth import (
    REFRESH,
    create_access_token,
    create_refresh_token,
    current_user,
    decode_token,
    find_user,
    hash_password,
    public_user,
    token_claims,
    verify_admin,
    verify_password,
    verify_user,
)
from config import Settings, get_settings
from database import (
    CART,
    ORDERS,
    PRODUCTS,
    USERS,
    create_document,
    ensure_indexes,
    get_db,
    get_documents,
    parse_object_id,
    serialize_doc,
)
from payments import PaymentGateway, PaymentGatewayError, PaymentsNotConfigured, get_payment_gateway
from schemas import CartItem, Order, Product, ProductUpdate, User

settings = get_settings()

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("drapegear")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("DrapeGear server starting, database %s", settings.database_name)
    ensure_indexes(get_db())
    yield


app = FastAPI(title="DrapeGear API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error responses

@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"success": False, "message": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", message)
    return JSONResponse({"success": False, "message": message}, status_code=400)


@app.exception_handler(PyMongoError)
async def database_error(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse({"success": False, "message": "Internal server error"}, status_code=500)


@app.exception_handler(PaymentGatewayError)
async def payment_error(request: Request, exc: PaymentGatewayError):
    if isinstance(exc, PaymentsNotConfigured):
        return JSONResponse({"success": False, "message": "Payments are not configured"}, status_code=503)
    return JSONResponse({"success": False, "message": "Payment gateway error"}, status_code=502)


def object_id_or_400(value: str, what: str = "id"):
    oid = parse_object_id(value)
    if oid is None:
        raise HTTPException(status_code=400, detail=f"Invalid {what}")
    return oid


# Routes
@app.get("/", response_class=PlainTextResponse)
def read_root():
    return "DrapeGear Server is running"


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        response["database_name"] = db.name
        response["collections"] = db.list_collection_names()
        response["database"] = "✅ Available"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Auth models
class RegisterInput(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    role: Literal["admin", "user"] = "user"


class LoginInput(BaseModel):
    email: EmailStr
    password: str


class RefreshInput(BaseModel):
    refresh_token: str


@app.post("/register", status_code=201)
def register(payload: RegisterInput, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    email = payload.email.lower()
    if payload.role == "admin" and not settings.allow_admin_registration:
        raise HTTPException(status_code=403, detail="Admin registration is disabled")
    if db[USERS].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")
    user = User(name=payload.name, email=email, password=hash_password(payload.password), role=payload.role)
    try:
        user_id = create_document(db, USERS, user)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already exists")
    logger.info("Registered user %s", user_id)
    return {"success": True, "message": "User registered successfully", "insertedId": user_id}


@app.post("/login")
def login(payload: LoginInput, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    user = db[USERS].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password", "")):
        logger.warning("Failed login attempt")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    claims = token_claims(user)
    return {
        "success": True,
        "user": public_user(user),
        "access_token": create_access_token(claims, settings),
        "refresh_token": create_refresh_token(claims, settings),
        "token_type": "bearer",
    }


@app.post("/refresh")
def refresh(payload: RefreshInput, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    claims = decode_token(payload.refresh_token, settings.refresh_token_secret, REFRESH)
    user = find_user(db, claims["sub"])
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return {"success": True, "access_token": create_access_token(token_claims(user), settings), "token_type": "bearer"}


@app.get("/me")
def me(user: dict = Depends(current_user)):
    return {"success": True, "user": public_user(user)}


@app.get("/users", dependencies=[Depends(verify_admin)])
def list_users(db: Database = Depends(get_db)):
    users = get_documents(db, USERS)
    for u in users:
        u.pop("password", None)
    return {"success": True, "users": users}


# Products
@app.get("/products")
def list_products(
    page: int = Query(1, ge=1),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    filter: str = Query(catalog.ALL_COLLECTIONS),
    category: Optional[str] = None,
    availability: Optional[str] = None,
    sort: str = "default",
    db: Database = Depends(get_db),
):
    try:
        query = catalog.build_product_filter(filter, category, availability)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    skip, limit = catalog.page_window(page, size)
    key, direction = catalog.sort_order(sort)
    cursor = db[PRODUCTS].find(query).sort(key, direction).skip(skip).limit(limit)
    products = [serialize_doc(d) for d in cursor]
    total = db[PRODUCTS].count_documents(query)
    return {"success": True, "products": products, "total": total}


@app.get("/products/filter-counts")
def product_filter_counts(filter: Optional[str] = None, db: Database = Depends(get_db)):
    categories = db[PRODUCTS].aggregate(catalog.category_counts_pipeline(filter))
    availability = db[PRODUCTS].aggregate(catalog.availability_counts_pipeline(filter))
    return {
        "success": True,
        "categories": [{"category": c["_id"], "count": c["count"]} for c in categories],
        "availability": [{"availability": a["_id"], "count": a["count"]} for a in availability],
    }


@app.get("/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    product = db[PRODUCTS].find_one({"_id": object_id_or_400(product_id, "product id")})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"success": True, "product": serialize_doc(product)}


@app.post("/products", status_code=201, dependencies=[Depends(verify_admin)])
def create_product(data: Product, db: Database = Depends(get_db)):
    doc = data.model_dump()
    doc.pop("_id", None)
    product_id = create_document(db, PRODUCTS, doc)
    return {"success": True, "insertedId": product_id}


@app.patch("/products/{product_id}", dependencies=[Depends(verify_admin)])
def update_product(product_id: str, data: ProductUpdate, db: Database = Depends(get_db)):
    obj_id = object_id_or_400(product_id, "product id")
    update_dict = data.model_dump(exclude_unset=True)
    update_dict.pop("_id", None)
    if not update_dict:
        raise HTTPException(status_code=400, detail="No fields to update")
    res = db[PRODUCTS].update_one({"_id": obj_id}, {"$set": update_dict})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"success": True, "product": serialize_doc(db[PRODUCTS].find_one({"_id": obj_id}))}


@app.delete("/products/{product_id}", dependencies=[Depends(verify_admin)])
def delete_product(product_id: str, db: Database = Depends(get_db)):
    res = db[PRODUCTS].delete_one({"_id": object_id_or_400(product_id, "product id")})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"success": True}


# Wishlist
class WishlistInput(BaseModel):
    ids: List[str]


@app.post("/wishlist")
def wishlist_products(payload: WishlistInput, db: Database = Depends(get_db)):
    ids = [oid for oid in (parse_object_id(i) for i in payload.ids) if oid is not None]
    products = get_documents(db, PRODUCTS, {"_id": {"$in": ids}}) if ids else []
    return {"success": True, "products": products}


# Cart
class QuantityInput(BaseModel):
    quantity: int = Field(..., ge=1)


def user_cart(db: Database, email: str) -> List[Dict[str, Any]]:
    return get_documents(db, CART, {"email": email})


@app.get("/cart")
def get_cart(user: dict = Depends(verify_user), db: Database = Depends(get_db)):
    return {"success": True, "cart": user_cart(db, user["email"])}


@app.post("/cart", status_code=201)
def add_to_cart(item: CartItem, user: dict = Depends(verify_user), db: Database = Depends(get_db)):
    oid = object_id_or_400(item.product_id, "product id")
    if not db[PRODUCTS].find_one({"_id": oid}):
        raise HTTPException(status_code=404, detail="Product not found")
    email = user["email"]
    if db[CART].find_one({"email": email, "productId": item.product_id}):
        raise HTTPException(status_code=400, detail="Product already in cart")
    doc = item.model_dump(by_alias=True)
    doc.pop("_id", None)
    doc["email"] = email
    try:
        create_document(db, CART, doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Product already in cart")
    return {"success": True, "cart": user_cart(db, email)}


@app.patch("/cart/{item_id}")
def update_cart_item(item_id: str, payload: QuantityInput, user: dict = Depends(verify_user), db: Database = Depends(get_db)):
    res = db[CART].update_one(
        {"_id": object_id_or_400(item_id, "cart item id"), "email": user["email"]},
        {"$set": {"quantity": payload.quantity}},
    )
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Cart item not found")
    return {"success": True, "cart": user_cart(db, user["email"])}


@app.delete("/cart/{item_id}")
def remove_cart_item(item_id: str, user: dict = Depends(verify_user), db: Database = Depends(get_db)):
    res = db[CART].delete_one({"_id": object_id_or_400(item_id, "cart item id"), "email": user["email"]})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Cart item not found")
    return {"success": True, "cart": user_cart(db, user["email"])}


@app.delete("/cart")
def clear_cart(user: dict = Depends(verify_user), db: Database = Depends(get_db)):
    res = db[CART].delete_many({"email": user["email"]})
    return {"success": True, "deletedCount": res.deleted_count}


# Orders
@app.post("/orders", status_code=201)
def create_order(payload: Dict[str, Any] = Body(...), user: dict = Depends(verify_user), db: Database = Depends(get_db)):
    payload = dict(payload)
    payload.pop("_id", None)
    payload["user_email"] = user["email"]
    order = Order.model_validate(payload)
    order_id = create_document(db, ORDERS, order.model_dump())
    return {"success": True, "insertedId": order_id}


@app.get("/orders")
def list_orders(user: dict = Depends(current_user), db: Database = Depends(get_db)):
    if user.get("role") == "admin":
        orders = get_documents(db, ORDERS)
    else:
        orders = get_documents(db, ORDERS, {"user_email": user["email"]})
    return {"success": True, "orders": orders}


# Payment
def cart_total(db: Database, email: str) -> float:
    """Sum the caller's cart at current catalog prices."""
    rows = list(db[CART].find({"email": email}))
    ids = [oid for oid in (parse_object_id(r.get("productId", "")) for r in rows) if oid is not None]
    if not ids:
        return 0.0
    products = {str(p["_id"]): p for p in db[PRODUCTS].find({"_id": {"$in": ids}})}
    total = 0.0
    for row in rows:
        product = products.get(row.get("productId"))
        if not product:
            continue
        price = product.get("sale_price")
        if price is None:
            price = product.get("price", 0)
        total += float(price) * int(row.get("quantity", 1))
    return total


@app.post("/create-payment-intent")
def create_payment_intent(
    user: dict = Depends(verify_user),
    db: Database = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    amount = int(round(cart_total(db, user["email"]) * 100))
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Cart is empty")
    client_secret = gateway.create_payment_intent(amount)
    logger.info("Created payment intent of %d for user %s", amount, user["_id"])
    return {"success": True, "client_secret": client_secret, "amount": amount}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
