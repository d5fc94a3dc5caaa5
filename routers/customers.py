"""
Customer accounts router
Registration, login, profile and cart sync for abandoned cart tracking
"""
from typing import Optional, List

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import logger
from core.auth import (
    CUSTOMER_ROLE,
    check_password,
    get_token_claims,
    hash_password,
    sign_customer_token,
)
from core.database import get_db
from models.customer import Customer
from utils.cart_snapshots import CartSnapshotStore, get_cart_store, normalize_email

router = APIRouter(prefix="/api/customers", tags=["customers"])


# ============ Pydantic Models ============

class RegisterPayload(BaseModel):
    email: str
    password: str
    firstName: Optional[str] = ""
    lastName: Optional[str] = ""


class LoginPayload(BaseModel):
    email: str
    password: str


class CartItem(BaseModel):
    id: str
    name: str
    price: float
    quantity: int = Field(1, ge=1)
    sku: str = ""
    image: str = ""


class CartSync(BaseModel):
    items: List[CartItem]


def _customer_out(customer: Customer) -> dict:
    return {
        "id": customer.id,
        "email": customer.email,
        "firstName": customer.first_name,
        "lastName": customer.last_name,
    }


def _require_customer(request: Request):
    """Returns (claims, None) or (None, error response)."""
    claims = get_token_claims(request)
    if not claims:
        return None, JSONResponse({"error": "Authentication required"}, status_code=401)
    if claims.get("role") != CUSTOMER_ROLE:
        return None, JSONResponse({"error": "Customer access required"}, status_code=403)
    return claims, None


# ============ Public Endpoints ============

@router.post("/register")
async def register(data: RegisterPayload, db: Session = Depends(get_db)):
    email = normalize_email(data.email)
    if not email or not data.password:
        return JSONResponse({"error": "Email and password are required"}, status_code=400)
    if len(data.password) < 8:
        return JSONResponse({"error": "Password must be at least 8 characters"}, status_code=400)

    if db.query(Customer).filter(Customer.email == email).first():
        return JSONResponse({"error": "An account with that email already exists"}, status_code=409)

    customer = Customer(
        email=email,
        password_hash=hash_password(data.password),
        first_name=(data.firstName or "").strip(),
        last_name=(data.lastName or "").strip(),
    )
    db.add(customer)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return JSONResponse({"error": "An account with that email already exists"}, status_code=409)
    db.refresh(customer)

    logger.info(f"Customer registered: {email}")
    return JSONResponse(
        {"token": sign_customer_token(customer), "customer": _customer_out(customer)},
        status_code=201,
    )


@router.post("/login")
async def login(data: LoginPayload, db: Session = Depends(get_db)):
    email = normalize_email(data.email)
    if not email or not data.password:
        return JSONResponse({"error": "Email and password are required"}, status_code=400)

    customer = db.query(Customer).filter(Customer.email == email).first()
    if not customer or not check_password(data.password, customer.password_hash):
        return JSONResponse({"error": "Invalid email or password"}, status_code=401)

    return {"token": sign_customer_token(customer), "customer": _customer_out(customer)}


# ============ Protected Endpoints ============

@router.get("/me")
async def me(request: Request, db: Session = Depends(get_db)):
    claims, error = _require_customer(request)
    if error:
        return error
    customer = db.query(Customer).filter(Customer.id == claims.get("sub")).first()
    if not customer:
        return JSONResponse({"error": "Account not found"}, status_code=404)
    return customer.to_dict()


@router.patch("/me/cart")
async def sync_cart(
    request: Request,
    data: CartSync,
    store: CartSnapshotStore = Depends(get_cart_store),
):
    """Client reports its current cart; an empty list clears the snapshot"""
    claims, error = _require_customer(request)
    if error:
        return error

    items = [item.model_dump() for item in data.items]
    if not store.sync_cart(claims.get("sub"), items):
        return JSONResponse({"error": "Account not found"}, status_code=404)
    return {"ok": True}
