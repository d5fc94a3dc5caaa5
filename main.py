from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os

from core.config import (
    logger,
    FRONTEND_URL,
    CART_NURTURE_INTERVAL_SEC,
    CART_REMINDER1_AFTER_SEC,
    CART_REMINDER2_AFTER_SEC,
    CART_REMINDER3_AFTER_SEC,
    RUN_CART_NURTURE,
)
from core.database import SessionLocal, init_db
from utils.cart_nurture import CartNurtureScheduler
from utils.cart_snapshots import CartSnapshotStore
from utils.emailing import SmtpMailer
from utils.reminder_policy import ReminderThresholds

# Routers
from routers import customers, orders, abandoned_cart

app = FastAPI(title="Storefront API")

# ---- CORS setup ----
_default_origins = ",".join([
    FRONTEND_URL,
    "http://localhost:5500",
    "http://127.0.0.1:5500",
])
_origins_env = os.getenv("ALLOWED_ORIGINS") or os.getenv("CORS_ORIGINS") or _default_origins
ALLOWED_ORIGINS = [o.strip() for o in _origins_env.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Security headers ---
@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("X-Frame-Options", "DENY")
    return response


app.include_router(customers.router)
app.include_router(orders.router)
app.include_router(abandoned_cart.router)


def build_cart_scheduler() -> CartNurtureScheduler:
    return CartNurtureScheduler(
        store=CartSnapshotStore(SessionLocal),
        mailer=SmtpMailer(),
        interval_seconds=CART_NURTURE_INTERVAL_SEC,
        thresholds=ReminderThresholds.from_seconds(
            CART_REMINDER1_AFTER_SEC,
            CART_REMINDER2_AFTER_SEC,
            CART_REMINDER3_AFTER_SEC,
        ),
        base_url=FRONTEND_URL,
    )


app.state.cart_scheduler = build_cart_scheduler()


@app.on_event("startup")
async def _init_schema():
    try:
        init_db()
    except Exception as _ex:
        logger.warning(f"init_db failed: {_ex}")


@app.on_event("startup")
async def _start_cart_scheduler():
    if RUN_CART_NURTURE:
        app.state.cart_scheduler.start()


@app.on_event("shutdown")
async def _stop_cart_scheduler():
    await app.state.cart_scheduler.stop()


@app.get("/health")
async def health():
    return {"ok": True, "cart_nurture_running": app.state.cart_scheduler.running}
