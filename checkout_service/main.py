# checkout_service/main.py
from contextlib import asynccontextmanager
from typing import Annotated, AsyncGenerator, Dict, List

import jwt
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from checkout_service.checkout import CheckoutOrchestrator
from checkout_service.config import ALGORITHM, CORS_ORIGINS, SECRET_KEY
from checkout_service.db.database import get_db
from checkout_service.db.functions import SqlOrderStore, SqlProductStore, SqlProfileService
from checkout_service.db.init_db import init_db
from checkout_service.db.schemas import Actor, Order, OrderWithItems, Role
from checkout_service.errors import (
    AuthorizationError,
    InvalidTransitionError,
    MarketplaceError,
    OrderNotFoundError,
    PartialCheckoutFailure,
    TransientStoreError,
    ValidationError,
)
from checkout_service.lifecycle import OrderLifecycleManager
from checkout_service.utils.logging import configure_logging

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def verify_token(token: str = Depends(oauth2_scheme)) -> Actor:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("id")
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")
    return Actor(user_id=str(user_id), role=role)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    configure_logging()
    await init_db()
    yield


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_products(db: AsyncSession = Depends(get_db)):
    return SqlProductStore(db)


def get_orders(db: AsyncSession = Depends(get_db)):
    return SqlOrderStore(db)


def get_profiles(db: AsyncSession = Depends(get_db)):
    return SqlProfileService(db)


class CheckoutRequest(BaseModel):
    cart: Dict[str, Annotated[int, Field(gt=0)]]
    delivery_address: str


class CheckoutResponse(BaseModel):
    order_ids: List[str]


class StatusUpdate(BaseModel):
    status: str


def raise_for_error(error: MarketplaceError):
    if isinstance(error, PartialCheckoutFailure):
        raise HTTPException(status_code=502, detail={
            "message": str(error),
            "succeeded_vendor_ids": error.succeeded_vendor_ids,
            "failed_vendor_ids": error.failed_vendor_ids,
            "order_ids": error.order_ids,
        })
    if isinstance(error, InvalidTransitionError):
        raise HTTPException(status_code=409, detail=str(error))
    if isinstance(error, ValidationError):
        raise HTTPException(status_code=400, detail=str(error))
    if isinstance(error, AuthorizationError):
        raise HTTPException(status_code=403, detail=str(error))
    if isinstance(error, OrderNotFoundError):
        raise HTTPException(status_code=404, detail=str(error))
    if isinstance(error, TransientStoreError):
        raise HTTPException(status_code=503, detail=str(error))
    raise HTTPException(status_code=500, detail=str(error))


@app.post("/checkout", response_model=CheckoutResponse)
async def checkout(
    request: CheckoutRequest,
    actor: Actor = Depends(verify_token),
    products=Depends(get_products),
    orders=Depends(get_orders),
    profiles=Depends(get_profiles),
):
    orchestrator = CheckoutOrchestrator(products, orders, profiles)
    result = await orchestrator.checkout(actor.user_id, request.cart, request.delivery_address)
    if not result.ok:
        raise_for_error(result.error)
    return {"order_ids": result.order_ids}


@app.get("/orders", response_model=List[Order])
async def list_orders(actor: Actor = Depends(verify_token), orders=Depends(get_orders)):
    result = await OrderLifecycleManager(orders).orders_for(actor)
    if not result.ok:
        raise_for_error(result.error)
    return result.value


@app.get("/orders/{order_id}", response_model=OrderWithItems)
async def get_order(order_id: str, actor: Actor = Depends(verify_token), orders=Depends(get_orders)):
    result = await OrderLifecycleManager(orders).order_details(actor, order_id)
    if not result.ok:
        raise_for_error(result.error)
    return result.value


@app.post("/orders/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: str,
    update: StatusUpdate,
    actor: Actor = Depends(verify_token),
    orders=Depends(get_orders),
):
    result = await OrderLifecycleManager(orders).transition(actor, order_id, update.status)
    if not result.ok:
        raise_for_error(result.error)
    return result.value


@app.get("/")
async def health_check():
    """Health check endpoint."""
    return {"status": "checkout_service running"}
