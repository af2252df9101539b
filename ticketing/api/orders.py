from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ticketing.dependencies import get_current_user
from ticketing.models import User, get_db
from ticketing.schemas.checkout import ErrorResponse
from ticketing.schemas.orders import OrderResponse
from ticketing.services import order_store

router = APIRouter()


@router.get(
    "/me",
    response_model=list[OrderResponse],
    summary="List my orders",
)
def my_orders(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Returns the current user's orders, newest first."""
    return order_store.list_orders_for_user(db, current_user)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
    responses={404: {"model": ErrorResponse}},
)
def get_order(
    order_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Returns one of the current user's orders, including status and confirmed_at."""
    return order_store.get_user_order(db, current_user, order_id)
