from typing import Optional

from fastapi import APIRouter, Body, Depends, status
from pymongo import DESCENDING

from config.constants import RECENT_PURCHASES_LIMIT
from database import get_db
from models.purchase import PurchaseCreate
from utils.checkout import checkout, purchase_summary
from utils.errors import NotFound
from utils.guards import assert_owner, parse_object_id
from utils.pagination import build_pagination, clamp_limit, clamp_page, skip_for
from utils.purchase_stats import (
    get_monthly_spending,
    get_purchase_overview,
    get_recent_purchases,
)
from utils.responses import ok
from utils.security import get_current_user
from utils.serializers import serialize_purchase

router = APIRouter(prefix="/purchases", tags=["Purchases"])


def _recent_item(purchase: dict) -> dict:
    summary = purchase_summary(purchase)
    return {
        "id": summary["purchaseId"],
        "total": summary["total"],
        "formattedTotal": summary["formattedTotal"],
        "totalItems": summary["totalItems"],
        "purchasedAt": summary["purchasedAt"],
        "status": summary["status"],
    }


# ======================================================
# CHECKOUT
# ======================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_purchase(
    data: Optional[PurchaseCreate] = Body(None),
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    notes = data.notes if data else None
    result = await checkout(db, user["_id"], notes)

    return ok(
        "Purchase created successfully",
        {
            "purchase": serialize_purchase(result["purchase"]),
            "summary": result["summary"],
            "removedUnavailableItems": result["removedUnavailableItems"],
        },
    )


# ======================================================
# HISTORY
# ======================================================

@router.get("")
async def list_purchases(
    page: int = 1,
    limit: int = 10,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    page = clamp_page(page)
    limit = clamp_limit(limit)
    query = {"user_id": user["_id"]}

    cursor = (
        db.purchases
        .find(query)
        .sort("purchased_at", DESCENDING)
        .skip(skip_for(page, limit))
        .limit(limit)
    )
    purchases = [serialize_purchase(p) async for p in cursor]
    total = await db.purchases.count_documents(query)

    return ok(
        "Purchase history retrieved successfully",
        {
            "purchases": purchases,
            "pagination": build_pagination(page, limit, total),
            "stats": await get_purchase_overview(db, user["_id"]),
        },
    )


# ======================================================
# STATS (STATIC, MUST BE BEFORE /{purchase_id})
# ======================================================

@router.get("/stats")
async def purchase_stats(
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    recent = await get_recent_purchases(db, user["_id"], RECENT_PURCHASES_LIMIT)

    return ok(
        "Purchase statistics retrieved successfully",
        {
            "overview": await get_purchase_overview(db, user["_id"]),
            "recentPurchases": [_recent_item(p) for p in recent],
            "monthlySpending": await get_monthly_spending(db, user["_id"]),
        },
    )


# ======================================================
# DETAIL
# ======================================================

@router.get("/{purchase_id}")
async def purchase_detail(
    purchase_id: str,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    oid = parse_object_id(purchase_id, "purchase ID")

    purchase = await db.purchases.find_one({"_id": oid})
    if not purchase:
        raise NotFound("Purchase not found")

    assert_owner(purchase, user["_id"], "You can only view your own purchases")

    return ok(
        "Purchase details retrieved successfully",
        {
            "purchase": serialize_purchase(purchase),
            "summary": purchase_summary(purchase),
        },
    )
