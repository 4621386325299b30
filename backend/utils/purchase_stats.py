from datetime import datetime

from bson import ObjectId
from pymongo import DESCENDING

from utils.money import format_money, round_money


def _empty_overview() -> dict:
    return {
        "totalPurchases": 0,
        "totalSpent": 0.0,
        "totalItems": 0,
        "averageOrderValue": 0.0,
        "formattedTotalSpent": format_money(0),
        "formattedAvgOrderValue": format_money(0),
    }


def format_overview(row: dict | None) -> dict:
    if not row:
        return _empty_overview()

    total_spent = round_money(row.get("totalSpent") or 0)
    avg_value = round_money(row.get("avgOrderValue") or 0)
    return {
        "totalPurchases": row.get("totalPurchases", 0),
        "totalSpent": total_spent,
        "totalItems": row.get("totalItems", 0),
        "averageOrderValue": avg_value,
        "formattedTotalSpent": format_money(total_spent),
        "formattedAvgOrderValue": format_money(avg_value),
    }


async def get_purchase_overview(db, user_id: ObjectId) -> dict:
    pipeline = [
        {"$match": {"user_id": user_id}},
        {"$group": {
            "_id": None,
            "totalPurchases": {"$sum": 1},
            "totalSpent": {"$sum": "$total"},
            "totalItems": {"$sum": "$total_items"},
            "avgOrderValue": {"$avg": "$total"},
        }},
    ]

    rows = await db.purchases.aggregate(pipeline).to_list(1)
    return format_overview(rows[0] if rows else None)


async def get_monthly_spending(db, user_id: ObjectId, year: int | None = None) -> list:
    year = year or datetime.utcnow().year
    pipeline = [
        {"$match": {
            "user_id": user_id,
            "purchased_at": {
                "$gte": datetime(year, 1, 1),
                "$lt": datetime(year + 1, 1, 1),
            },
        }},
        {"$group": {
            "_id": {"$month": "$purchased_at"},
            "totalSpent": {"$sum": "$total"},
            "purchaseCount": {"$sum": 1},
        }},
        {"$sort": {"_id": 1}},
    ]

    rows = await db.purchases.aggregate(pipeline).to_list(None)
    months = []
    for row in rows:
        spent = round_money(row["totalSpent"])
        months.append({
            "month": row["_id"],
            "totalSpent": spent,
            "formattedTotalSpent": format_money(spent),
            "purchaseCount": row["purchaseCount"],
        })
    return months


async def get_recent_purchases(db, user_id: ObjectId, limit: int) -> list:
    cursor = (
        db.purchases
        .find({"user_id": user_id})
        .sort("purchased_at", DESCENDING)
        .limit(limit)
    )
    return [p async for p in cursor]
