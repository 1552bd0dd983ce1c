"""Aggregated figures for the restaurant manager dashboard and the admin dashboard."""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.models import Order, OrderItem, OrderStatus, Product, Restaurant, User
from marketplace.models.order import OPEN_STATUSES
from marketplace.roles import Role

RECENT_ORDERS = 10
TOP_PRODUCTS = 6


async def _count(session: AsyncSession, query) -> int:
    result = await session.execute(query)
    return int(result.scalar_one() or 0)


def _recent_order(order: Order) -> dict:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "customerName": order.customer_name,
        "total": order.total,
        "status": order.status.value,
        "createdAt": order.created_at.isoformat(),
    }


async def restaurant_dashboard(session: AsyncSession, restaurant: Restaurant) -> dict:
    """Order counts, revenue, recent orders and best sellers for one restaurant."""
    rid = restaurant.id
    result = await session.execute(
        select(Order)
        .where(Order.restaurant_id == rid)
        .options(selectinload(Order.items).selectinload(OrderItem.product))
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    orders = list(result.scalars().all())
    total_products = await _count(
        session,
        select(func.count(Product.id)).where(Product.restaurant_id == rid, Product.active.is_(True)),
    )

    sales: dict[int, dict] = {}
    for order in orders:
        for item in order.items:
            if item.product is None:
                continue
            entry = sales.setdefault(item.product.id, {
                "id": item.product.id,
                "name": item.product.name,
                "image": item.product.image,
                "price": item.product.price,
                "totalSold": 0,
                "revenue": 0.0,
            })
            entry["totalSold"] += item.quantity
            entry["revenue"] += item.price * item.quantity
    top = sorted(sales.values(), key=lambda s: s["totalSold"], reverse=True)[:TOP_PRODUCTS]

    return {
        "totalOrders": len(orders),
        "totalRevenue": round(sum(o.total for o in orders), 2),
        "totalProducts": total_products,
        "averageRating": restaurant.rating,
        "pendingOrders": sum(1 for o in orders if o.status in OPEN_STATUSES),
        "completedOrders": sum(1 for o in orders if o.status == OrderStatus.DELIVERED),
        "cancelledOrders": sum(1 for o in orders if o.status == OrderStatus.CANCELLED),
        "recentOrders": [_recent_order(o) for o in orders[:RECENT_ORDERS]],
        "topSellingProducts": top,
    }


async def admin_stats(session: AsyncSession) -> dict:
    """Platform-wide counts for the admin dashboard."""
    total_restaurants = await _count(session, select(func.count(Restaurant.id)))
    active_restaurants = await _count(
        session, select(func.count(Restaurant.id)).where(Restaurant.is_active.is_(True))
    )

    by_role = {role: 0 for role in Role}
    rows = await session.execute(select(User.role, func.count(User.id)).group_by(User.role))
    for role, count in rows.all():
        by_role[role] = count

    by_status = {status: 0 for status in OrderStatus}
    rows = await session.execute(select(Order.status, func.count(Order.id)).group_by(Order.status))
    for status, count in rows.all():
        by_status[status] = count
    total_orders = sum(by_status.values())

    revenue = await session.execute(select(func.coalesce(func.sum(Order.total), 0.0)))
    total_revenue = float(revenue.scalar_one())

    recent = await session.execute(
        select(Order)
        .options(selectinload(Order.restaurant))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(RECENT_ORDERS)
    )
    activity = [
        {
            "id": o.id,
            "type": "order",
            "description": f"New order from {o.customer_name} at {o.restaurant.name}",
            "amount": o.total,
            "time": o.created_at.isoformat(),
        }
        for o in recent.scalars().all()
    ]

    return {
        "restaurants": {
            "total": total_restaurants,
            "active": active_restaurants,
            "inactive": total_restaurants - active_restaurants,
        },
        "users": {
            "total": sum(by_role.values()),
            "admins": by_role[Role.ADMIN],
            "restaurateurs": by_role[Role.RESTAURATOR],
            "customers": by_role[Role.CUSTOMER],
        },
        "products": {"total": await _count(session, select(func.count(Product.id)))},
        "orders": {
            "total": total_orders,
            "pending": sum(by_status[s] for s in OPEN_STATUSES),
            "completed": by_status[OrderStatus.DELIVERED],
            "cancelled": by_status[OrderStatus.CANCELLED],
        },
        "revenue": {
            "total": round(total_revenue, 2),
            "averageOrderValue": round(total_revenue / total_orders, 2) if total_orders else 0,
        },
        "activity": activity,
    }
