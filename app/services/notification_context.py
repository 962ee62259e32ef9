"""
Template data builders for order and home-visit notifications
"""

from typing import Any, Optional

from app.models.home_visit import HomeVisit
from app.models.order import Order


def order_links(order: Order, base_url: str) -> dict[str, str]:
    return {
        "trackingUrl": f"{base_url}/orders/{order.id}",
        "reportUrl": f"{base_url}/orders/{order.id}/reports",
        "ratingUrl": f"{base_url}/orders/{order.id}/feedback",
    }


def order_context(order: Order, base_url: str, support_phone: str) -> dict[str, Any]:
    """Fresh template data for an order event, built from the order's current state"""
    names = [item.test.name for item in order.items if item.test is not None]
    report_times = [item.test.report_time for item in order.items if item.test is not None]
    user = order.user

    data = {
        "customerName": (user.full_name if user else None) or "Customer",
        "orderNumber": order.order_number,
        "amount": f"{order.final_amount:.2f}",
        "testsCount": str(len(order.items)),
        "testsList": "".join(f"<li>{name}</li>" for name in names),
        "reportTime": report_times[0] if len(set(report_times)) == 1 else "24-48 hours",
        "supportPhone": support_phone,
        "status": order.status,
    }
    data.update(order_links(order, base_url))

    if order.home_visit is not None:
        data.update(visit_context(order.home_visit))
    return data


def visit_context(visit: HomeVisit, extra: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    agent = visit.agent
    data = {
        "date": visit.scheduled_date.strftime("%d/%m/%Y"),
        "time": visit.scheduled_time,
        "address": visit.address,
        "agentName": agent.full_name if agent else "Agent",
        "agentPhone": (agent.phone_number if agent else None) or "",
    }
    if extra:
        data.update(extra)
    return data
