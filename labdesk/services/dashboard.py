"""
Dashboard statistics
"""

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..api.client import LabApiClient
from ..models import OrderStatus


@dataclass
class DashboardStats:
    total_patients: int = 0
    today_orders: int = 0
    pending_orders: int = 0


async def load_stats(client: LabApiClient, today: Optional[date] = None) -> DashboardStats:
    today = today or date.today()
    patients, orders = await asyncio.gather(client.get_patients(), client.get_orders())
    return DashboardStats(
        total_patients=len(patients),
        today_orders=sum(1 for order in orders if order.is_scheduled_on(today)),
        pending_orders=sum(1 for order in orders if order.status == OrderStatus.PENDING),
    )
