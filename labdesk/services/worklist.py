"""
Worklist - orders in flight, sample collection and result entry

Every mutation is followed by a full re-read of the order list; the local list
is never patched by hand.
"""

import logging
from enum import Enum
from typing import List, Optional, Union

from ..api.client import LabApiClient
from ..api.schemas import OrderUpdate
from ..core.exceptions import NotFoundException, WorkflowException
from ..models import Order, OrderStatus
from .result_entry import ResultEntryForm

logger = logging.getLogger(__name__)

ALL = "all"


class WorklistAction(str, Enum):
    """Operator actions offered for an order"""
    START = "start"
    TOGGLE_SAMPLE = "toggle_sample"
    ENTER_RESULTS = "enter_results"
    VIEW_REPORT = "view_report"


def available_actions(order: Order) -> List[WorklistAction]:
    """Actions allowed by the order's current status"""
    actions = []
    if order.can_be_started():
        actions.append(WorklistAction.START)
    if order.can_toggle_sample():
        actions.append(WorklistAction.TOGGLE_SAMPLE)
    if order.can_record_results():
        actions.append(WorklistAction.ENTER_RESULTS)
    if order.is_completed:
        actions.append(WorklistAction.VIEW_REPORT)
    return actions


def filter_orders(orders: List[Order], status: Union[OrderStatus, str, None] = ALL) -> List[Order]:
    """Pure status projection; `all` or None keeps every order"""
    if status is None or status == ALL:
        return list(orders)
    status = OrderStatus(status)
    return [order for order in orders if order.status == status]


class Worklist:
    """Order list as last read from the backend"""

    def __init__(self, client: LabApiClient):
        self.client = client
        self.orders: List[Order] = []
        self.status_filter: Union[OrderStatus, str] = ALL

    async def refresh(self) -> List[Order]:
        self.orders = await self.client.get_orders()
        logger.debug(f"Worklist loaded {len(self.orders)} orders")
        return self.orders

    def set_filter(self, status: Union[OrderStatus, str, None]):
        self.status_filter = ALL if status in (None, ALL) else OrderStatus(status)

    @property
    def visible_orders(self) -> List[Order]:
        return filter_orders(self.orders, self.status_filter)

    def get(self, order_id: str) -> Order:
        for order in self.orders:
            if order.id == order_id:
                return order
        raise NotFoundException(f"Order {order_id} not found")

    def actions_for(self, order_id: str) -> List[WorklistAction]:
        return available_actions(self.get(order_id))

    def _require(self, order: Order, action: WorklistAction):
        if action not in available_actions(order):
            raise WorkflowException(
                f"Cannot {action.value.replace('_', ' ')} order {order.id} "
                f"while it is {order.status.value}"
            )

    async def start(self, order_id: str):
        """pending -> in-process"""
        order = self.get(order_id)
        self._require(order, WorklistAction.START)
        await self.client.update_order(order_id, OrderUpdate(status=OrderStatus.IN_PROCESS))
        logger.info(f"Order {order_id} started")
        await self.refresh()

    async def toggle_sample(self, order_id: str):
        order = self.get(order_id)
        self._require(order, WorklistAction.TOGGLE_SAMPLE)
        taken = not order.sample_taken
        await self.client.update_order(order_id, OrderUpdate(sample_taken=taken))
        logger.info(f"Order {order_id} sample taken set to {taken}")
        await self.refresh()

    async def open_results(self, order_id: str) -> ResultEntryForm:
        """Result-entry form for an order that is not completed yet"""
        order = self.get(order_id)
        self._require(order, WorklistAction.ENTER_RESULTS)
        form = ResultEntryForm(self.client, order)
        await form.load_protocols()
        return form

    async def record_results(self, form: ResultEntryForm):
        """Submit the form; the list is re-read once everything is stored"""
        results = await form.submit()
        await self.refresh()
        return results

    def count(self, status: Optional[OrderStatus] = None) -> int:
        return len(filter_orders(self.orders, status or ALL))
