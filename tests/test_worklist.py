"""
Tests for the worklist
"""

from datetime import datetime, timezone

import pytest

from labdesk.api.schemas import OrderCreate
from labdesk.core.exceptions import ApiException, NotFoundException, WorkflowException
from labdesk.models import Order, OrderStatus, Study
from labdesk.services.worklist import ALL, Worklist, WorklistAction, available_actions, filter_orders
from tests.conftest import generate_order_data


async def place_order(client, patient, *protocols):
    return await client.create_order(OrderCreate(
        patient_id=patient.id,
        studies=[Study.from_protocol(protocol) for protocol in protocols],
        scheduled_at=datetime.now(timezone.utc),
    ))


@pytest.fixture
async def worklist(client, patient, hemo_protocol):
    await place_order(client, patient, hemo_protocol)
    worklist = Worklist(client)
    await worklist.refresh()
    return worklist


class TestFiltering:
    """Test status filtering"""

    def test_filter_is_a_projection(self):
        orders = [
            Order.model_validate(generate_order_data(_id="a", status="pending")),
            Order.model_validate(generate_order_data(_id="b", status="in-process")),
            Order.model_validate(generate_order_data(_id="c", status="completed")),
        ]
        assert [o.id for o in filter_orders(orders, ALL)] == ["a", "b", "c"]
        assert [o.id for o in filter_orders(orders, None)] == ["a", "b", "c"]
        assert [o.id for o in filter_orders(orders, "in-process")] == ["b"]
        assert [o.id for o in filter_orders(orders, OrderStatus.COMPLETED)] == ["c"]
        assert len(orders) == 3

    @pytest.mark.asyncio
    async def test_visible_orders_follow_filter(self, worklist):
        worklist.set_filter(OrderStatus.COMPLETED)
        assert worklist.visible_orders == []
        worklist.set_filter("pending")
        assert len(worklist.visible_orders) == 1
        worklist.set_filter(ALL)
        assert len(worklist.visible_orders) == 1
        assert worklist.count(OrderStatus.PENDING) == 1


class TestActions:
    """Test worklist actions and transitions"""

    @pytest.mark.parametrize("status, expected", [
        ("pending", [WorklistAction.START, WorklistAction.TOGGLE_SAMPLE, WorklistAction.ENTER_RESULTS]),
        ("in-process", [WorklistAction.TOGGLE_SAMPLE, WorklistAction.ENTER_RESULTS]),
        ("completed", [WorklistAction.VIEW_REPORT]),
    ])
    def test_actions_by_status(self, status, expected):
        assert available_actions(Order.model_validate(generate_order_data(status=status))) == expected

    @pytest.mark.asyncio
    async def test_start_moves_to_in_process(self, worklist, backend):
        order_id = worklist.orders[0].id
        await worklist.start(order_id)
        assert worklist.get(order_id).status == OrderStatus.IN_PROCESS
        assert backend.orders[order_id]["status"] == "in-process"
        assert backend.requests_to("GET", "/api/orders") == 2

    @pytest.mark.asyncio
    async def test_start_twice_is_rejected(self, worklist, backend):
        order_id = worklist.orders[0].id
        await worklist.start(order_id)
        with pytest.raises(WorkflowException):
            await worklist.start(order_id)
        assert backend.requests_to("PUT", f"/api/orders/{order_id}") == 1

    @pytest.mark.asyncio
    async def test_toggle_sample(self, worklist):
        order_id = worklist.orders[0].id
        await worklist.toggle_sample(order_id)
        assert worklist.get(order_id).sample_taken
        await worklist.toggle_sample(order_id)
        assert not worklist.get(order_id).sample_taken

    @pytest.mark.asyncio
    async def test_failed_update_leaves_list_unchanged(self, worklist, backend):
        order_id = worklist.orders[0].id
        backend.fail_order_updates = True
        with pytest.raises(ApiException) as exc_info:
            await worklist.start(order_id)
        assert exc_info.value.message == "Order could not be updated"
        assert worklist.get(order_id).status == OrderStatus.PENDING
        assert backend.orders[order_id]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_list_is_refetched_after_mutation(self, worklist, client, patient, hemo_protocol):
        await place_order(client, patient, hemo_protocol)
        assert len(worklist.orders) == 1
        await worklist.toggle_sample(worklist.orders[0].id)
        assert len(worklist.orders) == 2

    @pytest.mark.asyncio
    async def test_unknown_order(self, worklist):
        with pytest.raises(NotFoundException):
            await worklist.start("missing")

    @pytest.mark.asyncio
    async def test_completed_order_cannot_open_results(self, worklist, backend):
        order_id = worklist.orders[0].id
        backend.orders[order_id]["status"] = "completed"
        await worklist.refresh()
        assert worklist.actions_for(order_id) == [WorklistAction.VIEW_REPORT]
        with pytest.raises(WorkflowException):
            await worklist.open_results(order_id)
