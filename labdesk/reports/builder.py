"""
Report model shared by the screen view and the PDF export

Both renderers read the same rows, so field filtering and out-of-range
flagging are decided once, here.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ..core.exceptions import ReportException
from ..models import Order, Protocol, Result, ResultFlag
from ..models.protocol import EMPTY_PLACEHOLDER

COLUMNS = ("Parameter", "Value", "Reference Range", "")


@dataclass
class ReportRow:
    label: str
    value: str
    reference: str
    flag: ResultFlag = ResultFlag.NORMAL

    @property
    def out_of_range(self) -> bool:
        return self.flag is not ResultFlag.NORMAL

    def cells(self) -> List[str]:
        return [self.label, self.value, self.reference, self.flag.value]


@dataclass
class ReportSection:
    title: str
    rows: List[ReportRow] = field(default_factory=list)
    observations: Optional[str] = None


@dataclass
class Report:
    patient_name: str
    dni: str
    date: str
    insurer: str
    sections: List[ReportSection] = field(default_factory=list)

    @property
    def has_out_of_range(self) -> bool:
        return any(row.out_of_range for section in self.sections for row in section.rows)


def build_section(protocol: Protocol, result: Result) -> ReportSection:
    rows = []
    for protocol_field in protocol.table_fields():
        value = result.values.get(protocol_field.key)
        rows.append(ReportRow(
            label=protocol_field.label,
            value=protocol_field.display_value(value),
            reference=protocol_field.reference_text,
            flag=protocol_field.flag(value),
        ))
    return ReportSection(title=protocol.title, rows=rows, observations=result.observations)


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return EMPTY_PLACEHOLDER
    if value.tzinfo is not None:
        value = value.astimezone()
    return value.strftime("%d/%m/%Y")


def build_report(
    order: Order,
    results: List[Result],
    protocols: Optional[Dict[str, Protocol]] = None,
) -> Report:
    """Assemble the report for an order from its stored results

    Results normally carry their populated protocol; `protocols` resolves the
    ones that only carry an id. Results whose protocol cannot be resolved are
    left out.
    """
    if order.patient is None:
        raise ReportException(f"Order {order.id} has no patient details")
    protocols = protocols or {}

    sections = []
    for result in results:
        protocol = result.protocol or protocols.get(result.protocol_id)
        if protocol is None:
            continue
        sections.append(build_section(protocol, result))

    return Report(
        patient_name=order.patient.full_name,
        dni=order.patient.dni,
        date=format_date(order.scheduled_at),
        insurer=order.insurer or "N/A",
        sections=sections,
    )


async def load_report(client, order_id: str) -> Report:
    """Fetch the order and its results, then build the report"""
    order, results = await asyncio.gather(
        client.get_order(order_id),
        client.get_results(order_id=order_id),
    )
    protocols = {}
    if any(result.protocol is None for result in results):
        protocols = {protocol.id: protocol for protocol in await client.get_protocols()}
    return build_report(order, results, protocols)
