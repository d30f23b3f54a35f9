"""
On-screen report rendering with rich
"""

from rich.console import Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..core.config import settings
from .builder import COLUMNS, Report, ReportSection

OUT_OF_RANGE_STYLE = "bold red"


def section_table(section: ReportSection) -> Table:
    table = Table(title=escape(section.title), title_justify="left", expand=True)
    table.add_column(COLUMNS[0], style="white")
    table.add_column(COLUMNS[1], style="cyan")
    table.add_column(COLUMNS[2], style="green")
    table.add_column(COLUMNS[3], width=2)

    for row in section.rows:
        table.add_row(*(Text(cell) for cell in row.cells()), style=OUT_OF_RANGE_STYLE if row.out_of_range else None)
    return table


def render_report(report: Report) -> Group:
    """Renderable for the report preview"""
    header = Text(justify="center")
    header.append(f"{settings.lab_name}\n", style="bold blue")
    header.append(settings.report_title, style="bold")

    patient = Table.grid(padding=(0, 2))
    patient.add_column(style="bold")
    patient.add_column()
    patient.add_row("Patient:", Text(report.patient_name))
    patient.add_row("DNI:", Text(report.dni))
    patient.add_row("Date:", Text(report.date))
    patient.add_row("Insurer:", Text(report.insurer))

    parts = [Panel(header, border_style="blue"), Panel(patient, title="Patient Information")]
    for section in report.sections:
        parts.append(section_table(section))
        if section.observations:
            parts.append(Text.assemble(("Observations: ", "bold"), section.observations))
    if not report.sections:
        parts.append(Text("No results recorded for this order.", style="yellow"))
    return Group(*parts)
