"""
Interactive console screens for LabDesk
"""

import logging
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from ..api.client import LabApiClient
from ..core.config import settings
from ..core.exceptions import ApiException, LabDeskException, ValidationException
from ..core.session import SessionContext
from ..models import FieldType, Order, OrderStatus, Patient, Protocol
from ..reports.builder import load_report
from ..reports.pdf import export_pdf
from ..reports.screen import render_report
from ..services.composer import OrderComposer
from ..services.dashboard import load_stats
from ..services.patients import PatientRegistry
from ..services.protocols import ProtocolCatalog, blank_field
from ..services.worklist import ALL, Worklist, WorklistAction
from .controls import prompt_field

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    OrderStatus.PENDING: "yellow",
    OrderStatus.IN_PROCESS: "cyan",
    OrderStatus.COMPLETED: "green",
}


def show_errors(console: Console, error: ValidationException):
    console.print(f"❌ {escape(error.message)}")
    for name, message in error.errors.items():
        console.print(f"   [red]{escape(name)}: {escape(message)}[/red]")


def patients_table(patients: List[Patient], title: str = "Registered Patients") -> Table:
    table = Table(title=title)
    table.add_column("#", style="dim", no_wrap=True)
    table.add_column("DNI", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("DOB", style="green")
    table.add_column("Phone", style="magenta")
    table.add_column("Insurer", style="yellow")

    for index, patient in enumerate(patients, start=1):
        table.add_row(
            str(index),
            escape(patient.dni),
            escape(patient.full_name),
            patient.dob.strftime("%d/%m/%Y") if patient.dob else "N/A",
            escape(patient.phone or "-"),
            escape(patient.insurer or "-"),
        )
    return table


def orders_table(orders: List[Order], title: str = "Worklist", highlight: Optional[str] = None) -> Table:
    """Order rows; the order with id `highlight` is marked"""
    table = Table(title=title)
    table.add_column("#", style="dim", no_wrap=True)
    table.add_column("Patient", style="white")
    table.add_column("Studies", style="cyan")
    table.add_column("Insurer", style="yellow")
    table.add_column("Authorized")
    table.add_column("Sample")
    table.add_column("Status")

    for index, order in enumerate(orders, start=1):
        dni = f" (DNI {order.patient.dni})" if order.patient else ""
        marked = highlight is not None and order.id == highlight
        table.add_row(
            f"▶ {index}" if marked else str(index),
            escape(f"{order.patient_name}{dni}"),
            escape(order.study_names),
            escape(order.insurer or "-"),
            "✅" if order.authorized else "❌",
            "✅" if order.sample_taken else "-",
            Text(order.status.value, style=STATUS_STYLES[order.status]),
            style="bold" if marked else None,
        )
    return table


def protocols_table(protocols: List[Protocol]) -> Table:
    table = Table(title="Study Protocols")
    table.add_column("#", style="dim", no_wrap=True)
    table.add_column("Code", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Fields", style="magenta")
    for index, protocol in enumerate(protocols, start=1):
        count = len(protocol.fields)
        table.add_row(str(index), escape(protocol.code), escape(protocol.name), f"{count} {'field' if count == 1 else 'fields'}")
    return table


def pick(console: Console, items: list, label: str):
    """Choose an item by its row number; empty input cancels"""
    if not items:
        console.print(f"No {label} available.")
        return None
    choice = Prompt.ask(f"Select {label} # (empty to cancel)", console=console, default="", show_default=False)
    if not choice:
        return None
    if not choice.isdigit() or not 1 <= int(choice) <= len(items):
        console.print("❌ Invalid selection.")
        return None
    return items[int(choice) - 1]


class LabConsole:
    """Screens of the console application, gated by the session"""

    def __init__(self, session: SessionContext, client: LabApiClient, console: Optional[Console] = None):
        self.session = session
        self.client = client
        self.console = console or Console()

    async def run_action(self, action, *args) -> bool:
        """Run one operator action, reporting any failure instead of raising"""
        try:
            self.session.require()
            await action(*args)
            return True
        except ValidationException as e:
            show_errors(self.console, e)
        except ApiException as e:
            logger.error(f"{getattr(action, '__name__', action)} failed: {e.message}")
            self.console.print(f"❌ Error: {escape(e.message)}")
            if e.status_code == 401:
                self.session.logout()
                self.console.print("[yellow]Session expired, please log in again.[/yellow]")
        except LabDeskException as e:
            self.console.print(f"❌ {escape(e.message)}")
        except Exception as e:
            logger.exception(f"Unexpected error in {getattr(action, '__name__', action)}")
            self.console.print(f"❌ Unexpected error: {escape(str(e))}")
        return False

    # Login
    async def login_screen(self) -> bool:
        self.console.print(Panel(Text("Laboratory System\nClinical Management", justify="center"),
                                 border_style="blue"))
        username = Prompt.ask("Username", console=self.console)
        password = Prompt.ask("Password", console=self.console, password=True)
        try:
            await self.session.login(self.client, username, password)
        except ApiException as e:
            self.console.print(f"❌ {escape(e.message)}")
            return False
        self.console.print(f"✅ Welcome, {escape(self.session.display_name)}")
        return True

    # Dashboard
    async def dashboard_screen(self):
        stats = await load_stats(self.client)
        table = Table(title="Dashboard")
        table.add_column("Metric", style="cyan")
        table.add_column("Count", style="magenta")
        table.add_row("Total patients", str(stats.total_patients))
        table.add_row("Orders today", str(stats.today_orders))
        table.add_row("Pending orders", str(stats.pending_orders))
        self.console.print(table)

    # Patients
    async def patients_screen(self):
        registry = PatientRegistry(self.client)
        await registry.refresh()
        while True:
            if registry.patients:
                self.console.print(patients_table(registry.patients))
            else:
                self.console.print("No patients registered yet. Add the first one with 'n'.")
            choice = Prompt.ask(escape("[n]ew patient, [d]etail, [b]ack"), console=self.console,
                                choices=["n", "d", "b"], default="b")
            if choice == "b":
                return
            if choice == "n":
                await self.run_action(self.register_patient, registry)
            elif choice == "d":
                patient = pick(self.console, registry.patients, "patient")
                if patient:
                    await self.run_action(self.patient_detail_screen, registry, patient.id)

    async def register_patient(self, registry: PatientRegistry):
        form = {
            "first_name": Prompt.ask("First name *", console=self.console, default=""),
            "last_name": Prompt.ask("Last name *", console=self.console, default=""),
            "dni": Prompt.ask("DNI *", console=self.console, default=""),
            "dob": Prompt.ask("Date of birth (YYYY-MM-DD) *", console=self.console, default=""),
            "phone": Prompt.ask("Phone", console=self.console, default=""),
            "insurer": Prompt.ask("Insurer", console=self.console, default=""),
        }
        patient = await registry.register(form)
        self.console.print(f"✅ Registered patient: {escape(patient.full_name)}")

    async def patient_detail_screen(self, registry: PatientRegistry, patient_id: str):
        detail = await registry.detail(patient_id)
        patient = detail.patient
        info = Table.grid(padding=(0, 2))
        info.add_column(style="bold")
        info.add_column()
        info.add_row("DNI:", escape(patient.dni))
        info.add_row("Date of birth:", patient.dob.strftime("%d/%m/%Y") if patient.dob else "N/A")
        info.add_row("Phone:", escape(patient.phone or "-"))
        info.add_row("Insurer:", escape(patient.insurer or "-"))
        self.console.print(Panel(info, title=escape(patient.full_name)))
        if detail.orders:
            self.console.print(orders_table(detail.orders, title="Order history"))
        else:
            self.console.print("No orders for this patient.")
        if Confirm.ask("Create a new order for this patient?", console=self.console, default=False):
            await self.new_order_screen(patient_id)

    # Orders
    async def new_order_screen(self, patient_id: Optional[str] = None):
        composer = OrderComposer(self.client)
        await composer.load(patient_id)

        if composer.patient is None:
            query = Prompt.ask("Search patient by DNI or name", console=self.console, default="")
            matches = composer.search(query)
            self.console.print(patients_table(matches, title="Matching patients"))
            patient = pick(self.console, matches, "patient")
            if patient:
                composer.select_patient(patient.id)
        if composer.patient:
            self.console.print(f"Patient: [bold]{escape(composer.patient.full_name)}[/bold] (DNI {escape(composer.patient.dni)})")

        composer.authorized = Confirm.ask("Insurer authorized?", console=self.console, default=False)
        composer.insurer = Prompt.ask("Insurer", console=self.console, default=composer.insurer)
        composer.auth_number = Prompt.ask("Authorization number", console=self.console, default="")

        self.console.print(protocols_table(composer.protocols))
        while True:
            protocol = pick(self.console, composer.protocols, "study to add")
            if protocol is None:
                break
            if not composer.add_study(protocol.id):
                self.console.print(f"{escape(protocol.code)} is already in the order.")
            selected = ", ".join(study.protocol_code for study in composer.studies)
            self.console.print(f"Studies: [cyan]{escape(selected)}[/cyan]")

        order = await composer.submit()
        self.console.print("✅ Order created successfully")
        await self.worklist_screen(highlight=order.id)

    # Worklist
    async def worklist_screen(self, highlight: Optional[str] = None):
        worklist = Worklist(self.client)
        await worklist.refresh()
        filters = {"a": ALL, "p": OrderStatus.PENDING, "i": OrderStatus.IN_PROCESS, "c": OrderStatus.COMPLETED}
        while True:
            orders = worklist.visible_orders
            if orders:
                self.console.print(orders_table(orders, highlight=highlight))
            else:
                self.console.print("No orders match the current filter.")
            choice = Prompt.ask(
                escape("filter [a]ll/[p]ending/[i]n-process/[c]ompleted, [o]pen order, [b]ack"),
                console=self.console, choices=list(filters) + ["o", "b"], default="b",
            )
            if choice == "b":
                return
            if choice in filters:
                worklist.set_filter(filters[choice])
                continue
            order = pick(self.console, orders, "order")
            if order:
                await self.run_action(self.order_actions, worklist, order.id)

    async def order_actions(self, worklist: Worklist, order_id: str):
        actions = worklist.actions_for(order_id)
        labels = {
            WorklistAction.START: "s",
            WorklistAction.TOGGLE_SAMPLE: "t",
            WorklistAction.ENTER_RESULTS: "r",
            WorklistAction.VIEW_REPORT: "v",
        }
        offered = {labels[action]: action for action in actions}
        descriptions = ", ".join(f"[{key}] {action.value.replace('_', ' ')}" for key, action in offered.items())
        choice = Prompt.ask(escape(f"{descriptions}, [b]ack"), console=self.console,
                            choices=list(offered) + ["b"], default="b")
        action = offered.get(choice)
        if action == WorklistAction.START:
            await worklist.start(order_id)
            self.console.print("✅ Order started")
        elif action == WorklistAction.TOGGLE_SAMPLE:
            await worklist.toggle_sample(order_id)
            self.console.print("✅ Sample status updated")
        elif action == WorklistAction.ENTER_RESULTS:
            await self.results_screen(worklist, order_id)
        elif action == WorklistAction.VIEW_REPORT:
            await self.report_screen(order_id)

    async def results_screen(self, worklist: Worklist, order_id: str):
        form = await worklist.open_results(order_id)
        order = form.order
        self.console.print(Panel(
            f"[bold]Patient:[/bold] {escape(order.patient_name)}\n"
            "Enter the values obtained for each study.",
            title="Enter Results",
        ))
        for study, fields in form.sections():
            self.console.print(f"\n[bold blue]{escape(study.title)}[/bold blue]")
            if not fields:
                self.console.print("[dim]No fields defined for this study.[/dim]")
            for field in fields:
                prompt_field(
                    self.console, field,
                    current=form.get_value(study.protocol_id, field.key),
                    store=lambda raw, s=study, f=field: form.set_value(s.protocol_id, f.key, raw),
                )
        form.comments = Prompt.ask("General comments", console=self.console, default="")
        if not Confirm.ask("Save results?", console=self.console, default=True):
            return
        await worklist.record_results(form)
        self.console.print("✅ Results saved successfully")

    # Reports
    async def report_screen(self, order_id: str):
        report = await load_report(self.client, order_id)
        self.console.print(render_report(report))
        if Confirm.ask("Export PDF?", console=self.console, default=False):
            path = export_pdf(report)
            self.console.print(f"✅ Report saved to {escape(str(path))}")

    # Protocols
    async def protocols_screen(self):
        catalog = ProtocolCatalog(self.client)
        await catalog.refresh()
        while True:
            if catalog.protocols:
                self.console.print(protocols_table(catalog.protocols))
            else:
                self.console.print("📋 No protocols configured. Create the first one with 'n'.")
            choice = Prompt.ask(escape("[n]ew, [e]dit, [d]elete, [b]ack"), console=self.console,
                                choices=["n", "e", "d", "b"], default="b")
            if choice == "b":
                return
            if choice == "n":
                await self.run_action(self.edit_protocol, catalog, None)
                continue
            protocol = pick(self.console, catalog.protocols, "protocol")
            if protocol is None:
                continue
            if choice == "e":
                await self.run_action(self.edit_protocol, catalog, protocol.id)
            elif Confirm.ask(f"Delete protocol {escape(protocol.code)}?", console=self.console, default=False):
                await self.run_action(catalog.delete, protocol.id)

    async def edit_protocol(self, catalog: ProtocolCatalog, protocol_id: Optional[str]):
        form = catalog.edit_form(protocol_id)
        form["name"] = Prompt.ask("Name *", console=self.console, default=form["name"])
        form["code"] = Prompt.ask("Code *", console=self.console, default=form["code"]).upper()

        fields = form["fields"]
        if fields and not Confirm.ask(f"Keep the {len(fields)} existing fields?", console=self.console, default=True):
            fields = []
        while Confirm.ask("Add a field?", console=self.console, default=not fields):
            field = blank_field()
            field["key"] = Prompt.ask("  Key *", console=self.console, default="")
            field["label"] = Prompt.ask("  Label *", console=self.console, default="")
            field["unit"] = Prompt.ask("  Unit", console=self.console, default="")
            field["type"] = Prompt.ask("  Type", console=self.console,
                                       choices=[t.value for t in FieldType], default=FieldType.TEXT.value)
            if field["type"] == FieldType.NUMBER.value:
                field["reference"]["low"] = Prompt.ask("  Reference low", console=self.console, default="")
                field["reference"]["high"] = Prompt.ask("  Reference high", console=self.console, default="")
            elif field["type"] == FieldType.SELECT.value:
                options = Prompt.ask("  Options (comma separated)", console=self.console, default="")
                field["options"] = [opt.strip() for opt in options.split(",") if opt.strip()]
            fields.append(field)
        form["fields"] = fields

        protocol = await catalog.save(form, protocol_id)
        self.console.print(f"✅ Saved protocol {escape(protocol.code)}")

    # Menu
    async def interactive_menu(self):
        screens = {
            "1": self.dashboard_screen,
            "2": self.patients_screen,
            "3": self.new_order_screen,
            "4": self.worklist_screen,
            "5": self.protocols_screen,
        }
        while True:
            if not self.session.is_authenticated and not await self.login_screen():
                if not Confirm.ask("Try again?", console=self.console, default=True):
                    return
                continue

            self.console.print(f"\n[bold green]{settings.app_name} Menu:[/bold green]")
            self.console.print("  1. Dashboard")
            self.console.print("  2. Patients")
            self.console.print("  3. New Order")
            self.console.print("  4. Worklist")
            self.console.print("  5. Protocols")
            self.console.print("  9. Logout")
            self.console.print("  0. Exit")

            choice = Prompt.ask("\nSelect an option", console=self.console, default="0").strip()
            if choice == "0":
                self.console.print("\n[bold blue]Goodbye![/bold blue]")
                return
            if choice == "9":
                self.session.logout()
                continue
            screen = screens.get(choice)
            if screen is None:
                self.console.print("❌ Invalid option.")
                continue
            await self.run_action(screen)
