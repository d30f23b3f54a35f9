"""
Console input controls, one per protocol field type
"""

from typing import Any, Callable, Dict, Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from ..core.exceptions import ValidationException
from ..models import ControlKind, FieldControl
from ..models.protocol import BaseField, format_number


def _current_text(value: Any) -> str:
    if value is None:
        return ""
    return format_number(value) if isinstance(value, float) else str(value)


def ask_textarea(console: Console, control: FieldControl, current: Any) -> str:
    """Multi-line input; an empty line ends it"""
    console.print(f"[bold]{escape(control.label)}[/bold] [dim](empty line to finish)[/dim]")
    if current:
        console.print(f"[dim]current: {escape(str(current))}[/dim]")
    lines = []
    while True:
        line = console.input("  > ")
        if not line:
            break
        lines.append(line)
    return "\n".join(lines) if lines else _current_text(current)


def ask_decimal(console: Console, control: FieldControl, current: Any) -> str:
    return Prompt.ask(escape(control.label), console=console, default=_current_text(current), show_default=True)


def ask_choice(console: Console, control: FieldControl, current: Any) -> str:
    choices = list(control.choices) + [""]
    return Prompt.ask(
        f"{escape(control.label)} [dim](empty for none)[/dim]",
        console=console,
        choices=choices,
        default=_current_text(current),
        show_choices=True,
    )


CONTROLS: Dict[ControlKind, Callable[[Console, FieldControl, Any], str]] = {
    ControlKind.TEXTAREA: ask_textarea,
    ControlKind.DECIMAL: ask_decimal,
    ControlKind.CHOICE: ask_choice,
}


def prompt_field(console: Console, field: BaseField, current: Any = None,
                 store: Optional[Callable[[str], Any]] = None) -> Any:
    """Ask for one field until the input parses; fields without a control are skipped"""
    control = field.control()
    if control is None or control.kind not in CONTROLS:
        return None
    ask = CONTROLS[control.kind]
    store = store or field.parse_input
    while True:
        raw = ask(console, control, current)
        try:
            return store(raw)
        except ValidationException as e:
            console.print(f"  [red]❌ {escape(e.errors.get(field.key, e.message))}[/red]")
