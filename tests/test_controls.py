"""
Tests for the field-type input controls
"""

import io

import pytest
from rich.console import Console

from labdesk.models import NumberField, SelectField, TextField, UnknownField
from labdesk.ui.controls import prompt_field


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=100)


@pytest.fixture
def answers(monkeypatch):
    """Queue operator input lines"""
    queue = []
    monkeypatch.setattr("builtins.input", lambda *args: queue.pop(0))
    return queue


class TestPromptField:
    """Test prompting one field by its type"""

    def test_decimal_reasks_until_valid(self, console, answers):
        answers.extend(["abc", "13.5"])
        field = NumberField(key="hb", label="Hemoglobina", reference={"low": 12, "high": 16})
        assert prompt_field(console, field) == 13.5
        assert answers == []
        assert "Must be a number" in console.file.getvalue()

    def test_choice_from_options(self, console, answers):
        answers.append("Ambar")
        field = SelectField(key="color", label="Color", options=["Amarillo", "Ambar"])
        assert prompt_field(console, field) == "Ambar"

    def test_textarea_collects_lines(self, console, answers):
        answers.extend(["Muestra turbia", "Repetir", ""])
        field = TextField(key="observations", label="Observations")
        assert prompt_field(console, field) == "Muestra turbia\nRepetir"

    def test_unknown_type_is_skipped(self, console, answers):
        field = UnknownField(key="when", label="When", type="date")
        assert prompt_field(console, field) is None
        assert console.file.getvalue() == ""

    def test_custom_store(self, console, answers):
        answers.append("7")
        stored = {}
        field = NumberField(key="ph", label="pH")
        prompt_field(console, field, store=lambda raw: stored.setdefault("ph", field.parse_input(raw)))
        assert stored == {"ph": 7.0}

    def test_labels_and_errors_are_printed_literally(self, console, answers):
        answers.extend(["[/]", "5"])
        field = NumberField(key="ph", label="pH [/]")
        assert prompt_field(console, field) == 5.0
        output = console.file.getvalue()
        assert "pH [/]" in output
