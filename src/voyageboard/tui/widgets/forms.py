"""modal forms: node editor and api settings."""

from __future__ import annotations

from typing import Optional

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label

from ...core.config import ApiConfig
from ...core.models import TripNode

FORM_CSS = """
ModalScreen {
    align: center middle;
}

.form {
    width: 64;
    height: auto;
    padding: 1 2;
    border: thick $primary;
    background: $surface;
}

.form Label {
    margin-top: 1;
}

.form-buttons {
    height: auto;
    margin-top: 1;
    align-horizontal: right;
}
"""


class _FormScreen(ModalScreen[Optional[dict]]):
    """labelled inputs; dismisses with {field: value} or None."""

    DEFAULT_CSS = FORM_CSS
    BINDINGS = [("escape", "cancel", "cancel")]

    title_text = ""
    fields: tuple[tuple[str, str], ...] = ()

    def __init__(self, values: dict, **kwargs) -> None:
        super().__init__(**kwargs)
        self.values = values

    def compose(self) -> ComposeResult:
        with Vertical(classes="form"):
            yield Label(self.title_text, classes="title")
            for name, label in self.fields:
                yield Label(label)
                yield Input(
                    value=self.values.get(name, ""),
                    id=f"field-{name}",
                    password=(name == "apiKey"),
                )
            with Horizontal(classes="form-buttons"):
                yield Button("cancel", id="cancel")
                yield Button("save", id="save", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "save":
            self._submit()
        else:
            self.dismiss(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _submit(self) -> None:
        self.dismiss({
            name: self.query_one(f"#field-{name}", Input).value
            for name, _ in self.fields
        })


class NodeEditScreen(_FormScreen):
    title_text = "edit stop"
    fields = (
        ("title", "title"),
        ("content", "notes / request for AI fill"),
        ("date", "date (e.g. 2024-10-01)"),
        ("cost", "cost (e.g. ¥60)"),
    )

    def __init__(self, node: TripNode, **kwargs) -> None:
        super().__init__(node.to_dict(), **kwargs)


class SettingsScreen(_FormScreen):
    title_text = "model endpoint"
    fields = (
        ("apiKey", "API key"),
        ("model", "model / endpoint id"),
        ("baseUrl", "base URL"),
    )

    def __init__(self, config: ApiConfig, **kwargs) -> None:
        super().__init__(config.to_dict(), **kwargs)
