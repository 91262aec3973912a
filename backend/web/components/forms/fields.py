"""
Form field components for the pass forms.

Each field renders its own control; `FormField.render` wraps it with the
label and an optional inline error.
"""

from typing import Optional, Sequence

from ..base import Component


class FormField(Component):
    """Labelled form row. Subclasses supply the control markup."""

    def __init__(self, name: str, label: str, *, required: bool = False, error_text: Optional[str] = None) -> None:
        self.name = name
        self.label = label
        self.required = required
        self.error_text = error_text

    @property
    def error_id(self) -> str:
        return f"{self.name}-error"

    def control(self, value: str, **attrs: str) -> str:
        raise NotImplementedError

    def render(self, *, value: str = "", **attrs: str) -> str:
        marker = '<span class="form-required" aria-hidden="true">*</span>' if self.required else ""
        error = ""
        if self.error_text:
            error = f'<p class="form-error" role="alert" id="{self.error_id}">{self.escape(self.error_text)}</p>'
        row_class = self.classes("form-field", form_field__error=bool(self.error_text))
        return (
            f'<div class="{row_class}">'
            f'<label {self.attributes(for_=self.name, class_="form-label")}>{self.escape(self.label)}{marker}</label>'
            f"{self.control(value, **attrs)}{error}"
            "</div>"
        )


class TextInputField(FormField):
    def control(self, value: str, **attrs: str) -> str:
        input_attrs = self.attributes(
            id=self.name,
            name=self.name,
            type="text",
            value=value,
            required=self.required,
            aria_invalid="true" if self.error_text else "false",
            aria_describedby=self.error_id if self.error_text else None,
            **attrs,
        )
        return f"<input {input_attrs}>"


class SelectField(FormField):
    """Dropdown of fixed choices.

    A value outside `options` (a free-text destination from a kiosk link)
    stays selectable as an extra option.
    """

    def __init__(self, name: str, label: str, options: Sequence[str], **kwargs) -> None:
        super().__init__(name, label, **kwargs)
        self.options = list(options)

    def control(self, value: str, **attrs: str) -> str:
        choices = self.options + ([value] if value and value not in self.options else [])
        items = "".join(
            f"<option {self.attributes(value=choice, selected=(choice == value))}>{self.escape(choice)}</option>"
            for choice in choices
        )
        return f"<select {self.attributes(id=self.name, name=self.name, **attrs)}>{items}</select>"


class HiddenField(Component):
    """Value carried by the form without a visible row (kiosk presets)."""

    def __init__(self, name: str, value: str) -> None:
        self.name = name
        self.value = value

    def render(self) -> str:
        return f"<input {self.attributes(type='hidden', name=self.name, value=self.value)}>"
