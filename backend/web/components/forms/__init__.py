"""
Form components for SmartPass.

Provides the field building blocks and the pass creation form used on the
dashboard and the kiosk.
"""

from .fields import FormField, HiddenField, TextInputField, SelectField
from .submit import SubmitButton
from .pass_create_form import PassCreateForm

__all__ = [
    "FormField",
    "HiddenField",
    "TextInputField",
    "SelectField",
    "SubmitButton",
    "PassCreateForm",
]
