# SmartPass Component System
# Pure Python Components for type-safe HTML generation

from .base import Component
from .layout import Layout
from .board import PassBoardPanel
from .cards import PassCard
from .forms import FormField, HiddenField, TextInputField, SelectField, SubmitButton, PassCreateForm

__all__ = [
    "Component",
    "Layout",
    "PassBoardPanel",
    "PassCard",
    "FormField",
    "HiddenField",
    "TextInputField",
    "SelectField",
    "SubmitButton",
    "PassCreateForm",
]
