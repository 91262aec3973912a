"""
Card components for SmartPass.
"""

from .pass_card import PassCard

__all__ = ["PassCard"]
