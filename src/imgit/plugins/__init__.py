"""Build-phase extension point.

The bundled YouTube plugin lives in ``imgit.plugins.youtube``.
"""

from .base import NOT_HANDLED, Builder, Handled, NotHandled, Outcome, Plugin, Resolver

__all__ = [
    "NOT_HANDLED",
    "Builder",
    "Handled",
    "NotHandled",
    "Outcome",
    "Plugin",
    "Resolver",
]
