"""Rally recording engines: action log, outcome inference, wizard, rotation."""

from . import actions, outcome, rotation, wizard

__all__ = [
    "actions",
    "outcome",
    "rotation",
    "wizard",
]
