from .enums import (
    NodeLabel,
    RelType,
)
from .response import (
    WineSummary,
    TopWine,
    VarietyCount,
)

__all__ = [
    "NodeLabel",
    "RelType",
    "WineSummary",
    "TopWine",
    "VarietyCount",
]
