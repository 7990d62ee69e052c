"""
Enums for graph labels and relationship types.
"""

from enum import Enum


class NodeLabel(str, Enum):
    """Node labels in the wine graph."""
    WINE = "Wine"
    PERSON = "Person"
    COUNTRY = "Country"
    PROVINCE = "Province"


class RelType(str, Enum):
    """Relationship types in the wine graph."""
    TASTED_BY = "TASTED_BY"
    IS_FROM_COUNTRY = "IS_FROM_COUNTRY"
    IS_FROM_PROVINCE = "IS_FROM_PROVINCE"
    IS_LOCATED_IN = "IS_LOCATED_IN"
