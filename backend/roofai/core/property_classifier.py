"""
Property Type Classifier

Normalizes free-text property types from external data (Rentcast, user
input, vision prompts) into a closed PropertyCategory. Classification
happens once, at the boundary; every factor table downstream is keyed by
the enum, never by raw strings.

Classification priority:
1. Exact enum value (e.g. "single_family")
2. Text matching rules, in order (more specific categories first)
3. UNKNOWN
"""

from enum import Enum
from typing import Optional, Union
import re
import logging

logger = logging.getLogger(__name__)


class PropertyCategory(str, Enum):
    """Property categories used by roof area factor tables."""
    SINGLE_FAMILY = "single_family"     # Detached homes, pitched roofs
    TOWNHOUSE = "townhouse"             # Attached rowhomes
    CONDO = "condo"                     # Condos, apartments (unit-level)
    MULTI_FAMILY = "multi_family"       # Duplex to apartment buildings
    COMMERCIAL = "commercial"           # Retail, office, industrial
    UNKNOWN = "unknown"                 # Could not classify


# =============================================================================
# TEXT MATCHING PATTERNS
# =============================================================================

# Order matters: "Single Family Townhouse" style strings resolve to the first
# category whose pattern matches.
TEXT_CLASSIFICATION_RULES = [
    (PropertyCategory.TOWNHOUSE, [
        r"town.?ho",
        r"row.?ho",
    ]),
    (PropertyCategory.CONDO, [
        r"condo",
        r"condominium",
        r"apartment",
        r"\bapt\b",
        r"co.?op",
    ]),
    (PropertyCategory.MULTI_FAMILY, [
        r"multi.?family",
        r"multi.?unit",
        r"duplex",
        r"triplex",
        r"fourplex",
        r"quadplex",
        r"^mfr\b",
    ]),
    (PropertyCategory.SINGLE_FAMILY, [
        r"single.?family",
        r"^sfr\b",
        r"detached",
        r"manufactured",
        r"mobile.?home",
        r"\bhouse\b",
        r"residential",
    ]),
    (PropertyCategory.COMMERCIAL, [
        r"commercial",
        r"retail",
        r"office",
        r"industrial",
        r"warehouse",
        r"store",
        r"restaurant",
    ]),
]

_COMPILED_RULES = [
    (category, [re.compile(pattern, re.IGNORECASE) for pattern in patterns])
    for category, patterns in TEXT_CLASSIFICATION_RULES
]


def classify_property_type(value: Optional[Union[str, PropertyCategory]]) -> PropertyCategory:
    """Map a raw property type string onto a PropertyCategory."""
    if isinstance(value, PropertyCategory):
        return value
    if not value:
        return PropertyCategory.UNKNOWN

    text = str(value).strip().lower()
    try:
        return PropertyCategory(text.replace(" ", "_").replace("-", "_"))
    except ValueError:
        pass

    for category, patterns in _COMPILED_RULES:
        if any(pattern.search(text) for pattern in patterns):
            return category

    logger.debug(f"Unrecognized property type: {value!r}")
    return PropertyCategory.UNKNOWN
