"""
Session classification by pipeline.

Every session carries the pipeline label of its deal. The label is
normalized (trimmed, accents stripped, lowercased) and looked up in a
closed table; anything outside the table is left unclassified.
"""

import enum
import unicodedata
from typing import Dict, Optional, Tuple


class SessionCategory(str, enum.Enum):
    GEP_SERVICES = "gepServices"
    FORMACION_EMPRESA = "formacionEmpresa"
    FORMACION_ABIERTA = "formacionAbierta"


# Normalized pipeline label -> category. Adding a category or a label
# variant only touches this table.
PIPELINE_CATEGORIES: Dict[str, SessionCategory] = {
    "gep services": SessionCategory.GEP_SERVICES,
    "formacion empresa": SessionCategory.FORMACION_EMPRESA,
    "formacion empresas": SessionCategory.FORMACION_EMPRESA,
    "formacion abierta": SessionCategory.FORMACION_ABIERTA,
}


def strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_pipeline_label(value: Optional[str]) -> Optional[str]:
    """Trim, strip diacritics and lowercase; blank labels become None"""
    if value is None:
        return None
    trimmed = str(value).strip()
    if not trimmed:
        return None
    return strip_accents(trimmed).lower()


def classify_pipeline(label: Optional[str]) -> Optional[SessionCategory]:
    normalized = normalize_pipeline_label(label)
    if normalized is None:
        return None
    return PIPELINE_CATEGORIES.get(normalized)


def classify(event) -> Optional[SessionCategory]:
    """Category of a session event, or None when it is unclassified"""
    return classify_pipeline(event.pipeline_label)


def label_sort_key(label: str) -> Tuple[str, str]:
    """Accent and case insensitive ordering, raw text as final tie-break"""
    return (strip_accents(label).casefold(), label)
