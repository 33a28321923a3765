"""
Period-over-period rows: product ranking, dimension breakdowns and
yes/no mixes of boolean attributes.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from .classifier import label_sort_key

T = TypeVar("T")

NO_PRODUCT_LABEL = "Sin producto"


@dataclass(frozen=True)
class RankingRow:
    category: str
    label: str
    current_value: int
    previous_value: int
    delta_percentage: float
    rank: int


@dataclass(frozen=True)
class BreakdownRow:
    dimension: str
    label: str
    current: int
    previous: int
    delta_percentage: float


@dataclass(frozen=True)
class BinaryMix:
    key: str
    label: str
    yes: int
    no: int


def compute_delta_percentage(current: int, previous: int) -> float:
    """
    Percentage change from ``previous`` to ``current``.

    0 -> 0 reports 0 and 0 -> N reports a flat 100 (new activity marker),
    so the result is never NaN or infinite.
    """
    if previous == 0:
        return 100.0 if current != 0 else 0.0
    return (current - previous) / previous * 100


def product_label(name: Optional[str], code: Optional[str]) -> str:
    """Product name, then code, then the "no product" placeholder"""
    trimmed_name = (name or "").strip()
    if trimmed_name:
        return trimmed_name
    trimmed_code = (code or "").strip()
    if trimmed_code:
        return trimmed_code
    return NO_PRODUCT_LABEL


def _count_products(items: Iterable) -> Counter:
    return Counter(product_label(item.product_name, item.product_code) for item in items)


def rank_products(current_items: Iterable, previous_items: Iterable, category: str) -> List[RankingRow]:
    """
    Rank products by current-period occurrences.

    Items only need ``product_name`` and ``product_code`` attributes. Labels
    from both periods are kept; ties are broken by label and ranks run
    1..N without gaps.
    """
    current_counts = _count_products(current_items)
    previous_counts = _count_products(previous_items)
    labels = set(current_counts) | set(previous_counts)

    ordered = sorted(labels, key=lambda label: (-current_counts[label], label_sort_key(label)))

    return [
        RankingRow(
            category=category,
            label=label,
            current_value=current_counts[label],
            previous_value=previous_counts[label],
            delta_percentage=compute_delta_percentage(current_counts[label], previous_counts[label]),
            rank=position
        )
        for position, label in enumerate(ordered, start=1)
    ]


def merge_breakdown(
    current_counts: Dict[str, int],
    previous_counts: Dict[str, int],
    dimension: str
) -> List[BreakdownRow]:
    labels = set(current_counts) | set(previous_counts)
    rows = [
        BreakdownRow(
            dimension=dimension,
            label=label,
            current=current_counts.get(label, 0),
            previous=previous_counts.get(label, 0),
            delta_percentage=compute_delta_percentage(
                current_counts.get(label, 0), previous_counts.get(label, 0)
            )
        )
        for label in labels
    ]
    rows.sort(key=lambda row: (-row.current, label_sort_key(row.label)))
    return rows


def binary_mix(key: str, label: str, events: Iterable[T], flag: Callable[[T], Optional[bool]]) -> BinaryMix:
    """
    Split events on a boolean attribute.

    A missing flag counts as "no": unknown and false are not told apart.
    """
    yes = no = 0
    for event in events:
        if flag(event):
            yes += 1
        else:
            no += 1
    return BinaryMix(key=key, label=label, yes=yes, no=no)
