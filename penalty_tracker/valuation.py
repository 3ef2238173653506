"""
Penalty Tracker - Item Valuation.

Sizes a loss from the items a participant dropped.

    value = (material + special + enchant_levels * 10)
            * durability_fraction * amount
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from .config import ItemValuationConfig


@dataclass(frozen=True)
class LostItem:
    """An item stack lost on a loss event."""

    item_type: str
    amount: int = 1
    enchantments: Dict[str, int] = field(default_factory=dict)
    durability_pct: Optional[float] = None   # None: item has no durability


def value_item(item: LostItem, config: Optional[ItemValuationConfig] = None) -> float:
    """Value of a single lost stack."""
    config = config or ItemValuationConfig()
    name = item.item_type.upper()
    value = 0.0

    for token, material_value in config.material_values:
        if token in name:
            value += material_value
            break

    value += config.special_values.get(name, 0.0)
    value += sum(item.enchantments.values()) * config.value_per_enchant_level

    if item.durability_pct is not None:
        value *= max(0.0, min(100.0, item.durability_pct)) / 100.0

    return value * max(0, item.amount)


def value_lost_items(
    items: Iterable[LostItem],
    config: Optional[ItemValuationConfig] = None,
) -> float:
    """Total value of all lost stacks."""
    return sum(value_item(item, config) for item in items)
