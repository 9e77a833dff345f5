"""Side-channel tag codec.

TickTick only supports plain string tags, so structured fields ride along as
``key:value`` pseudo-tags (``energy:high``, ``duration:45``). These helpers
split such tokens out of a tag list and put them back.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from tomanage.models.task import ContextType, EnergyLevel, TaskCategory

ENERGY_PREFIX = "energy:"
DURATION_PREFIX = "duration:"
CATEGORY_PREFIX = "category:"
CONTEXT_PREFIX = "context:"

SIDE_CHANNEL_PREFIXES = (ENERGY_PREFIX, DURATION_PREFIX, CATEGORY_PREFIX, CONTEXT_PREFIX)

_ENERGY_VALUES = [e.value for e in EnergyLevel]
_CATEGORY_VALUES = [c.value for c in TaskCategory]
_CONTEXT_VALUES = [c.value for c in ContextType]


@dataclass
class SideChannelValues:
    """Structured values recovered from pseudo-tags (first occurrence wins)."""
    energy_required: Optional[str] = None
    estimated_duration: Optional[int] = None
    category: Optional[str] = None
    context_type: Optional[str] = None


def _parse_duration(raw: str) -> Optional[int]:
    try:
        minutes = int(raw.strip())
    except ValueError:
        return None
    return minutes if minutes > 0 else None


def split_side_channel_tags(tags: Optional[List[str]]) -> Tuple[List[str], SideChannelValues]:
    """Separate user-visible tags from side-channel tokens.

    Every ``energy:``/``duration:``/``category:``/``context:`` token is
    stripped from the visible list, even when its value is not valid.
    Invalid values are ignored rather than raised.

    Args:
        tags: Raw tag list (may be None)

    Returns:
        Tuple of (regular_tags, decoded_values)
    """
    regular: List[str] = []
    values = SideChannelValues()

    for raw in tags or []:
        tag = raw.strip()
        if not tag:
            continue
        lower = tag.lower()

        if lower.startswith(ENERGY_PREFIX):
            energy = lower[len(ENERGY_PREFIX):].strip()
            if values.energy_required is None and energy in _ENERGY_VALUES:
                values.energy_required = energy
        elif lower.startswith(DURATION_PREFIX):
            if values.estimated_duration is None:
                values.estimated_duration = _parse_duration(lower[len(DURATION_PREFIX):])
        elif lower.startswith(CATEGORY_PREFIX):
            category = lower[len(CATEGORY_PREFIX):].strip()
            if values.category is None and category in _CATEGORY_VALUES:
                values.category = category
        elif lower.startswith(CONTEXT_PREFIX):
            context = lower[len(CONTEXT_PREFIX):].strip()
            if values.context_type is None and context in _CONTEXT_VALUES:
                values.context_type = context
        else:
            regular.append(tag)

    return regular, values


def encode_side_channel_tags(
    tags: Optional[List[str]],
    energy_required: Optional[str] = None,
    estimated_duration: Optional[int] = None,
) -> List[str]:
    """Append ``energy:`` and ``duration:`` pseudo-tags to a visible tag list."""
    encoded = list(tags or [])
    if energy_required:
        encoded.append(f"{ENERGY_PREFIX}{energy_required}")
    if estimated_duration:
        encoded.append(f"{DURATION_PREFIX}{estimated_duration}")
    return encoded
