"""
Order number helpers.

Order numbers are plain sequential integers stored as text ("1042").
A cart holding both a custom and a premade item is split into sibling
rows "1042-a" (custom) and "1042-b" (premade) sharing the base "1042".
Further rows of the same kind get a line suffix ("1042-a-2") so every
row number stays unique.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional


SUFFIX_PATTERN = re.compile(r"-(a|b)$", re.IGNORECASE)
LINE_PATTERN = re.compile(r"-\d+$")
CUSTOM_SUFFIX = "a"
PREMADE_SUFFIX = "b"

CUSTOM_KIND = "custom"
PREMADE_KIND = "premade"


@dataclass(frozen=True)
class OrderNumberBundle:
    """Numbers allocated for one checkout."""
    base: str
    custom: str
    premade: str

    @property
    def is_split(self) -> bool:
        return self.custom != self.premade


def _split_line(value: str) -> tuple[str, str]:
    match = LINE_PATTERN.search(value)
    if match is None or match.start() == 0:
        return value, ""
    return value[: match.start()], match.group(0)


def normalize_order_number(raw: Optional[str]) -> Optional[str]:
    """
    Normalize user-entered order numbers.

    - "  #1042 " -> "1042"
    - "1042-A"   -> "1042-a"
    - "1042-A-2" -> "1042-a-2"
    - "" / None  -> None
    """
    if raw is None:
        return None
    value = raw.strip().lstrip("#").strip()
    if not value:
        return None
    value, line = _split_line(value)
    match = SUFFIX_PATTERN.search(value)
    if match:
        value = value[: match.start()] + f"-{match.group(1).lower()}"
    return value + line


def normalize_base_order_number(raw: Optional[str]) -> Optional[str]:
    """Normalize and strip any sibling or line suffix: "#1042-b-2" -> "1042"."""
    value = normalize_order_number(raw)
    if value is None:
        return None
    value, _ = _split_line(value)
    return SUFFIX_PATTERN.sub("", value) or None


def build_sibling_numbers(base: str, has_custom: bool, has_premade: bool) -> OrderNumberBundle:
    """
    Derive per-kind order numbers for a cart.

    Only a mixed cart gets suffixes; a single-kind cart uses the base.
    """
    base = normalize_base_order_number(base) or base
    if has_custom and has_premade:
        return OrderNumberBundle(
            base=base,
            custom=f"{base}-{CUSTOM_SUFFIX}",
            premade=f"{base}-{PREMADE_SUFFIX}",
        )
    return OrderNumberBundle(base=base, custom=base, premade=base)


def line_order_number(number: str, line: int) -> str:
    """
    Number of the line-th row (1-based) sharing a kind number.

    - ("1042-a", 1) -> "1042-a"
    - ("1042-a", 2) -> "1042-a-2"
    """
    return number if line <= 1 else f"{number}-{line}"


def cart_row_numbers(kinds: list[str], base: str) -> list[str]:
    """
    One unique order number per cart row, in row order.

    ["custom", "custom", "premade"] with "1042"
    -> ["1042-a", "1042-a-2", "1042-b"]
    """
    numbers = build_sibling_numbers(
        base,
        has_custom=CUSTOM_KIND in kinds,
        has_premade=PREMADE_KIND in kinds,
    )
    lines: dict[str, int] = {}
    result = []
    for kind in kinds:
        lines[kind] = lines.get(kind, 0) + 1
        number = numbers.premade if kind == PREMADE_KIND else numbers.custom
        result.append(line_order_number(number, lines[kind]))
    return result


def next_order_number(existing: Iterable[Optional[str]], start: int) -> str:
    """
    Next sequential base number after everything already issued.

    Non-numeric legacy numbers are ignored. Never returns less than start.
    """
    highest = start - 1
    for raw in existing:
        base = normalize_base_order_number(raw)
        if base and base.isdigit():
            highest = max(highest, int(base))
    return str(highest + 1)
