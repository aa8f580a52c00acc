import math
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Literal, Optional, Tuple

PERIODS: Dict[str, str] = {
    "today": "Today",
    "yesterday": "Yesterday",
    "week": "Last 7 days",
    "month": "Last 30 days",
    "all": "All time",
}


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of strings.
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all center ('c').

    Returns:
        str: Markdown formatted table.
    """
    if not rows:
        return ""

    # If no headers, take the first row as header and remove it from rows
    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = list(map(str, headers))
    rows = [list(map(str, row)) for row in rows]

    num_cols = len(headers)
    if aligns is None:
        aligns = ["c"] * num_cols
    elif len(aligns) != num_cols:
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {
        "l": ":---",
        "c": ":---:",
        "r": "---:",
    }

    header_line = "| " + " | ".join(headers) + " |"
    align_line = "| " + " | ".join(align_map[a] for a in aligns) + " |"
    row_lines = ["| " + " | ".join(row) + " |" for row in rows]

    return "\n".join([header_line, align_line, *row_lines])


def format_currency(amount: float) -> str:
    """US dollar formatting: 1234.5 -> '$1,234.50', -3 -> '-$3.00'."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def to_float(val) -> float:
    """Parse a number, falling back to 0.0 for blanks and garbage."""
    try:
        num = float(val)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(num):
        return 0.0
    return num


def to_ms(when: datetime) -> int:
    return int(when.timestamp() * 1000)


def now_ms() -> int:
    return to_ms(datetime.now())


def period_bounds(period: str, now: Optional[datetime] = None) -> Tuple[Optional[int], Optional[int]]:
    """
    Translate an analytics period into a half-open [start, end) range of epoch ms.

    Days are counted from local midnight of ``now``; ``None`` means unbounded.
    Unknown periods behave like "all".
    """
    now = now or datetime.now()
    midnight = datetime(now.year, now.month, now.day)

    if period == "today":
        return to_ms(midnight), None
    if period == "yesterday":
        return to_ms(midnight - timedelta(days=1)), to_ms(midnight)
    if period == "week":
        return to_ms(midnight - timedelta(days=6)), None
    if period == "month":
        return to_ms(midnight - timedelta(days=29)), None
    return None, None


def digits_only(text: str) -> int:
    """Number made of the digits in text, 0 if there are none."""
    digits = "".join(ch for ch in text if ch in "0123456789")
    return int(digits) if digits else 0


def summarize_items(items: Iterable) -> str:
    """'2x Burger, 1x Fries' for a sequence of OrderItem."""
    return ", ".join(f"{item.qty}x {item.name}" for item in items)
