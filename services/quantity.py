import math
import re
from typing import Any

_NUMERAL = re.compile(r"\d+(?:\.\d+)?")


def parse_quantity(value: Any) -> float:
    """
    Pull the first numeral out of a free-form quantity, e.g. "50 meals" -> 50.

    Numbers pass through when finite. Anything without a numeral
    (including None, NaN and infinity) is 0.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) if math.isfinite(value) else 0.0
    match = _NUMERAL.search(str(value))
    return float(match.group(0)) if match else 0.0
