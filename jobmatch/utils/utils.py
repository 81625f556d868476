import json
import math
from typing import Any, List, Optional


def safe_json(s: str) -> Optional[dict]:
    """Parse the outermost JSON object in an LLM reply; None when there isn't one."""
    if not s:
        return None
    try:
        return json.loads(s)
    except ValueError:
        pass
    # heuristics to find JSON inside fenced or chatty replies
    start = s.find("{")
    end = s.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        return json.loads(s[start:end + 1])
    except ValueError:
        return None


def as_text(x: Any) -> str:
    if x is None:
        return ""
    if isinstance(x, list):
        return " ".join([str(t).strip() for t in x if str(t).strip()])
    return str(x).strip()


def as_list(x: Any) -> List[str]:
    if x is None:
        return []
    if isinstance(x, str):
        # split on commas/semicolons; normalize tokens
        parts = [p.strip() for p in x.replace(";", ",").split(",")]
        return [p for p in parts if p]
    if isinstance(x, (list, tuple)):
        return [str(t).strip() for t in x if t is not None and str(t).strip()]
    return []


def as_ratio(x: Any) -> float:
    """Coerce an LLM-supplied ratio into [0, 1], two decimals; junk becomes 0."""
    try:
        value = float(x)
    except (TypeError, ValueError):
        return 0.0
    if value != value:  # NaN
        return 0.0
    return round(max(0.0, min(value, 1.0)), 2)


def as_score(x: Any) -> Optional[int]:
    """Coerce a 0-100 score to an int (half-up, clamped); None when it isn't a number."""
    if isinstance(x, bool):
        return None
    try:
        value = float(x)
    except (TypeError, ValueError):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return max(0, min(math.floor(value + 0.5), 100))
