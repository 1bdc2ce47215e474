import math
import re
from typing import List, Optional

import pandas as pd

TRUE_WORDS = {"true", "1", "yes", "y", "oui", "vrai", "x"}


def is_missing(v) -> bool:
    if v is None:
        return True
    if isinstance(v, (list, tuple, dict)):
        return False
    try:
        return bool(pd.isna(v))
    except (TypeError, ValueError):
        return False


def to_text(v) -> str:
    if is_missing(v):
        return ""
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v).strip()


def to_number(v) -> Optional[float]:
    """12 / 12.5 / '12,5' / ' 1 200 ' -> float; anything else -> None"""
    if is_missing(v) or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        f = float(v)
        return f if math.isfinite(f) else None
    if isinstance(v, str):
        s = re.sub(r"\s", "", v).replace(",", ".")
        if not s:
            return None
        try:
            f = float(s)
        except ValueError:
            return None
        return f if math.isfinite(f) else None
    return None


def normalize_cohort_id(v) -> Optional[int]:
    """'478', 478, 478.0 all mean the same cohort."""
    n = to_number(v)
    if n is None or not float(n).is_integer():
        return None
    return int(n)


def to_flag(v) -> bool:
    if is_missing(v):
        return False
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return v != 0
    return str(v).strip().lower() in TRUE_WORDS


def parse_multi_answer(v) -> List[str]:
    """Multi-select cell -> list of selected keys.

    Accepts real lists and the exported text forms '{A,B}', '"A","B"', 'A, B'.
    """
    if is_missing(v):
        return []
    if isinstance(v, (list, tuple)):
        return [to_text(x) for x in v if to_text(x)]
    s = str(v).strip()
    if len(s) >= 2 and s[0] == '"' and s[-1] == '"':
        s = s[1:-1]
    if len(s) >= 2 and s[0] in "{[" and s[-1] in "}]":
        s = s[1:-1]
    if not s:
        return []
    items = [it.strip().replace('"', "").replace("'", "") for it in s.split(",")]
    return [it for it in items if it]
