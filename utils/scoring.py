import math
from typing import List, Optional


def score_percent(correct: int, total: int) -> int:
    """Percentage of correct answers, rounded half up (4 of 5 -> 80, 1 of 8 -> 13)."""
    if not total:
        return 0
    return int(math.floor(correct * 100 / total + 0.5))


def option_index(options: List[str], answer: Optional[str]) -> Optional[int]:
    """Index of the first option whose text equals the stored answer."""
    if answer is None:
        return None
    for i, option in enumerate(options):
        if option == answer:
            return i
    return None
