# reconcile/utils/similarity.py

from collections import Counter
from typing import Callable, Dict

from fuzzywuzzy import fuzz

from reconcile.utils.errors import ConfigError

Scorer = Callable[[str, str], float]


def dice_coefficient(a: str, b: str) -> float:
    """
    Sorensen-Dice score over character bigrams, whitespace ignored.
    Returns a value between 0 and 1.
    """
    a = "".join(a.split())
    b = "".join(b.split())
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0

    bigrams_a = Counter(a[i:i + 2] for i in range(len(a) - 1))
    bigrams_b = Counter(b[i:i + 2] for i in range(len(b) - 1))
    overlap = sum((bigrams_a & bigrams_b).values())
    return 2.0 * overlap / (len(a) + len(b) - 2)


def token_sort_score(a: str, b: str) -> float:
    """fuzzywuzzy token_sort_ratio scaled to 0..1."""
    return fuzz.token_sort_ratio(a, b) / 100.0


SCORERS: Dict[str, Scorer] = {
    "dice": dice_coefficient,
    "token_sort": token_sort_score,
}


def get_scorer(name: str) -> Scorer:
    try:
        return SCORERS[name]
    except KeyError:
        raise ConfigError(f"Unknown similarity scorer '{name}'. Expected one of: {', '.join(SCORERS)}")
