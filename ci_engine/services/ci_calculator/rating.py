"""
ABFI CI Engine - Rating Classifier

Maps a total CI value (gCO2e/MJ) to a letter rating using an ordered table of
ascending upper bounds. Lower CI is never rated worse than higher CI.
"""

import math
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ci_engine.config import settings
from ci_engine.utils.error_handling import CIValidationError


ThresholdTable = Union[Mapping[str, float], Sequence[Tuple[str, float]]]


class RatingClassifier:
    """
    Threshold-table rating classifier.

    The table lists (rating, upper_bound) pairs in ascending bound order.
    A value gets the rating of the first bound it does not exceed; values
    above every bound get the worst rating.
    """

    def __init__(self, thresholds: ThresholdTable, worst_rating: str = "F"):
        items = list(thresholds.items()) if isinstance(thresholds, Mapping) else list(thresholds)
        self._thresholds: List[Tuple[str, float]] = [(str(r), float(b)) for r, b in items]
        self._worst_rating = worst_rating
        self._check_table()

    def _check_table(self) -> None:
        seen = set()
        previous = None
        for rating, bound in self._thresholds:
            if not math.isfinite(bound):
                raise ValueError(f"Rating bound for {rating!r} must be finite")
            if previous is not None and bound <= previous:
                raise ValueError(
                    f"Rating thresholds must be strictly ascending ({rating!r}: {bound} <= {previous})"
                )
            if rating in seen or rating == self._worst_rating:
                raise ValueError(f"Duplicate rating {rating!r} in threshold table")
            seen.add(rating)
            previous = bound

    @classmethod
    def from_settings(cls) -> "RatingClassifier":
        return cls(settings.ci_rating_thresholds, settings.ci_worst_rating)

    @property
    def thresholds(self) -> List[Tuple[str, float]]:
        return list(self._thresholds)

    @property
    def worst_rating(self) -> str:
        return self._worst_rating

    @property
    def ratings(self) -> List[str]:
        """All ratings from best to worst."""
        return [rating for rating, _ in self._thresholds] + [self._worst_rating]

    def classify(self, total_ci_value: float) -> str:
        """Return the letter rating for a total CI value."""
        if isinstance(total_ci_value, bool) or not isinstance(total_ci_value, (int, float)) \
                or not math.isfinite(total_ci_value):
            raise CIValidationError([f"CI value must be a finite number, got {total_ci_value!r}"])
        for rating, bound in self._thresholds:
            if total_ci_value <= bound:
                return rating
        return self._worst_rating

    def rank(self, rating: str) -> int:
        """Position of a rating, 0 being the best."""
        try:
            return self.ratings.index(rating)
        except ValueError:
            raise ValueError(f"Unknown rating {rating!r}") from None

    def compare(self, a: str, b: str) -> int:
        """Negative if a is better than b, zero if equal, positive if worse."""
        return self.rank(a) - self.rank(b)

    def bounds_for(self, rating: str) -> Tuple[Optional[float], Optional[float]]:
        """(exclusive lower, inclusive upper) CI bounds of a rating; None means open."""
        index = self.rank(rating)
        lower = self._thresholds[index - 1][1] if index > 0 else None
        upper = self._thresholds[index][1] if index < len(self._thresholds) else None
        return lower, upper


def classify_ci(total_ci_value: float, thresholds: Optional[ThresholdTable] = None) -> str:
    """Classify with the configured table, or a given one."""
    if thresholds is None:
        return RatingClassifier.from_settings().classify(total_ci_value)
    return RatingClassifier(thresholds, settings.ci_worst_rating).classify(total_ci_value)


def is_monotonic(classifier: RatingClassifier, values: Iterable[float]) -> bool:
    """True if the ratings of the sorted values never improve as CI grows."""
    ranks = [classifier.rank(classifier.classify(v)) for v in sorted(values)]
    return all(a <= b for a, b in zip(ranks, ranks[1:]))
