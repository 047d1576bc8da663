"""Rater trust classification with a persistent cache."""

from collections.abc import Callable, Iterable

import structlog

from bggtop.config.constants import COMPONENT_WORKER
from bggtop.fetch.models import RaterRating
from bggtop.stabilizer.protocols import RatingSource, StabilizationStore


logger = structlog.get_logger()


def classify_trust(average: float, lower: float, upper: float) -> bool:
    """Trust a rater whose own average lies strictly between the bounds."""
    return lower < average < upper


class UserTrustResolver:
    """Decides whether a rater's ratings count.

    Known raters are answered from the store. Unknown raters cost one remote
    lookup of their average, after which the flag is stored with an
    insert-if-absent. Two workers meeting the same new rater at once may
    both look it up; whichever insert lands first is kept and both proceed
    with their own value. Failed lookups are not cached.
    """

    def __init__(  # noqa: PLR0913
        self,
        store: StabilizationStore,
        source: RatingSource,
        lower: float,
        upper: float,
        on_new_rater: Callable[[str, bool], None] | None = None,
        run_id: str = "",
    ) -> None:
        """Initialize the resolver.

        Args:
            store: Store holding trust flags.
            source: Source for rater averages.
            lower: Exclusive lower trust bound.
            upper: Exclusive upper trust bound.
            on_new_rater: Called after each successful remote lookup with the
                rater id and its classification.
            run_id: Run identifier for logging.
        """
        self._store = store
        self._source = source
        self._lower = lower
        self._upper = upper
        self._on_new_rater = on_new_rater
        self._log = logger.bind(component=COMPONENT_WORKER, run_id=run_id)

    def resolve(self, rater_id: str) -> bool:
        """Return whether a rater is trusted.

        Raises:
            SourceFetchError: If the rater is unknown and the lookup failed.
            StateStoreError: If the store failed.
        """
        trusted = self._store.check_rater_trust(rater_id)
        if trusted is not None:
            return trusted

        average = self._source.fetch_rater_average(rater_id)
        trusted = classify_trust(average, self._lower, self._upper)
        inserted = self._store.insert_rater_if_absent(rater_id, trusted)
        self._log.debug(
            "rater_resolved",
            rater_id=rater_id,
            average=average,
            trusted=trusted,
            inserted=inserted,
        )
        if self._on_new_rater is not None:
            self._on_new_rater(rater_id, trusted)
        return trusted

    def resolve_page(self, ratings: Iterable[RaterRating]) -> dict[str, bool]:
        """Resolve every distinct rater on a page, in page order.

        Stops at the first failure; flags already stored stay stored.

        Returns:
            Mapping of rater id to trust flag.
        """
        flags: dict[str, bool] = {}
        for rating in ratings:
            if rating.rater_id not in flags:
                flags[rating.rater_id] = self.resolve(rating.rater_id)
        return flags
