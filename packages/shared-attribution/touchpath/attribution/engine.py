"""
Counterfactual attribution engine.

For a baseline path, each position's marginal contribution is the baseline
conversion probability minus the conversion probability of the path with
that position removed. Policies applied along the way:
- Unseen counterfactual path: assumed never to convert (probability 0)
- Negative contribution: floored at 0, so no event takes negative credit
- All contributions 0: last-touch fallback for that path only

Attribution runs once per distinct canonical path; customer-level results
join against the resulting table.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor

from touchpath.attribution.heuristics import get_heuristic
from touchpath.attribution.schema import AttributionModel, AttributionRow
from touchpath.paths import InvalidInput, Path, PathSummary, counterfactuals

logger = logging.getLogger(__name__)


def fractional_values(
    baseline_path: Path,
    baseline_conversion_prob: float,
    summary: PathSummary,
    normalize: bool = True,
) -> AttributionRow:
    """
    Compute fractional attribution for one baseline path.

    Args:
        baseline_path: Path canonical under the method used to build summary
        baseline_conversion_prob: Conversion probability of the baseline,
            normally ``summary.conversion_prob(baseline_path)``
        summary: Read-only path summary used for counterfactual lookups
        normalize: Scale credits to sum to 1. When False the raw probability
            differences are returned.

    Returns:
        Mapping of each distinct event in the path to its credit

    Raises:
        InvalidInput: If the path is empty or the probability is outside [0, 1].
    """
    if not baseline_path:
        raise InvalidInput("Cannot attribute an empty path")
    if not 0.0 <= baseline_conversion_prob <= 1.0:
        raise InvalidInput(
            f"conversion_prob {baseline_conversion_prob} outside [0, 1] for path {str(baseline_path)!r}"
        )

    row: AttributionRow = dict.fromkeys(baseline_path.distinct_events(), 0.0)
    total = 0.0

    for event, counterfactual in counterfactuals(baseline_path):
        stats = summary.get(counterfactual)
        if stats is None:
            counterfactual_prob = 0.0
            logger.debug(f"Counterfactual {str(counterfactual)!r} unobserved, treating as non-converting")
        else:
            counterfactual_prob = stats.conversion_prob

        # Floor at 0 to avoid negative credit
        contribution = max(baseline_conversion_prob - counterfactual_prob, 0.0)
        row[event] += contribution
        total += contribution

    if total == 0:
        logger.debug(f"No positive contribution for {str(baseline_path)!r}, using last touch")
        row = dict.fromkeys(row, 0.0)
        row[baseline_path.last] = 1.0 if normalize else baseline_conversion_prob
        return row

    if normalize:
        row = {event: value / total for event, value in row.items()}
    return row


class AttributionEngine:
    """Attribute every distinct path of a PathSummary.

    The summary is shared read-only, so paths can be attributed in parallel.

    Example:
        engine = AttributionEngine(summary, normalize=True, max_workers=4)
        rows = engine.fit()
        rows[Path.parse("Search > Email")]  # {"Search": 0.7, "Email": 0.3}
    """

    def __init__(
        self,
        summary: PathSummary,
        normalize: bool = True,
        model: AttributionModel | str = AttributionModel.COUNTERFACTUAL,
        max_workers: int = 1,
    ):
        """
        Initialize engine.

        Args:
            summary: Path summary built with the run's transform method
            normalize: Normalize counterfactual credits to sum to 1
            model: Attribution model, counterfactual by default
            max_workers: Threads used by fit(); 1 runs inline

        Raises:
            InvalidConfiguration: If the model is not supported.
        """
        self.summary = summary
        self.normalize = normalize
        self.model = AttributionModel.parse(model)
        self.max_workers = max(1, max_workers)
        self._attribute = self._select_model()

    def _select_model(self) -> Callable[[Path, float | None], AttributionRow]:
        if self.model == AttributionModel.COUNTERFACTUAL:
            return self._counterfactual
        heuristic = get_heuristic(self.model)
        return lambda path, conversion_prob=None: heuristic(path)

    def _counterfactual(self, path: Path, conversion_prob: float | None = None) -> AttributionRow:
        if conversion_prob is None:
            conversion_prob = self.summary.conversion_prob(path)
        return fractional_values(path, conversion_prob, self.summary, self.normalize)

    def attribute(self, path: Path, conversion_prob: float | None = None) -> AttributionRow:
        """
        Attribute a single canonical path.

        Args:
            path: Canonical baseline path
            conversion_prob: Override for the baseline probability; read from
                the summary when omitted

        Returns:
            AttributionRow for the path
        """
        return self._attribute(path, conversion_prob)

    def fit(self, paths: Iterable[Path] | None = None) -> dict[Path, AttributionRow]:
        """
        Attribute each distinct path once.

        Args:
            paths: Paths to attribute; defaults to the summary's converting paths

        Returns:
            Dict from path to its AttributionRow
        """
        if paths is None:
            paths = self.summary.converting_paths()
        distinct = [path for path in dict.fromkeys(paths) if path]

        if self.max_workers > 1 and len(distinct) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                rows = list(executor.map(self.attribute, distinct))
        else:
            rows = [self.attribute(path) for path in distinct]

        logger.info(f"Attributed {len(distinct)} distinct paths ({self.model.value})")
        return dict(zip(distinct, rows))
