"""Normalization of analysis results into chart and table datasets.

The statistics arrive precomputed; this module only reshapes them. Keys are
processed in the order the API delivered them, and every value is copied
through without rounding or validation.

Note:
    All variations in one result are expected to share a bucket axis. The
    axis labels are taken from the last variation processed; a result that
    violates the shared-axis assumption will show that variation's buckets.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from toggle_analysis.common.models import (
    AnalysisResult,
    ChartSeries,
    StatValue,
    TableRow,
    Variation,
    ViewModel,
)

EMPTY_VIEW_MODEL = ViewModel()


def resolve_variation_name(key: str, variations: Sequence[Variation]) -> str:
    """Return the display name for a result key, or "" if it does not resolve.

    Args:
        key: Variation index as delivered in the result (e.g. "0")
        variations: Variation metadata from the targeting configuration

    Returns:
        The variation name, or an empty string for unknown or non-numeric keys
    """
    try:
        index = int(key)
    except (TypeError, ValueError):
        return ""

    for variation in variations:
        if variation.index == index:
            return variation.name or ""
    return ""


def normalize(
    result: AnalysisResult | Mapping[str, Any] | None,
    variations: Sequence[Variation] | None,
) -> ViewModel:
    """Build the display view model for an analysis result.

    Args:
        result: Ordered per-variation statistics, a plain mapping of them, or None
        variations: Variation metadata used to resolve display names

    Returns:
        A new ViewModel. ``has_data`` is True iff the result has at least one key.

    Example:
        >>> result = AnalysisResult.from_mapping({"0": {
        ...     "distributionPoints": [{"x": 1, "y": 10}, {"x": 2, "y": 20}],
        ...     "mean": 5, "winningPercentage": 50,
        ...     "credibleInterval": [1, 9], "sampleSize": 100}})
        >>> vm = normalize(result, [Variation(index=0, name="Control")])
        >>> vm.chart_series[0].values
        (10, 20)
    """
    if result is None:
        return EMPTY_VIEW_MODEL
    if not isinstance(result, AnalysisResult):
        result = AnalysisResult.from_mapping(result)
    if result.is_empty:
        return EMPTY_VIEW_MODEL

    variations = variations or []
    chart_series: list[ChartSeries] = []
    table_rows: list[TableRow] = []
    axis_labels: list[StatValue] = []

    for key, stat in result.entries:
        name = resolve_variation_name(key, variations)

        chart_series.append(
            ChartSeries(label=name, values=tuple(point.y for point in stat.distribution_points))
        )
        table_rows.append(
            TableRow(
                name=name,
                mean=stat.mean,
                winning_percentage=stat.winning_percentage,
                credible_interval=stat.credible_interval,
                sample_size=stat.sample_size,
            )
        )
        axis_labels = [point.x for point in stat.distribution_points]

    return ViewModel(
        has_data=True,
        chart_series=tuple(chart_series),
        table_rows=tuple(table_rows),
        axis_labels=tuple(axis_labels),
    )
