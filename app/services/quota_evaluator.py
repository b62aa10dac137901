"""
Quota Evaluator

Single source of the usage thresholds. Every view of usage (gate decisions,
notifications, dashboards) is derived from `evaluate`.
"""

from decimal import Decimal, ROUND_HALF_UP

from app.schemas.usage import QuotaEvaluation, UsageStatus

# Policy cut points in percent. Fixed for every plan.
HIGH_USAGE_THRESHOLD = 75
NEARLY_FULL_THRESHOLD = 90
LIMIT_REACHED_THRESHOLD = 100


def usage_percentage(count: int, limit: int) -> int:
    """Percentage of limit used, rounded half up and capped at 100."""
    if limit == 0:
        return 0
    exact = Decimal(100 * count) / Decimal(limit)
    return min(100, int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP)))


def classify(percentage: int) -> UsageStatus:
    """Map a percentage to its usage band."""
    if percentage >= LIMIT_REACHED_THRESHOLD:
        return UsageStatus.LIMIT_REACHED
    if percentage >= NEARLY_FULL_THRESHOLD:
        return UsageStatus.NEARLY_FULL
    if percentage >= HIGH_USAGE_THRESHOLD:
        return UsageStatus.HIGH_USAGE
    return UsageStatus.NORMAL


def evaluate(count: int, limit: int) -> QuotaEvaluation:
    """
    Evaluate a counter against its limit.

    A limit of 0 means the resource is unlimited: it is metered but always
    Normal.

    Args:
        count: Current counter value
        limit: Limit for the same resource and period

    Returns:
        QuotaEvaluation with percentage and status

    Raises:
        ValueError: If count or limit is negative
    """
    if count < 0 or limit < 0:
        raise ValueError(f"count and limit must be non-negative (count={count}, limit={limit})")

    if limit == 0:
        return QuotaEvaluation(percentage=0, status=UsageStatus.NORMAL)

    percentage = usage_percentage(count, limit)
    return QuotaEvaluation(percentage=percentage, status=classify(percentage))
