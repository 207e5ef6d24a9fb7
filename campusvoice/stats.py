# Dashboard statistics, recomputed from the full record set on every call

from collections import Counter
from typing import Iterable

from .models import Grievance, StatsResponse


def compute_stats(grievances: Iterable[Grievance]) -> StatsResponse:
    """Count records per category, urgency, sentiment and status.

    Values that never occur are absent from their mapping rather than zero.
    """
    by_category, by_urgency, by_sentiment, by_status = Counter(), Counter(), Counter(), Counter()
    total = 0
    for g in grievances:
        total += 1
        by_category[g.category.value] += 1
        by_urgency[g.urgency.value] += 1
        by_sentiment[g.sentiment.value] += 1
        by_status[g.status.value] += 1
    return StatsResponse(total=total, by_category=dict(by_category), by_urgency=dict(by_urgency),
                         by_sentiment=dict(by_sentiment), by_status=dict(by_status))
