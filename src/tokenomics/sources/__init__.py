"""External data sources.

Provides the retrying HTTP fetcher and the aggregator that turns the four
source responses into one DailyRecord.
"""

from tokenomics.sources.aggregator import SourceAggregator, normalize_amount
from tokenomics.sources.fetcher import RetryingFetcher, json_body, text_body

__all__ = [
    "RetryingFetcher",
    "SourceAggregator",
    "json_body",
    "normalize_amount",
    "text_body",
]
