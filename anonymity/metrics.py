"""
Prometheus metrics for the anonymity service.
"""
from prometheus_client import Counter, Histogram


salt_created_total = Counter(
    'anonymity_salt_created_total',
    'Daily salts generated and written to the shared store'
)

salt_cache_hits_total = Counter(
    'anonymity_salt_cache_hits_total',
    'Daily salt lookups served from the shared store'
)

salt_race_lost_total = Counter(
    'anonymity_salt_race_lost_total',
    'Conditional salt writes that lost to a concurrent writer'
)

store_errors_total = Counter(
    'anonymity_store_errors_total',
    'Shared store operations that failed',
    ['operation']
)

store_latency_seconds = Histogram(
    'anonymity_store_latency_seconds',
    'Latency of shared store operations',
    ['operation']
)

duplicate_events_total = Counter(
    'anonymity_duplicate_events_total',
    'Inbound events dropped as duplicates',
    ['event_type']
)
