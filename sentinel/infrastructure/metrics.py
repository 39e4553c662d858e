"""
Prometheus метрики для мониторинга.
"""

from prometheus_client import Counter, Gauge

# Заявки
requests_submitted = Counter(
    "sentinel_requests_submitted_total",
    "Total audit requests submitted",
)

request_transitions = Counter(
    "sentinel_request_transitions_total",
    "Request status transitions",
    ["status"]
)

refunded_amount = Counter(
    "sentinel_refunded_wei_total",
    "Total amount refunded to requesters",
)

# Хранение средств
escrow_balance = Gauge(
    "sentinel_escrow_balance_wei",
    "Actual custody balance of the request queue",
)

# Отклонённые операции
operations_rejected = Counter(
    "sentinel_operations_rejected_total",
    "Operations rejected with a named error",
    ["component", "error"]
)

# Реестр
reports_submitted = Counter(
    "sentinel_reports_submitted_total",
    "Audit reports written to the registry",
)
