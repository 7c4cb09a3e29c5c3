"""Application metrics using the Prometheus client library.

All metrics are defined here so the inventory lives in one place.
Other modules import a metric and increment/observe it where the
behavior happens.

HTTP metrics are populated by MetricsMiddleware.  The ``endpoint``
label is the route template (``/v1/entry/{code}``), never the raw URL
path: access codes and completion ids appear in paths, and every
distinct label value creates a new time series in Prometheus.

Domain metrics answer the questions an operator actually asks:
  - Why are learners being turned away?  (validations by outcome)
  - How fast are companies burning through seats?  (seats consumed)
  - What is the pass rate right now?  (results recorded by outcome)
  - Where do learners drop off?  (flow transitions by target step)
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Domain metrics
# ---------------------------------------------------------------------------

ACCESS_CODE_VALIDATIONS = Counter(
    "access_code_validations_total",
    "Access code validations by outcome",
    ["outcome"],  # valid|not_found|expired|no_seats|course_unavailable
)

SEATS_CONSUMED = Counter(
    "seats_consumed_total",
    "Seats deducted from LIMITED access codes",
)

SEAT_CONSUMPTION_REFUSED = Counter(
    "seat_consumption_refused_total",
    "Passing results recorded without a seat because the pool was exhausted",
)

RESULTS_RECORDED = Counter(
    "results_recorded_total",
    "Test results appended, by outcome",
    ["outcome"],  # pass|fail
)

FLOW_TRANSITIONS = Counter(
    "learner_flow_transitions_total",
    "Learner flow step changes by target step",
    ["step"],  # INTRO|VIDEO|TEST|RESULT
)
