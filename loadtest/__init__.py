"""
Load-test suite for the event-tracking API (Locust-based).

The package supplies everything Locust does not: per-iteration request
logic, a declarative scenario/threshold catalog, outcome classification,
run-end scoring and reporting.  Scheduling, HTTP transport and request
statistics stay with Locust itself.

Key Concepts Demonstrated:
- Weighted operation mixes that model realistic create/read ratios
- Randomised but schema-valid payloads backed by optional CSV datasets
- Latency-based cache-hit inference as a pluggable heuristic
- Run-scoped metric accumulators reduced into 0-100 health scores
"""
