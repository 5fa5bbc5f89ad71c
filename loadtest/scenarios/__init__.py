"""
Locust scenario user classes.

Each module in this package defines the ``HttpUser`` subclasses of one
catalog scenario and tags them with the scenario's name:

- :mod:`.load_create` - create-only throughput
- :mod:`.load_read` - read-only throughput over three endpoint lanes
- :mod:`.create_read` - 30/70 create/read mix with read-after-write
- :mod:`.full_load` - 40/60 create/read mix
- :mod:`.stats_cache` - ``GET /stats`` with and without cache invalidation
- :mod:`.score` - ramping mixed load with run-end health scoring
- :mod:`.api_smoke` - every endpoint once per iteration

All concrete scenarios inherit from :class:`.base.EventApiUser`, which
wires each virtual user to the run attached to the Locust environment.
"""
