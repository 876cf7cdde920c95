"""
Load-testing harness for the AirBrx query gateway (Locust-based).

Drives weighted NWEA dashboard queries through the gateway to observe
latency, error rate and cache-hit behaviour under a staged ramp of
virtual users.  Locust supplies user scheduling, HTTP execution and the
web UI; this package supplies the scenario table, request validation,
metric accumulation, lifecycle hooks, thresholds, and a smoke harness.

Entry points:

- ``locust -f airbrx_perf/locustfile.py`` — staged load test
- ``airbrx-smoke`` — five-iteration smoke check
- ``airbrx-check-thresholds`` — CI gate over Locust CSV output
"""

__version__ = "0.1.0"
