"""
Test suite for the AirBrx load harness.

This package contains:
- unit/: Selector, executor, metrics, stages, thresholds and lifecycle
  tests using fake clients and canned responses (no network)
- smoke/: A live check against a running gateway, enabled by
  ``AIRBRX_SMOKE_URL``
"""
