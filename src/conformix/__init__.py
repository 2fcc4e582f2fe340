"""conformix: combinatorial conformance testing for handshake-based protocols.

conformix probes an implementation's capabilities, derives a covering set of
configuration combinations from them, executes the resulting interactions
through two bounded worker tiers and aggregates per-test verdicts.
"""

__version__ = "0.3.0"
