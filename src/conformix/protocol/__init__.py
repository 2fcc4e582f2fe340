"""Protocol-facing contracts.

- catalog: protocol constants and their static properties
- config: the mutable draft configuration parameters edit
- driver: narrow Protocol contracts for the external driver, scanner and listener
- strategies: per-epoch configuration construction
"""
