"""
Logging subsystem for FinanceFlow.

Modules:

- :mod:`FinanceFlow.log.log` – Root logger setup, the in-memory error log handler and the Qt message bridge.
"""
