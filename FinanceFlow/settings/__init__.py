"""
Settings package for FinanceFlow.

- :mod:`FinanceFlow.settings.lib` – Config file paths, schema validation and the :data:`settings` API instance.
"""
