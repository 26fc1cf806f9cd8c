"""
Core package for FinanceFlow providing sync monitoring and export.

This package includes:

- :mod:`FinanceFlow.core.identity` – The signed-in owner and the identity source.
- :mod:`FinanceFlow.core.store` – Remote store client interface, subscriptions and store events.
- :mod:`FinanceFlow.core.firestore` – Firestore REST client with polling probe subscriptions.
- :mod:`FinanceFlow.core.transport` – Network reachability signals.
- :mod:`FinanceFlow.core.monitor` – Connection status monitor and the sync status value.
- :mod:`FinanceFlow.core.export` – Bulk export of a user's data as CSV.
- :mod:`FinanceFlow.core.delivery` – Delivery sinks for exported files.
- :mod:`FinanceFlow.core.context` – The application context owning the collaborators.
- :mod:`FinanceFlow.core.auth` – Google OAuth2 credential management.
- :mod:`FinanceFlow.core.worker` – Worker threads for blocking store calls.
"""
