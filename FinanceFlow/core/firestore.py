"""Cloud Firestore integration through the Firestore v1 REST API.

Provides the :class:`FirestoreClient` store client: scoped one-shot reads via
``runQuery`` and polling probe subscriptions that run their queries on worker
threads and publish the outcome as store events.
"""

import base64
import datetime
import logging
import socket
import ssl
import threading
from typing import Any, Dict, List, Optional, Sequence

import google_auth_httplib2
import httplib2
from PySide6 import QtCore
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .auth import AuthManager, AuthExpiredError
from .store import FieldFilter, RemoteStoreClient, StoreEvent, Subscription
from .worker import AsyncWorker
from ..status import status

REQUEST_TIMEOUT: int = 30
MAX_RETRIES: int = 3


class StoreQueryError(Exception):
    """Raised when the store rejects or cannot answer a query."""
    pass


def encode_value(value: Any) -> Dict[str, Any]:
    """Encode a Python value as a Firestore typed value.

    Args:
        value: The value to encode.

    Returns:
        The Firestore ``Value`` JSON representation.

    Raises:
        TypeError: If the value type has no Firestore counterpart.
    """
    if value is None:
        return {'nullValue': None}
    if isinstance(value, bool):
        return {'booleanValue': value}
    if isinstance(value, int):
        return {'integerValue': str(value)}
    if isinstance(value, float):
        return {'doubleValue': value}
    if isinstance(value, str):
        return {'stringValue': value}
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return {'timestampValue': value.isoformat()}
    raise TypeError(f'Cannot encode {type(value)} as a Firestore value.')


def decode_value(value: Dict[str, Any]) -> Any:
    """Decode a Firestore typed value into a Python value.

    Args:
        value: A Firestore ``Value`` JSON object.

    Returns:
        The decoded Python value.
    """
    if 'nullValue' in value:
        return None
    if 'booleanValue' in value:
        return bool(value['booleanValue'])
    if 'integerValue' in value:
        return int(value['integerValue'])
    if 'doubleValue' in value:
        return float(value['doubleValue'])
    if 'timestampValue' in value:
        return datetime.datetime.fromisoformat(value['timestampValue'])
    if 'stringValue' in value:
        return value['stringValue']
    if 'bytesValue' in value:
        return base64.b64decode(value['bytesValue'])
    if 'referenceValue' in value:
        return value['referenceValue']
    if 'geoPointValue' in value:
        point = value['geoPointValue']
        return {'latitude': point.get('latitude', 0.0), 'longitude': point.get('longitude', 0.0)}
    if 'arrayValue' in value:
        return [decode_value(v) for v in value['arrayValue'].get('values', [])]
    if 'mapValue' in value:
        return {k: decode_value(v) for k, v in value['mapValue'].get('fields', {}).items()}

    logging.warning(f'Unknown Firestore value type: {list(value.keys())}')
    return None


def decode_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a Firestore document into a record starting with its ``id``."""
    record: Dict[str, Any] = {'id': document['name'].rsplit('/', 1)[-1]}
    for key, value in document.get('fields', {}).items():
        record[key] = decode_value(value)
    return record


def build_structured_query(collection: str, filters: Sequence[FieldFilter] = (),
                           limit: Optional[int] = None) -> Dict[str, Any]:
    """Build a ``runQuery`` request body.

    Args:
        collection: Collection id to query.
        filters: Conditions, combined with AND.
        limit: Optional maximum number of documents.

    Returns:
        The request body.
    """
    query: Dict[str, Any] = {'from': [{'collectionId': collection}]}

    field_filters = [
        {
            'fieldFilter': {
                'field': {'fieldPath': f.field},
                'op': f.op,
                'value': encode_value(f.value),
            }
        } for f in filters
    ]
    if len(field_filters) == 1:
        query['where'] = field_filters[0]
    elif field_filters:
        query['where'] = {'compositeFilter': {'op': 'AND', 'filters': field_filters}}

    if limit is not None:
        query['limit'] = limit
    return {'structuredQuery': query}


class PollingSubscription(Subscription):
    """Probe subscription that re-runs its query on a fixed interval.

    Each successful query publishes a ``snapshot`` event. Failures publish an
    ``error`` event and polling continues. Credentials that can only be renewed
    interactively publish ``detached`` and stop the subscription.
    """

    def __init__(self, client: 'FirestoreClient', collection: str, filters: Sequence[FieldFilter] = (),
                 limit: Optional[int] = None, poll_interval: int = 30,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(collection, filters, limit, parent)
        self._client = client
        self._worker: Optional[AsyncWorker] = None

        self._timer = QtCore.QTimer(self)
        self._timer.setInterval(poll_interval * 1000)
        self._timer.timeout.connect(self.poll)

    def _on_start(self) -> None:
        self._timer.start()
        QtCore.QTimer.singleShot(0, self.poll)

    def _on_cancel(self) -> None:
        self._timer.stop()
        self._worker = None

    @QtCore.Slot()
    def poll(self) -> None:
        """Run the probe query unless one is already in flight."""
        if not self.active or self._worker is not None:
            return

        worker = AsyncWorker(self._client.run_query, self.collection, self.filters, self.limit)
        worker.resultReady.connect(self._on_result)
        worker.errorOccurred.connect(self._on_error)

        self._worker = worker
        worker.launch()

    @QtCore.Slot(object)
    def _on_result(self, documents: List[Dict[str, Any]]) -> None:
        self._worker = None
        self.publish(StoreEvent.snapshot(len(documents)))

    @QtCore.Slot(object)
    def _on_error(self, ex: Exception) -> None:
        self._worker = None
        if isinstance(ex, (AuthExpiredError, status.CredsInvalidException)):
            logging.warning(f'Probe on "{self.collection}" lost its credentials: {ex}')
            self.publish(StoreEvent.detached(str(ex)))
            return
        logging.debug(f'Probe on "{self.collection}" failed: {ex}')
        self.publish(StoreEvent.error(str(ex)))


class FirestoreClient(RemoteStoreClient):
    """Store client backed by the Firestore v1 REST API.

    Args:
        settings: The settings API providing the ``store`` section.
        auth_manager: Supplies OAuth credentials for every request.
    """

    def __init__(self, settings, auth_manager: AuthManager) -> None:
        self.settings = settings
        self.auth_manager = auth_manager
        self._lock = threading.Lock()
        self._service: Any = None

        from .signals import signals
        signals.configSectionChanged.connect(self._on_config_section_changed)

    @QtCore.Slot(str)
    def _on_config_section_changed(self, section: str) -> None:
        if section == 'client_secret':
            logging.debug('Clearing cached Firestore service client due to client_secret change')
            self.clear_service()

    @property
    def parent_path(self) -> str:
        """Resource path of the configured database's document root.

        Raises:
            status.ProjectIdNotConfiguredException: If no project id is configured.
        """
        config: Dict[str, Any] = self.settings.get_section('store')
        project_id: Optional[str] = config.get('project_id', None)
        if not project_id:
            raise status.ProjectIdNotConfiguredException
        database: str = config.get('database') or '(default)'
        return f'projects/{project_id}/databases/{database}/documents'

    def get_service(self) -> Any:
        """
        Builds (or returns cached) Firestore service client.

        Returns:
            The Firestore API Resource.
        """
        with self._lock:
            if self._service is not None:
                return self._service
            creds: Any = self.auth_manager.get_valid_credentials()
            try:
                self._service = build('firestore', 'v1', credentials=creds, cache_discovery=False)
            except (HttpError, httplib2.HttpLib2Error, OSError) as ex:
                raise status.ServiceUnavailableException(str(ex)) from ex
            logging.debug('Firestore service client created successfully.')
            return self._service

    def clear_service(self) -> None:
        """
        Clears the cached Firestore service client.
        """
        with self._lock:
            if self._service is not None:
                self._service.close()
            self._service = None

    def _authorized_http(self) -> google_auth_httplib2.AuthorizedHttp:
        # httplib2 connections are not thread-safe, so every request gets its own
        creds: Any = self.auth_manager.get_valid_credentials()
        return google_auth_httplib2.AuthorizedHttp(creds, http=httplib2.Http(timeout=REQUEST_TIMEOUT))

    def run_query(self, collection: str, filters: Sequence[FieldFilter] = (),
                  limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Runs a structured query and decodes the matching documents.

        Blocking; call it from a worker thread.

        Args:
            collection: Collection id to query.
            filters: Conditions, combined with AND.
            limit: Optional maximum number of documents.

        Returns:
            A list of records in the order returned by the store.

        Raises:
            StoreQueryError: If the store rejects the query or cannot be reached.
            AuthExpiredError: If credentials need interactive renewal.
        """
        parent: str = self.parent_path
        body: Dict[str, Any] = build_structured_query(collection, filters, limit)
        service: Any = self.get_service()

        logging.debug(f'Querying "{collection}" under "{parent}" (limit={limit}).')
        try:
            response: List[Dict[str, Any]] = service.projects().databases().documents().runQuery(
                parent=parent,
                body=body,
            ).execute(http=self._authorized_http(), num_retries=MAX_RETRIES)
        except HttpError as ex:
            stat: Optional[int] = ex.resp.status if ex.resp else None
            if stat == 403:
                raise StoreQueryError(
                    f'Permission denied (HTTP 403) reading "{collection}".'
                ) from ex
            elif stat == 404:
                raise StoreQueryError(
                    f'Database not found (HTTP 404): "{parent}".'
                ) from ex
            else:
                raise StoreQueryError(f'Error querying "{collection}": {ex}') from ex
        except socket.timeout as ex:
            raise StoreQueryError(f'Timeout querying "{collection}": {ex}') from ex
        except ssl.SSLError as ex:
            raise StoreQueryError(f'SSL error querying "{collection}": {ex}') from ex
        except (httplib2.HttpLib2Error, OSError) as ex:
            raise StoreQueryError(f'Could not reach the store: {ex}') from ex

        records: List[Dict[str, Any]] = [
            decode_document(item['document']) for item in response or [] if 'document' in item
        ]
        logging.debug(f'Fetched {len(records)} document(s) from "{collection}".')
        return records

    def read(self, collection: str, filters: Sequence[FieldFilter] = ()) -> List[Dict[str, Any]]:
        return self.run_query(collection, filters)

    def subscribe(self, collection: str, filters: Sequence[FieldFilter] = (),
                  limit: Optional[int] = None) -> PollingSubscription:
        config: Dict[str, Any] = self.settings.get_section('store')
        poll_interval: int = config.get('poll_interval', 30)
        return PollingSubscription(self, collection, filters, limit, poll_interval=poll_interval)

    def close(self) -> None:
        from .signals import signals
        try:
            signals.configSectionChanged.disconnect(self._on_config_section_changed)
        except (RuntimeError, TypeError):
            logging.debug('Config signal was already disconnected.')
        self.clear_service()
