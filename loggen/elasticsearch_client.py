"""
Elasticsearch Client Module
===========================

Connection handling, index template management and bulk indexing for the
Elasticsearch sink.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from elasticsearch import Elasticsearch, helpers
from elasticsearch.exceptions import ApiError, ConnectionError, TransportError, AuthenticationException

from .config import ElasticsearchConfig
from .exceptions import SinkError

logger = logging.getLogger(__name__)

# Responses worth another attempt: throttling and unavailable nodes
RETRYABLE_STATUSES = (429, 502, 503, 504)


def _status(error: ApiError) -> Optional[int]:
    meta = getattr(error, 'meta', None)
    return getattr(meta, 'status', None)


class LogIndexClient:
    """
    Elasticsearch client that writes generated records into daily indices.

    Indices are named ``<index_prefix>-YYYY.MM.DD``.
    """

    def __init__(self, es_config: ElasticsearchConfig, client: Optional[Elasticsearch] = None):
        """
        Initialize the client.

        Args:
            es_config: Connection settings
            client: Pre-built Elasticsearch client (created on connect if omitted)
        """
        self.es_config = es_config
        self._client = client
        self.es_version: Optional[str] = None
        self._interrupted = threading.Event()

    @property
    def client(self) -> Elasticsearch:
        if self._client is None:
            self.connect()
        return self._client

    def _connection_params(self) -> Dict[str, Any]:
        """Build keyword arguments for the Elasticsearch constructor."""
        params: Dict[str, Any] = {
            'hosts': self.es_config.hosts,
            'request_timeout': self.es_config.timeout,
            'max_retries': self.es_config.max_retries,
            'retry_on_timeout': True,
        }

        # API key takes precedence over basic auth
        if self.es_config.api_key:
            params['api_key'] = self.es_config.api_key
        else:
            params['basic_auth'] = (self.es_config.username, self.es_config.password)

        # TLS options are only accepted for https nodes
        if any(str(host).startswith('https') for host in self.es_config.hosts):
            params['verify_certs'] = self.es_config.verify_certs
            params['ssl_show_warn'] = False
            if self.es_config.ca_certs:
                params['ca_certs'] = self.es_config.ca_certs

        return params

    def connect(self) -> None:
        """
        Establish the connection and read the cluster version.

        Raises:
            SinkError: if the cluster cannot be reached or rejects the credentials.
        """
        logger.info(f"Connecting to Elasticsearch hosts: {self.es_config.hosts}")

        try:
            if self._client is None:
                self._client = Elasticsearch(**self._connection_params())
            info = self._client.info()
        except ValueError as e:
            raise SinkError(f"Invalid Elasticsearch settings: {e}") from e
        except AuthenticationException as e:
            raise SinkError(f"Authentication failed: {e}") from e
        except ApiError as e:
            raise SinkError(f"Cluster rejected the connection check ({_status(e)}): {e}") from e
        except (ConnectionError, TransportError) as e:
            raise SinkError(f"Connection failed: {e}") from e

        self.es_version = info['version']['number']
        logger.info(f"Connected to Elasticsearch {self.es_version}")

    def index_name(self, now: Optional[datetime] = None) -> str:
        """Name of the index that receives documents generated at ``now``."""
        now = now or datetime.now(timezone.utc)
        return f"{self.es_config.index_prefix}-{now.strftime('%Y.%m.%d')}"

    def ensure_index_template(self) -> bool:
        """Create or update the index template for generated logs."""
        prefix = self.es_config.index_prefix
        template_name = f'{prefix}-template'

        try:
            self.client.indices.put_index_template(
                name=template_name,
                index_patterns=[f'{prefix}-*'],
                template={
                    'settings': {
                        'number_of_shards': 1,
                        'number_of_replicas': 1,
                        'refresh_interval': '5s'
                    },
                    'mappings': {
                        'properties': {
                            '@timestamp': {'type': 'date'},
                            'level': {'type': 'keyword'},
                            'message': {'type': 'text'},
                            'counter': {'type': 'long'},
                            'service': {
                                'properties': {
                                    'instance': {
                                        'properties': {
                                            'id': {'type': 'keyword'}
                                        }
                                    }
                                }
                            }
                        }
                    }
                },
                priority=200
            )
            logger.info(f"Index template '{template_name}' created/updated")
            return True
        except (ApiError, ConnectionError, TransportError) as e:
            # Writers without manage_index_templates can still index
            logger.warning(f"Could not create index template: {e}")
            return False

    def interrupt(self) -> None:
        """Cut short any retry backoff; pending batches get one more attempt each."""
        self._interrupted.set()

    def _backoff(self, attempt: int) -> bool:
        """Wait before the next retry. Returns False once the client is interrupted."""
        return not self._interrupted.wait(2 ** attempt)

    def bulk_index(self, documents: List[Dict[str, Any]]) -> Tuple[int, int]:
        """
        Bulk index documents, retrying connection errors and throttling
        responses with exponential backoff.

        Documents that still cannot be indexed are dropped. Elasticsearch
        errors never escape this method.

        Returns:
            Tuple of (indexed, failed) document counts
        """
        if not documents:
            return 0, 0

        index = self.index_name()
        actions = [{'_index': index, '_source': doc} for doc in documents]

        max_retries = max(1, self.es_config.max_retries)
        for attempt in range(max_retries):
            try:
                success, errors = helpers.bulk(
                    self.client.options(request_timeout=self.es_config.timeout),
                    actions,
                    chunk_size=500,
                    raise_on_error=False,
                    raise_on_exception=False
                )
                failed = len(errors) if isinstance(errors, list) else errors
                if failed:
                    logger.warning(f"Some documents failed to index: {failed} failures")
                return success, failed

            except ApiError as e:
                if _status(e) not in RETRYABLE_STATUSES:
                    logger.error(f"Bulk indexing rejected ({_status(e)}), dropping {len(documents)} documents: {e}")
                    break
                error = e
            except (ConnectionError, TransportError, SinkError) as e:
                error = e

            if attempt == max_retries - 1:
                logger.error(f"Bulk indexing error after {max_retries} attempts: {error}")
            else:
                logger.warning(f"Bulk indexing failed, retrying ({attempt + 1}/{max_retries}): {error}")
                if not self._backoff(attempt):
                    logger.warning(f"Shutting down, dropping {len(documents)} documents")
                    break

        return 0, len(documents)

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except (ApiError, TransportError) as e:
                logger.warning(f"Error closing Elasticsearch client: {e}")
            self._client = None
