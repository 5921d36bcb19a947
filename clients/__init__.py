# Infrastructure clients
from clients.vault_client import VaultClient, VaultError, get_database_url
from clients.document_store import (
    SERVER_TIMESTAMP,
    MAX_BATCH_OPERATIONS,
    DocumentStore,
    WriteBatch,
    DocumentStoreError,
    DocumentNotFoundError,
    BatchTooLargeError,
)
from clients.memory_store import InMemoryDocumentStore
from clients.postgres_store import PostgresDocumentStore
