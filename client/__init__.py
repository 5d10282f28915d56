from client.api import DocsApiClient, DocsApiError, format_providers, format_results
from client.lru import LRUCache
