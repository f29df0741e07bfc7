from contactpro.repository.base import ListQuery, RecordRepository, SERVER_QUERY_DIMENSIONS
from contactpro.repository.registry import RepositoryRegistry, build_repositories

__all__ = [
    "ListQuery",
    "RecordRepository",
    "RepositoryRegistry",
    "SERVER_QUERY_DIMENSIONS",
    "build_repositories",
]
