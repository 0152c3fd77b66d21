from dryrepo.domain.ports.store import QueryHandlePort, StorePort

__all__ = [
    "QueryHandlePort",
    "StorePort",
]
