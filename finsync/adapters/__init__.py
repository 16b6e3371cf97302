from typing import Dict, List, Type

from .base import BankAdapter, BankCredentials
from .dkb import DkbAdapter
from .exceptions import (
    AuthError,
    BankAdapterError,
    BankApiError,
    MalformedResponseError,
    NetworkError,
    PaginationLimitError,
)

ADAPTERS: Dict[str, Type[BankAdapter]] = {
    DkbAdapter.institution_id: DkbAdapter,
}


def register_adapter(adapter_cls: Type[BankAdapter]) -> Type[BankAdapter]:
    """Register an adapter class under its institution_id. Usable as a decorator."""
    if not adapter_cls.institution_id:
        raise ValueError(f"{adapter_cls.__name__} has no institution_id")
    ADAPTERS[adapter_cls.institution_id] = adapter_cls
    return adapter_cls


def get_adapter(institution_id: str, **kwargs) -> BankAdapter:
    adapter_cls = ADAPTERS.get(institution_id)
    if adapter_cls is None:
        raise ValueError(
            f"Unknown institution '{institution_id}'. Available: {', '.join(sorted(ADAPTERS))}"
        )
    return adapter_cls(**kwargs)


def list_adapters() -> List[Dict[str, str]]:
    return [
        {'institution_id': cls.institution_id, 'institution_name': cls.institution_name}
        for cls in ADAPTERS.values()
    ]


__all__ = [
    'ADAPTERS', 'register_adapter', 'get_adapter', 'list_adapters',
    'BankAdapter', 'BankCredentials', 'DkbAdapter',
    'BankAdapterError', 'AuthError', 'NetworkError', 'MalformedResponseError',
    'PaginationLimitError', 'BankApiError',
]
