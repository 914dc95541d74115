"""
Helpers shared by the feature routers
"""

from typing import Optional, TypeVar

from shared.functional import Result

T = TypeVar('T')


class HostOperationError(Exception):
    """A host collaborator reported failure for the requested operation"""


def unwrap(result: Result[T, str]) -> T:
    """Success value of a collaborator call, or HostOperationError"""
    if result.is_failure():
        raise HostOperationError(str(result.error))
    return result.value


def require(payload: dict, *fields: str) -> None:
    missing = [field for field in fields if not payload.get(field)]
    if missing:
        raise ValueError(f"Missing required parameters ({', '.join(missing)})")


def provided(collaborator: Optional[T], feature: str) -> T:
    """The optional collaborator, or HostOperationError when the host has none"""
    if collaborator is None:
        raise HostOperationError(f"{feature} are not available on this host")
    return collaborator
