from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """Outcome of a gateway read: either a value is present or it is absent.

    Gateways never raise into the dialogue policy; a failed or empty read is
    reported as ``Lookup.absent()`` and the caller decides what to tell the user.
    """

    value: Optional[T] = None
    found: bool = False

    @classmethod
    def present(cls, value: T) -> "Lookup[T]":
        return cls(value=value, found=True)

    @classmethod
    def absent(cls) -> "Lookup[T]":
        return cls()

    def __bool__(self) -> bool:
        return self.found
