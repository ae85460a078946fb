"""
Permission references.

Callers name a permission either by id or by name. Strings are turned into
typed references here, before they reach the resolver:

    parse_permission_ref("5")            -> ById(5)
    parse_permission_ref("posts.edit")   -> ByName("posts.edit")
    parse_permission_refs("edit|delete") -> [ByName("edit"), ByName("delete")]

Only whole integers are ids. Decimal and exponent strings such as "1.5" or
"1e3" stay names; they are never truncated to an id. Names shaped like a
number of any kind are refused when a permission or role is created, so no
reference is ambiguous.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Union

from single_role.core import config


_NUMERIC = re.compile(r"^\s*[+-]?\d+\s*$")
_NUMBER_LIKE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


@dataclass(frozen=True)
class ById:
    id: int

    def matches(self, permission) -> bool:
        return permission.id == self.id

    def __str__(self) -> str:
        return str(self.id)


@dataclass(frozen=True)
class ByName:
    name: str

    def matches(self, permission) -> bool:
        return permission.name == self.name

    def __str__(self) -> str:
        return self.name


PermissionRef = Union[ById, ByName]
RefLike = Union[PermissionRef, int, str]


def is_numeric(value: str) -> bool:
    return bool(_NUMERIC.match(value))


def looks_like_number(value: str) -> bool:
    """True for integers, decimals and exponent notation alike."""
    return bool(_NUMBER_LIKE.match(value))


def parse_permission_ref(value: RefLike) -> PermissionRef:
    """
    Turn ``value`` into a PermissionRef.

    Fully numeric strings and ints refer to a permission id; any other string
    is an exact name. ``bool`` is rejected even though it is an int.
    """
    if isinstance(value, (ById, ByName)):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Invalid permission reference: {value!r}")
    if isinstance(value, int):
        return ById(value)
    if isinstance(value, str):
        if is_numeric(value):
            return ById(int(value))
        return ByName(value)
    raise TypeError(f"Invalid permission reference: {value!r}")


def parse_permission_refs(
    permissions: Union[str, Iterable[RefLike]],
    delimiter: str = config.PERMISSION_DELIMITER,
) -> List[PermissionRef]:
    """
    Parse a delimited string or a sequence into an ordered list of references.

    The string form is split as-is: ``""`` yields a single ``ByName("")``
    reference, which matches nothing.
    """
    if isinstance(permissions, str):
        permissions = permissions.split(delimiter)
    elif isinstance(permissions, (int, ById, ByName)):
        permissions = [permissions]
    return [parse_permission_ref(item) for item in permissions]
