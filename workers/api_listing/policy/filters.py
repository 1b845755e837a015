"""
Exclusion filters — caller-supplied predicates that drop elements.

A filter receives a TypeDescriptor (before its members are read) or a
MemberDescriptor and returns True to exclude it.  Filters combine by
logical OR: an element is dropped when any filter matches.
"""
from fnmatch import fnmatchcase
from typing import Callable, Iterable, Union

from api_listing.io.schema import MemberDescriptor, TypeDescriptor

Element = Union[TypeDescriptor, MemberDescriptor]
ApiFilter = Callable[[Element], bool]

INTERNAL_NAMESPACE_SEGMENT = "Internal"


def exclude_namespace(namespace: str) -> ApiFilter:
    """Drop types in *namespace* or any namespace below it."""
    prefix = namespace + "."

    def _filter(element: Element) -> bool:
        if not isinstance(element, TypeDescriptor):
            return False
        ns = element.namespace
        return ns == namespace or ns.startswith(prefix)

    return _filter


def exclude_matching(pattern: str) -> ApiFilter:
    """Drop types and members whose canonical name matches the glob *pattern*."""

    def _filter(element: Element) -> bool:
        return fnmatchcase(element.name, pattern)

    return _filter


def exclude_internal_namespaces() -> ApiFilter:
    """Drop types in any namespace with an ``Internal`` segment (the "pubternal" convention)."""

    def _filter(element: Element) -> bool:
        if not isinstance(element, TypeDescriptor):
            return False
        return INTERNAL_NAMESPACE_SEGMENT in element.namespace.split(".")

    return _filter


def any_filter(filters: Iterable[ApiFilter]) -> ApiFilter:
    filters = tuple(filters)

    def _filter(element: Element) -> bool:
        return any(f(element) for f in filters)

    return _filter
