"""
Canonical type names for signature trees.

``Namespace.Outer<T>+Inner<U>``: nested segments joined with ``+``, the
`` `N `` arity suffix replaced by the segment's own parameter list,
arrays ``T[]`` / ``T[,]``, pointers ``T*``, by-ref ``T&`` and function
pointers ``delegate*<P…, R>``.
"""
from typing import List, NamedTuple, Sequence, Tuple

from api_listing.core.signatures import (
    PRIMITIVE_NAMES,
    ArraySig,
    ByRefSig,
    FunctionPointerSig,
    GenericInstSig,
    GenericParamSig,
    MethodSig,
    NamedTypeSig,
    PointerSig,
    PrimitiveSig,
    TypeSig,
)

ARGUMENT_SEPARATOR = ", "


class GenericScope(NamedTuple):
    """Names for ``!n`` (type) and ``!!n`` (method) generic parameters."""

    type_params: Tuple[str, ...] = ()
    method_params: Tuple[str, ...] = ()


EMPTY_SCOPE = GenericScope()


def strip_arity(name: str) -> Tuple[str, int]:
    """Split ``List`1`` into ``("List", 1)``; names without a suffix have arity 0."""
    base, tick, suffix = name.rpartition("`")
    if tick and suffix.isdigit():
        return base, int(suffix)
    return name, 0


def join_names(namespace: str, names: Sequence[str], arguments: Sequence[str] = ()) -> str:
    """
    Render a (possibly nested) named type.

    *arguments* are distributed over the nesting chain by each segment's
    arity suffix; if no segment declares one, all of them go on the
    innermost segment.
    """
    split = [strip_arity(n) for n in names]
    declared = sum(arity for _, arity in split)
    if arguments and declared != len(arguments):
        split = [(base, 0) for base, _ in split]
        split[-1] = (split[-1][0], len(arguments))

    segments: List[str] = []
    taken = 0
    for base, arity in split:
        own = arguments[taken:taken + arity]
        taken += arity
        segments.append(f"{base}<{ARGUMENT_SEPARATOR.join(own)}>" if own else base)

    full = "+".join(segments)
    return f"{namespace}.{full}" if namespace else full


def _generic_param_name(sig: GenericParamSig, scope: GenericScope) -> str:
    names = scope.method_params if sig.method else scope.type_params
    if sig.position < len(names):
        return names[sig.position]
    return ("!!" if sig.method else "!") + str(sig.position)


def format_type(sig: TypeSig, scope: GenericScope = EMPTY_SCOPE) -> str:
    """Return the canonical name of *sig*."""
    if isinstance(sig, PrimitiveSig):
        return PRIMITIVE_NAMES[sig.element]
    if isinstance(sig, NamedTypeSig):
        return join_names(sig.namespace, sig.names)
    if isinstance(sig, GenericInstSig):
        arguments = [format_type(a, scope) for a in sig.arguments]
        return join_names(sig.generic_type.namespace, sig.generic_type.names, arguments)
    if isinstance(sig, GenericParamSig):
        return _generic_param_name(sig, scope)
    if isinstance(sig, ArraySig):
        return f"{format_type(sig.element, scope)}[{',' * (sig.rank - 1)}]"
    if isinstance(sig, PointerSig):
        return f"{format_type(sig.element, scope)}*"
    if isinstance(sig, ByRefSig):
        return f"{format_type(sig.element, scope)}&"
    if isinstance(sig, FunctionPointerSig):
        parts = [format_type(p, scope) for p in sig.method.params]
        parts.append(format_type(sig.method.return_type, scope))
        return f"delegate*<{ARGUMENT_SEPARATOR.join(parts)}>"
    raise TypeError(f"not a signature node: {sig!r}")


def method_signature_key(sig: MethodSig) -> str:
    """
    A string equal for two methods iff their signatures match.

    Generic parameters are rendered positionally (``!0``, ``!!0``) so
    ``M<T>(T)`` and ``M<U>(U)`` compare equal; substitute type arguments
    first when comparing across a generic base or interface.
    """
    params = ARGUMENT_SEPARATOR.join(format_type(p) for p in sig.params)
    return f"{format_type(sig.return_type)} ({params}) `{sig.generic_count}"


def unwrap_by_ref(sig: TypeSig) -> Tuple[TypeSig, bool]:
    if isinstance(sig, ByRefSig):
        return sig.element, True
    return sig, False
