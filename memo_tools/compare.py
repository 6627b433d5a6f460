"""
Deep structural equality that is safe to use on cyclic object graphs.

Values are classified into a closed set of :class:`Kind` categories, and pairs of composite values (sequences, ordered
maps, and records) are expanded into pairs of their children on an explicit work stack instead of by recursing, so
neither self-referential structures nor very deep nesting can exhaust the interpreter's recursion limit.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Mapping, Sequence
from dataclasses import fields, is_dataclass
from enum import Enum
from numbers import Number
from typing import Any, Iterable, Optional

__all__ = ['equals', 'Kind']
log = logging.getLogger(__name__)

Pair = tuple[Any, Any]


class Kind(Enum):
    NULL = 'null'
    BOOLEAN = 'boolean'
    NUMBER = 'number'
    TEXT = 'text'
    CALLABLE = 'callable'
    SEQUENCE = 'sequence'
    ORDERED_MAP = 'ordered_map'
    RECORD = 'record'
    SCALAR = 'scalar'

    @classmethod
    def of(cls, value: Any) -> Kind:
        match value:
            case None:
                return cls.NULL
            case bool():
                return cls.BOOLEAN
            case Number():
                return cls.NUMBER
            case str():
                return cls.TEXT
            case bytes() | bytearray() | memoryview() | Enum():
                return cls.SCALAR
            case OrderedDict():
                return cls.ORDERED_MAP
            case Mapping():
                return cls.RECORD
            case Sequence():
                return cls.SEQUENCE
            case _ if callable(value):
                return cls.CALLABLE
            case _ if _is_record(value):
                return cls.RECORD
            case _:
                return cls.SCALAR

    @property
    def is_composite(self) -> bool:
        return self in (Kind.SEQUENCE, Kind.ORDERED_MAP, Kind.RECORD)


def equals(left: Any, right: Any) -> bool:
    """
    Compare two values by structure rather than by identity.

    Sequences are equal when they have the same length and equal elements in the same order.  Ordered maps
    (:class:`~collections.OrderedDict`) are equal when their keys compare equal in iteration order, and the value stored
    under each key matches.  Other mappings, dataclass instances, and plain objects are treated as records: their keys
    (or attribute names) are compared after sorting, so key order does not matter, and a record whose keys are exactly
    ``0..n-1`` is equal to a sequence of length ``n`` with matching values.  Everything else is compared with ``==``,
    which means that functions are only equal to themselves.

    When a pair of composite values is reached again while it is already being compared (i.e., there is a cycle), that
    pair is assumed to be equal.  A mismatch anywhere else in either structure is still found.

    This function never raises.

    :param left: A value to compare
    :param right: The value to compare it to
    :return: True if the values are structurally equal, False otherwise
    """
    if left is right:
        return True

    visited: dict[tuple[int, int], Pair] = {}
    stack: list[Pair] = [(left, right)]
    while stack:
        left, right = stack.pop()
        if left is right:
            continue

        l_kind, r_kind = Kind.of(left), Kind.of(right)
        if not (l_kind.is_composite and r_kind.is_composite):
            if l_kind is not r_kind or not _scalars_equal(left, right):
                return False
            continue

        ids = (id(left), id(right))
        if ids in visited:
            continue
        visited[ids] = (left, right)  # Holding references prevents the ids from being reused by other objects

        if (children := _expand(left, l_kind, right, r_kind)) is None:
            return False
        stack.extend(reversed(children))  # Reversed so that children are compared in their natural order

    return True


def _expand(left: Any, l_kind: Kind, right: Any, r_kind: Kind) -> Optional[list[Pair]]:
    """
    Returns the pairs of child values that must be equal for the given composite values to be equal, or None if the
    given values can already be determined to be unequal without looking at their children.
    """
    match l_kind, r_kind:
        case Kind.SEQUENCE, Kind.SEQUENCE:
            if len(left) != len(right):
                return None
            return list(zip(left, right))
        case Kind.ORDERED_MAP, Kind.ORDERED_MAP:
            if len(left) != len(right):
                return None
            return _keyed_pairs(left, right, zip(left, right))
        case (Kind.RECORD | Kind.SEQUENCE), (Kind.RECORD | Kind.SEQUENCE):
            l_items, r_items = _record_items(left), _record_items(right)
            if len(l_items) != len(r_items):
                return None
            return _keyed_pairs(l_items, r_items, _sorted_key_pairs(l_items, r_items))
        case _:
            return None


def _keyed_pairs(left: Mapping, right: Mapping, key_pairs: Iterable[Pair]) -> Optional[list[Pair]]:
    pairs = list(key_pairs)
    for key, value in left.items():
        try:
            if key not in right:  # Checked first so that mappings with __missing__ (e.g., defaultdict) are not modified
                return None
            pairs.append((value, right[key]))
        except Exception as e:  # noqa  # A key with an __eq__ that raises
            log.log(9, f'Unable to look up a {type(key).__name__} key in a {type(right).__name__}: {e}')
            return None
    return pairs


def _sorted_key_pairs(left: Mapping, right: Mapping) -> list[Pair]:
    """
    Pairs up the keys of two records by position after sorting each record's keys.  No pairs are returned when the
    keys can't be sorted (keys of mixed types), or when sorting did not line up equal keys, which happens for keys that
    only have a partial order (e.g., frozensets or NaN).  The keys are then matched by membership in :func:`_keyed_pairs`
    instead.
    """
    try:
        pairs = list(zip(sorted(left), sorted(right)))
    except Exception:  # noqa
        return []
    if all(l_key is r_key or _scalars_equal(l_key, r_key) for l_key, r_key in pairs):
        return pairs
    return []


def _record_items(value: Any) -> Mapping:
    if isinstance(value, Mapping):
        return value
    elif isinstance(value, Sequence):
        return dict(enumerate(value))
    try:
        return vars(value)
    except TypeError:  # A dataclass that uses __slots__
        return {field.name: getattr(value, field.name) for field in fields(value)}


def _is_record(value: Any) -> bool:
    if is_dataclass(value):
        return True
    return hasattr(value, '__dict__') and type(value).__eq__ is object.__eq__


def _scalars_equal(left: Any, right: Any) -> bool:
    try:
        return bool(left == right)
    except Exception as e:  # noqa  # Some types (e.g., numpy arrays) do not produce a single bool for ==
        log.log(9, f'Unable to compare {type(left).__name__} to {type(right).__name__}: {e}')
        return False
