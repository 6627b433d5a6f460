"""
Introspection utilities that build upon the built-in inspect module.
"""

from __future__ import annotations

from inspect import Signature, Parameter, _empty
from typing import Any, Callable, Mapping, Optional

__all__ = ['get_signature', 'call_key', 'takes_args']


def get_signature(func: Callable) -> Optional[Signature]:
    """
    :param func: A function or other callable
    :return: The :class:`inspect.Signature` of the given callable, or None if it could not be determined (which is the
      case for some builtins)
    """
    try:
        return Signature.from_callable(func)
    except (ValueError, TypeError):
        return None


def takes_args(sig: Optional[Signature]) -> bool:
    """
    :param sig: The signature of a function, or None if it is unknown
    :return: True if the function accepts at least one argument (or if that can't be determined), False otherwise
    """
    return sig is None or bool(sig.parameters)


def call_key(sig: Optional[Signature], args: tuple, kwargs: Mapping[str, Any]) -> tuple:
    """
    Normalizes the given *args and **kwargs into a single flat tuple of argument values based on the given Signature,
    so that equivalent calls produce equivalent keys regardless of whether values were passed positionally or by name,
    or were omitted in favor of defaults.

    This is based on :func:`inspect.BoundArguments.apply_defaults`.  Values are returned in signature order:

    - positional-only and positional-or-keyword parameters
    - the contents of variable-positional arguments (*args)
    - keyword-only parameters
    - a dict of variable-keyword arguments (**kwargs), if the signature accepts them

    :param sig: The signature of the function the given arguments are for, or None if it is unknown
    :param args: Positional arguments explicitly provided for the function with the given signature
    :param kwargs: Keyword args explicitly provided for the function with the given signature
    :return: The tuple of argument values
    :raises: :class:`TypeError` if the given arguments are not valid for the given signature
    """
    if sig is None:
        return (*args, dict(kwargs)) if kwargs else tuple(args)

    vals = sig.bind(*args, **kwargs).arguments
    key = []
    for name, param in sig.parameters.items():
        if param.kind == Parameter.VAR_POSITIONAL:
            key.extend(vals.get(name, ()))
        elif param.kind == Parameter.VAR_KEYWORD:
            key.append(dict(vals.get(name, {})))
        else:
            try:
                key.append(vals[name])
            except KeyError:
                if param.default is not _empty:
                    key.append(param.default)
    return tuple(key)
