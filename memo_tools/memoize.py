"""
A ``memoize`` decorator that caches return values keyed by the full list of arguments that were used to call the
decorated function.

Unlike :func:`functools.lru_cache`, arguments do not need to be hashable.  Previous calls are found by searching the
cache for an entry whose arguments are structurally equal (see :func:`equals<memo_tools.compare.equals>`) to the new
arguments, or that satisfy a custom comparison function.  Entries are never evicted automatically - they can be removed
via :meth:`MemoizedFunc.clear_entry` and :meth:`MemoizedFunc.clear_all`.
"""

from __future__ import annotations

import logging
from collections import deque
from contextlib import nullcontext
from functools import update_wrapper, partial
from threading import RLock
from typing import TypeVar, Callable, ParamSpec, Generic, Any, NamedTuple, Optional, ContextManager

from .compare import equals
from .config import config
from .introspection import get_signature, call_key, takes_args
from .logging import to_log_level

__all__ = ['memoize', 'MemoizedFunc', 'LockingMemoizedFunc', 'BoundMemoizedFunc', 'CacheEntry']
log = logging.getLogger(__name__)

P = ParamSpec('P')
T = TypeVar('T')
Key = tuple[Any, ...]
ComparisonFunc = Callable[[Key, Key], bool]


class CacheEntry(NamedTuple):
    key: Key
    value: Any


Cache = deque[CacheEntry]


def memoize(
    func: Callable[P, T] = None,
    comparison_fn: ComparisonFunc = None,
    *,
    lock: bool = None,
    log_level: int | str = None,
) -> MemoizedFunc[P, T] | Callable[[Callable[P, T]], MemoizedFunc[P, T]]:
    """
    Memoize the given function.  May be used directly, as a decorator, or as a decorator with arguments::

        fast_func = memoize(slow_func)

        @memoize
        def foo(a, b):
            ...

        @memoize(comparison_fn=lambda left, right: left[0] == right[0])
        def bar(n, ignored):
            ...

    A recursive function will only benefit from memoization of its recursive calls if those calls use the memoized
    function's name / binding, rather than a reference to the original function.

    :param func: The function to be memoized
    :param comparison_fn: A function that accepts 2 tuples of argument values (the arguments for a cache entry, and the
      arguments for the current call) and returns True if the current call should be considered a cache hit for that
      entry.  Defaults to :func:`equals<memo_tools.compare.equals>`.
    :param lock: Whether a lock should be used to prevent concurrent calls from corrupting the cache.  Defaults to the
      ``lock`` value in :data:`memo_tools.config.config`.
    :param log_level: The log level (or level name) to use for messages about cache hits / stored values.  Defaults to
      the ``log_level`` value in :data:`memo_tools.config.config`.
    :return: The memoized function, or a decorator that will memoize a function if ``func`` was not provided
    """
    def decorator(function: Callable[P, T]) -> MemoizedFunc[P, T]:
        use_lock = config.lock if lock is None else lock
        cls = LockingMemoizedFunc if use_lock else MemoizedFunc
        return cls(function, comparison_fn, log_level=log_level)

    if func is not None:
        return decorator(func)
    return decorator


class MemoizedFunc(Generic[P, T]):
    __slots__ = ('func', 'sig', 'comparison_fn', 'cache', '_log_level', '__dict__')
    lock: ContextManager = nullcontext()

    def __init__(self, func: Callable[P, T], comparison_fn: ComparisonFunc = None, *, log_level: int | str = None):
        if comparison_fn is not None and not callable(comparison_fn):
            raise TypeError(f'Invalid {comparison_fn=} - expected a callable that accepts 2 tuples of arguments')
        self.func = func
        self.sig = get_signature(func)
        self.comparison_fn = comparison_fn or equals
        self.cache: Cache = deque()
        self._log_level = None if log_level is None else to_log_level(log_level)
        update_wrapper(self, func)

    def __get__(self, instance, owner) -> MemoizedFunc[P, T] | BoundMemoizedFunc[T]:
        if instance is None:
            return self
        return BoundMemoizedFunc(self, instance)

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__}({self.func!r}, entries={len(self.cache)})>'

    @property
    def name(self) -> str:
        return getattr(self, '__qualname__', None) or repr(self.func)

    @property
    def log_level(self) -> int:
        return config.log_level if self._log_level is None else self._log_level

    # region Cache Lookup

    def _find_index(self, key: Key) -> int:
        for i, entry in enumerate(self.cache):
            if self.comparison_fn(entry.key, key):
                return i
        return -1

    def _find_entry(self, key: Key) -> Optional[CacheEntry]:
        if (index := self._find_index(key)) == -1:
            return None
        return self.cache[index]

    def _log(self, message: str, key: Key):
        if log.isEnabledFor(level := self.log_level):
            log.log(level, f'{message} for {self.name}{key!r}')

    # endregion

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> T:
        key = call_key(self.sig, args, kwargs)
        if (entry := self._find_entry(key)) is not None:
            self._log('Retrieving memoized value', key)
            return entry.value

        value = self.func(*args, **kwargs)
        self._log('Storing new value', key)
        self.cache.appendleft(CacheEntry(key, value))
        return value

    # region Cache Management

    def get_cache(self) -> Cache:
        """
        :return: The live cache, with the most recently stored entries first.  It should not be modified directly.
        """
        return self.cache

    def clear_all(self):
        """Remove all cached entries."""
        with self.lock:
            self.cache.clear()

    @property
    def clear_entry(self) -> Callable[P, None]:
        """
        Remove the cached entry for the given arguments, if one exists.  Only available when the memoized function
        accepts arguments.
        """
        if not takes_args(self.sig):
            raise AttributeError(f'{self.name} takes no arguments, so it does not support clear_entry')
        return self._clear_entry

    def _clear_entry(self, *args: P.args, **kwargs: P.kwargs):
        key = call_key(self.sig, args, kwargs)
        with self.lock:
            if (index := self._find_index(key)) != -1:
                log.debug(f'Clearing memoized value for {self.name}{key!r}')
                del self.cache[index]

    # endregion


class LockingMemoizedFunc(MemoizedFunc):
    """
    A :class:`MemoizedFunc` that guards its cache with a lock.

    The lock is not held while the memoized function is being called, so concurrent calls with equivalent arguments
    may both call the function.  The cache is searched again before a new value is stored, and the first value that
    was stored is returned to every caller, so at most one entry will exist for any given arguments.
    """
    __slots__ = ('lock',)

    def __init__(self, func: Callable[P, T], comparison_fn: ComparisonFunc = None, *, log_level: int | str = None):
        super().__init__(func, comparison_fn, log_level=log_level)
        self.lock = RLock()

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> T:
        key = call_key(self.sig, args, kwargs)
        with self.lock:
            if (entry := self._find_entry(key)) is not None:
                self._log('Retrieving memoized value', key)
                return entry.value

        value = self.func(*args, **kwargs)
        with self.lock:
            # Another thread may have stored a value for equivalent args while this thread was calling the func
            if (entry := self._find_entry(key)) is not None:
                self._log('Discarding new value in favor of a concurrently stored value', key)
                return entry.value

            self._log('Storing new value', key)
            self.cache.appendleft(CacheEntry(key, value))
        return value


class BoundMemoizedFunc(Generic[T]):
    """
    A :class:`MemoizedFunc` accessed through an instance of the class it was defined in.  The instance is provided as
    the first argument both when calling it and when clearing entries, so ``obj.method.clear_entry(x)`` clears the
    entry stored by ``obj.method(x)``.  The cache itself is shared by all instances.
    """
    __slots__ = ('memoized', 'instance')

    def __init__(self, memoized: MemoizedFunc[..., T], instance: Any):
        self.memoized = memoized
        self.instance = instance

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__}({self.memoized!r}, instance={self.instance!r})>'

    def __getattr__(self, attr: str):
        return getattr(self.memoized, attr)

    def __call__(self, *args, **kwargs) -> T:
        return self.memoized(self.instance, *args, **kwargs)

    @property
    def clear_entry(self) -> Callable[..., None]:
        return partial(self.memoized.clear_entry, self.instance)

    def clear_all(self):
        self.memoized.clear_all()

    def get_cache(self) -> Cache:
        return self.memoized.get_cache()
