"""
Memoization for functions whose arguments may be unhashable, nested, or even self-referential, plus the deep
structural equality comparison that is used to identify previous calls.
"""

from .__version__ import __author__, __description__, __title__, __version__
from .compare import equals
from .config import config
from .memoize import memoize, MemoizedFunc, LockingMemoizedFunc, BoundMemoizedFunc, CacheEntry

__all__ = [
    'equals', 'memoize', 'MemoizedFunc', 'LockingMemoizedFunc', 'BoundMemoizedFunc', 'CacheEntry', 'config',
]
