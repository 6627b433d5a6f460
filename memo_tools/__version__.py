__title__ = 'memo_tools'
__description__ = 'Memoization keyed by deep structural equality of arguments'
__version__ = '2026.10.17'
__author__ = 'memo_tools contributors'
