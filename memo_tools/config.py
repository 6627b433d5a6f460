"""
Configuration for memoized functions.

The :class:`ConfigSection` class is intended to be used as a base class for configuration classes, and the
:class:`ConfigItem` descriptor is intended to be used to define each configurable option in subclasses of ConfigSection.

The :data:`config` section holds the process-wide defaults that :func:`memoize<memo_tools.memoize.memoize>` uses for
any options that are not explicitly provided.  Its initial values may be set via ``MEMO_TOOLS_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from collections import ChainMap
from typing import Union, TypeVar, Callable, Iterable, Any, Mapping, Generic, Type, overload

from .logging import CACHE_LEVEL, to_log_level

__all__ = [
    'ConfigItem', 'ConfigSection', 'MemoizeConfig', 'config', 'ConfigException', 'InvalidConfigError',
    'MissingConfigItemError', 'str_to_bool',
]
log = logging.getLogger(__name__)

CV = TypeVar('CV')
DV = TypeVar('DV')
ConfigValue = Union[CV, DV]
ConfigMap = Union[Mapping[str, Any], 'ConfigSection', None]

ENV_PREFIX = 'MEMO_TOOLS_'
_NotSet = object()


# region Exceptions


class ConfigException(Exception):
    """Base exception for config-related errors"""


class InvalidConfigError(ConfigException):
    """Raised when invalid config items or values are provided for a ConfigSection"""


class MissingConfigItemError(ConfigException):
    """Raised if a required config item is accessed when no value was provided for it"""


# endregion


def str_to_bool(value: Union[str, bool, int]) -> bool:
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ('1', 'true', 't', 'yes', 'y', 'on'):
            return True
        elif normalized in ('0', 'false', 'f', 'no', 'n', 'off', ''):
            return False
        raise ValueError(f'Invalid boolean value={value!r}')
    return bool(value)


class ConfigItem(Generic[CV, DV]):
    __slots__ = ('name', 'type', 'default')

    def __init__(self, default: DV = _NotSet, type: Callable[..., CV] = None):  # noqa
        self.type = type
        self.default = default

    def __set_name__(self, owner: Type[ConfigSection], name: str):
        self.name = name
        owner._config_items_[name] = self

    @overload
    def __get__(self, instance: None, owner: Type[ConfigSection]) -> ConfigItem[CV, DV]:
        ...

    @overload
    def __get__(self, instance: ConfigSection, owner: Type[ConfigSection]) -> ConfigValue:
        ...

    def __get__(self, instance, owner):
        try:
            return instance.__dict__[self.name]
        except AttributeError:  # instance is None
            return self
        except KeyError as e:
            if self.default is not _NotSet:
                return self.default
            raise MissingConfigItemError(self.name) from e

    def __set__(self, instance: ConfigSection, value: ConfigValue):
        if self.type is not None:
            try:
                value = self.type(value)
            except (TypeError, ValueError) as e:
                raise InvalidConfigError(f'Invalid value={value!r} for config item {self.name!r}: {e}') from e
        instance.__dict__[self.name] = value

    def __delete__(self, instance: ConfigSection):
        try:
            del instance.__dict__[self.name]
        except KeyError as e:
            raise AttributeError(f'No {self.name!r} config was stored for {instance}') from e

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__}({self.default!r}, type={self.type!r})>'


class ConfigMeta(type):
    """
    Metaclass for ConfigSections.  Necessary to initialize the ``_config_items_`` dict for ConfigItem registration
    because the contents of a class is evaluated before ``__init_subclass__`` is called.
    """
    _config_items_: dict[str, ConfigItem]

    @classmethod
    def __prepare__(mcs, name: str, bases: Iterable[type], **kwargs) -> dict[str, Any]:
        """Called before ``__new__`` and before evaluating the contents of a class."""
        config_items = {}
        for base in bases:
            if isinstance(base, mcs):
                config_items.update(base._config_items_)
        return {'_config_items_': config_items}


class ConfigSection(metaclass=ConfigMeta):
    _config_items_: dict[str, ConfigItem]

    def __init__(self, config: ConfigMap = None, **kwargs):
        self.update(config, **kwargs)

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, environ: Mapping[str, str] = None, **kwargs) -> ConfigSection:
        """
        Initialize a new section using values from environment variables named ``{prefix}{KEY}``, where ``KEY`` is the
        upper-case name of each config item.  Variables that are not set are ignored, so defaults will be used for them.

        :param prefix: The prefix for environment variable names
        :param environ: The mapping to read variables from (defaults to :data:`os.environ`)
        :param kwargs: Additional values that take precedence over values from the environment
        :return: A new instance of this section
        """
        environ = os.environ if environ is None else environ
        env_config = {
            name: value for name in cls._config_items_ if (value := environ.get(f'{prefix}{name.upper()}')) is not None
        }
        if env_config:
            log.debug(f'Loaded {cls.__name__} values from the environment: {env_config}')
        return cls(env_config, **kwargs)

    def update(self, config: ConfigMap = None, **kwargs):
        """
        Update this section with the given content.  If any of the provided keys are not expected, then an
        :class:`InvalidConfigError` will be raised, and no values will be changed.

        :param config: A dict or other mapping containing values that should be used in this section
        :param kwargs: Additional keyword arguments for values that should be used in this section
        """
        if isinstance(config, ConfigSection):
            config = config.__dict__
        if config_map := ChainMap(kwargs, config) if config and kwargs else (config or kwargs):
            if bad := set(config_map).difference(self._config_items_):
                raise InvalidConfigError(f'Invalid configuration - unsupported options: {", ".join(sorted(bad))}')
            for key, val in config_map.items():
                setattr(self, key, val)

    # region Container Dunder Methods

    def __contains__(self, key: str) -> bool:
        """
        Returns True if the given key is a config item in this section, and it has a non-default value.  If the key is
        a config item that only has a default value, then False will be returned instead.
        """
        return key in self._config_items_ and key in self.__dict__

    def __getitem__(self, key: str):
        if key not in self._config_items_:
            raise KeyError(key)
        return getattr(self, key)

    def __setitem__(self, key: str, value: Any):
        if key not in self._config_items_:
            raise KeyError(key)
        setattr(self, key, value)

    def __delitem__(self, key: str):
        try:
            delattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    # endregion

    def as_dict(self, include_defaults: bool = True) -> dict[str, Any]:
        keys = self._config_items_ if include_defaults else [k for k in self._config_items_ if k in self.__dict__]
        return {key: getattr(self, key) for key in keys}

    def __repr__(self) -> str:
        settings = ', '.join(f'{k}={v!r}' for k, v in self.as_dict().items())
        return f'<{self.__class__.__name__}({settings})>'


class MemoizeConfig(ConfigSection):
    """Defaults for options that may be provided when calling :func:`memoize<memo_tools.memoize.memoize>`."""

    #: Whether memoized functions should use a lock to guard their caches against concurrent access
    lock: bool = ConfigItem(False, type=str_to_bool)
    #: The log level to use for messages about cache hits and newly stored values
    log_level: int = ConfigItem(CACHE_LEVEL, type=to_log_level)


config: MemoizeConfig = MemoizeConfig.from_env()
