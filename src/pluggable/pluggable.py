"""Host base class for plugins.

A ``Pluggable`` subclass is the class plugins are composed onto. Applying
plugins puts the plugin classes in front of the host's bases, so the MRO
of the host lists plugins in final order:

    >>> class TranslatedAttributes(Pluggable):
    ...     pass
    >>> TranslatedAttributes.plugins(lambda p: (p.reader(), p.cache()))
    >>> TranslatedAttributes.__mro__
    (TranslatedAttributes, Reader, Cache, Plugin, Pluggable, object)

Instances are built with attribute names and options. Options are merged
over the class defaults and handed, one slice per plugin, to the plugins'
initialize hooks.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Mapping, MutableMapping, Sequence

from pluggable.plugins.base import InvalidOptionKey, Plugin
from pluggable.plugins.dependencies.resolver import configure
from pluggable.plugins.discovery import is_plugin_class
from pluggable.plugins.dsl import PluginBlock, PluginRequest
from pluggable.plugins.registry import PluginRegistry, get_plugin_registry

logger = logging.getLogger(__name__)


class Pluggable:
    """Base class for hosts that plugins are applied to.

    Attributes:
        defaults: Default options per plugin name. Each subclass starts
            with a copy of its parent's defaults.
        strict_options: Reject option keys no applied plugin is named after.
        plugin_registry: Registry plugins are loaded from (the global
            registry when None).
    """

    _pluggable_host: ClassVar[bool] = True
    defaults: ClassVar[dict[str, Any]] = {}
    strict_options: ClassVar[bool] = False
    plugin_registry: ClassVar[PluginRegistry | None] = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.defaults = dict(cls.defaults)

    def __init__(self, *names: str, **options: Any) -> None:
        self.names = names
        self.options = {**type(self).defaults, **options}
        self.validate_options(self.options)

    def validate_options(self, options: MutableMapping[str, Any]) -> None:
        """Check option keys against applied plugins.

        Raises:
            InvalidOptionKey: If ``strict_options`` is set and a key does not
                name an applied plugin.
        """
        if not type(self).strict_options:
            return

        known = {plugin.plugin_name for plugin in type(self).included_plugins()}
        extra = [key for key in options if key not in known]
        if extra:
            raise InvalidOptionKey(
                f"No plugin configured for these keys: {', '.join(extra)}.",
                keys=extra,
            )

    def included(self, target: Any) -> Any:
        """Include this host into ``target``.

        Plugins' included hooks run after this returns, in reverse final
        order, and receive its return value.
        """
        return target

    # =========================================================================
    # Class-level plugin API
    # =========================================================================

    @classmethod
    def plugins(
        cls,
        block: PluginBlock | None = None,
        **requests: Mapping[str, Any] | None,
    ) -> MutableMapping[str, Any]:
        """Configure this host with a plugin request.

        Args:
            block: Callable taking a PluginRequest, mapping of plugin names to
                options, or iterable of plugin names.
            **requests: Further plugins, as name=options (or None).

        Returns:
            The class defaults, updated with any ``default`` options.

        Example:
            >>> TranslatedAttributes.plugins(["reader"], fallbacks={"default": "en"})
        """
        if requests:
            inner = block

            def combined(request: PluginRequest) -> None:
                request.apply(inner)
                request.apply(requests)

            block = combined

        return configure(cls, cls.defaults, block, registry=cls.registry())

    @classmethod
    def plugin(cls, name: str, **options: Any) -> MutableMapping[str, Any]:
        """Configure this host with a single plugin."""
        return cls.plugins({name: options})

    @classmethod
    def included_plugins(cls) -> list[type[Plugin]]:
        """Plugins applied to this host or its ancestors, outermost first."""
        return [klass for klass in cls.__mro__ if is_plugin_class(klass)]

    @classmethod
    def apply_plugins(cls, order: Sequence[type[Plugin]]) -> None:
        """Put plugins in front of this host's bases, first in order outermost.

        A plugin inherited by another new plugin or by an existing base is
        left out of the bases; it is already part of the MRO.
        """
        bases = (*order, *cls.__bases__)
        cls.__bases__ = tuple(
            base
            for base in bases
            if not (
                is_plugin_class(base)
                and any(other is not base and issubclass(other, base) for other in bases)
            )
        )
        logger.debug(
            f"{cls.__qualname__} bases are now "
            f"{[base.__qualname__ for base in cls.__bases__]}"
        )

    @classmethod
    def registry(cls) -> PluginRegistry:
        """Registry this host loads plugins from."""
        if cls.plugin_registry is not None:
            return cls.plugin_registry
        return get_plugin_registry()

    @classmethod
    def display_name(cls) -> str:
        """Name used in error messages."""
        return cls.__qualname__

    def __repr__(self) -> str:
        return f"<{type(self).__qualname__} names={self.names!r} options={self.options!r}>"
