"""Plugin request DSL.

A configuration block receives a ``PluginRequest`` and names the plugins
it wants. The request object is the only thing the block can reach: it
carries no host state.

Example:
    >>> def plugins(p):
    ...     p.cache()
    ...     p.fallbacks(default=["en", "de"])
    ...
    >>> names, defaults = PluginRequest.evaluate({}, plugins)
    >>> names
    ['cache', 'fallbacks']
    >>> defaults
    {'fallbacks': ['en', 'de']}

The same request can be written declaratively, as a mapping of plugin
names to options (``{"cache": None, "fallbacks": {"default": [...]}}``)
or as a plain list of names.
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Iterable, Mapping, MutableMapping, Union

DEFAULT_OPTION = "default"

PluginBlock = Union[
    Callable[["PluginRequest"], Any],
    Mapping[str, Union[Mapping[str, Any], None]],
    Iterable[str],
]


class PluginRequest:
    """Clean-room context recording requested plugins.

    Any public attribute is a plugin name: calling it requests that plugin.
    Use ``request()`` for names that clash with this class's own methods.
    """

    __slots__ = ("_names", "_defaults")

    def __init__(self, defaults: MutableMapping[str, Any]) -> None:
        self._names: dict[str, None] = {}
        self._defaults = defaults

    def request(self, name: str, *args: Any, **options: Any) -> None:
        """Request a plugin.

        Args:
            name: Plugin name.
            *args: Ignored.
            **options: Plugin options. A ``default`` option is stored in the
                defaults table under the plugin name.
        """
        self._names.setdefault(name, None)
        if DEFAULT_OPTION in options:
            self._defaults[name] = options[DEFAULT_OPTION]

    def __getattr__(self, name: str) -> Callable[..., None]:
        if name.startswith("_"):
            raise AttributeError(name)
        return functools.partial(self.request, name)

    @property
    def names(self) -> list[str]:
        """Requested names, in request order."""
        return list(self._names)

    @property
    def defaults(self) -> MutableMapping[str, Any]:
        """The defaults table being updated."""
        return self._defaults

    @classmethod
    def evaluate(
        cls,
        defaults: MutableMapping[str, Any],
        block: PluginBlock | None,
    ) -> tuple[list[str], MutableMapping[str, Any]]:
        """Run a configuration block.

        Args:
            defaults: Defaults table, updated in place.
            block: Callable taking the request, mapping of names to
                options, or iterable of names. None requests nothing.

        Returns:
            Tuple of (requested names, defaults).

        Raises:
            TypeError: If the block is of an unsupported type.
        """
        request = cls(defaults)
        request.apply(block)
        return request.names, request.defaults

    def apply(self, block: PluginBlock | None) -> None:
        """Record the plugins named by a block in this request."""
        if block is None:
            return
        if callable(block):
            block(self)
        elif isinstance(block, Mapping):
            for name, options in block.items():
                if options is not None and not isinstance(options, Mapping):
                    raise TypeError(
                        f"Options for plugin '{name}' must be a mapping, "
                        f"got {type(options).__name__}"
                    )
                self.request(name, **dict(options or {}))
        elif isinstance(block, Iterable) and not isinstance(block, (str, bytes)):
            for name in block:
                self.request(name)
        else:
            raise TypeError(
                f"Plugin block must be a callable, mapping or iterable of names, "
                f"got {type(block).__name__}"
            )

    def __repr__(self) -> str:
        return f"<PluginRequest names={self.names!r}>"
