"""Hook system for plugin lifecycle callbacks.

A plugin may register one handler for each hook type:

    - initialize: Called after the host instance is constructed,
      with the attribute names given to the host.
    - included: Called after the host is included into a target,
      with the target and the value returned by the rest of the chain.

Handlers are methods of the plugin class. When the plugin class is
created, each handler is wired into a method (``__init__`` or
``included``) that first delegates to the next plugin in the host's
MRO and then runs the handler, so hooks of all applied plugins compose.

A handler that declares keyword-only parameters or ``**kwargs`` receives
the host option stored under the plugin's own name, if there is one.

Example:
    >>> class Cache(Plugin):
    ...     @initialize_hook
    ...     def setup_cache(self, *names, cache=None):
    ...         self.cache_names = names if cache else ()
    ...
    ...     @included_hook
    ...     def add_clear_cache(self, target, result):
    ...         target.clear_cache = lambda obj: None
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from pluggable.plugins.base import Plugin

logger = logging.getLogger(__name__)

HOOK_MARKER = "_pluggable_hook"


# =============================================================================
# Hook Types
# =============================================================================


class HookType(str, Enum):
    """Points in the host lifecycle a plugin can hook into."""

    INITIALIZE = "initialize"
    INCLUDED = "included"

    @property
    def method_name(self) -> str:
        """Name of the host method the hook is wired into."""
        return "__init__" if self is HookType.INITIALIZE else "included"


@dataclass
class Hook:
    """Represents a registered hook handler.

    Attributes:
        hook_type: Type of hook.
        handler: The callback, called with the host as first argument.
        with_options: Whether the handler receives the plugin's option
            slice. Detected from the handler signature when not given.
    """

    hook_type: HookType
    handler: Callable[..., Any]
    with_options: bool | None = None

    def __post_init__(self) -> None:
        """Detect if handler takes keyword options."""
        if self.with_options is None:
            self.with_options = accepts_options(self.handler)

    def invoke(self, host: Any, plugin: type["Plugin"], *args: Any) -> Any:
        """Execute the handler for ``plugin`` on ``host``."""
        if not self.with_options:
            return self.handler(host, *args)
        return self.handler(host, *args, **option_slice(host, plugin))


def accepts_options(handler: Callable[..., Any]) -> bool:
    """Check if a handler declares keyword parameters."""
    try:
        parameters = inspect.signature(handler).parameters.values()
    except (TypeError, ValueError):
        return False
    return any(
        p.kind in (inspect.Parameter.KEYWORD_ONLY, inspect.Parameter.VAR_KEYWORD)
        for p in parameters
    )


def option_slice(host: Any, plugin: type["Plugin"]) -> dict[str, Any]:
    """Return the host options that belong to ``plugin``."""
    name = plugin.plugin_name
    options = getattr(host, "options", None) or {}
    if name is None or name not in options:
        return {}
    return {name: options[name]}


# =============================================================================
# Hook Decorators
# =============================================================================


def _mark(
    hook_type: HookType,
    func: Callable[..., Any] | None,
    with_options: bool | None,
) -> Any:
    def decorator(handler: Callable[..., Any]) -> Callable[..., Any]:
        setattr(handler, HOOK_MARKER, Hook(hook_type, handler, with_options))
        return handler

    if func is not None:
        return decorator(func)
    return decorator


def initialize_hook(
    func: Callable[..., Any] | None = None,
    *,
    with_options: bool | None = None,
) -> Any:
    """Mark a plugin method as its initialize hook.

    Handler signature: (self, *names, **options) -> None

    Example:
        >>> class Reader(Plugin):
        ...     @initialize_hook
        ...     def define_readers(self, *names):
        ...         self.readers = list(names)
    """
    return _mark(HookType.INITIALIZE, func, with_options)


def included_hook(
    func: Callable[..., Any] | None = None,
    *,
    with_options: bool | None = None,
) -> Any:
    """Mark a plugin method as its included hook.

    Handler signature: (self, target, result, **options) -> None
    """
    return _mark(HookType.INCLUDED, func, with_options)


# =============================================================================
# Wiring
# =============================================================================


def collect_hooks(plugin: type["Plugin"]) -> dict[HookType, Hook]:
    """Gather hook handlers declared in a plugin class body.

    Raises:
        ValueError: If a hook type is declared twice, or the class also
            defines the method the hook is wired into.
    """
    hooks: dict[HookType, Hook] = {}
    for attr, value in vars(plugin).items():
        hook = getattr(value, HOOK_MARKER, None)
        if not isinstance(hook, Hook):
            continue
        if hook.hook_type in hooks:
            raise ValueError(
                f"Plugin {plugin.__qualname__} declares more than one "
                f"{hook.hook_type.value} hook"
            )
        if hook.hook_type.method_name in vars(plugin):
            raise ValueError(
                f"Plugin {plugin.__qualname__} defines "
                f"{hook.hook_type.method_name} and a {hook.hook_type.value} hook"
            )
        hooks[hook.hook_type] = hook
    return hooks


def install_hook(plugin: type["Plugin"], hook: Hook) -> None:
    """Wire a hook handler into the plugin's chained method."""
    if hook.hook_type is HookType.INITIALIZE:

        def __init__(self: Any, *names: Any, **options: Any) -> None:
            super(plugin, self).__init__(*names, **options)
            hook.invoke(self, plugin, *names)

        method: Callable[..., Any] = __init__
    else:

        def included(self: Any, target: Any) -> Any:
            result = super(plugin, self).included(target)  # type: ignore[misc]
            hook.invoke(self, plugin, target, result)
            return result

        method = included

    method.__qualname__ = f"{plugin.__qualname__}.{hook.hook_type.method_name}"
    method.__module__ = plugin.__module__
    setattr(plugin, hook.hook_type.method_name, method)
    logger.debug(
        f"Wired {hook.hook_type.value} hook {hook.handler.__name__} "
        f"into {plugin.__qualname__}"
    )
