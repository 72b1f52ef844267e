"""Tests for PluginRegistry and PluginDiscovery."""

from __future__ import annotations

import importlib.metadata
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from pluggable.plugins import (
    ENTRY_POINT_GROUP,
    Plugin,
    PluginDiscovery,
    PluginError,
    PluginLoadError,
    PluginNotFoundError,
    PluginRegistry,
    get_plugin_registry,
    register_plugin,
    reset_plugin_registry,
)


# =============================================================================
# Test Fixtures
# =============================================================================


class Reader(Plugin):
    """Test reader plugin."""


class Writer(Plugin):
    """Test writer plugin."""


# =============================================================================
# Registration Tests
# =============================================================================


class TestRegistration:
    """Tests for registering plugins."""

    def test_register_plugin(self, registry):
        """Test registering a plugin."""
        result = registry.register("reader", Reader)

        assert result is Reader
        assert len(registry) == 1
        assert "reader" in registry
        assert Reader.plugin_name == "reader"

    def test_register_same_pair_is_noop(self, registry):
        """Test that re-registering the same binding is allowed."""
        registry.register("reader", Reader)
        registry.register("reader", Reader)

        assert registry.list_names() == ["reader"]

    def test_register_taken_name_raises(self, registry):
        """Test that a name cannot be rebound to another class."""
        registry.register("reader", Reader)

        class OtherReader(Plugin):
            pass

        with pytest.raises(PluginError, match="already registered"):
            registry.register("reader", OtherReader)

    def test_register_under_second_name_raises(self, registry):
        """Test that a class cannot be registered under two names."""
        registry.register("writer", Writer)

        with pytest.raises(PluginError, match="already registered as 'writer'"):
            registry.register("scribe", Writer)

    def test_register_invalid_name(self, registry):
        """Test that names must be identifiers."""

        class Fancy(Plugin):
            pass

        with pytest.raises(ValueError, match="Invalid plugin name"):
            registry.register("Fancy-Plugin", Fancy)

    def test_register_non_plugin(self, registry):
        """Test that only Plugin subclasses can be registered."""
        with pytest.raises(PluginError, match="not a Plugin subclass"):
            registry.register("thing", object)

    def test_register_self_dependency(self, registry):
        """Test that a plugin may not depend on its own name."""

        class Recursive(Plugin, depends_on=["recursive"]):
            pass

        with pytest.raises(ValueError, match="cannot depend on itself"):
            registry.register("recursive", Recursive)

    def test_register_plugin_decorator(self, registry):
        """Test registering with the decorator form."""

        @register_plugin("dirty", registry=registry)
        class Dirty(Plugin):
            pass

        assert registry.get("dirty") is Dirty

    def test_register_plugin_call(self, registry):
        """Test registering with the call form."""

        class Presence(Plugin):
            pass

        assert register_plugin("presence", Presence, registry=registry) is Presence
        assert "presence" in registry


# =============================================================================
# Lookup Tests
# =============================================================================


class TestLookup:
    """Tests for looking plugins up."""

    def test_get_missing_lists_available(self, registry):
        """Test that the error lists the registered names."""
        registry.register("writer", Writer)
        registry.register("reader", Reader)

        with pytest.raises(PluginNotFoundError, match="Available: reader, writer") as exc_info:
            registry.get("cache")

        assert exc_info.value.plugin_name == "cache"

    def test_get_or_none(self, registry):
        """Test lookup without raising."""
        registry.register("reader", Reader)

        assert registry.get_or_none("reader") is Reader
        assert registry.get_or_none("cache") is None

    def test_lookup_name(self, registry):
        """Test inverse lookup."""
        registry.register("reader", Reader)

        assert registry.lookup_name(Reader) == "reader"

    def test_lookup_name_unregistered(self, registry):
        """Test inverse lookup of an unknown class."""

        class Stranger(Plugin):
            pass

        with pytest.raises(PluginNotFoundError):
            registry.lookup_name(Stranger)

    def test_iteration_and_listing(self, registry):
        """Test collection protocol."""
        registry.register("reader", Reader)
        registry.register("writer", Writer)

        assert list(registry) == [Reader, Writer]
        assert registry.list_all() == {"reader": Reader, "writer": Writer}
        assert "PluginRegistry total=2" in repr(registry)

    def test_load_registered(self, registry):
        """Test that load returns registered plugins without discovery."""
        registry.register("reader", Reader)

        assert registry.load("reader") is Reader

    def test_load_unknown(self, registry):
        """Test that load raises when nothing provides the name."""
        with pytest.raises(PluginNotFoundError, match="'cache' not found"):
            registry.load("cache")


# =============================================================================
# Lazy Loading Tests
# =============================================================================


class TestLazyLoading:
    """Tests for loading plugins from search packages."""

    def test_load_from_search_module(self, plugin_package):
        """Test that an unknown name is imported from the search package."""
        registry = PluginRegistry(search_modules=[plugin_package], scan_entrypoints=False)

        plugin = registry.load("cache")

        assert plugin.__name__ == "Cache"
        assert plugin.__module__ == f"{plugin_package}.cache"
        assert registry.lookup_name(plugin) == "cache"
        assert registry.load("cache") is plugin

    def test_load_missing_module(self, plugin_package):
        """Test that a missing module is reported as not found."""
        registry = PluginRegistry(search_modules=[plugin_package], scan_entrypoints=False)

        with pytest.raises(PluginNotFoundError):
            registry.load("nonexistent")

    def test_load_broken_module(self, plugin_package):
        """Test that a module failing to import is a load error."""
        registry = PluginRegistry(search_modules=[plugin_package], scan_entrypoints=False)

        with pytest.raises(PluginLoadError, match="Could not import"):
            registry.load("broken")

    def test_load_searches_packages_in_order(self, plugin_package):
        """Test that missing packages are skipped."""
        registry = PluginRegistry(
            search_modules=["pluggable_no_such_package", plugin_package],
            scan_entrypoints=False,
        )

        assert registry.load("reader").__name__ == "Reader"

    def test_concurrent_first_load_runs_once(self, registry):
        """Test that concurrent loads of one name discover it once."""
        calls = []
        lock = threading.Lock()

        class Slow(Plugin):
            pass

        def find(name):
            with lock:
                calls.append(name)
            time.sleep(0.05)
            return Slow

        registry.discovery.find = find

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(registry.load, ["slow"] * 8))

        assert calls == ["slow"]
        assert all(result is Slow for result in results)


# =============================================================================
# Discovery Tests
# =============================================================================


class TestDiscovery:
    """Tests for PluginDiscovery."""

    def test_discover_module(self, plugin_package):
        """Test discovering every plugin module of a package."""
        discovery = PluginDiscovery(search_modules=[plugin_package], scan_entrypoints=False)

        discovered = discovery.discover_all()

        assert sorted(discovered) == ["cache", "layered", "reader", "x", "y"]
        assert discovered["reader"].__name__ == "Reader"

    def test_load_plugin_from_module(self, plugin_package):
        """Test loading a class by module and name."""
        discovery = PluginDiscovery(scan_entrypoints=False)

        plugin = discovery.load_plugin_from_module(f"{plugin_package}.reader", "Reader")

        assert plugin.__name__ == "Reader"

    def test_load_plugin_from_module_missing_class(self, plugin_package):
        """Test loading a class that does not exist."""
        discovery = PluginDiscovery(scan_entrypoints=False)

        with pytest.raises(PluginLoadError, match="not found"):
            discovery.load_plugin_from_module(f"{plugin_package}.reader", "Writer")

    def test_add_search_module(self):
        """Test extending the search path."""
        discovery = PluginDiscovery(search_modules=["a"], scan_entrypoints=False)
        discovery.add_search_module("b")
        discovery.add_search_module("a")

        assert discovery.search_modules == ["a", "b"]

    def test_entry_point(self, plugin_package, monkeypatch):
        """Test finding a plugin through an entry point."""
        discovery = PluginDiscovery()
        entry_point = importlib.metadata.EntryPoint(
            name="scribe",
            value=f"{plugin_package}.reader:Reader",
            group=ENTRY_POINT_GROUP,
        )
        monkeypatch.setattr(discovery, "_entry_points", lambda: [entry_point])

        plugin = discovery.find("scribe")

        assert plugin.__name__ == "Reader"

    def test_entry_point_not_a_plugin(self, monkeypatch):
        """Test an entry point pointing at something else."""
        discovery = PluginDiscovery()
        entry_point = importlib.metadata.EntryPoint(
            name="bogus",
            value="pluggable.plugins.base:validate_plugin_name",
            group=ENTRY_POINT_GROUP,
        )
        monkeypatch.setattr(discovery, "_entry_points", lambda: [entry_point])

        with pytest.raises(PluginLoadError, match="does not point to a Plugin class"):
            discovery.find("bogus")


# =============================================================================
# Global Registry Tests
# =============================================================================


class TestGlobalRegistry:
    """Tests for the process-wide registry."""

    def test_get_plugin_registry_is_shared(self):
        """Test that the global registry is a singleton until reset."""
        first = get_plugin_registry()

        assert get_plugin_registry() is first
        reset_plugin_registry()
        assert get_plugin_registry() is not first

    def test_configured_from_environment(self, monkeypatch):
        """Test that the environment configures discovery."""
        monkeypatch.setenv("PLUGGABLE_SEARCH_MODULES", "myapp.plugins, other.plugins")
        monkeypatch.setenv("PLUGGABLE_SCAN_ENTRYPOINTS", "off")

        registry = get_plugin_registry()

        assert registry.discovery.search_modules == ["myapp.plugins", "other.plugins"]
        assert "entrypoints=False" in repr(registry.discovery)

    def test_register_plugin_defaults_to_global(self):
        """Test that register_plugin uses the global registry."""

        @register_plugin("global_only")
        class GlobalOnly(Plugin):
            pass

        assert get_plugin_registry().get("global_only") is GlobalOnly
