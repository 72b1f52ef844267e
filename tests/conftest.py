"""Shared fixtures for pluggable tests."""

from __future__ import annotations

import textwrap
import uuid
from pathlib import Path

import pytest

from pluggable import Pluggable
from pluggable.plugins import PluginRegistry, reset_plugin_registry


PLUGIN_MODULES = {
    "reader": """
        from pluggable import Plugin, initialize_hook


        class Reader(Plugin):
            @initialize_hook
            def define_readers(self, *names):
                self.readers = list(names)
    """,
    "cache": """
        from pluggable import Plugin


        class Cache(Plugin, depends_on={"reader": "after"}):
            pass
    """,
    "layered": """
        from pluggable import Plugin


        class Layered(Plugin, depends_on={"cache": "after"}):
            pass
    """,
    "x": """
        from pluggable import Plugin


        class X(Plugin, depends_on={"y": "after"}):
            pass
    """,
    "y": """
        from pluggable import Plugin


        class Y(Plugin, depends_on={"x": "after"}):
            pass
    """,
    "broken": """
        import pluggable_missing_dependency_for_tests
    """,
}


@pytest.fixture(autouse=True)
def clean_global_registry(monkeypatch):
    """Give every test a fresh process-wide registry and environment."""
    monkeypatch.delenv("PLUGGABLE_SEARCH_MODULES", raising=False)
    monkeypatch.delenv("PLUGGABLE_SCAN_ENTRYPOINTS", raising=False)
    reset_plugin_registry()
    yield
    reset_plugin_registry()


@pytest.fixture
def registry():
    """Create a fresh registry that only knows explicitly registered plugins."""
    return PluginRegistry(scan_entrypoints=False)


@pytest.fixture
def make_host(registry):
    """Factory for fresh host classes bound to the test registry."""

    def factory(name: str = "Host", **attrs) -> type[Pluggable]:
        return type(name, (Pluggable,), {"plugin_registry": registry, **attrs})

    return factory


@pytest.fixture
def plugin_package(tmp_path: Path, monkeypatch) -> str:
    """Create an importable package with one plugin per module.

    Returns the package name, unique per test so imports never leak.
    """
    package_name = f"plugpkg_{uuid.uuid4().hex[:8]}"
    package_dir = tmp_path / package_name
    package_dir.mkdir()
    (package_dir / "__init__.py").write_text("")
    for module_name, source in PLUGIN_MODULES.items():
        (package_dir / f"{module_name}.py").write_text(textwrap.dedent(source))

    monkeypatch.syspath_prepend(str(tmp_path))
    return package_name
