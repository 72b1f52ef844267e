"""Tests for the plugin request DSL."""

from __future__ import annotations

import pytest

from pluggable.plugins import PluginRequest


class TestPluginRequest:
    """Tests for recording requests."""

    def test_attribute_requests(self):
        """Test that attribute calls request plugins."""
        request = PluginRequest({})
        request.cache()
        request.reader()

        assert request.names == ["cache", "reader"]

    def test_request_method(self):
        """Test requesting names that clash with request methods."""
        request = PluginRequest({})
        request.request("names")

        assert request.names == ["names"]

    def test_default_option_stored(self):
        """Test that a default option updates the defaults table."""
        defaults = {}
        request = PluginRequest(defaults)
        request.fallbacks(default=["en", "de"])

        assert defaults == {"fallbacks": ["en", "de"]}
        assert request.defaults is defaults

    def test_other_options_ignored(self):
        """Test that non-default options leave the defaults alone."""
        defaults = {}
        request = PluginRequest(defaults)
        request.cache("positional", enabled=True)

        assert request.names == ["cache"]
        assert defaults == {}

    def test_re_request_keeps_position(self):
        """Test that duplicate requests do not move or repeat a name."""
        defaults = {}
        request = PluginRequest(defaults)
        request.fallbacks(default="en")
        request.cache()
        request.fallbacks(default="de")

        assert request.names == ["fallbacks", "cache"]
        assert defaults == {"fallbacks": "de"}

    def test_private_attributes_not_requests(self):
        """Test that underscore names are not treated as plugins."""
        request = PluginRequest({})

        with pytest.raises(AttributeError):
            request._secret()

    def test_repr(self):
        """Test representation."""
        request = PluginRequest({})
        request.cache()

        assert repr(request) == "<PluginRequest names=['cache']>"


class TestEvaluate:
    """Tests for evaluating request blocks."""

    def test_callable_block(self):
        """Test the DSL form."""

        def plugins(p):
            p.cache()
            p.fallbacks(default="en")

        names, defaults = PluginRequest.evaluate({}, plugins)

        assert names == ["cache", "fallbacks"]
        assert defaults == {"fallbacks": "en"}

    def test_mapping_block(self):
        """Test the declarative form."""
        names, defaults = PluginRequest.evaluate(
            {"reader": True},
            {"cache": None, "fallbacks": {"default": "en"}},
        )

        assert names == ["cache", "fallbacks"]
        assert defaults == {"reader": True, "fallbacks": "en"}

    def test_iterable_block(self):
        """Test a plain list of names."""
        names, defaults = PluginRequest.evaluate({}, ["reader", "writer", "reader"])

        assert names == ["reader", "writer"]
        assert defaults == {}

    def test_none_block(self):
        """Test that no block requests nothing."""
        assert PluginRequest.evaluate({}, None) == ([], {})

    def test_defaults_updated_in_place(self):
        """Test that the caller's defaults table is mutated."""
        defaults = {}
        _, returned = PluginRequest.evaluate(defaults, {"cache": {"default": 1}})

        assert returned is defaults
        assert defaults == {"cache": 1}

    @pytest.mark.parametrize("block", ["cache", 42])
    def test_unsupported_block(self, block):
        """Test that strings and scalars are rejected."""
        with pytest.raises(TypeError, match="Plugin block must be"):
            PluginRequest.evaluate({}, block)

    def test_mapping_with_bad_options(self):
        """Test that options must be mappings."""
        with pytest.raises(TypeError, match="must be a mapping"):
            PluginRequest.evaluate({}, {"cache": "yes"})

    def test_apply_combines_blocks(self):
        """Test applying several blocks to one request."""
        request = PluginRequest({})
        request.apply(["reader"])
        request.apply(lambda p: p.cache())

        assert request.names == ["reader", "cache"]
