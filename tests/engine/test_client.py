"""Tests for the LedgerClient protocol and factory loading (sync_engine/client.py)."""

from collections import OrderedDict

import pytest

from sync_kernel.exceptions import LedgerClientFactoryError

from sync_engine import client as client_module
from sync_engine.client import LedgerClient, create_client, load_client_factory


class TestLedgerClientProtocol:
    def test_fake_client_satisfies_protocol(self, fake_client):
        assert isinstance(fake_client, LedgerClient)

    def test_incomplete_object_does_not(self):
        class HalfClient:
            def init(self, data_dir, server_url, password):
                pass

        assert not isinstance(HalfClient(), LedgerClient)


class TestLoadClientFactory:
    def test_resolves_callable(self):
        assert load_client_factory("collections:OrderedDict") is OrderedDict

    def test_dotted_attribute(self):
        factory = load_client_factory("os:path.join")
        assert callable(factory)

    @pytest.mark.parametrize("path", ["collections", ":OrderedDict", "collections:"])
    def test_malformed(self, path):
        with pytest.raises(LedgerClientFactoryError, match="package.module:attribute"):
            load_client_factory(path)

    def test_missing_module(self):
        with pytest.raises(LedgerClientFactoryError, match="cannot import"):
            load_client_factory("no_such_ledger_bridge_module:make")

    def test_missing_attribute(self):
        with pytest.raises(LedgerClientFactoryError, match="no attribute"):
            load_client_factory("collections:NoSuchFactory")

    def test_not_callable(self):
        with pytest.raises(LedgerClientFactoryError, match="not callable"):
            load_client_factory("os:sep")


class TestCreateClient:
    def test_returns_built_client(self, fake_client, monkeypatch):
        monkeypatch.setattr(client_module, "load_client_factory", lambda path: lambda: fake_client)
        assert create_client("bridge:make") is fake_client

    def test_factory_exception_wrapped(self):
        # json.loads() without its argument raises TypeError.
        with pytest.raises(LedgerClientFactoryError, match="factory raised") as exc_info:
            create_client("json:loads")
        assert isinstance(exc_info.value.__cause__, TypeError)

    def test_result_must_be_a_client(self):
        with pytest.raises(LedgerClientFactoryError, match="does not implement LedgerClient"):
            create_client("collections:OrderedDict")

    def test_load_errors_pass_through(self):
        with pytest.raises(LedgerClientFactoryError, match="cannot import"):
            create_client("no_such_ledger_bridge_module:make")
