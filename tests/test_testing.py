"""
Testing utilities: TestServiceManager, override_service, spy_factory.
"""

import pytest

from tessera.testing import TestServiceManager, override_service, spy_factory

from sample_services import Mailer, make_mailer, make_transport


class TestTestServiceManager:

    def test_overrides_always_allowed(self):
        manager = TestServiceManager(allow_override=False)
        manager.register_value("svc", 1)
        manager.register_value("svc", 2)
        assert manager.get("svc") == 2

    def test_resolution_log(self):
        manager = TestServiceManager()
        manager.register_factory("transport", make_transport)
        manager.register_factory("mailer", make_mailer)
        manager.get("mailer")
        manager.build("transport")
        # Nested requests made by factories are logged too
        assert manager.resolution_log == ["mailer", "transport", "transport"]

        manager.reset()
        assert manager.resolution_log == []
        assert not manager.is_cached("mailer")


class TestOverrideService:

    def test_override_and_restore(self, manager):
        manager.register_factory("mailer", lambda c, n, o=None: Mailer())
        real = manager.get("mailer")
        fake = object()

        with override_service(manager, "mailer", fake) as installed:
            assert installed is fake
            assert manager.get("mailer") is fake

        assert manager.get("mailer") is real

    def test_override_without_prior_instance(self, manager):
        manager.register_factory("mailer", lambda c, n, o=None: Mailer())
        fake = object()

        with override_service(manager, "mailer", fake):
            assert manager.get("mailer") is fake

        assert not manager.is_cached("mailer")
        assert isinstance(manager.get("mailer"), Mailer)

    def test_override_unknown_and_unshared_names(self, manager):
        manager.register_factory("svc", lambda c, n, o=None: "real")
        manager.set_shared("svc", False)

        with override_service(manager, "svc", "fake"):
            assert manager.get("svc") == "fake"
        assert manager.get("svc") == "real"

        with override_service(manager, "ghost", "boo"):
            assert manager.has("ghost")
        assert not manager.has("ghost")

    def test_override_restored_on_error(self, manager):
        manager.register_factory("svc", lambda c, n, o=None: "real")
        with pytest.raises(RuntimeError):
            with override_service(manager, "svc", "fake"):
                raise RuntimeError("boom")
        assert manager.get("svc") == "real"


class TestSpyFactory:

    def test_spy_records_calls(self, manager):
        manager.register_factory("transport", make_transport)

        with spy_factory(manager, "transport") as spy:
            first = manager.get("transport")
            manager.build("transport", {"host": "smtp"})

        assert spy.call_count == 2
        assert spy.calls == [("transport", None), ("transport", {"host": "smtp"})]
        assert spy.created[0] is first

    def test_spy_restores_factory(self, manager):
        manager.register_factory("transport", make_transport)
        original = manager.registry.get_factory("transport")
        with spy_factory(manager, "transport"):
            assert manager.registry.get_factory("transport") is not original
        assert manager.registry.get_factory("transport") is original

    def test_spy_through_alias(self, manager):
        manager.register_factory("transport", make_transport)
        manager.register_alias("smtp", "transport")
        with spy_factory(manager, "smtp") as spy:
            manager.get("smtp")
        assert spy.calls == [("transport", None)]

    def test_spy_requires_factory(self, manager):
        with pytest.raises(KeyError):
            with spy_factory(manager, "ghost"):
                pass
