"""
Diagnostic events and logging.
"""

import logging

import pytest

from tessera import ServiceManager
from tessera.diagnostics import Diagnostics, EventType, LoggingListener, RecordingListener
from tessera.errors import ServiceNotFoundError


class TestEvents:

    def test_resolution_events(self, observed_manager, recorder):
        observed_manager.register_factory("svc", lambda c, n, o=None: object())
        observed_manager.get("svc")

        start = recorder.of_type(EventType.RESOLUTION_START)
        success = recorder.of_type(EventType.RESOLUTION_SUCCESS)
        assert [e.name for e in start] == ["svc"]
        assert [e.name for e in success] == ["svc"]
        assert success[0].duration is not None
        assert success[0].producer.endswith("<lambda>")

    def test_registration_events(self, observed_manager, recorder):
        observed_manager.register_factory("svc", lambda c, n, o=None: 1)
        observed_manager.register_alias("alias", "svc")
        kinds = [e.metadata["kind"] for e in recorder.of_type(EventType.REGISTRATION)]
        assert kinds == ["factory", "alias"]

    def test_cache_hit_event(self, observed_manager, recorder):
        observed_manager.register_factory("svc", lambda c, n, o=None: object())
        observed_manager.register_alias("alias", "svc")
        observed_manager.get("svc")
        observed_manager.get("alias")

        (hit,) = recorder.of_type(EventType.CACHE_HIT)
        assert hit.name == "svc"
        assert hit.requested == "alias"

    def test_failure_event(self, observed_manager, recorder):
        def broken(container, name, options=None):
            raise RuntimeError("nope")

        observed_manager.register_factory("svc", broken)
        with pytest.raises(RuntimeError):
            observed_manager.get("svc")

        (failure,) = recorder.of_type(EventType.RESOLUTION_FAILURE)
        assert isinstance(failure.error, RuntimeError)

    def test_not_found_emits_no_resolution_events(self, observed_manager, recorder):
        with pytest.raises(ServiceNotFoundError):
            observed_manager.get("ghost")
        assert recorder.of_type(EventType.RESOLUTION_START) == []

    def test_forget_event(self, observed_manager, recorder):
        observed_manager.register_factory("svc", lambda c, n, o=None: object())
        observed_manager.get("svc")
        observed_manager.forget("svc")
        assert [e.name for e in recorder.of_type(EventType.CACHE_FORGET)] == ["svc"]


class TestDiagnostics:

    def test_disabled_without_listeners(self):
        diagnostics = Diagnostics()
        assert not diagnostics.enabled
        diagnostics.emit(EventType.CACHE_HIT, name="x")

    def test_add_and_remove_listener(self):
        diagnostics = Diagnostics()
        recorder = RecordingListener()
        diagnostics.add_listener(recorder)
        diagnostics.emit(EventType.CACHE_HIT, name="x")
        diagnostics.remove_listener(recorder)
        diagnostics.emit(EventType.CACHE_HIT, name="y")
        assert [e.name for e in recorder.events] == ["x"]

    def test_broken_listener_does_not_break_resolution(self, caplog):
        class Broken:
            def on_event(self, event):
                raise ValueError("listener bug")

        manager = ServiceManager(diagnostics=Diagnostics([Broken()]))
        manager.register_factory("svc", lambda c, n, o=None: "ok")
        with caplog.at_level(logging.ERROR, logger="tessera.diagnostics"):
            assert manager.get("svc") == "ok"
        assert "listener bug" in caplog.text

    def test_logging_listener(self, caplog):
        manager = ServiceManager(diagnostics=Diagnostics([LoggingListener()]))
        with caplog.at_level(logging.DEBUG, logger="tessera.diagnostics"):
            manager.register_factory("svc", lambda c, n, o=None: "ok")
            manager.get("svc")
            manager.get("svc")
        assert "Registered factory" in caplog.text
        assert "Resolved name=svc" in caplog.text
        assert "Cache hit for name=svc" in caplog.text

    def test_engine_debug_logging(self, manager, caplog):
        manager.register_factory("svc", lambda c, n, o=None: "ok")
        with caplog.at_level(logging.DEBUG, logger="tessera.core"):
            manager.get("svc")
        assert "Constructed service 'svc' via explicit_factory" in caplog.text
