"""
Circular dependency detection.
"""

import pytest

from tessera.errors import CircularDependencyError, ServiceManagerError


class TestCircularDependencies:

    def test_factory_requesting_itself(self, manager):
        manager.register_factory("x", lambda c, n, o=None: c.get("x"))
        with pytest.raises(CircularDependencyError) as exc_info:
            manager.get("x")
        assert exc_info.value.cycle == ["x", "x"]

    def test_two_service_cycle_reports_full_path(self, manager):
        manager.register_factory("a", lambda c, n, o=None: {"b": c.get("b")})
        manager.register_factory("b", lambda c, n, o=None: {"a": c.get("a")})
        with pytest.raises(CircularDependencyError) as exc_info:
            manager.get("a")
        assert exc_info.value.cycle == ["a", "b", "a"]
        assert "a ->" in str(exc_info.value)

    def test_cycle_detected_through_build(self, manager):
        manager.register_factory("x", lambda c, n, o=None: c.build("x"))
        with pytest.raises(CircularDependencyError):
            manager.build("x")

    def test_cycle_through_alias_uses_canonical_names(self, manager):
        manager.register_factory("a", lambda c, n, o=None: c.get("alias_of_a"))
        manager.register_alias("alias_of_a", "a")
        with pytest.raises(CircularDependencyError) as exc_info:
            manager.get("a")
        assert exc_info.value.cycle == ["a", "a"]

    def test_initializer_requesting_same_service(self, manager):
        def needy(container, instance):
            container.get("svc")

        manager.register_factory("svc", lambda c, n, o=None: object())
        manager.register_initializer(needy)
        with pytest.raises(CircularDependencyError) as exc_info:
            manager.get("svc")
        assert exc_info.value.cycle == ["svc", "svc"]

    def test_delegator_requesting_same_service(self, manager):
        manager.register_factory("svc", lambda c, n, o=None: object())
        manager.register_delegator("svc", lambda c, n, cb, o=None: c.get("svc"))
        with pytest.raises(CircularDependencyError):
            manager.get("svc")

    def test_three_service_cycle_starting_mid_chain(self, manager):
        manager.register_factory("root", lambda c, n, o=None: c.get("a"))
        manager.register_factory("a", lambda c, n, o=None: c.get("b"))
        manager.register_factory("b", lambda c, n, o=None: c.get("c"))
        manager.register_factory("c", lambda c, n, o=None: c.get("a"))
        with pytest.raises(CircularDependencyError) as exc_info:
            manager.get("root")
        assert exc_info.value.cycle == ["a", "b", "c", "a"]

    def test_error_is_a_service_manager_error(self, manager):
        manager.register_factory("x", lambda c, n, o=None: c.get("x"))
        with pytest.raises(ServiceManagerError):
            manager.get("x")


class TestResolutionStack:

    def test_stack_empty_after_success(self, manager):
        manager.register_factory("a", lambda c, n, o=None: c.get("b"))
        manager.register_factory("b", lambda c, n, o=None: "b")
        manager.get("a")
        assert manager.resolution_stack == []

    def test_stack_empty_after_failure(self, manager):
        manager.register_factory("x", lambda c, n, o=None: c.get("x"))
        with pytest.raises(CircularDependencyError):
            manager.get("x")
        assert manager.resolution_stack == []

    def test_stack_visible_to_factories(self, manager):
        seen = []

        def inner(container, name, options=None):
            seen.append(container.resolution_stack)
            return "inner"

        manager.register_factory("outer", lambda c, n, o=None: c.get("inner"))
        manager.register_factory("inner", inner)
        manager.get("outer")
        assert seen == [["outer", "inner"]]

    def test_diamond_is_not_a_cycle(self, manager):
        manager.register_factory("top", lambda c, n, o=None: (c.get("left"), c.get("right")))
        manager.register_factory("left", lambda c, n, o=None: c.build("base"))
        manager.register_factory("right", lambda c, n, o=None: c.build("base"))
        manager.register_factory("base", lambda c, n, o=None: object())
        left, right = manager.get("top")
        assert left is not right

    def test_nothing_cached_for_failed_cycle(self, manager):
        manager.register_factory("a", lambda c, n, o=None: c.get("b"))
        manager.register_factory("b", lambda c, n, o=None: c.get("a"))
        with pytest.raises(CircularDependencyError):
            manager.get("a")
        assert not manager.is_cached("a")
        assert not manager.is_cached("b")

    def test_separate_managers_have_separate_stacks(self, manager):
        from tessera import ServiceManager

        other = ServiceManager()
        other.register_factory("x", lambda c, n, o=None: "other-x")
        # Same name requested on a different manager mid-resolution is not a cycle
        manager.register_factory("x", lambda c, n, o=None: other.get("x"))
        assert manager.get("x") == "other-x"
