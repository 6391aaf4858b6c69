"""
Tests for ModuleLoader and module normalization
"""

import itertools
from types import SimpleNamespace

import pytest

from AdminKernel.kernel.errors import (
    CircularDependencyError,
    DuplicateModuleError,
    InvalidModuleFormatError,
    MissingModuleError,
    ModuleLoadError,
)
from AdminKernel.module.base import Module
from AdminKernel.module.descriptor import ModuleKind, normalize_module
from AdminKernel.module.loader import ModuleLoader


def make_module(name, journal, requires=(), priority=0, enabled=True):
    """Plain mapping module that records connect/disconnect calls."""

    async def connect(ctx):
        journal.append(("connect", name))

    async def disconnect():
        journal.append(("disconnect", name))

    return {
        "name": name,
        "requires": requires,
        "priority": priority,
        "enabled": enabled,
        "connect": connect,
        "disconnect": disconnect,
    }


def connected(journal):
    return [name for action, name in journal if action == "connect"]


class TestNormalization:
    """Each accepted module shape becomes a descriptor."""

    def test_module_subclass_is_instantiated(self):
        class UsersModule(Module):
            name = "users"
            requires = ("roles",)
            priority = 5

        descriptor = normalize_module(UsersModule)

        assert descriptor.name == "users"
        assert descriptor.kind is ModuleKind.INSTANCE
        assert isinstance(descriptor.target, UsersModule)
        assert descriptor.requires == ("roles",)
        assert descriptor.priority == 5

    def test_module_instance_name_option(self):
        descriptor = normalize_module(Module(name="custom"))

        assert descriptor.name == "custom"
        assert descriptor.kind is ModuleKind.INSTANCE

    def test_duck_typed_class(self):
        class Reports:
            name = "reports"
            requires = "users"

            def connect(self, ctx):
                pass

        descriptor = normalize_module(Reports)

        assert descriptor.kind is ModuleKind.CLASS
        assert descriptor.requires == ("users",)

    def test_mapping_defaults(self):
        descriptor = normalize_module({"name": "simple", "connect": lambda ctx: None})

        assert descriptor.kind is ModuleKind.OBJECT
        assert descriptor.requires == ()
        assert descriptor.priority == 0
        assert descriptor.is_enabled(None) is True
        assert descriptor.disconnect_fn is None

    def test_attribute_object(self):
        module = SimpleNamespace(name="ns", connect=lambda ctx: None, enabled=False)

        descriptor = normalize_module(module)

        assert descriptor.kind is ModuleKind.OBJECT
        assert descriptor.is_enabled(None) is False

    def test_legacy_function(self):
        def books(ctx):
            pass

        descriptor = normalize_module(books)

        assert descriptor.name == "books"
        assert descriptor.kind is ModuleKind.LEGACY
        assert descriptor.requires == ()

    @pytest.mark.parametrize(
        "definition",
        [
            lambda ctx: None,
            {"connect": lambda ctx: None},
            {"name": "no-connect"},
            42,
            "users",
        ],
    )
    def test_invalid_shapes(self, definition):
        with pytest.raises(InvalidModuleFormatError):
            normalize_module(definition)

    def test_class_without_name(self):
        class Anonymous(Module):
            pass

        with pytest.raises(InvalidModuleFormatError):
            normalize_module(Anonymous)


class TestRegistration:
    """add() behaviour."""

    def test_add_is_chainable(self, loader):
        journal = []
        result = loader.add(make_module("a", journal)).add(make_module("b", journal))

        assert result is loader
        assert loader.registered_names() == ["a", "b"]
        assert loader.has("a")

    def test_duplicate_name(self, loader):
        journal = []
        loader.add(make_module("a", journal))

        with pytest.raises(DuplicateModuleError) as exc_info:
            loader.add(make_module("a", journal))
        assert exc_info.value.module_name == "a"


class TestResolveOrder:
    """Dependency ordering."""

    @pytest.mark.parametrize(
        "names", list(itertools.permutations(["genres", "books", "loans"]))
    )
    def test_requirements_come_first_for_any_registration_order(self, names):
        journal = []
        graph = {"genres": (), "books": ("genres",), "loans": ("books", "genres")}
        loader = ModuleLoader()
        for name in names:
            loader.add(make_module(name, journal, requires=graph[name]))

        assert loader.resolve_order() == ["genres", "books", "loans"]

    def test_lowest_priority_value_first(self, loader):
        journal = []
        loader.add(make_module("late", journal, priority=10))
        loader.add(make_module("early", journal, priority=-5))
        loader.add(make_module("middle", journal))

        assert loader.resolve_order() == ["early", "middle", "late"]

    def test_registration_order_breaks_ties(self, loader):
        journal = []
        for name in ["c", "a", "b"]:
            loader.add(make_module(name, journal))

        assert loader.resolve_order() == ["c", "a", "b"]

    def test_priority_never_beats_requirement(self, loader):
        journal = []
        loader.add(make_module("child", journal, requires=("parent",), priority=-100))
        loader.add(make_module("parent", journal, priority=100))

        assert loader.resolve_order() == ["parent", "child"]

    def test_missing_requirement(self, loader):
        journal = []
        loader.add(make_module("books", journal, requires=("ghost",)))

        with pytest.raises(MissingModuleError) as exc_info:
            loader.resolve_order()
        assert exc_info.value.module_name == "ghost"
        assert exc_info.value.required_by == "books"
        assert "ghost" in str(exc_info.value)
        assert "books" in str(exc_info.value)

    def test_cycle(self, loader):
        journal = []
        loader.add(make_module("standalone", journal))
        loader.add(make_module("a", journal, requires=("b",)))
        loader.add(make_module("b", journal, requires=("a",)))

        with pytest.raises(CircularDependencyError) as exc_info:
            loader.resolve_order()
        assert exc_info.value.cycle == ["a", "b", "a"]

    def test_longer_cycle_lists_participants(self, loader):
        journal = []
        loader.add(make_module("a", journal, requires=("c",)))
        loader.add(make_module("b", journal, requires=("a",)))
        loader.add(make_module("c", journal, requires=("b",)))

        with pytest.raises(CircularDependencyError) as exc_info:
            loader.resolve_order()
        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"a", "b", "c"}


class TestLoadAll:
    """load_all() and unload_all()."""

    @pytest.mark.asyncio
    async def test_loads_in_dependency_order(self, loader):
        journal = []
        loader.add(make_module("books", journal, requires=("genres",)))
        loader.add(make_module("genres", journal))

        await loader.load_all()

        assert connected(journal) == ["genres", "books"]
        assert list(loader.get_modules()) == ["genres", "books"]
        assert loader.load_order == ["genres", "books"]

    @pytest.mark.asyncio
    async def test_graph_errors_before_any_connect(self, loader):
        journal = []
        loader.add(make_module("fine", journal))
        loader.add(make_module("a", journal, requires=("b",)))
        loader.add(make_module("b", journal, requires=("a",)))

        with pytest.raises(CircularDependencyError):
            await loader.load_all()
        assert journal == []

    @pytest.mark.asyncio
    async def test_disabled_requirement_does_not_block_dependents(self, loader):
        journal = []
        loader.add(make_module("off", journal, enabled=False))
        loader.add(make_module("needs_off", journal, requires=("off",)))
        loader.add(make_module("unrelated", journal))

        await loader.load_all()

        assert connected(journal) == ["needs_off", "unrelated"]
        assert list(loader.get_modules()) == ["needs_off", "unrelated"]
        assert not loader.is_loaded("off")
        assert loader.is_loaded("needs_off")

    @pytest.mark.asyncio
    async def test_enabled_receives_context(self, loader):
        seen = []

        def enabled(ctx):
            seen.append(ctx)
            return ctx["flag"]

        loader.add({"name": "flagged", "enabled": enabled, "connect": lambda ctx: None})
        await loader.load_all({"flag": False})

        assert seen == [{"flag": False}]
        assert loader.get_modules() == {}

    @pytest.mark.asyncio
    async def test_context_factory_per_module(self, loader):
        contexts = {}

        def remember(name):
            def connect(ctx):
                contexts[name] = ctx

            return connect

        loader.add({"name": "a", "connect": remember("a")})
        loader.add({"name": "b", "connect": remember("b")})

        await loader.load_all(context_factory=lambda descriptor: f"ctx-{descriptor.name}")

        assert contexts == {"a": "ctx-a", "b": "ctx-b"}

    @pytest.mark.asyncio
    async def test_connect_failure_aborts_without_rollback(self, loader):
        journal = []
        boom = RuntimeError("boom")

        def broken(ctx):
            raise boom

        loader.add(make_module("first", journal))
        loader.add({"name": "broken", "requires": ("first",), "connect": broken})
        loader.add(make_module("never", journal, requires=("broken",)))

        with pytest.raises(ModuleLoadError) as exc_info:
            await loader.load_all()

        assert exc_info.value.module_name == "broken"
        assert exc_info.value.cause is boom
        assert exc_info.value.__cause__ is boom
        assert journal == [("connect", "first")]
        assert list(loader.get_modules()) == ["first"]

    @pytest.mark.asyncio
    async def test_load_all_twice_does_not_reconnect(self, loader):
        journal = []
        loader.add(make_module("a", journal))

        await loader.load_all()
        await loader.load_all()

        assert connected(journal) == ["a"]

    @pytest.mark.asyncio
    async def test_sync_and_async_connect(self, loader):
        calls = []

        def legacy(ctx):
            calls.append("legacy")

        class AsyncModule(Module):
            name = "async"

            async def connect(self, ctx):
                calls.append("async")

        loader.add(legacy).add(AsyncModule)
        await loader.load_all()

        assert calls == ["legacy", "async"]

    @pytest.mark.asyncio
    async def test_module_ctx_is_set_on_connect(self, loader):
        module = Module(name="plain")
        loader.add(module)

        await loader.load_all("the-context")

        assert module.ctx == "the-context"

    @pytest.mark.asyncio
    async def test_unload_in_reverse_order(self, loader):
        journal = []
        loader.add(make_module("c", journal, requires=("b",)))
        loader.add(make_module("b", journal, requires=("a",)))
        loader.add(make_module("a", journal))
        await loader.load_all()
        journal.clear()

        await loader.unload_all()

        assert journal == [("disconnect", "c"), ("disconnect", "b"), ("disconnect", "a")]
        assert loader.get_modules() == {}
        assert loader.load_order == []

    @pytest.mark.asyncio
    async def test_unload_drains_cleanups_once(self, loader):
        cleaned = []
        loader.add({"name": "a", "connect": lambda ctx: None})
        await loader.load_all()
        loader.get("a").add_cleanup(lambda: cleaned.append("a"))

        await loader.unload_all()
        await loader.unload_all()
        await loader.get("a").disconnect()

        assert cleaned == ["a"]

    @pytest.mark.asyncio
    async def test_disconnect_failure_propagates(self, loader):
        journal = []
        failure = ValueError("cannot disconnect")

        def disconnect():
            raise failure

        loader.add(make_module("a", journal))
        loader.add(
            {"name": "b", "requires": ("a",), "connect": lambda ctx: None, "disconnect": disconnect}
        )
        await loader.load_all()

        with pytest.raises(ValueError) as exc_info:
            await loader.unload_all()

        assert exc_info.value is failure
        assert list(loader.get_modules()) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_get_modules_is_a_copy(self, loader):
        loader.add({"name": "a", "connect": lambda ctx: None})
        await loader.load_all()

        modules = loader.get_modules()
        modules.clear()

        assert list(loader.get_modules()) == ["a"]
