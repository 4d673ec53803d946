from typing import Callable

import pytest

from sprig.domain import SCOPE_PROTOTYPE, ComponentDescriptor, Role
from sprig.errors import (
    ComponentCurrentlyInCreationError,
    ComponentDefinitionError,
    ComponentNotOfRequiredTypeError,
    NoSuchComponentError,
)
from sprig.ordering import Ordered, PriorityOrdered
from sprig.processors import ComponentPostProcessor, FactoryPostProcessor, RegistryPostProcessor
from sprig.registry import ComponentRegistry, inferred_name

from support import (
    InternalComponentProcessor,
    Journal,
    OrderedRegistryProcessor,
    PriorityRegistryProcessor,
    RecordingFactoryProcessor,
    Widget,
    register,
)


class Greeter:
    greeting = "Hello"
    started = False

    def greet(self, name: str) -> str:
        return f"{self.greeting} {name}"

    def start(self):
        self.started = True


@pytest.fixture
def registry():
    return ComponentRegistry()


@pytest.fixture
def journal():
    return Journal()


def test_component_is_registered_and_created_on_lookup(registry):
    registry.provides(name="greeter")(Greeter)

    assert registry.contains_descriptor("greeter")
    assert not registry.contains_singleton("greeter")
    assert registry.get_component("greeter").greet("Dominic") == "Hello Dominic"
    assert registry.contains_singleton("greeter")


def test_name_can_be_inferred():
    def make_greeter() -> Greeter:
        return Greeter()

    assert inferred_name(Greeter) == "Greeter"
    assert inferred_name(make_greeter) == "greeter"


def test_singletons_are_shared_and_prototypes_are_not(registry):
    registry.provides(name="shared")(Greeter)
    registry.provides(name="fresh", scope=SCOPE_PROTOTYPE)(Greeter)

    assert registry.get_component("shared") is registry.get_component("shared")
    assert registry.get_component("fresh") is not registry.get_component("fresh")


def test_properties_are_applied_before_init_method(registry):
    registry.provides(name="greeter", properties={"greeting": "Howdy"}, init_method="start")(Greeter)

    greeter = registry.get_component("greeter")
    assert greeter.greet("Arthur") == "Howdy Arthur"
    assert greeter.started


def test_missing_init_method_raises(registry):
    registry.provides(name="greeter", init_method="launch")(Greeter)

    with pytest.raises(ComponentDefinitionError, match="Init method 'launch' not found"):
        registry.get_component("greeter")


def test_unknown_component_raises(registry):
    with pytest.raises(NoSuchComponentError, match="No component named 'nope'"):
        registry.get_component("nope")
    with pytest.raises(KeyError):
        registry.get_descriptor("nope")


def test_required_type_is_checked(registry):
    registry.provides(name="greeter")(Greeter)

    with pytest.raises(ComponentNotOfRequiredTypeError, match="expected to be of type Widget"):
        registry.get_component("greeter", Widget)


def test_circular_creation_is_detected(registry):
    registry.register_descriptor(
        "ouroboros", ComponentDescriptor(lambda: registry.get_component("ouroboros"))
    )

    with pytest.raises(ComponentCurrentlyInCreationError, match="'ouroboros' is currently in creation"):
        registry.get_component("ouroboros")


def test_overriding_keeps_discovery_position(registry):
    registry.provides(name="a")(Greeter)
    registry.provides(name="b")(Greeter)
    registry.provides(name="a")(Widget)

    assert registry.descriptor_names() == ["a", "b"]
    assert isinstance(registry.get_component("a"), Widget)


def test_overriding_can_be_disallowed():
    registry = ComponentRegistry(allow_overriding=False)
    registry.provides(name="a")(Greeter)

    with pytest.raises(ComponentDefinitionError, match="already a descriptor bound"):
        registry.provides(name="a")(Widget)


def test_only_classes_and_functions_can_be_provided(registry):
    with pytest.raises(ComponentDefinitionError, match="is not a class or function"):
        registry.provides(name="x")(42)


def test_register_components_by_profile():
    def components_in(*profiles):
        registry = ComponentRegistry(set(profiles))

        @registry.provides()
        def globally_defined():
            pass

        @registry.provides(profiles=["test"])
        def test_only():
            pass

        @registry.provides(profiles=["!test"])
        def not_test():
            pass

        @registry.provides(profiles=["prod", "uat"])
        def prod_or_uat():
            pass

        return set(registry.descriptor_names())

    assert components_in() == {"globally_defined", "not_test"}
    assert components_in("test") == {"globally_defined", "test_only"}
    assert components_in("prod") == {"globally_defined", "not_test", "prod_or_uat"}
    assert components_in("uat") == {"globally_defined", "not_test", "prod_or_uat"}


def test_types_are_predicted_without_creating_components(registry, journal):
    register(registry, "ordered", OrderedRegistryProcessor, journal, "ordered")
    register(registry, "priority", PriorityRegistryProcessor, journal, "priority")
    register(registry, "factory", RecordingFactoryProcessor, journal, "factory")

    assert registry.names_for_type(FactoryPostProcessor) == ["ordered", "priority", "factory"]
    assert registry.names_for_type(RegistryPostProcessor) == ["ordered", "priority"]
    assert registry.is_type_match("priority", PriorityOrdered)
    assert registry.is_type_match("ordered", Ordered)
    assert not registry.is_type_match("ordered", PriorityOrdered)
    assert not registry.is_type_match("factory", Ordered)
    assert journal.entries == []


def test_function_return_annotation_is_used_for_prediction(registry):
    @registry.provides()
    def make_greeter() -> Greeter:
        raise AssertionError("should not be called")

    assert registry.names_for_type(Greeter, allow_eager_init=False) == ["greeter"]


def test_unpredictable_types_need_eager_init(registry, journal):
    registry.register_descriptor("widget", ComponentDescriptor(lambda: Widget(journal)))

    assert registry.names_for_type(Widget, allow_eager_init=False) == []
    assert journal.entries == []

    assert registry.names_for_type(Widget, allow_eager_init=True) == ["widget"]
    assert journal.of("created") == ["widget"]


def test_non_singletons_can_be_excluded(registry):
    registry.provides(name="fresh", scope=SCOPE_PROTOTYPE)(Greeter)

    assert registry.names_for_type(Greeter, include_non_singletons=True) == ["fresh"]
    assert registry.names_for_type(Greeter, include_non_singletons=False) == []


def test_generic_return_types_do_not_break_prediction(registry):
    @registry.provides()
    def make_formatter() -> Callable[[str], str]:
        return str.upper

    assert registry.names_for_type(Greeter, allow_eager_init=False) == []


def test_child_descriptor_inherits_from_parent(registry):
    registry.register_descriptor(
        "template",
        ComponentDescriptor(Greeter, abstract=True, property_values={"greeting": "Hi"}, init_method="start"),
    )
    registry.register_descriptor("child", ComponentDescriptor(parent="template"))

    merged = registry.get_merged_descriptor("child")
    assert merged.factory is Greeter
    assert dict(merged.property_values) == {"greeting": "Hi"}
    assert registry.names_for_type(Greeter, allow_eager_init=False) == ["child"]

    child = registry.get_component("child")
    assert child.greet("Gawain") == "Hi Gawain"
    assert child.started

    with pytest.raises(ComponentDefinitionError, match="is abstract"):
        registry.get_component("template")


def test_cyclic_parent_chain_raises(registry):
    registry.register_descriptor("a", ComponentDescriptor(Greeter, parent="b"))
    registry.register_descriptor("b", ComponentDescriptor(Greeter, parent="a"))

    with pytest.raises(ComponentDefinitionError, match="cyclic parent chain"):
        registry.get_merged_descriptor("a")


def test_merged_descriptors_are_cached_until_cleared(registry):
    registry.provides(name="greeter", properties={"greeting": "Hello"})(Greeter)
    before = registry.get_merged_descriptor("greeter")

    registry.get_descriptor("greeter").property_values["greeting"] = "Ahoy"
    assert registry.get_merged_descriptor("greeter") is before

    registry.clear_metadata_cache()
    assert registry.get_merged_descriptor("greeter").property_values["greeting"] == "Ahoy"


def test_post_processor_chain_moves_readded_processors_to_the_end(registry):
    first, second, third = ComponentPostProcessor(), ComponentPostProcessor(), ComponentPostProcessor()

    registry.add_post_processors([first, second, third])
    registry.add_post_processor(first)

    assert registry.post_processors == (second, third, first)
    assert registry.post_processor_count() == 3


def test_post_processor_chain_rejects_other_objects(registry):
    with pytest.raises(TypeError, match="is not a ComponentPostProcessor"):
        registry.add_post_processor(object())


def test_post_processors_can_replace_components(registry):
    class Wrapper(ComponentPostProcessor):
        def after_init(self, component, name):
            return ("wrapped", component)

    class Stopper(ComponentPostProcessor):
        def before_init(self, component, name):
            return None

    registry.add_post_processors([Stopper(), Wrapper()])
    registry.provides(name="greeter")(Greeter)

    wrapped = registry.get_component("greeter")
    assert wrapped[0] == "wrapped"
    assert isinstance(wrapped[1], Greeter)


def test_merged_descriptor_processors_see_components_before_properties(registry, journal):
    processor = InternalComponentProcessor(journal, "internal")
    registry.add_post_processor(processor)
    registry.provides(name="greeter")(Greeter)

    registry.get_component("greeter")

    assert journal.entries[1:] == [("merged", "internal", "greeter"), ("after_init", "internal", "greeter")]


def test_pre_instantiation_skips_lazy_abstract_and_prototype_components(registry, journal):
    registry.register_descriptor("eager", ComponentDescriptor(lambda: Widget(journal, "eager")))
    registry.register_descriptor("lazy", ComponentDescriptor(lambda: Widget(journal, "lazy"), lazy_init=True))
    registry.register_descriptor("abstract", ComponentDescriptor(lambda: Widget(journal, "abstract"), abstract=True))
    registry.register_descriptor(
        "prototype", ComponentDescriptor(lambda: Widget(journal, "prototype"), scope=SCOPE_PROTOTYPE)
    )

    registry.pre_instantiate_singletons()

    assert journal.of("created") == ["eager"]
    registry.destroy_singletons()
    assert registry.singleton_names() == []


def test_remove_descriptor(registry):
    registry.provides(name="greeter", role=Role.INFRASTRUCTURE)(Greeter)
    assert registry.get_descriptor("greeter").role is Role.INFRASTRUCTURE

    registry.remove_descriptor("greeter")
    assert not registry.contains_descriptor("greeter")
    with pytest.raises(NoSuchComponentError):
        registry.remove_descriptor("greeter")


def test_unresolvable_parent_is_skipped_only_without_eager_init(registry):
    registry.register_descriptor("child", ComponentDescriptor(parent="base", lazy_init=True))
    registry.provides(name="greeter")(Greeter)

    assert registry.names_for_type(Greeter, allow_eager_init=False) == ["greeter"]
    assert not registry.is_type_match("child", Greeter)

    with pytest.raises(NoSuchComponentError, match="'base'"):
        registry.names_for_type(Greeter, allow_eager_init=True)
