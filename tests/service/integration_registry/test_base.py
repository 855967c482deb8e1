import pytest

from shelfgate.service.integration_registry.base import (
    IntegrationRegistry,
    LookupException,
    RegistrationException,
)


class Koha:
    pass


class Voyager:
    pass


class Sierra:
    pass


@pytest.fixture
def registry() -> IntegrationRegistry[object]:
    return IntegrationRegistry()


class TestIntegrationRegistry:
    def test_empty(self, registry: IntegrationRegistry[object]):
        assert len(registry) == 0
        assert list(registry) == []
        assert "Koha" not in registry

    def test_constructor_integrations(self):
        registry = IntegrationRegistry({"KohaRest": Koha, "VoyagerRestful": Voyager})
        assert registry["KohaRest"] is Koha
        assert registry["Koha"] is Koha
        assert registry.get_protocol(Voyager) == "VoyagerRestful"
        assert len(registry) == 2

    def test_register_class_name(self, registry: IntegrationRegistry[object]):
        assert registry.register(Koha) is Koha
        assert registry["Koha"] is Koha
        assert registry.get_protocols(Koha) == ["Koha"]
        assert "Koha" in registry

    def test_register_canonical_and_aliases(
        self, registry: IntegrationRegistry[object]
    ):
        registry.register(Koha, canonical="KohaRest", aliases=["KohaILSDI"])
        assert registry.get_protocols(Koha) == ["KohaRest", "KohaILSDI", "Koha"]
        assert registry.get_protocol(Koha) == "KohaRest"
        assert {registry[name] for name in ("KohaRest", "KohaILSDI", "Koha")} == {Koha}
        assert len(registry) == 1
        assert registry.integrations == {Koha}

    def test_register_again(self, registry: IntegrationRegistry[object]):
        registry.register(Koha, canonical="KohaRest")
        registry.register(Koha, canonical="KohaRest")
        assert len(registry) == 1

    def test_register_taken_name(self, registry: IntegrationRegistry[object]):
        registry.register(Koha, canonical="Library")
        with pytest.raises(RegistrationException, match="Integration Library already registered"):
            registry.register(Voyager, aliases=["Library"])
        # Nothing of the failed registration is kept.
        assert "Voyager" not in registry
        assert registry["Library"] is Koha

    def test_iteration_order(self, registry: IntegrationRegistry[object]):
        registry.register(Sierra)
        registry.register(Koha, canonical="KohaRest")
        registry.register(Voyager)
        assert list(registry) == [
            ("Sierra", Sierra),
            ("KohaRest", Koha),
            ("Voyager", Voyager),
        ]

    def test_get(self, registry: IntegrationRegistry[object]):
        registry.register(Koha)
        assert registry.get("Koha") is Koha
        assert registry.get("Koha", None) is Koha
        assert registry.get("Aleph", None) is None
        assert registry.get("Aleph", "default") == "default"
        with pytest.raises(LookupException, match="Integration Aleph not found"):
            registry.get("Aleph")
        with pytest.raises(LookupError):
            registry["Aleph"]

    def test_get_protocol_not_registered(self, registry: IntegrationRegistry[object]):
        with pytest.raises(LookupException, match="not found"):
            registry.get_protocol(Koha)

    def test_get_protocols_is_a_copy(self, registry: IntegrationRegistry[object]):
        registry.register(Koha)
        registry.get_protocols(Koha).append("Other")
        assert registry.get_protocols(Koha) == ["Koha"]

    def test_repr(self, registry: IntegrationRegistry[object]):
        registry.register(Koha, canonical="KohaRest")
        assert repr(registry) == "<IntegrationRegistry: ['Koha', 'KohaRest']>"
