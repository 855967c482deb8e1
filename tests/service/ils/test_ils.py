import pytest

from shelfgate.ils.config_loader import DictConfigLoader
from shelfgate.ils.connection import HoldsMode
from shelfgate.ils.exceptions import ConfigurationNotFound
from shelfgate.integration.settings import SettingsValidationError
from shelfgate.service.ils.configuration import IlsConfiguration
from shelfgate.service.ils.ils import create_login_cache, load_multibackend_settings


class TestLoadMultiBackendSettings:
    def test_load(self) -> None:
        loader = DictConfigLoader(
            {"Router": {"drivers": {"libA": "Demo"}, "default_driver": "libA"}}
        )
        settings = load_multibackend_settings(loader, "Router")
        assert settings.drivers == {"libA": "Demo"}
        assert settings.default_driver == "libA"

    def test_missing(self) -> None:
        with pytest.raises(ConfigurationNotFound):
            load_multibackend_settings(DictConfigLoader(), "Router")

    def test_invalid(self) -> None:
        loader = DictConfigLoader({"Router": {"drivers": {"lib.A": "Demo"}}})
        with pytest.raises(SettingsValidationError):
            load_multibackend_settings(loader, "Router")


def test_create_login_cache() -> None:
    assert create_login_cache(False) is None
    assert create_login_cache(True) == {}
    assert create_login_cache(True) is not create_login_cache(True)


class TestIlsConfiguration:
    def test_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHELFGATE_ILS_HOLDS_MODE", "driver")
        monkeypatch.setenv("SHELFGATE_ILS_LOGIN_CACHE", "true")
        monkeypatch.setenv("SHELFGATE_ILS_CONFIG_DIR", "/etc/shelfgate")
        config = IlsConfiguration()
        assert config.holds_mode == HoldsMode.driver
        assert config.login_cache is True
        assert str(config.config_dir) == "/etc/shelfgate"
        assert config.multibackend_config == "MultiBackend"
