"""Tests for the configuration snapshot."""

import pytest

from idpsync.config import Settings
from idpsync.provider.exceptions import ProviderConfigurationError
from idpsync.provider.ldap import build_ldap_definition, flatten_ldap_config
from idpsync.snapshot import ConfigSnapshot, parse_boolean


class TestFromSettings:
    """Test building a snapshot from settings."""

    def test_dotted_environment_overrides_properties(self):
        """Test dotted env vars become properties and win over settings."""
        settings = Settings(properties={"ldap.base.url": "ldap://yaml", "other": "1"})
        environ = {
            "ldap.base.url": "ldap://env",
            "PATH": "/usr/bin",
            "disableInternalAuth": "true",
        }

        snapshot = ConfigSnapshot.from_settings(settings, environ)

        assert snapshot.properties["ldap.base.url"] == "ldap://env"
        assert snapshot.properties["other"] == "1"
        assert "PATH" not in snapshot.properties
        assert snapshot.disable_internal_auth is True

    def test_sections_copied(self):
        """Test provider sections and flags are carried over."""
        settings = Settings(
            profiles=["ldap"],
            ldap={"base": {"url": "ldap://localhost"}},
            keystone={"url": "http://keystone"},
            oauth={"providers": {"okta": {"type": "oidc1.0", "relyingPartyId": "x"}}},
            origins_to_delete=["old-saml"],
            disable_internal_user_management=True,
        )

        snapshot = ConfigSnapshot.from_settings(settings)

        assert snapshot.has_profile("ldap")
        assert not snapshot.has_profile("keystone")
        assert snapshot.ldap_config == {"base": {"url": "ldap://localhost"}}
        assert snapshot.keystone_config == {"url": "http://keystone"}
        assert list(snapshot.oauth_providers) == ["okta"]
        assert snapshot.origins_to_delete == ("old-saml",)
        assert snapshot.disable_internal_user_management is True
        assert snapshot.zone_id == "uaa"


class TestProperties:
    """Test typed property lookup."""

    def test_typed_lookup(self):
        """Test conversion to declared types."""
        snapshot = ConfigSnapshot(
            properties={
                "a.bool": "true",
                "a.int": "7",
                "a.list": "x.com, y.com",
                "a.dict": '{"first_name": "givenName"}',
            }
        )

        assert snapshot.get_property("a.bool", bool) is True
        assert snapshot.get_property("a.int", int) == 7
        assert snapshot.get_property("a.list", list) == ["x.com", "y.com"]
        assert snapshot.get_property("a.dict", dict) == {"first_name": "givenName"}

    def test_missing_property_default(self):
        """Test a missing property returns the default."""
        assert ConfigSnapshot().get_property("nope", int, default=3) == 3

    def test_invalid_property_is_fatal(self):
        """Test an unconvertible value raises a configuration error."""
        snapshot = ConfigSnapshot(properties={"ldap.groups.maxSearchDepth": "deep"})

        with pytest.raises(ProviderConfigurationError, match="maxSearchDepth"):
            snapshot.get_property("ldap.groups.maxSearchDepth", int)

    def test_properties_with_prefix(self):
        """Test prefix query returns full property names."""
        snapshot = ConfigSnapshot(properties={"ldap.base.url": "u", "saml.x": "y"})

        assert snapshot.properties_with_prefix("ldap.") == {"ldap.base.url": "u"}


class TestDisableInternalAuth:
    """Test the internal-auth switch parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, False),
            ("true", True),
            ("TRUE", True),
            ("false", False),
            ("yes", False),
            ("garbage", False),
            (True, True),
        ],
    )
    def test_parse_boolean(self, value, expected):
        """Test only a case-insensitive "true" disables internal auth."""
        assert parse_boolean(value) is expected

    def test_default_is_enabled(self):
        """Test internal auth stays enabled when the switch is absent."""
        assert ConfigSnapshot().disable_internal_auth is False


class TestNestedEnvironmentCasing:
    """Test camelCase keys set through nested IDPSYNC_ environment variables."""

    @pytest.fixture(autouse=True)
    def no_config_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("IDPSYNC_CONFIG_FILE", str(tmp_path / "missing.yaml"))

    def test_disable_internal_auth_from_nested_env(self, monkeypatch):
        """Test the switch is honoured after the env source lowercases its key."""
        monkeypatch.setenv("IDPSYNC_PROPERTIES__disableInternalAuth", "true")

        snapshot = ConfigSnapshot.from_settings(Settings(), environ={})

        assert snapshot.has_property("disableInternalAuth")
        assert snapshot.disable_internal_auth is True

    def test_ldap_keys_from_nested_env(self, monkeypatch):
        """Test lowercased LDAP keys still land on their definition fields."""
        monkeypatch.setenv("IDPSYNC_PROFILES", '["ldap"]')
        monkeypatch.setenv("IDPSYNC_LDAP__BASE__USERDN", "cn=admin")
        monkeypatch.setenv("IDPSYNC_LDAP__BASE__URL", "ldap://x")

        snapshot = ConfigSnapshot.from_settings(Settings(), environ={})
        definition = build_ldap_definition(flatten_ldap_config(snapshot.ldap_config, snapshot))

        assert definition.is_configured()
        assert definition.bind_user_dn == "cn=admin"
        assert definition.base_url == "ldap://x"

    def test_case_insensitive_property_lookup(self):
        """Test typed and prefix lookups ignore the stored key's case."""
        snapshot = ConfigSnapshot(properties={"ldap.groups.maxsearchdepth": "4"})

        assert snapshot.get_property("ldap.groups.maxSearchDepth", int) == 4
        assert snapshot.properties_with_prefix("LDAP.") == {"ldap.groups.maxsearchdepth": "4"}
