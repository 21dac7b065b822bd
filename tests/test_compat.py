"""Tests for agent version compatibility normalization."""

import pytest

from tunnel_session.common.exceptions import ConfigurationError
from tunnel_session.tunnels.builder import TunnelDefinitionBuilder
from tunnel_session.tunnels.compat import is_dual_scheme, normalize
from tunnel_session.tunnels.models import AgentVersion, BindTls, Proto


class TestNormalizeV2:
    def test_bind_tls_defaults_to_both(self):
        fields = normalize({"proto": Proto.HTTP}, AgentVersion.V2)

        assert fields["bind_tls"] == BindTls.BOTH

    def test_explicit_bind_tls_is_kept(self):
        fields = normalize({"bind_tls": BindTls.TRUE}, AgentVersion.V2)

        assert fields["bind_tls"] == BindTls.TRUE
        assert "schemes" not in fields

    def test_single_auth_is_kept(self):
        definition = (
            TunnelDefinitionBuilder(set_defaults=True)
            .with_agent_version(AgentVersion.V2)
            .with_auth("user:pass")
            .build()
        )

        assert definition.auth == "user:pass"
        assert definition.basic_auth is None


class TestNormalizeV3:
    @pytest.mark.parametrize(
        ("bind_tls", "schemes"),
        [
            (BindTls.TRUE, ["https"]),
            (BindTls.FALSE, ["http"]),
            (BindTls.BOTH, ["http", "https"]),
        ],
    )
    def test_bind_tls_becomes_schemes(self, bind_tls, schemes):
        definition = (
            TunnelDefinitionBuilder(set_defaults=True).with_bind_tls(bind_tls).build()
        )

        assert definition.schemes == schemes
        assert definition.bind_tls is None
        assert "bind_tls" not in definition.to_request_body()

    def test_auth_becomes_basic_auth_list(self):
        definition = (
            TunnelDefinitionBuilder(set_defaults=True).with_auth("user:pass").build()
        )

        assert definition.basic_auth == ["user:pass"]
        assert definition.auth is None

    def test_unset_bind_tls_adds_no_schemes(self):
        definition = TunnelDefinitionBuilder(set_defaults=True).build()

        assert definition.schemes is None
        assert definition.bind_tls is None

    def test_no_translation_without_defaults(self):
        definition = TunnelDefinitionBuilder().with_bind_tls(BindTls.BOTH).build()

        assert definition.bind_tls == BindTls.BOTH
        assert definition.schemes is None


class TestDualScheme:
    def test_v2_both_is_dual(self):
        definition = (
            TunnelDefinitionBuilder(set_defaults=True)
            .with_agent_version(AgentVersion.V2)
            .build()
        )

        assert is_dual_scheme(definition)

    def test_v3_both_is_dual(self):
        definition = (
            TunnelDefinitionBuilder(set_defaults=True).with_bind_tls("both").build()
        )

        assert is_dual_scheme(definition)

    def test_single_scheme_is_not_dual(self):
        definition = (
            TunnelDefinitionBuilder(set_defaults=True).with_schemes(["https"]).build()
        )

        assert not is_dual_scheme(definition)

    def test_v3_unset_bind_is_not_dual(self):
        definition = TunnelDefinitionBuilder(set_defaults=True).build()

        assert definition.agent_version == AgentVersion.V3
        assert not is_dual_scheme(definition)

    def test_tcp_is_never_dual(self):
        definition = (
            TunnelDefinitionBuilder(set_defaults=True)
            .with_proto(Proto.TCP)
            .with_agent_version(AgentVersion.V2)
            .build()
        )

        assert not is_dual_scheme(definition)


class TestAgentVersionParsing:
    @pytest.mark.parametrize(
        ("version", "expected"),
        [("3.1.0", AgentVersion.V3), ("2.3.40", AgentVersion.V2), ("v3", AgentVersion.V3)],
    )
    def test_from_version_string(self, version, expected):
        assert AgentVersion.from_version_string(version) == expected

    def test_unknown_major_version_raises(self):
        with pytest.raises(ConfigurationError, match="Unsupported agent version"):
            AgentVersion.from_version_string("1.7")

    def test_invalid_bind_tls_raises(self):
        with pytest.raises(ConfigurationError, match="Invalid bind_tls"):
            BindTls.parse("sometimes")
