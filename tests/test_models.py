import pytest

from fuoco.error import ConfigurationError
from fuoco.models import InboundRule, UndeployRequest


class TestInboundRule:
    def test_parse(self):
        rule = InboundRule.parse("udp:51820")
        assert rule.protocol == "udp"
        assert rule.port_number == 51820
        assert str(rule) == "udp:51820"

    @pytest.mark.parametrize("text", ["tcp", "tcp:22:80", ":22", ""])
    def test_wrong_format(self, text):
        with pytest.raises(ConfigurationError, match="protocol:port"):
            InboundRule.parse(text)

    @pytest.mark.parametrize("text", ["tcp:ssh", "tcp:-1", "tcp:65536", "tcp:", "tcp:²", "tcp:٢٢"])
    def test_invalid_port(self, text):
        with pytest.raises(ConfigurationError, match="Invalid port number"):
            InboundRule.parse(text)

    def test_port_bounds(self):
        assert InboundRule.parse("tcp:0").port_number == 0
        assert InboundRule.parse("tcp:65535").port_number == 65535


def test_undeploy_variable_map_has_only_instance_type_and_region(tmp_path):
    request = UndeployRequest(provider="aws", instance_type="t3.micro", region="us-east-1",
                              template_path=tmp_path / "main.tf")
    assert request.to_variable_map() == {"instance_type": "t3.micro", "region": "us-east-1"}
