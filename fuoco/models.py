"""
Contains the request models built from the resolved configuration.
A request is immutable and is turned into the variable map handed to Terraform.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .error import ConfigurationError

DEFAULT_SSH_PUBLIC_KEY_PATH = 'none'

class InboundRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    protocol: str
    port_number: int = Field(ge=0, le=65535)

    @classmethod
    def parse(cls, rule: str) -> 'InboundRule':
        """Parses a rule written as protocol:port, e.g. tcp:22."""

        parts = rule.split(':')
        if len(parts) != 2 or parts[0] == '':
            raise ConfigurationError(f'Inbound rule "{rule}" must be in format protocol:port')
        # isdigit alone accepts unicode digits such as '²' that int() rejects
        if not (parts[1].isascii() and parts[1].isdigit()) or int(parts[1]) > 65535:
            raise ConfigurationError(f'Invalid port number in inbound rule "{rule}"')
        return cls(protocol=parts[0], port_number=int(parts[1]))

    def __str__(self):
        return f'{self.protocol}:{self.port_number}'


def default_inbound_rules() -> List[InboundRule]:
    return [InboundRule(protocol='tcp', port_number=22)]


class DeploymentRequest(BaseModel):
    """
    Everything needed to deploy one ephemeral VM.
    region=None means a random region of the provider is picked when the variable map is built.
    """

    model_config = ConfigDict(frozen=True)

    provider: str
    instance_type: str
    region: Optional[str] = None
    script_path: Optional[Path] = None
    inbound_rules: List[InboundRule] = Field(default_factory=default_inbound_rules)
    ssh_public_key_path: Optional[str] = None
    template_path: Path
    debug: bool = False

    @field_validator('inbound_rules', mode='before')
    @classmethod
    def parse_inbound_rules(cls, v):
        if v is None:
            return default_inbound_rules()
        return [InboundRule.parse(r) if isinstance(r, str) else r for r in v]

    def to_variable_map(self, region: str) -> Dict[str, str]:
        """
        Builds the Terraform variables for this request.

            Parameters:
                region (str): the resolved region, used when the request did not set one

            Returns:
                dict: variable name to string value
        """

        rules = [rule.model_dump() for rule in self.inbound_rules]
        return {
            'instance_type': self.instance_type,
            'region': self.region if self.region is not None else region,
            'script_path': str(self.script_path) if self.script_path is not None else '',
            'inbound_rules': json.dumps(rules, separators=(',', ':')),
            'ssh_public_key_path': (self.ssh_public_key_path
                                    if self.ssh_public_key_path is not None
                                    else DEFAULT_SSH_PUBLIC_KEY_PATH),
        }


class UndeployRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    instance_type: str
    region: str
    template_path: Path
    debug: bool = False

    def to_variable_map(self) -> Dict[str, str]:
        return {'instance_type': self.instance_type, 'region': self.region}
