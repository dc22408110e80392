"""
Contains the controller class definition used to resolve the user inputs into a deployment
or undeployment request for the provisioner.
"""
import os
import random
import logging
from pathlib import Path
import yaml
from pydantic import ValidationError
from .error import ConfigurationError
from .models import DeploymentRequest, InboundRule, UndeployRequest
from .util import setup_logger

LOGGER = logging.getLogger("fuoco")
PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG_PATH = PACKAGE_DIR / 'providers.yaml'
DEFAULT_TEMPLATES_DIR = PACKAGE_DIR / 'templates'

class Controller():
    """
    A class that takes user inputs, from the command line or from FUOCO_* environment variables,
    and resolves them against the provider catalog.
    """

    def __init__(self, cli_args: dict, subcommand: str = 'deploy', rng=None):
        # List of possible variables to be used by the controller
        self.vars = {
            'provider':            {'required': True,  'category': ['deploy', 'undeploy'], 'type': str},
            'instance_type':       {'required': False, 'category': ['deploy', 'undeploy'], 'type': str},
            'region':              {'required': False, 'category': ['deploy', 'undeploy'], 'type': str},
            'script_path':         {'required': False, 'category': ['deploy'],             'type': str},
            'inbound_rules':       {'required': False, 'category': ['deploy'],             'type': 'rules'},
            'ssh_public_key_path': {'required': False, 'category': ['deploy'],             'type': str},
            'debug':               {'required': False, 'category': ['deploy', 'undeploy'], 'type': bool},
            'templates_dir':       {'required': False, 'category': ['controller'],         'type': str},
            'config_path':         {'required': False, 'category': ['controller'],         'type': str},
            'output_dir':          {'required': False, 'category': ['controller'],         'type': str},
        }
        if subcommand == 'undeploy':
            self.vars['region']['required'] = True

        request_config = {}
        controller_config = {}

        # iterate over variables, preferring command line values over the environment
        for key, val in self.vars.items():
            var = f'FUOCO_{key.upper()}'
            value = cli_args.get(key)
            if value is None and var in os.environ:
                value = self.type_conversion(key, os.environ[var], val['type'])
            elif val['type'] == 'rules' and value is not None:
                value = [InboundRule.parse(rule) for rule in value]
            if value is not None:
                if subcommand in val['category']:
                    request_config[key] = value
                if 'controller' in val['category']:
                    controller_config[key] = value

            # Check for any required variables that have not been defined
            if val['required'] and value is None:
                raise ConfigurationError(f'Required parameter {key} was not given on the command '
                                         f'line or as {var} in the environment.')

        self.subcommand = subcommand
        self.request_config = request_config
        self.controller_config = controller_config
        self.rng = rng if rng is not None else random

        self.set_log_dir()
        setup_logger(self.log_directory)
        self.load_catalog(controller_config.get('config_path', DEFAULT_CONFIG_PATH))
        self.set_template_path()

    def type_conversion(self, key: str, val: str, target_type):
        """
        Converts the value of a key obtained from the environment into the appropriate type.

        Parameters:
            key (str): the key whose value is being converted
            val (str): the value that is being converted
            target_type (type or str): the type that the value is being converted to
        """
        if target_type == bool:
            if val.lower() in ['1', 't', 'true', 'yes', 'y']:
                new = True
            elif val.lower() in ['0', 'f', 'false', 'no', 'n', '']:
                new = False
            else:
                raise ConfigurationError(f'{key}={val} is not valid. {key} must be a boolean.')
        elif target_type == str:
            new = val
        elif target_type == 'rules':
            # comma separated list of protocol:port
            new = [InboundRule.parse(rule.strip()) for rule in val.split(',') if rule.strip() != '']
        else:
            raise ConfigurationError(f'Invalid type {target_type} for variable {key}.')
        return new

    def set_log_dir(self):
        """Uses the output directory as log directory if one was given and checks that it is writable."""

        log_dir = self.controller_config.get('output_dir')
        if log_dir is not None and not os.access(log_dir, os.W_OK):
            raise ConfigurationError(f'Log directory {log_dir} is not writable.')
        self.log_directory = log_dir

    def load_catalog(self, config_path):
        """
        Loads the provider catalog and looks up the selected provider.

            Parameters:
                config_path (str): the path to the provider catalog
        """

        if not os.path.exists(config_path):
            raise ConfigurationError(f'Provider catalog {config_path} not found')
        with open(config_path, 'r', encoding='utf-8') as fil:
            catalog = yaml.safe_load(fil) or {}
        provider = self.request_config['provider']
        if provider not in catalog:
            raise ConfigurationError(f'Unknown provider {provider}. '
                                     f'Valid providers: {", ".join(sorted(catalog))}')
        self.provider_config = catalog[provider]
        self.catalog = catalog

    def set_template_path(self):
        """Sets the path of the Terraform template for the selected provider and checks it exists."""

        templates_dir = Path(self.controller_config.get('templates_dir', DEFAULT_TEMPLATES_DIR))
        template_path = templates_dir.resolve() / self.request_config['provider'] / 'main.tf'
        if not template_path.is_file():
            raise ConfigurationError(f'Terraform template {template_path} not found')
        self.template_path = template_path

    def default_instance_type(self) -> str:
        instance_type = self.provider_config.get('default_instance_type')
        if not instance_type:
            raise ConfigurationError(f'No default instance type for provider '
                                     f'{self.request_config["provider"]}')
        return instance_type

    def random_region(self) -> str:
        """Picks one of the provider's regions uniformly at random."""

        regions = self.provider_config.get('regions') or []
        if len(regions) == 0:
            raise ConfigurationError(f'Cannot resolve random region for provider '
                                     f'{self.request_config["provider"]}: region list is empty')
        return self.rng.choice(regions)

    def deployment_request(self) -> DeploymentRequest:
        cfg = dict(self.request_config)
        if 'instance_type' not in cfg:
            cfg['instance_type'] = self.default_instance_type()
        if 'script_path' in cfg:
            script_path = Path(cfg['script_path']).expanduser()
            if not script_path.is_file():
                raise ConfigurationError(f'Startup script {script_path} not found')
            cfg['script_path'] = script_path.resolve()
        try:
            return DeploymentRequest(template_path=self.template_path, **cfg)
        except ValidationError as e:
            raise ConfigurationError(f'Invalid deploy parameters: {e}')

    def undeploy_request(self) -> UndeployRequest:
        cfg = dict(self.request_config)
        if 'instance_type' not in cfg:
            cfg['instance_type'] = self.default_instance_type()
        try:
            return UndeployRequest(template_path=self.template_path, **cfg)
        except ValidationError as e:
            raise ConfigurationError(f'Invalid undeploy parameters: {e}')

    def deploy_variables(self, request: DeploymentRequest) -> dict:
        """Builds the variable map for a deploy, drawing a random region when none was given."""

        region = request.region if request.region is not None else self.random_region()
        return request.to_variable_map(region)

    def describe(self, request) -> str:
        """Formats the resolved parameters the way they are echoed before acting."""

        given = self.request_config
        instance_type = (f'[{given["instance_type"]}]' if 'instance_type' in given
                         else request.instance_type)
        lines = [f'{self.subcommand.capitalize()} params ',
                 f'  debug: {request.debug},',
                 f'  instance_type: {instance_type},',
                 f'  provider: {request.provider},']
        if isinstance(request, DeploymentRequest):
            rules = ', '.join(str(rule) for rule in request.inbound_rules)
            lines += [f'  region: {request.region if request.region is not None else "[Random]"},',
                      f'  script_path: {request.script_path},',
                      f'  template_path: {request.template_path}',
                      f'  inbound_rules: [{rules}]',
                      f'  ssh_public_key_path: {request.ssh_public_key_path or "[Default]"}']
        else:
            lines += [f'  region: {request.region},',
                      f'  template_path: {request.template_path}']
        return '\n'.join(lines)
