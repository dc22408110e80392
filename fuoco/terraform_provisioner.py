"""Contains the TerraformProvisioner for provisioning a VM with the terraform command line tool."""

import json
import shutil
import logging
from pathlib import Path
from typing import Dict, Mapping
from .error import ApplyError, TeardownError
from .provisioner import Provisioner
from .util import run_shell
from .workspace import workspace_dir

LOGGER = logging.getLogger("fuoco")
VARS_FILE = 'fuoco.auto.tfvars.json'

class TerraformProvisioner(Provisioner):
    """
    A subclass of the Provisioner class that drives terraform.
    Each template directory is copied into its own workspace (see workspace.py) where
    terraform is initialized once and then applied or destroyed.

    Attributes:
        terraform_bin (str): name or path of the terraform executable
        workspace_root (str): base directory for workspaces, defaults to the system temp directory

    Methods:
        prepare_workspace(template_path, variables, verbose):
            Copies the template, writes the variables and runs terraform init if needed.
        apply(template_path, variables, verbose):
            Runs terraform apply and returns the terraform outputs.
        destroy(template_path, variables, verbose):
            Runs terraform destroy.
    """

    def __init__(self, terraform_bin: str = 'terraform', workspace_root=None):
        self.terraform_bin = terraform_bin
        self.workspace_root = workspace_root

    def terraform(self, args: list, work: Path, verbose: bool, error_cls):
        """
        Runs a terraform subcommand in the workspace.
        Raises error_cls with the captured output if terraform exits with a non-zero code.
        """

        cmd = [self.terraform_bin] + args
        returncode, out, err = run_shell(cmd, cwd=str(work), verbose=verbose)
        if returncode != 0:
            msg = f'terraform {args[0]} failed with exit code {returncode}'
            details = '\n'.join(s for s in (err, out) if s != '')
            if details != '':
                msg += f':\n{details}'
            raise error_cls(msg)
        return out

    def prepare_workspace(self, template_path, variables: Mapping[str, str], verbose: bool,
                          error_cls) -> Path:
        """
        Makes sure the workspace of the template exists and is initialized, then writes the
        variables into it.

            Parameters:
                template_path (str or Path): path to the main template file
                variables (dict): terraform variables
                verbose (bool): show terraform output
                error_cls: exception class raised on failure

            Returns:
                Path: the workspace directory
        """

        template_dir = Path(template_path).parent
        work = workspace_dir(template_dir, self.workspace_root)
        if not work.exists():
            LOGGER.info(f'Creating Terraform workspace {work} from {template_dir}')
            try:
                shutil.copytree(template_dir, work)
            except OSError as e:
                raise error_cls(f'Cannot create Terraform workspace {work}: {e}')
        if not (work / '.terraform').exists():
            self.terraform(['init', '-input=false', '-no-color'], work, verbose, error_cls)
        try:
            with open(work / VARS_FILE, 'w', encoding='utf-8') as f:
                json.dump(dict(variables), f, indent=2)
        except OSError as e:
            raise error_cls(f'Cannot write Terraform variables to {work / VARS_FILE}: {e}')
        return work

    def apply(self, template_path, variables: Mapping[str, str], verbose: bool) -> Dict[str, str]:
        work = self.prepare_workspace(template_path, variables, verbose, ApplyError)
        LOGGER.info(f'Applying {template_path}')
        self.terraform(['apply', '-auto-approve', '-input=false', '-no-color'],
                       work, verbose, ApplyError)
        # output is always captured, it has to be parsed
        out = self.terraform(['output', '-json', '-no-color'], work, False, ApplyError)
        return self.parse_outputs(out)

    def destroy(self, template_path, variables: Mapping[str, str], verbose: bool) -> None:
        work = self.prepare_workspace(template_path, variables, verbose, TeardownError)
        LOGGER.info(f'Destroying {template_path}')
        self.terraform(['destroy', '-auto-approve', '-input=false', '-no-color'],
                       work, verbose, TeardownError)

    @staticmethod
    def parse_outputs(out: str) -> Dict[str, str]:
        """Converts `terraform output -json` into a name -> string mapping, keeping the order."""

        if out.strip() == '':
            return {}
        try:
            raw = json.loads(out)
        except ValueError:
            raise ApplyError(f'Invalid json returned by terraform output:\n{out}')
        outputs = {}
        for name, output in raw.items():
            value = output.get('value') if isinstance(output, dict) else output
            outputs[name] = value if isinstance(value, str) else json.dumps(value)
        return outputs
