"""
The main module of the fuoco package.
It contains the main function that runs the entire invalidate-apply-wait-destroy workflow.
"""
import logging
from .cli import parse_args
from .controller import Controller
from .error import FuocoException, print_and_exit
from .lifecycle import LifecycleController, SignalListener, TerminationCause
from .terraform_provisioner import TerraformProvisioner
from .workspace import invalidate

LOGGER = logging.getLogger("fuoco")

OUTPUTS_HEADER = '*************************** Outputs **************************'
OUTPUTS_FOOTER = '**************************************************************'

def print_outputs(outputs: dict):
    """Prints the provisioner outputs as a delimited block. Nothing is printed if there are none."""

    if not outputs:
        return
    print(OUTPUTS_HEADER)
    for key, val in outputs.items():
        print(f'{key}: {val}')
    print(OUTPUTS_FOOTER)

def run_deploy(controller: Controller, lifecycle: LifecycleController, workspace_root=None):
    """
    Deploys the VM and keeps it alive until Ctrl+C or SIGTERM, then destroys it.
    An exception raised after a successful apply still tears the VM down before propagating.
    """

    request = controller.deployment_request()
    print(controller.describe(request))
    variables = controller.deploy_variables(request)
    # remove any cached workspace so changes to templates are picked up
    invalidate(request.template_path.parent, workspace_root)
    outputs = lifecycle.deploy(request.template_path, variables, request.debug)

    with lifecycle.guard():
        print_outputs(outputs)
        with lifecycle.listen():
            print('Resources deployed.\n\nPress Ctrl+C or send SIGTERM to destroy and exit.')
            cause = lifecycle.wait_for_termination()
            if cause in (TerminationCause.INTERRUPT, TerminationCause.TERMINATE):
                print('\nSignal received: starting Terraform destroy...')
            # destroy before the listener gives the signals back to their previous handlers
            lifecycle.release(cause)

def run_undeploy(controller: Controller, lifecycle: LifecycleController):
    """Destroys a deployment made earlier. A failing destroy is fatal."""

    request = controller.undeploy_request()
    print(controller.describe(request))
    lifecycle.destroy(request.template_path, request.to_variable_map(), request.debug)

def main(argv=None, provisioner=None, listener_factory=SignalListener, workspace_root=None):
    """
    Parses the command line, resolves the configuration and runs the selected subcommand.
    Any fuoco error is printed and exits with code 1.
    """

    args = parse_args(argv)
    try:
        controller = Controller(vars(args), subcommand=args.subcommand)
        if provisioner is None:
            provisioner = TerraformProvisioner(workspace_root=workspace_root)
        lifecycle = LifecycleController(provisioner, listener_factory=listener_factory)
        if args.subcommand == 'deploy':
            run_deploy(controller, lifecycle, workspace_root)
        else:
            run_undeploy(controller, lifecycle)
    except FuocoException as e:
        LOGGER.debug(f'{type(e).__name__}: {e.msg}')
        print_and_exit(e.msg)
    return 0

if __name__ == '__main__':
    main()
