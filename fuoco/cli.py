import argparse
import os

PROVIDERS = ['aws', 'gcp', 'hetzner']

def dir_path(path):
    if os.path.isdir(path):
        return path
    else:
        raise argparse.ArgumentTypeError(f"{path} is not a valid directory")

class _HelpAction(argparse._HelpAction):

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()

        # retrieve subparsers from parser
        subparsers_actions = [
            action for action in parser._actions
            if isinstance(action, argparse._SubParsersAction)]
        for subparsers_action in subparsers_actions:
            # get all subparsers and print help
            for choice, subparser in subparsers_action.choices.items():
                print("=== {} ===".format(choice))
                print(subparser.format_help())

        parser.exit()

class CLIParser:
    def __init__(self):
        parser = argparse.ArgumentParser(prog='fuoco', add_help=False,
                                         description='Ephemeral VM deployer that applies a Terraform '
                                                     'template, runs a startup script via cloud-init '
                                                     'and destroys everything on exit.')
        parser.add_argument('-h', '--help', action=_HelpAction)
        parser.add_argument('--output-dir', '-o', type=dir_path, help='directory for run.log')
        parser.add_argument('--templates-dir', type=dir_path,
                            help='directory holding <provider>/main.tf templates')
        parser.add_argument('--config-path', type=str, help='provider catalog yaml')
        subparsers = parser.add_subparsers(dest='subcommand', required=True)

        deploy_subparser = subparsers.add_parser('deploy', help='Deploy an ephemeral VM and optionally run a startup script')
        deploy_subparser.add_argument('--provider', '-c', type=str, choices=PROVIDERS, help='cloud provider to deploy to')
        deploy_subparser.add_argument('--instance-type', '-i', type=str,
                                      help='instance type (default: t3.micro for aws, f1-micro for gcp, cx11 for hetzner)')
        deploy_subparser.add_argument('--region', '-r', type=str,
                                      help='AWS region, GCP zone or Hetzner location (default: random)')
        deploy_subparser.add_argument('--script-path', '-s', type=str, help='bash script to execute on VM startup')
        deploy_subparser.add_argument('--inbound-rule', '-p', dest='inbound_rules', action='append',
                                      metavar='PROTO:PORT', help='inbound rule, e.g. tcp:22. Can be repeated')
        deploy_subparser.add_argument('--ssh-public-key-path', '-k', type=str,
                                      help='public key to upload to the machine')
        deploy_subparser.add_argument('--debug', '-d', action='store_true', default=None,
                                      help='show Terraform stdout/stderr')

        undeploy_subparser = subparsers.add_parser('undeploy', help='Destroy an existing ephemeral VM deployment')
        undeploy_subparser.add_argument('--provider', '-c', type=str, choices=PROVIDERS, help='cloud provider to undeploy')
        undeploy_subparser.add_argument('--instance-type', '-i', type=str, help='instance type that was deployed')
        undeploy_subparser.add_argument('--region', '-r', type=str, help='region that was deployed to')
        undeploy_subparser.add_argument('--debug', '-d', action='store_true', default=None,
                                        help='show Terraform stdout/stderr')

        self.parser = parser

    def parse_args(self, args):
        return self.parser.parse_args(args)

def parse_args(args=None):
    parser = CLIParser()
    return parser.parse_args(args)
