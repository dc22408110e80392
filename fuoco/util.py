"""
Contains common helper functions and classes.
"""

import logging
import subprocess
from os import environ
from enum import Enum
from .error import ProvisionException

LOGGER = logging.getLogger("fuoco")

def setup_logger(log_dir: str = None):
    """Sets up a logger. Also logs to {log_dir}/run.log when a log directory is given."""

    log_level = environ.get("FUOCO_LOG_LEVEL", "INFO")
    if log_level == "DEBUG":
        LOGGER.setLevel(logging.DEBUG)
    elif log_level == "INFO":
        LOGGER.setLevel(logging.INFO)
    elif log_level == "WARN":
        LOGGER.setLevel(logging.WARN)
    elif log_level == "ERROR":
        LOGGER.setLevel(logging.ERROR)
    if not LOGGER.handlers:

        formatter = logging.Formatter('%(asctime)s %(levelname)s: %(message)s '
                '[in %(pathname)s:%(lineno)d]')
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        LOGGER.addHandler(handler)
        if log_dir is not None:
            fileHandler = logging.FileHandler(f"{log_dir}/run.log")
            fileHandler.setFormatter(formatter)
            LOGGER.addHandler(fileHandler)

def run_shell(cmd, cwd=None, verbose: bool = False):
    """
    Runs a command and returns its exit code, stdout and stderr.
    In verbose mode the output goes straight to the console and is not captured.

        Parameters:
            cmd (str or list): command to run on the command-line
            cwd (str): directory to run the command in
            verbose (bool): stream stdout/stderr instead of capturing them

        Returns:
            returncode: exit code of the command
            stdout: standard output from the command ('' in verbose mode)
            stderr: standard error from the command ('' in verbose mode)
    """

    if isinstance(cmd, str):
        cmd = cmd.split(' ')
        cmdstr = ' '.join(cmd)
    elif isinstance(cmd, list):
        cmdstr = ' '.join(cmd)
    else:
        raise ProvisionException(f'Invalid shell command: {cmd}')
    LOGGER.debug(f'Running "{cmdstr}" in {cwd}')
    try:
        proc = subprocess.run(cmd, cwd=cwd, capture_output=not verbose, check=False)
    except FileNotFoundError:
        raise ProvisionException(f'Command not found: {cmd[0]}')
    if verbose:
        return proc.returncode, '', ''
    out = proc.stdout.decode('utf-8').strip()
    err = proc.stderr.decode('utf-8').strip()
    if err != '' and proc.returncode == 0:
        LOGGER.warning(f'"{cmdstr}" gave error message: "{err}"')
    return proc.returncode, out, err

class LifecycleState(Enum):
    IDLE=1
    APPLYING=2
    DEPLOYED=3
    TEARING_DOWN=4
    DONE=5
    FAILED=6
    FAILED_DURING_TEARDOWN=7
