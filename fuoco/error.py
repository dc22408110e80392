"""
Contains the exception classes used by fuoco and a function to gracefully exit on errors.
"""

import sys

def print_and_exit(msg: str):
    """
    Prints the error message and exits the entire application with an exit code of 1

    Parameters:
        msg (str): the message that should be printed before exiting
    """

    print(f'\033[91mERROR: {msg}\033[00m', file=sys.stderr)
    sys.exit(1)


class FuocoException(Exception):
    """Base class of every error fuoco reports to the operator."""

    def __init__(self, msg: str):
        if type(msg) is tuple:
            msg = ''.join(msg)
        self.msg = msg
        super().__init__(self.msg)

class ConfigurationError(FuocoException):
    """Exception raised when a parameter is missing or invalid. Raised before any external call."""

class CacheInvalidationError(FuocoException):
    """Exception raised when a stale Terraform workspace cannot be removed."""

class ProvisionException(FuocoException):
    """Exception raised when the provisioning engine fails."""

class ApplyError(ProvisionException):
    """Exception raised when Terraform fails to create the resources."""

class TeardownError(ProvisionException):
    """Exception raised when Terraform fails to destroy the resources."""
