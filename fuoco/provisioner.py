"""Contains the base Provisioner class used to create engine-specific provisioners."""
import logging
from typing import Dict, Mapping

LOGGER = logging.getLogger("fuoco")

class Provisioner:
    """
    The base Provisioner class. A provisioner creates the resources described by a template
    and later deletes them again given the same template and variables.

    Methods:
        apply(template_path, variables, verbose):
            Creates the resources and returns the outputs reported by the engine.
        destroy(template_path, variables, verbose):
            Deletes the resources created by apply with the same variables.
    """

    def apply(self, template_path, variables: Mapping[str, str], verbose: bool) -> Dict[str, str]:
        """Creates the resources. Returns the engine outputs in the order they were reported."""

        raise NotImplementedError

    def destroy(self, template_path, variables: Mapping[str, str], verbose: bool) -> None:
        """Deletes the resources."""

        raise NotImplementedError
