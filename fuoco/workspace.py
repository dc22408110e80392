"""
Contains the helpers that locate and invalidate the cached Terraform workspace of a template.

Terraform state for a template directory is kept under <tmp>/fuoco/<sha256 of the directory path>.
The key is the path, not the contents, so an edited template would reuse a stale workspace unless
it is removed before every deploy.
"""

import os
import shutil
import hashlib
import logging
import tempfile
from pathlib import Path
from .error import CacheInvalidationError

WORKSPACE_NAMESPACE = 'fuoco'
LOGGER = logging.getLogger("fuoco")

def workspace_identity(template_dir) -> str:
    """Returns the hex SHA-256 digest of the template directory path."""

    return hashlib.sha256(str(template_dir).encode('utf-8')).hexdigest()

def workspace_dir(template_dir, root=None) -> Path:
    """
    Returns the path of the cached workspace for a template directory.

        Parameters:
            template_dir (str or Path): directory holding the Terraform template
            root (str or Path): base directory, defaults to the system temp directory

        Returns:
            Path: <root>/fuoco/<workspace identity>
    """

    if root is None:
        root = tempfile.gettempdir()
    return Path(root) / WORKSPACE_NAMESPACE / workspace_identity(template_dir)

def invalidate(template_dir, root=None) -> Path:
    """
    Removes any cached workspace for the template directory.
    A workspace that does not exist is not an error.

        Parameters:
            template_dir (str or Path): directory holding the Terraform template
            root (str or Path): base directory, defaults to the system temp directory

        Returns:
            Path: the workspace path that was checked
    """

    work = workspace_dir(template_dir, root)
    if os.path.lexists(work):
        LOGGER.info(f'Removing stale Terraform workspace {work}')
        try:
            shutil.rmtree(work)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CacheInvalidationError(f'Failed to remove stale Terraform workspace {work}: {e}')
    return work
