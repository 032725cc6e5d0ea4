"""Preparation of the local directory a repository is cloned into."""

import logging
import os
import shutil
from pathlib import Path

from .constants import APP_NAME
from .errors import PrepareError, PrepareErrorKind

logger = logging.getLogger(APP_NAME)


def _is_empty_dir(path: Path) -> bool:
    with os.scandir(path) as entries:
        return next(entries, None) is None


def prepare_directory(path: Path) -> Path:
    """Ensures ``path`` exists as an empty directory.

    - Missing: created, together with any missing parents.
    - Existing and empty: left untouched.
    - Existing and non-empty: the whole tree is deleted and recreated.
    - Existing but not a directory: rejected.

    Calling it twice in a row gives the same result as calling it once.

    Args:
        path (Path): The directory to prepare.

    Returns:
        Path: The same path, now an existing, empty directory.

    Raises:
        PrepareError: CREATE_FAILED, RESET_FAILED or NOT_A_DIRECTORY.
    """
    target = str(path)

    if not path.exists() and not path.is_symlink():
        try:
            path.mkdir(parents=True)
        except OSError as e:
            logger.error(f"Could not create directory {path}: {e}")
            raise PrepareError(
                PrepareErrorKind.CREATE_FAILED,
                f"could not create directory: {e}",
                target=target,
                cause=e,
            ) from e
        logger.info(f"Created directory {path}")
        return path

    if not path.is_dir():
        logger.error(f"{path} exists but is not a directory")
        raise PrepareError(
            PrepareErrorKind.NOT_A_DIRECTORY,
            "path exists but is not a directory",
            target=target,
        )

    try:
        if _is_empty_dir(path):
            return path
        logger.info(f"Directory {path} is not empty, deleting and recreating it")
        shutil.rmtree(path)
        path.mkdir(parents=True)
    except OSError as e:
        logger.error(f"Could not reset directory {path}: {e}")
        raise PrepareError(
            PrepareErrorKind.RESET_FAILED,
            f"could not reset directory: {e}",
            target=target,
            cause=e,
        ) from e

    return path
