"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    INSTALL_FAILED = 3
    LOCK_ERROR = 4
    CANCELLED = 130


class InstallStatus(Enum):
    """Per-node outcome of an install pass.

    Args:
        Enum (string): Outcome labels used in the install report.
    """

    INSTALLED = "installed"
    SKIPPED = "skipped-already-present"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    PACKAGE_JSON_FILE = "package.json"
    LOCK_FILE = "dep-lock.json"
    INSTALL_ROOT = "node_modules"
    NESTED_MODULES_DIR = "node_modules"
    INSTALL_MARKER_FILE = ".depnest-integrity.json"
    CONFIG_FILES = ["depnest.yml", "depnest.yaml", ".depnest.yml", "depnest.json"]
    ENV_PREFIX = "DEPNEST_"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    DEFAULT_JOBS = 8
    NPM_ACCEPT_HEADER = (
        "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8, */*"
    )
    USER_AGENT = "DepNest/1.0"
