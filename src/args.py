"""Argument parsing functionality for DepNest."""

import argparse


def build_parser():
    """Build the top-level parser with its ``install`` subcommand."""
    parser = argparse.ArgumentParser(
        prog="depnest",
        description=(
            "DepNest - reproducible npm-style dependency installer"
        ),
        add_help=True,
    )
    subparsers = parser.add_subparsers(dest="COMMAND", required=True)

    install = subparsers.add_parser(
        "install",
        help="Resolve package.json, update the lock file and install packages",
    )
    install.add_argument("-C", "--project-dir",
                         dest="PROJECT_DIR",
                         help="Project directory holding package.json (default: .)",
                         action="store", type=str)
    install.add_argument("--root",
                         dest="INSTALL_ROOT",
                         help="Install root directory (default: <project-dir>/node_modules)",
                         action="store", type=str)
    install.add_argument("-m", "--manifest",
                         dest="MANIFEST",
                         help="Path to package.json",
                         action="store", type=str)
    install.add_argument("-l", "--lockfile",
                         dest="LOCKFILE",
                         help="Path to the lock file (default: dep-lock.json beside the manifest)",
                         action="store", type=str)
    install.add_argument("--registry",
                         dest="REGISTRY",
                         help="Registry base URL",
                         action="store", type=str)
    install.add_argument("-j", "--jobs",
                         dest="JOBS",
                         help="Maximum concurrent registry requests and installs",
                         action="store", type=int)
    install.add_argument("--timeout",
                         dest="TIMEOUT",
                         help="HTTP timeout in seconds",
                         action="store", type=float)
    install.add_argument("--omit-dev",
                         dest="OMIT_DEV",
                         help="Skip devDependencies",
                         action="store_true")
    install.add_argument("--frozen-lockfile",
                         dest="FROZEN_LOCKFILE",
                         help="Fail instead of changing the lock file",
                         action="store_true")
    install.add_argument("-o", "--report",
                         dest="REPORT",
                         help="Write the JSON install report to this path",
                         action="store", type=str)
    install.add_argument("-c", "--config",
                         dest="CONFIG",
                         help="Path to configuration file (YAML, YML, or JSON)",
                         action="store", type=str)
    install.add_argument("--loglevel",
                         dest="LOG_LEVEL",
                         help="Set the logging level (default: DEPNEST_LOG_LEVEL or INFO)",
                         action="store",
                         type=str,
                         choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                         default=None)
    install.add_argument("--logfile",
                         dest="LOG_FILE",
                         help="Log output file",
                         action="store", type=str)
    install.add_argument("-q", "--quiet",
                         dest="QUIET",
                         help="Do not print the summary to the console.",
                         action="store_true")
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
