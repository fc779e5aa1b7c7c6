"""End-to-end install run: manifest -> resolve -> install -> lock."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from constants import ExitCodes
from cli_config import InstallConfig
from common.errors import LockfileError, LockPersistenceFailure
from install.pipeline import InstallPipeline
from install.report import InstallReport
from lockfile.reconcile import ChangeSet, reconcile
from lockfile.snapshot import LockSnapshot
from registry.base import RegistryClient
from registry.npm.client import NpmRegistryClient
from resolution.graph import DependencyGraph
from resolution.resolver import Resolver
from versioning.parser import load_manifest

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Everything an install run produced."""

    graph: DependencyGraph
    report: InstallReport
    changes: Optional[ChangeSet] = None
    lock_written: bool = False
    lock_error: Optional[LockPersistenceFailure] = None

    def exit_code(self) -> int:
        if self.report.cancelled:
            return ExitCodes.CANCELLED.value
        if self.lock_error is not None:
            return ExitCodes.LOCK_ERROR.value
        return self.report.exit_code()


def run_install(
    config: InstallConfig,
    registry: Optional[RegistryClient] = None,
    cancel_event: Optional[threading.Event] = None,
) -> InstallResult:
    """Run one install pass described by ``config``.

    The lock file is written once, after every install worker has finished,
    and only for nodes that installed or were already present. A cancelled
    run leaves the previous lock file untouched.

    Raises:
        ManifestError: package.json is missing or malformed.
        LockfileError: the existing lock file is corrupt, or
            ``frozen_lockfile`` is set and resolution would change it.
    """
    cancel_event = cancel_event or threading.Event()
    owned = registry is None
    if registry is None:
        registry = NpmRegistryClient(config.registry_url, timeout=config.timeout, retries=config.retries)

    try:
        requirements = load_manifest(config.manifest, include_dev=not config.omit_dev)
        old = LockSnapshot.read(config.lockfile)
        graph = Resolver(registry, old, max_workers=config.jobs).resolve(requirements)

        if config.frozen_lockfile:
            _, pending = reconcile(old, graph)
            if pending.changed or graph.failures:
                raise LockfileError(
                    f"Lock file {config.lockfile} is out of date ({pending.summary()}, "
                    f"{len(graph.failures)} unresolved) and --frozen-lockfile is set"
                )

        report = InstallPipeline(registry, config.root, max_workers=config.jobs).install(
            graph, cancel_event=cancel_event
        )
        result = InstallResult(graph=graph, report=report)

        if report.cancelled:
            logger.warning("Install cancelled; lock file %s left unchanged", config.lockfile)
            return result

        snapshot, result.changes = reconcile(old, graph, eligible=report.succeeded_ids())
        if config.frozen_lockfile:
            return result
        try:
            result.lock_written = snapshot.write(config.lockfile)
        except LockPersistenceFailure as exc:
            logger.error("%s; previous lock file remains authoritative", exc.message)
            result.lock_error = exc
        return result
    finally:
        if owned:
            registry.close()
