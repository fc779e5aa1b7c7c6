"""Fetch, verify and extract resolved nodes over a bounded worker pool."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional, Union

from constants import Constants, InstallStatus
from common.errors import DepNestError, InstallCancelled
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from registry.base import RegistryClient
from resolution.graph import DependencyGraph, ResolvedNode

from .extract import extract_package, is_installed
from .integrity import verify
from .placement import compute_placements
from .report import InstallReport, NodeOutcome

logger = logging.getLogger(__name__)


class InstallPipeline:
    """Installs every node of a DependencyGraph under ``install_root``.

    Each worker owns one node end to end (fetch, verify, extract). Nodes are
    scheduled in waves by nesting depth: all hoisted packages first, then
    packages isolated one level down, and so on, so a parent directory is
    never swapped while something is being extracted inside it. Within a
    wave, completion order is not defined.
    """

    def __init__(
        self,
        registry: RegistryClient,
        install_root: Union[str, Path],
        max_workers: int = Constants.DEFAULT_JOBS,
    ):
        self.registry = registry
        self.install_root = Path(install_root)
        self.max_workers = max(1, max_workers)

    def install(
        self,
        graph: DependencyGraph,
        cancel_event: Optional[threading.Event] = None,
    ) -> InstallReport:
        """Install ``graph`` and return the aggregate report.

        Nodes blocked by a resolution failure, or nested under a package that
        did not install, are reported failed without any download. Setting
        ``cancel_event`` stops scheduling; in-flight extractions roll back.
        """
        cancel_event = cancel_event or threading.Event()
        placements = compute_placements(graph, self.install_root)
        report = InstallReport(resolution_failures=list(graph.failures))
        blocked = graph.blocked_nodes()
        outcomes: Dict[int, NodeOutcome] = {}

        waves: Dict[int, List[int]] = {}
        for node in graph:
            waves.setdefault(graph.depth(node.node_id), []).append(node.node_id)

        with Timer() as timer:
            for depth in sorted(waves):
                runnable = []
                for node_id in waves[depth]:
                    node = graph.node(node_id)
                    target = placements[node_id]
                    early = self._precheck(graph, node, target, blocked, outcomes, cancel_event)
                    if early is not None:
                        outcomes[node_id] = early
                    else:
                        runnable.append(node_id)
                for outcome in self._run_wave(graph, runnable, placements, cancel_event):
                    outcomes[outcome.node_id] = outcome

        for outcome in outcomes.values():
            report.add(outcome)
        report.cancelled = cancel_event.is_set()
        report.sort()
        logger.info(
            "Install finished: %s",
            report.summary(),
            extra=extra_context(
                event="install",
                component="pipeline",
                outcome="success" if report.ok else "failed",
                duration_ms=timer.duration_ms()
            )
        )
        return report

    def _precheck(
        self,
        graph: DependencyGraph,
        node: ResolvedNode,
        target: Path,
        blocked: Dict,
        outcomes: Dict[int, NodeOutcome],
        cancel_event: threading.Event,
    ) -> Optional[NodeOutcome]:
        if cancel_event.is_set():
            return self._outcome(node, target, InstallStatus.CANCELLED, "install cancelled")
        failure = blocked.get(node.node_id)
        if failure is not None:
            return self._outcome(
                node, target, InstallStatus.FAILED,
                f"dependency {failure.requirement} could not be resolved: {failure.reason}",
                "DependencyUnresolved",
            )
        if node.scope is not None:
            parent = outcomes.get(node.scope)
            if parent is None or parent.status not in (InstallStatus.INSTALLED, InstallStatus.SKIPPED):
                parent_label = graph.node(node.scope).label
                return self._outcome(
                    node, target, InstallStatus.FAILED,
                    f"enclosing package {parent_label} was not installed",
                    "ParentNotInstalled",
                )
        return None

    def _run_wave(
        self,
        graph: DependencyGraph,
        node_ids: List[int],
        placements: Dict[int, Path],
        cancel_event: threading.Event,
    ) -> List[NodeOutcome]:
        if not node_ids:
            return []
        if self.max_workers == 1 or len(node_ids) == 1:
            return [self._install_node(graph.node(i), placements[i], cancel_event) for i in node_ids]

        results = []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(node_ids))) as executor:
            futures = [
                executor.submit(self._install_node, graph.node(i), placements[i], cancel_event)
                for i in node_ids
            ]
            for future in as_completed(futures):
                results.append(future.result())
        return results

    def _install_node(
        self,
        node: ResolvedNode,
        target: Path,
        cancel_event: threading.Event,
    ) -> NodeOutcome:
        """Fetch, verify and extract one node; never raises for node-level failures."""
        if cancel_event.is_set():
            return self._outcome(node, target, InstallStatus.CANCELLED, "install cancelled")

        if is_installed(target, node.integrity):
            if is_debug_enabled(logger):
                logger.debug(
                    "Already present",
                    extra=extra_context(
                        event="decision",
                        component="pipeline",
                        action="skip",
                        target=str(target),
                        package=node.label
                    )
                )
            return self._outcome(node, target, InstallStatus.SKIPPED)

        try:
            with Timer() as timer:
                data = self.registry.fetch_tarball(node.tarball_url)
                algorithm = verify(data, node.integrity, node.label)
                marker = {
                    "name": node.name,
                    "version": node.version,
                    "integrity": node.integrity,
                    "resolved": node.tarball_url,
                }
                extract_package(data, target, marker, cancel_event=cancel_event)
        except InstallCancelled as exc:
            logger.warning("Install of %s cancelled; partial files rolled back", node.label)
            return self._outcome(node, target, InstallStatus.CANCELLED, exc.message, exc.kind)
        except DepNestError as exc:
            logger.error(
                "Failed to install %s: %s",
                node.label,
                exc.message,
                extra=extra_context(
                    event="install_error",
                    component="pipeline",
                    outcome=exc.kind,
                    target=safe_url(node.tarball_url),
                    package=node.label
                )
            )
            return self._outcome(node, target, InstallStatus.FAILED, exc.message, exc.kind)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            # A registry backend or the filesystem raised something
            # unexpected; keep it attributed to this node only.
            logger.exception("Unexpected error installing %s", node.label)
            return self._outcome(node, target, InstallStatus.FAILED, str(exc), type(exc).__name__)

        logger.info(
            "Installed %s (%s verified) into %s",
            node.label,
            algorithm,
            target,
            extra=extra_context(
                event="install",
                component="pipeline",
                outcome="installed",
                duration_ms=timer.duration_ms(),
                package=node.label
            )
        )
        return self._outcome(node, target, InstallStatus.INSTALLED)

    @staticmethod
    def _outcome(
        node: ResolvedNode,
        target: Path,
        status: InstallStatus,
        reason: Optional[str] = None,
        error_kind: Optional[str] = None,
    ) -> NodeOutcome:
        return NodeOutcome(
            node_id=node.node_id,
            name=node.name,
            version=node.version,
            path=str(target),
            status=status,
            reason=reason,
            error_kind=error_kind,
        )
