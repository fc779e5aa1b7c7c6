"""Breadth-first dependency resolver with lock reuse and conflict isolation."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Tuple, Union

from constants import Constants
from common.errors import InvalidRequirement, RegistryUnavailable, ResolutionError
from common.logging_utils import extra_context, is_debug_enabled, Timer
from lockfile.snapshot import LockSnapshot
from registry.base import PackageMetadata, RegistryClient, VersionRecord
from versioning.models import Requirement, ResolutionMode, VersionSpec
from versioning.parser import parse_range, validate_name
from versioning.resolvers.npm import NpmVersionResolver, parse_version, precedence_key

from .graph import DependencyGraph, ResolutionFailure, ResolvedNode

logger = logging.getLogger(__name__)


class MetadataMemo:
    """Per-run metadata cache shared by concurrent prefetch workers.

    Guarded by a lock with per-name in-flight events, so a name is queried
    at most once per run even when several branches ask for it at the same
    time. Failures are memoized too; the resolver never retries.
    """

    def __init__(self, registry: RegistryClient):
        self._registry = registry
        self._lock = threading.Lock()
        self._results: Dict[str, Union[PackageMetadata, ResolutionError]] = {}
        self._inflight: Dict[str, threading.Event] = {}
        self.calls = 0

    def known(self, name: str) -> bool:
        with self._lock:
            return name in self._results

    def get(self, name: str) -> PackageMetadata:
        """Return metadata for ``name``, querying the registry on first use.

        Raises:
            ResolutionError: the (memoized) registry failure for ``name``.
        """
        with self._lock:
            result = self._results.get(name)
            event = self._inflight.get(name)
            owner = result is None and event is None
            if owner:
                event = threading.Event()
                self._inflight[name] = event
                self.calls += 1

        if result is None and owner:
            result = self._fetch(name)
            with self._lock:
                self._results[name] = result
                del self._inflight[name]
            event.set()
        elif result is None:
            event.wait()
            with self._lock:
                result = self._results[name]

        if isinstance(result, ResolutionError):
            raise result
        return result

    def _fetch(self, name: str) -> Union[PackageMetadata, ResolutionError]:
        try:
            return self._registry.metadata(name)
        except ResolutionError as exc:
            return exc
        except Exception as exc:  # pylint: disable=broad-exception-caught
            # Transport libraries raise their own types; the resolver only
            # distinguishes data problems from availability problems.
            return RegistryUnavailable(f"Metadata request for {name} failed: {exc}")


class Resolver:
    """Turns root requirements into a DependencyGraph.

    Traversal is breadth-first: every requirement of one level is placed
    before the next level starts, roots and each node's dependencies are
    taken in name order, and ties between versions are broken only by
    version precedence, so the output depends only on the registry data and
    the lock snapshot.

    Placement follows directory visibility: a requirement issued by node X
    first looks at packages nested under X, then under each enclosing
    package, then at the hoisted level. A visible node whose version
    satisfies the range is reused (this is what terminates cycles and
    collapses diamonds). A visible node at an incompatible version forces an
    isolated copy nested under X. With nothing visible, the node is hoisted.
    """

    def __init__(
        self,
        registry: RegistryClient,
        lock: Optional[LockSnapshot] = None,
        max_workers: int = Constants.DEFAULT_JOBS,
        versions: Optional[NpmVersionResolver] = None,
    ):
        self.registry = registry
        self.lock = lock or LockSnapshot()
        self.max_workers = max(1, max_workers)
        self.versions = versions or NpmVersionResolver()
        self.registry_calls = 0

    def resolve(self, root_requirements: Iterable[Requirement]) -> DependencyGraph:
        """Resolve ``root_requirements``; failures are recorded on the graph."""
        graph = DependencyGraph()
        memo = MetadataMemo(self.registry)
        placed: Dict[Tuple[Optional[int], str], int] = {}
        level = sorted(root_requirements, key=lambda r: (r.name, r.range_expr))

        with Timer() as timer:
            depth = 0
            while level:
                self._prefetch(level, memo)
                next_level: List[Requirement] = []
                for req in level:
                    self._resolve_one(req, graph, memo, placed, next_level)
                level = next_level
                depth += 1

        self.registry_calls = memo.calls
        logger.info(
            "Resolved %d node(s) in %d level(s); %d failure(s), %d registry call(s)",
            len(graph), depth, len(graph.failures), memo.calls,
            extra=extra_context(
                event="resolve",
                component="resolver",
                outcome="failed" if graph.failures else "success",
                duration_ms=timer.duration_ms()
            )
        )
        return graph

    def _prefetch(self, level: List[Requirement], memo: MetadataMemo) -> None:
        """Query metadata concurrently for names the lock cannot answer."""
        names = []
        for req in level:
            if req.name in names or memo.known(req.name):
                continue
            try:
                validate_name(req.name)
                spec = parse_range(req.range_expr)
                if self._from_lock(req, spec) is not None:
                    continue
            except ResolutionError:
                continue
            names.append(req.name)
        if not names:
            return
        if len(names) == 1 or self.max_workers == 1:
            for name in names:
                self._prefetch_one(memo, name)
            return
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(names))) as executor:
            list(executor.map(lambda n: self._prefetch_one(memo, n), names))

    @staticmethod
    def _prefetch_one(memo: MetadataMemo, name: str) -> None:
        try:
            memo.get(name)
        except ResolutionError:
            pass  # memoized; reported when the requirement is processed

    def _visible(
        self,
        graph: DependencyGraph,
        placed: Dict[Tuple[Optional[int], str], int],
        name: str,
        requester: Optional[int],
    ) -> Optional[ResolvedNode]:
        scope = requester
        while True:
            node_id = placed.get((scope, name))
            if node_id is not None:
                return graph.node(node_id)
            if scope is None:
                return None
            scope = graph.node(scope).scope

    def _resolve_one(
        self,
        req: Requirement,
        graph: DependencyGraph,
        memo: MetadataMemo,
        placed: Dict[Tuple[Optional[int], str], int],
        next_level: List[Requirement],
    ) -> None:
        try:
            validate_name(req.name)
            spec = parse_range(req.range_expr)
            self.versions.validate(spec)
        except InvalidRequirement as exc:
            self._fail(graph, req, exc)
            return

        visible = self._visible(graph, placed, req.name, req.requester_id)
        if visible is not None and self.versions.satisfies(spec, visible.version):
            self._link(graph, req, visible)
            return

        try:
            record = self._choose(req, spec, memo)
        except ResolutionError as exc:
            self._fail(graph, req, exc)
            return

        if visible is not None and visible.version == record.version:
            self._link(graph, req, visible)
            return
        if visible is not None and req.requester_id is None:
            # Manifest names are unique, so a root conflict means two root
            # ranges for one name disagree.
            self._fail(graph, req, ResolutionError(
                f"{req} conflicts with top-level {visible.label}"
            ))
            return

        scope = None if visible is None else req.requester_id
        node = graph.add_node(record, scope)
        placed[(scope, node.name)] = node.node_id
        self._link(graph, req, node)

        if is_debug_enabled(logger):
            logger.debug(
                "Placed %s %s",
                node.label,
                "hoisted" if scope is None else f"under {graph.node(scope).label}",
                extra=extra_context(
                    event="decision",
                    component="resolver",
                    action="place",
                    outcome="hoisted" if scope is None else "isolated",
                    requirement=str(req)
                )
            )
        for dep_name, dep_range in record.dependencies:
            next_level.append(Requirement(dep_name, dep_range, node.node_id))

    @staticmethod
    def _link(graph: DependencyGraph, req: Requirement, node: ResolvedNode) -> None:
        graph.add_edge(req.requester_id, node.node_id)
        if req.requester_id is None:
            graph.roots[req.key] = node.node_id
        graph.selections.setdefault(req.key, node.node_id)

    @staticmethod
    def _fail(graph: DependencyGraph, req: Requirement, exc: ResolutionError) -> None:
        # Memoized errors are shared between requirements; record a copy
        # bound to this requirement.
        error = type(exc)(exc.message, requirement=req)
        graph.failures.append(ResolutionFailure(requirement=req, error=error))
        logger.error(
            "Cannot resolve %s: %s",
            req,
            exc.message,
            extra=extra_context(
                event="resolve_error",
                component="resolver",
                outcome=exc.kind,
                requirement=str(req)
            )
        )

    def _choose(self, req: Requirement, spec: VersionSpec, memo: MetadataMemo) -> VersionRecord:
        locked = self._from_lock(req, spec)
        if locked is not None:
            return locked
        metadata = memo.get(req.name)
        return self.versions.pick(spec, metadata)

    def _from_lock(self, req: Requirement, spec: VersionSpec) -> Optional[VersionRecord]:
        """Reuse a locked version that satisfies ``spec`` without a registry call.

        The entry keyed by the same (name, range) wins; otherwise the highest
        satisfying version locked for the name under another range.
        """
        entry = self.lock.get(req.name, spec.raw)
        if entry is not None and (
            spec.mode == ResolutionMode.TAG or self.versions.satisfies(spec, entry.version)
        ):
            return entry.to_record(req.name)
        if spec.mode == ResolutionMode.TAG:
            return None

        best = None
        for _, candidate in self.lock.for_name(req.name):
            if not self.versions.satisfies(spec, candidate.version):
                continue
            key = precedence_key(parse_version(candidate.version))
            if best is None or key > best[0]:
                best = (key, candidate)
        return best[1].to_record(req.name) if best else None
