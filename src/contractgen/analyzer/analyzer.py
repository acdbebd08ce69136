# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Drive every analysis stage and produce a finished :class:`Project`."""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass, field
from pathlib import Path

from ..cache import ProjectCache
from ..config import ContractgenConfig, load_config
from ..git import read_git_info
from ..loader import PackageLoader
from ..manifest import Manifest, load_manifest
from ..marker import compute_marker, project_id
from ..model import Project
from ..resolver import PackageResolver
from .collector import ContractCollector
from .converter import TypeConverter
from .detector import InterfaceDetector
from .errors import ErrorAnalyzer
from .expansion import TypeExpander
from .implementations import ImplementationMatcher
from .services import ServiceFinder

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AnalysisOptions:
    """Per-run switches layered over the configuration.

    Attributes:
        contracts: Contract names or ids to keep; everything when empty.
        use_cache: Read and write the project cache.
    """

    contracts: Collection[str] = field(default_factory=tuple)
    use_cache: bool = True


class ProjectAnalyzer:
    """Turn an annotated source tree into a fully resolved :class:`Project`."""

    def __init__(
        self,
        root: Path,
        config: ContractgenConfig | None = None,
        *,
        manifest: Manifest | None = None,
    ) -> None:
        self.root = root.resolve()
        self.manifest = manifest if manifest is not None else load_manifest(self.root)
        self.config = config if config is not None else load_config(self.root, self.manifest)
        self.resolver = PackageResolver(
            self.root,
            self.config.module,
            stdlib_root=self.config.stdlib_root,
            site_packages=self.config.site_packages,
            requirements=self.manifest.requirements,
        )
        self.loader = PackageLoader(self.resolver)

    @property
    def cache(self) -> ProjectCache:
        return ProjectCache(self.config.resolved(self.root, self.config.cache_dir))

    def analyze(self, options: AnalysisOptions | None = None) -> Project:
        """Run every stage and return the project.

        A cached project whose marker still matches the tree is returned
        without analysis when the cache is enabled and no contract filter
        is set.
        """

        options = options or AnalysisOptions()
        git_info = read_git_info(self.root)
        identifier = project_id(self.config.module, git_info.remote if git_info else "")
        marker = compute_marker(self.root, excludes=self.config.excluded_dirs)
        cacheable = options.use_cache and self.config.cache_enabled and not options.contracts
        if cacheable:
            cached = self.cache.load(identifier, marker, branch=git_info.branch if git_info else "")
            if cached is not None:
                return cached

        project = Project(
            version=self.config.version,
            module_path=self.config.module,
            contracts_dir=self.config.contracts_dir.as_posix(),
            git_info=git_info,
            excluded_dirs=list(self.config.excluded_dirs),
        )
        self.run_stages(project, options.contracts)
        project.project_id = identifier
        project.marker = marker
        if cacheable:
            self.cache.store(project)
        return project

    def run_stages(self, project: Project, contracts: Collection[str] = ()) -> None:
        """Populate ``project`` in place."""

        detector = InterfaceDetector(self.loader)
        converter = TypeConverter(project, detector)
        contracts_dir = self.config.resolved(self.root, self.config.contracts_dir)
        collector = ContractCollector(project, self.loader, converter, self.root)
        project.contracts = collector.collect(contracts_dir, only=contracts)
        LOGGER.debug("collected %d contract(s) from %s", len(project.contracts), contracts_dir)

        ServiceFinder(project, self.loader, self.root).find()
        ImplementationMatcher(project, self.loader, self.root, jobs=self.config.jobs).find()

        expander = TypeExpander(project, self.loader, converter)
        ErrorAnalyzer(project, self.loader, expander).analyze()
        expander.expand()
        LOGGER.debug("project holds %d type(s)", len(project.types))


__all__ = ["AnalysisOptions", "ProjectAnalyzer"]
