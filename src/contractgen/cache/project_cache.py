# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""File-based cache of analyzed projects."""

from __future__ import annotations

import gzip
import logging
from pathlib import Path
from typing import Final

from pydantic import ValidationError

from ..git import normalize_branch_name
from ..model import Project

LOGGER = logging.getLogger(__name__)

CACHE_SUFFIX: Final[str] = ".json.gz"


class _CacheMiss(Exception):
    """Raised when a cache entry cannot be used for the current inputs."""


class ProjectCache:
    """Persist :class:`Project` documents keyed by project id and branch.

    An entry is valid only while its stored marker matches the marker of the
    current source tree. Unreadable entries are removed.
    """

    def __init__(self, directory: Path) -> None:
        self._dir = directory

    @property
    def directory(self) -> Path:
        return self._dir

    def entry_path(self, project_id: str, branch: str = "") -> Path:
        """Return the file holding the entry for ``project_id`` on ``branch``."""

        return self._dir / project_id / f"{normalize_branch_name(branch)}{CACHE_SUFFIX}"

    def load(self, project_id: str, marker: str, *, branch: str = "") -> Project | None:
        """Return the cached project when its marker still matches.

        Args:
            project_id: Stable identifier of the project.
            marker: Marker of the current source tree.
            branch: Git branch the entry was stored under.

        Returns:
            Project | None: Cached project or ``None`` when missing or stale.
        """

        if not project_id or not marker:
            return None
        entry_path = self.entry_path(project_id, branch)
        if not entry_path.is_file():
            LOGGER.debug("cache entry %s not found", entry_path)
            return None
        try:
            project = self._read_entry(entry_path)
        except _CacheMiss:
            LOGGER.debug("dropping unreadable cache entry %s", entry_path)
            entry_path.unlink(missing_ok=True)
            return None
        if project.project_id != project_id or project.marker != marker:
            LOGGER.debug("cache entry %s is stale", entry_path)
            return None
        LOGGER.debug("using cached project %s", entry_path)
        return project

    def store(self, project: Project) -> Path | None:
        """Persist ``project``, ignoring disk errors.

        Returns:
            Path | None: Path written, ``None`` when nothing was stored.
        """

        if not project.project_id or not project.marker:
            return None
        branch = project.git_info.branch if project.git_info is not None else ""
        entry_path = self.entry_path(project.project_id, branch)
        try:
            entry_path.parent.mkdir(parents=True, exist_ok=True)
            entry_path.write_bytes(gzip.compress(project.dump_json().encode("utf-8")))
        except OSError as exc:
            LOGGER.debug("failed to save cache %s: %s", entry_path, exc)
            return None
        LOGGER.debug("project cached at %s", entry_path)
        return entry_path

    def _read_entry(self, entry_path: Path) -> Project:
        try:
            payload = gzip.decompress(entry_path.read_bytes())
            return Project.load_json(payload)
        except (OSError, EOFError, ValidationError) as exc:
            raise _CacheMiss from exc


__all__ = ["CACHE_SUFFIX", "ProjectCache"]
