# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Read repository metadata straight from ``.git`` without running git."""

from __future__ import annotations

import configparser
import logging
import re
from pathlib import Path
from typing import Final
from urllib.parse import urlparse

from .model import GitInfo

LOGGER = logging.getLogger(__name__)

GITDIR_PREFIX: Final[str] = "gitdir: "
REF_PREFIX: Final[str] = "ref: "
HEADS_PREFIX: Final[str] = "refs/heads/"
TAGS_PREFIX: Final[str] = "refs/tags/"
DEFAULT_BRANCH_NAME: Final[str] = "default"
MAX_BRANCH_NAME_LENGTH: Final[int] = 255

_INVALID_BRANCH_CHARS = re.compile(r'[/\\:*?"<>|\s]+')
_DASHES = re.compile(r"-+")


def find_git_dir(root: Path) -> Path | None:
    """Return the git directory of the repository containing ``root``.

    Worktree ``.git`` files holding ``gitdir: <path>`` are followed.
    """

    current = root.resolve()
    while True:
        candidate = current / ".git"
        if candidate.is_dir():
            return candidate
        if candidate.is_file():
            content = candidate.read_text(encoding="utf-8", errors="replace").strip()
            if content.startswith(GITDIR_PREFIX):
                target = Path(content[len(GITDIR_PREFIX) :])
                return target if target.is_absolute() else (current / target).resolve()
        if current.parent == current:
            return None
        current = current.parent


def read_git_info(root: Path) -> GitInfo | None:
    """Return :class:`GitInfo` for ``root`` or ``None`` outside a repository."""

    git_dir = find_git_dir(root)
    if git_dir is None:
        return None
    branch, commit = _head(git_dir)
    config = _read_config(git_dir)
    return GitInfo(
        commit=commit,
        branch=branch,
        tag=_tag_for(git_dir, commit) if commit else "",
        user=config.get("user", "name", fallback=""),
        email=config.get("user", "email", fallback=""),
        remote=config.get('remote "origin"', "url", fallback=""),
    )


def normalize_remote_url(remote_url: str) -> str:
    """Reduce a remote URL to ``host/path`` without scheme, user or ``.git``.

    >>> normalize_remote_url("git@github.com:acme/api.git")
    'github.com/acme/api'
    """

    remote_url = remote_url.strip()
    if not remote_url:
        return ""
    if remote_url.startswith("git@"):
        remote_url = "https://" + remote_url[len("git@") :].replace(":", "/", 1)
    elif remote_url.startswith("ssh://"):
        remote_url = "https://" + remote_url[len("ssh://") :].replace("git@", "", 1)
    parsed = urlparse(remote_url)
    if not parsed.netloc:
        return remote_url.removesuffix(".git").strip("/")
    host = parsed.hostname or ""
    if parsed.port not in (None, 22, 443):
        host = f"{host}:{parsed.port}"
    path = parsed.path.removesuffix(".git").strip("/")
    return f"{host}/{path}".rstrip("/")


def normalize_branch_name(branch: str) -> str:
    """Return ``branch`` as a string safe to embed in a file name."""

    normalized = _INVALID_BRANCH_CHARS.sub("-", branch)
    normalized = _DASHES.sub("-", normalized).strip("-.")
    if not normalized:
        return DEFAULT_BRANCH_NAME
    return normalized[:MAX_BRANCH_NAME_LENGTH].rstrip("-")


def _head(git_dir: Path) -> tuple[str, str]:
    head_path = git_dir / "HEAD"
    if not head_path.is_file():
        return "", ""
    head = head_path.read_text(encoding="utf-8", errors="replace").strip()
    if not head.startswith(REF_PREFIX):
        return "", head
    ref = head[len(REF_PREFIX) :].strip()
    branch = ref[len(HEADS_PREFIX) :] if ref.startswith(HEADS_PREFIX) else ""
    return branch, _resolve_ref(git_dir, ref)


def _resolve_ref(git_dir: Path, ref: str) -> str:
    loose = git_dir / ref
    if loose.is_file():
        return loose.read_text(encoding="utf-8", errors="replace").strip()
    return _packed_refs(git_dir).get(ref, "")


def _packed_refs(git_dir: Path) -> dict[str, str]:
    packed = git_dir / "packed-refs"
    refs: dict[str, str] = {}
    if not packed.is_file():
        return refs
    last = ""
    for line in packed.read_text(encoding="utf-8", errors="replace").splitlines():
        if not line or line.startswith("#"):
            continue
        if line.startswith("^"):
            # peeled tag: the commit the preceding annotated tag points at
            if last:
                refs[f"{last}^{{}}"] = line[1:].strip()
            continue
        sha, _, name = line.partition(" ")
        refs[name.strip()] = sha.strip()
        last = name.strip()
    return refs


def _tag_for(git_dir: Path, commit: str) -> str:
    tags: dict[str, str] = {}
    packed = _packed_refs(git_dir)
    for ref, sha in packed.items():
        if ref.startswith(TAGS_PREFIX) and not ref.endswith("^{}"):
            tags[ref[len(TAGS_PREFIX) :]] = packed.get(f"{ref}^{{}}", sha)
    tags_dir = git_dir / "refs" / "tags"
    if tags_dir.is_dir():
        for path in tags_dir.rglob("*"):
            if path.is_file():
                tags[path.relative_to(tags_dir).as_posix()] = path.read_text(encoding="utf-8", errors="replace").strip()
    matching = sorted(name for name, sha in tags.items() if sha == commit)
    return matching[-1] if matching else ""


def _read_config(git_dir: Path) -> configparser.RawConfigParser:
    parser = configparser.RawConfigParser(strict=False)
    config_path = git_dir / "config"
    if not config_path.is_file():
        return parser
    try:
        parser.read_string(_dedent_config(config_path.read_text(encoding="utf-8", errors="replace")))
    except configparser.Error as exc:
        LOGGER.debug("cannot parse %s: %s", config_path, exc)
    return parser


def _dedent_config(text: str) -> str:
    return "\n".join(line.strip() for line in text.splitlines())


__all__ = [
    "find_git_dir",
    "normalize_branch_name",
    "normalize_remote_url",
    "read_git_info",
]
