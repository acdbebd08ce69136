# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Change markers and stable project identifiers."""

from __future__ import annotations

import hashlib
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import Final

from .discovery import iter_source_files
from .git import normalize_remote_url

BASE58_ALPHABET: Final[str] = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
MANIFEST_NAME: Final[str] = "pyproject.toml"


def encode_base58(data: bytes) -> str:
    """Encode ``data`` with the Bitcoin base58 alphabet."""

    number = int.from_bytes(data, "big")
    encoded = []
    while number > 0:
        number, remainder = divmod(number, 58)
        encoded.append(BASE58_ALPHABET[remainder])
    leading = len(data) - len(data.lstrip(b"\x00"))
    return BASE58_ALPHABET[0] * leading + "".join(reversed(encoded))


def project_id(module_path: str, remote_url: str = "") -> str:
    """Return the base58 form of ``uuid5(NAMESPACE_DNS, "<remote>:<module>")``.

    Without a remote the name is the module path alone.
    """

    remote = normalize_remote_url(remote_url)
    name = f"{remote}:{module_path}" if remote else module_path
    return encode_base58(uuid.uuid5(uuid.NAMESPACE_DNS, name).bytes)


def hash_files(root: Path, paths: Iterable[Path]) -> str:
    """Return the sha256 over ``<relative path>:<sha256 of content>`` lines."""

    root = root.resolve()
    entries = []
    for path in paths:
        resolved = path.resolve()
        try:
            relative = resolved.relative_to(root).as_posix()
        except ValueError:
            relative = resolved.as_posix()
        entries.append((relative, hashlib.sha256(resolved.read_bytes()).hexdigest()))
    digest = hashlib.sha256()
    for relative, content_hash in sorted(entries):
        digest.update(f"{relative}:{content_hash}\n".encode())
    return digest.hexdigest()


def compute_marker(root: Path, *, excludes: Iterable[str | Path] = ()) -> str:
    """Return the change marker of the project at ``root``.

    Covers every non-test source module of the tree (the contracts
    directory included) and the manifest.
    """

    paths = list(iter_source_files(root, excludes=excludes))
    manifest = root / MANIFEST_NAME
    if manifest.is_file():
        paths.append(manifest)
    return hash_files(root, paths)


__all__ = ["BASE58_ALPHABET", "compute_marker", "encode_base58", "hash_files", "project_id"]
