"""
Project Detector
================
Reads Cargo manifests in a checkout to answer two questions:

    1. Is this an Anchor project? (some Cargo.toml depends on anchor-lang)
    2. Which program library should the fuzz harness load?

Detection is deterministic — same checkout always yields the same answer.
Hidden and symlinked directories are skipped. Unparsable manifests count
as "not Anchor". Unlistable directories are logged and skipped.
"""
import logging
import os
import tomllib
from typing import Optional

from safex.utils.path_utils import is_hidden

logger = logging.getLogger(__name__)

MANIFEST_NAME = "Cargo.toml"
ANCHOR_DEPENDENCY = "anchor-lang"


def find_cargo_manifests(repo_path: str) -> list[str]:
    """
    Return every Cargo.toml under repo_path, parents before children.

    Symlinked directories are not followed, so a link loop in the
    checkout cannot recurse forever. Directories that cannot be listed
    are logged and skipped.
    """
    manifests: list[str] = []
    if not os.path.isdir(repo_path):
        return manifests

    candidate = os.path.join(repo_path, MANIFEST_NAME)
    if os.path.isfile(candidate):
        manifests.append(candidate)

    try:
        with os.scandir(repo_path) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        logger.warning("Failed to search directory %s: %s", repo_path, exc)
        return manifests

    for entry in entries:
        if is_hidden(entry.name):
            continue
        try:
            is_subdir = entry.is_dir(follow_symlinks=False)
        except OSError as exc:
            logger.warning("Failed to read directory entry %s: %s", entry.path, exc)
            continue
        if is_subdir:
            manifests.extend(find_cargo_manifests(entry.path))

    return manifests


def load_manifest(manifest_path: str) -> Optional[dict]:
    try:
        with open(manifest_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Failed to parse %s: %s", manifest_path, exc)
        return None


def has_anchor_dependency(manifest_path: str) -> bool:
    manifest = load_manifest(manifest_path)
    if manifest is None:
        return False
    dependencies = manifest.get("dependencies")
    return isinstance(dependencies, dict) and ANCHOR_DEPENDENCY in dependencies


def is_anchor_project(repo_path: str) -> bool:
    """True if any Cargo.toml in the checkout depends on anchor-lang."""
    manifests = find_cargo_manifests(repo_path)
    logger.info("Found %d Cargo.toml file(s) in %s", len(manifests), repo_path)
    return any(has_anchor_dependency(m) for m in manifests)


def detect_program_name(repo_path: str) -> Optional[str]:
    """
    Library name of the first Anchor program crate, as ProgramTest expects it.

    Prefers ``[lib] name``; falls back to the package name with dashes
    turned into underscores. None when no Anchor crate is found.
    """
    for manifest_path in find_cargo_manifests(repo_path):
        manifest = load_manifest(manifest_path)
        if manifest is None:
            continue
        dependencies = manifest.get("dependencies")
        if not isinstance(dependencies, dict) or ANCHOR_DEPENDENCY not in dependencies:
            continue

        lib = manifest.get("lib")
        if isinstance(lib, dict) and isinstance(lib.get("name"), str):
            return lib["name"]
        package = manifest.get("package")
        if isinstance(package, dict) and isinstance(package.get("name"), str):
            return package["name"].replace("-", "_")

    return None
