# app/services/sandbox.py
from __future__ import annotations

import os
import posixpath
from pathlib import Path
from typing import Union

MAX_DIR_DEPTH = 5
MAX_DIR_NAME = 50
ILLEGAL_DIR_CHARS = '<>:"|?*'

PathLike = Union[str, os.PathLike]


class SandboxError(ValueError):
    """Base class for client-supplied paths the sandbox refuses."""


class ContainmentError(SandboxError):
    pass


class SecurityError(SandboxError):
    pass


def absolute_root(root: PathLike) -> str:
    # abspath, not realpath: the root is taken as configured, symlinks included
    return os.path.abspath(os.fspath(root))


def canonicalize(raw: str) -> str:
    """
    Canonical form of a logical path, anchored at a synthetic "/".

    "." segments, doubled separators and "name/.." pairs collapse; a ".."
    that would climb above the anchor is kept so the caller can see it.
    """
    rel = posixpath.normpath(raw.lstrip("/") or ".")
    if rel == ".":
        return "/"
    return "/" + rel


def is_contained(target: str, root: str, strict: bool = False) -> bool:
    """
    Literal string-prefix test by default.

    NOTE: with root "/srv/files" the prefix test also accepts "/srv/files2/x".
    strict=True compares on a separator boundary instead.
    """
    if strict:
        return target == root or target.startswith(root.rstrip(os.sep) + os.sep)
    return target.startswith(root)


def resolve(logical_path: str, root: PathLike, strict: bool = False) -> Path:
    """
    Map a client-supplied path to an absolute path under root.
    Raises ContainmentError before any file-system access.
    """
    if "\x00" in logical_path:
        raise ContainmentError("illegal path")
    clean = canonicalize(logical_path)
    if ".." in clean.split("/"):
        raise ContainmentError("illegal path")

    abs_root = absolute_root(root)
    target = os.path.normpath(os.path.join(abs_root, clean.lstrip("/")))
    if not is_contained(target, abs_root, strict):
        raise ContainmentError("path escape")
    return Path(target)


def secure_create_dir(target_dir: PathLike, root: PathLike, strict: bool = False) -> None:
    """
    Create target_dir (and missing parents) under root with a policy check:
    at most MAX_DIR_DEPTH levels below root, no name longer than MAX_DIR_NAME,
    none of ILLEGAL_DIR_CHARS.

    Levels created before a failure are left in place.
    """
    target = os.fspath(target_dir)
    if os.path.exists(target):
        return

    abs_root = absolute_root(root)
    try:
        rel = os.path.relpath(target, abs_root)
    except ValueError:
        raise SecurityError("invalid directory path")

    parts = rel.replace(os.sep, "/").split("/")
    if len(parts) > MAX_DIR_DEPTH:
        raise SecurityError(f"directory depth too deep (max {MAX_DIR_DEPTH} levels)")

    for part in parts:
        if part in ("", ".", ".."):
            continue
        if any(c in ILLEGAL_DIR_CHARS for c in part):
            raise SecurityError("directory name contains illegal characters")
        if len(part) > MAX_DIR_NAME:
            raise SecurityError(f"directory name too long (max {MAX_DIR_NAME} characters)")

    current = abs_root
    for part in parts:
        if part in ("", "."):
            continue
        current = os.path.normpath(os.path.join(current, part))
        if not is_contained(current, abs_root, strict):
            raise SecurityError("directory creation would escape sandbox")
        try:
            os.mkdir(current, 0o755)
        except FileExistsError:
            pass
        except (OSError, ValueError) as e:
            raise SecurityError(f"failed to create directory: {e}")
