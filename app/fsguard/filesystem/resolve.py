"""Path resolution.

Pure string functions turning user supplied paths into absolute,
normalized or real paths. Only absolute_path() and real_path() look at the
filesystem: the former to mark existing directories with a trailing slash
and to enforce must_exist, the latter to resolve the parent directory.

Resolutions are memoized in the policy's cache while one is active (see
FilesystemPolicy.cached()).
"""

import os
import re

from fsguard.filesystem.exceptions import FilesystemError, FileNotExistError, OutOfBoundsError
from fsguard.filesystem.policy import FilesystemPolicy

MAX_PATH_BYTES = 4096

# Prefix shortcuts that resolve to a category directory below the CDN
CATEGORY_PREFIXES: dict[str, str] = {
    "css": "css",
    "js": "js",
    "javascript": "js",
    "img": "img",
    "image": "img",
    "images": "img",
    "font": "fonts",
    "fonts": "fonts",
    "video": "video",
    "videos": "video",
}

_HOSTNAME_PATTERN = re.compile(
    r"^(?=.{1,253}$)[A-Za-z0-9_](?:[A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?"
    r"(?:\.[A-Za-z0-9_](?:[A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?)*$"
)

Prefix = str | bool | None


def slash(path: str) -> str:
    """Return path with exactly one trailing slash."""
    return path.rstrip("/") + "/"


def unslash(path: str) -> str:
    """Return path without trailing slash ("/" stays "/")."""
    return path.rstrip("/") or "/"


def validate_filename(path: str | None) -> None:
    """Check that a path is non-empty and at most 4096 bytes.

    Raises:
        OutOfBoundsError: If the path is empty or too long.
    """
    if path is None:
        return
    if not path:
        raise OutOfBoundsError("No file specified")
    if len(path.encode()) > MAX_PATH_BYTES:
        msg = f"Specified file '{path[:64]}...' is longer than {MAX_PATH_BYTES} bytes"
        raise OutOfBoundsError(msg, path=path)


def on_domain(path: str) -> bool:
    """Check if path has the form "host:/path" (host may be "*")."""
    if ":" not in path:
        return False
    host = path.split(":", 1)[0]
    return host == "*" or bool(_HOSTNAME_PATTERN.match(host))


def get_domain(path: str) -> str:
    """Return the host part of a domain path.

    Raises:
        FilesystemError: If path is not a domain path.
    """
    if not on_domain(path):
        msg = f"Cannot return domain from path '{path}', it is not a domain path"
        raise FilesystemError(msg, path=path)
    return path.split(":", 1)[0]


def is_in_domain(path: str, domain: str) -> bool:
    """Check if a domain path lies within domain, supporting "*:" wildcards.

    Args:
        path: Path such as "host:/srv/data/x".
        domain: Domain prefix such as "host:/srv" or "*:/srv".
    """
    if path.startswith(domain):
        return True
    host, _, domain_path = domain.partition(":")
    if host == "*":
        return path.partition(":")[2].startswith(domain_path)
    return False


def is_in_directory(path: str, directory: str) -> bool:
    """Check if path lies within directory (plain prefix test, domain aware)."""
    if on_domain(path):
        return is_in_domain(path, directory)
    return path.startswith(directory)


def _segment_match(path: str, directory: str) -> bool:
    """Check if path equals directory or lies beneath it, segment-wise."""
    path = unslash(path)
    directory = unslash(directory)
    if directory == "/":
        return path.startswith("/")
    return path == directory or path.startswith(directory + "/")


def _resolve_prefix(prefix: str | None, policy: FilesystemPolicy) -> str:
    settings = policy.settings
    name = (prefix or "").strip()
    if not name:
        return settings.root_directory
    if name in CATEGORY_PREFIXES:
        return f"{unslash(settings.cdn_path)}/{settings.language}/{CATEGORY_PREFIXES[name]}"
    if name.startswith("/"):
        return name
    return absolute_path(name, None, False, policy=policy)


def absolute_path(
    path: str | None,
    prefix: Prefix = None,
    must_exist: bool = True,
    *,
    policy: FilesystemPolicy,
) -> str:
    """Resolve path into an absolute, normalized path.

    "/..." is taken as is, "~" starts at the home directory, "." and "./"
    start at the policy's start directory. Anything else is placed below
    prefix, which defaults to the root directory and may also be one of
    the category names in CATEGORY_PREFIXES. Existing directories get a
    trailing slash. Domain paths are returned unchanged.

    Args:
        path: Path to resolve. Empty means the root directory.
        prefix: Base for relative paths. False returns path untouched,
            True behaves like None.
        must_exist: Raise if the result does not exist.
        policy: Policy providing root/start directories and the cache.

    Returns:
        The absolute path.

    Raises:
        OutOfBoundsError: If the path is too long, escapes the root, or the
            home directory cannot be determined.
        FileNotExistError: If must_exist and the result does not exist.
    """
    if prefix is False:
        return path or ""

    path = (path or "").strip()
    while "//" in path:
        path = path.replace("//", "/")

    if not path:
        return slash(policy.settings.root_directory)

    if prefix is True:
        prefix = None

    if on_domain(path):
        return path

    key = ("absolute", path, prefix, must_exist)
    if policy.cache is not None:
        cached = policy.cache.get(key)
        if cached is not None:
            return cached

    validate_filename(path)

    if path.startswith("/"):
        result = normalize_path(path, policy=policy)
    elif path.startswith("~"):
        home = os.path.expanduser("~")
        if home == "~":
            msg = "Cannot use '~' paths, cannot determine this user's home directory"
            raise OutOfBoundsError(msg, path=path)
        result = normalize_path(f"{home}/{path[1:].lstrip('/')}", policy=policy)
    elif path == "." or path.startswith("./"):
        result = normalize_path(f"{policy.start_directory}/{path[2:]}", policy=policy)
    else:
        base = _resolve_prefix(prefix, policy)
        result = normalize_path(f"{unslash(base)}/{path}", policy=policy)

    if os.path.exists(result):
        if os.path.isdir(result):
            result = slash(result)
    elif must_exist:
        msg = (
            f"The resolved path '{result}' for the specified path '{path}' "
            f"with prefix '{prefix or ''}' does not exist"
        )
        raise FileNotExistError(msg, path=result)

    if policy.cache is not None:
        policy.cache.set(key, result)
    return result


def normalize_path(
    path: str,
    prefix: Prefix = None,
    must_exist: bool = False,
    *,
    policy: FilesystemPolicy,
) -> str:
    """Lexically resolve "." and ".." segments.

    Segments are walked from the end towards the root. Every ".." bumps a
    skip counter that drops the nearest preceding real segment. The result
    never has a trailing slash, except for the root itself.

    Args:
        path: Path to normalize. Relative paths are made absolute first.
        prefix: Base for relative paths, see absolute_path().
        must_exist: Passed to absolute_path() for relative paths.
        policy: Policy providing root/start directories and the cache.

    Raises:
        OutOfBoundsError: If ".." segments pass beyond the root directory.
    """
    path = path.strip()

    if on_domain(path):
        return path

    if not path.startswith("/"):
        path = absolute_path(path, prefix, must_exist, policy=policy)
        if on_domain(path):
            return path

    key = ("normalize", path, None, False)
    if policy.cache is not None:
        cached = policy.cache.get(key)
        if cached is not None:
            return cached

    parts = [part for part in path.replace("\\", "/").split("/") if part]
    result: list[str] = []
    skip = 0

    for part in reversed(parts):
        if part == ".":
            continue
        if part == "..":
            skip += 1
            continue
        if skip:
            skip -= 1
            continue
        result.append(part)

    if skip:
        msg = f"Cannot normalize path '{path}', it passes beyond the root directory"
        raise OutOfBoundsError(msg, path=path)

    normalized = "/" + "/".join(reversed(result))

    if policy.cache is not None:
        policy.cache.set(key, normalized)
    return normalized


def real_path(
    path: str,
    prefix: Prefix = None,
    must_exist: bool = False,
    *,
    policy: FilesystemPolicy,
) -> str:
    """Resolve symlinks in the parent directory of path.

    The parent directory is created when missing and passed through the
    OS realpath. The basename is reattached unresolved, so the result is
    available even when the leaf does not exist.

    Raises:
        FilesystemError: If the parent directory cannot be created or resolved.
    """
    absolute = absolute_path(path, prefix, must_exist, policy=policy)
    if on_domain(absolute):
        return path

    absolute = unslash(absolute)
    if absolute == "/":
        return "/"

    parent, base = os.path.split(absolute)
    try:
        os.makedirs(parent, exist_ok=True)
        real_parent = os.path.realpath(parent, strict=True)
    except OSError as e:
        msg = f"Failed to convert path '{path}' into a real path: {e}"
        raise FilesystemError(msg, path=path) from e

    return slash(real_parent) + base


def relative_path(source: str, target: str) -> str:
    """Compute a relative path leading from source's directory to target.

    Both paths must be absolute and normalized. Used for relative symlinks:
    a link at source whose content is the returned value points to target.

    Returns:
        Relative path, or "." if source and target are the same path.
    """
    source_parts = [part for part in source.split("/") if part]
    target_parts = [part for part in target.split("/") if part]

    if source_parts == target_parts:
        return "."

    common = 0
    for source_part, target_part in zip(source_parts, target_parts, strict=False):
        if source_part != target_part:
            break
        common += 1

    ups = max(len(source_parts) - common - 1, 0)
    return "/".join([".."] * ups + target_parts[common:]) or "."


def path_matches_directory(path: str, directory: str) -> bool:
    """Check if absolute path equals directory or lies beneath it."""
    return _segment_match(path, directory)
