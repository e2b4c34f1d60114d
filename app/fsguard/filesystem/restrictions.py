"""Directory-scoped access restrictions.

A Restrictions object is a labelled set of (directory, write-allowed)
rules. A path may be accessed when a rule directory equals it or contains
it; writing additionally requires that rule to allow writes. Rules are
tried longest first, so a narrow read-only rule inside a wide writable one
takes precedence.

Matching is structural: paths are absolutized and normalized, but
symlinks are not resolved. Callers that need protection against symlink
escapes must pass real paths.
"""

import inspect
import logging
from collections.abc import Iterable, Mapping
from enum import Enum

from fsguard.filesystem.exceptions import (
    NoRestrictionsSetError,
    OutOfBoundsError,
    RestrictionsError,
    WriteRestrictionsError,
)
from fsguard.filesystem.policy import FilesystemPolicy
from fsguard.filesystem.resolve import absolute_path, path_matches_directory, unslash

logger = logging.getLogger(__name__)

UNSPECIFIED_LABEL = "Unspecified"

DirectorySpec = str | Iterable[str] | Mapping[str, bool] | None


class RestrictionVerdict(str, Enum):
    """Why a path is restricted.

    Attributes:
        NO_RULES: The restriction set has no rules at all.
        PATTERN: No rule covers the path.
        WRITE: Only a read-only rule covers a path that must be written.
    """

    NO_RULES = "no_rules"
    PATTERN = "pattern"
    WRITE = "write"


def _caller_label() -> str:
    """Name the first function outside this module on the call stack."""
    frame = inspect.currentframe()
    while frame is not None and frame.f_globals.get("__name__") == __name__:
        frame = frame.f_back
    if frame is None:
        return UNSPECIFIED_LABEL
    return f"{frame.f_globals.get('__name__', '?')}.{frame.f_code.co_qualname}"


class Restrictions:
    """Labelled set of (directory, write-allowed) rules.

    Attributes:
        _rules: Absolute rule directory to write-allowed flag.
        _label: Name shown in error messages.
        _policy: Policy used to absolutize rule and candidate paths.
    """

    def __init__(
        self,
        directories: DirectorySpec = None,
        write: bool = False,
        label: str | None = None,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> None:
        self._policy = policy or FilesystemPolicy()
        self._rules: dict[str, bool] = {}
        self._ordered: list[tuple[str, bool]] | None = None
        self._label = label or _caller_label()
        self.add_directories(directories, write)

    @classmethod
    def writable(
        cls,
        directories: DirectorySpec,
        label: str | None = None,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> "Restrictions":
        """Create restrictions allowing writes below directories."""
        return cls(directories, True, label or _caller_label(), policy=policy)

    @classmethod
    def readonly(
        cls,
        directories: DirectorySpec,
        label: str | None = None,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> "Restrictions":
        """Create restrictions allowing only reads below directories."""
        return cls(directories, False, label or _caller_label(), policy=policy)

    @classmethod
    def filesystem_root(
        cls,
        write: bool = False,
        sub_directory: str | None = None,
        label: str | None = None,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> "Restrictions":
        """Create restrictions for the configured root directory.

        Args:
            write: Whether writes are allowed.
            sub_directory: Optional directory below the root to restrict to.
            label: Name shown in error messages.
            policy: Policy providing the root directory.
        """
        policy = policy or FilesystemPolicy()
        directory = unslash(policy.settings.root_directory)
        if sub_directory:
            directory = f"{directory.rstrip('/')}/{sub_directory.strip('/')}"
        return cls(directory, write, label or _caller_label(), policy=policy)

    @classmethod
    def ensure(
        cls,
        restrictions: "Restrictions | DirectorySpec",
        write: bool = False,
        label: str | None = None,
        *,
        policy: FilesystemPolicy | None = None,
    ) -> "Restrictions | None":
        """Coerce a directory or list of directories into Restrictions.

        Returns:
            The given Restrictions unchanged, a new Restrictions built from
            directories, or None when nothing was given.
        """
        if restrictions is None:
            return None
        if isinstance(restrictions, Restrictions):
            return restrictions
        if isinstance(restrictions, str) and not restrictions:
            return None
        return cls(restrictions, write, label or _caller_label(), policy=policy)

    @property
    def policy(self) -> FilesystemPolicy:
        return self._policy

    @property
    def label(self) -> str:
        return self._label

    @label.setter
    def label(self, label: str | None) -> None:
        self._label = label or UNSPECIFIED_LABEL

    @property
    def directories(self) -> dict[str, bool]:
        """Copy of the rules, directory to write-allowed."""
        return dict(self._rules)

    def ensure_label(self, label: str | None) -> "Restrictions":
        """Set label only if none was set yet."""
        if label and (not self._label or self._label == UNSPECIFIED_LABEL):
            self._label = label
        return self

    def add_label(self, label: str | None) -> "Restrictions":
        """Append label to the current label."""
        self._label = f"{self._label}, {label or UNSPECIFIED_LABEL}"
        return self

    def add_directory(self, directory: str | None, write: bool = False) -> "Restrictions":
        """Add a rule. Empty directories are ignored."""
        if directory:
            absolute = absolute_path(directory, None, False, policy=self._policy)
            self._rules[absolute] = write
            self._ordered = None
        return self

    def add_directories(self, directories: DirectorySpec, write: bool = False) -> "Restrictions":
        """Add rules from a directory, a list of directories, or a mapping.

        A mapping's values override write for each of its directories.
        """
        if directories is None:
            return self
        if isinstance(directories, str):
            return self.add_directory(directories, write)
        if isinstance(directories, Mapping):
            for directory, directory_write in directories.items():
                self.add_directory(directory, bool(directory_write))
            return self
        for directory in directories:
            self.add_directory(directory, write)
        return self

    def add_restrictions(self, restrictions: "Restrictions | None") -> "Restrictions":
        """Merge the rules and label of another restriction set into this one."""
        if restrictions is not None:
            self.add_label(restrictions.label)
            self.add_directories(restrictions.directories)
        return self

    def clear_directories(self) -> "Restrictions":
        """Remove all rules."""
        self._rules.clear()
        self._ordered = None
        return self

    def _ordered_rules(self) -> list[tuple[str, bool]]:
        if self._ordered is None:
            self._ordered = sorted(self._rules.items(), key=lambda rule: len(rule[0]), reverse=True)
        return self._ordered

    def is_restricted(self, pattern: str, write: bool = False) -> RestrictionVerdict | None:
        """Evaluate access to a single path without raising.

        Args:
            pattern: Path to check. Relative paths resolve against the root.
            write: Whether write access is required.

        Returns:
            None if access is allowed, otherwise the reason it is not.
        """
        if not self._rules:
            return RestrictionVerdict.NO_RULES

        candidate = absolute_path(pattern, None, False, policy=self._policy)
        for directory, allow_write in self._ordered_rules():
            if path_matches_directory(candidate, directory):
                if write and not allow_write:
                    return RestrictionVerdict.WRITE
                return None
        return RestrictionVerdict.PATTERN

    def allows(self, pattern: str, write: bool = False) -> bool:
        """Check if access to pattern is allowed."""
        return self.is_restricted(pattern, write) is None

    def check(
        self,
        patterns: str | Iterable[str],
        write: bool = False,
        previous: BaseException | None = None,
    ) -> None:
        """Raise unless every pattern may be accessed.

        Args:
            patterns: One path or several paths.
            write: Whether write access is required.
            previous: Exception to chain the restriction error to.

        Raises:
            NoRestrictionsSetError: If there are no rules at all.
            RestrictionsError: If no rule covers a pattern.
            WriteRestrictionsError: If a pattern is covered only read-only.
        """
        if isinstance(patterns, str):
            patterns = [patterns]

        for pattern in patterns:
            verdict = self.is_restricted(pattern, write)
            if verdict is None:
                continue

            data = {"label": self._label, "pattern": pattern, "paths": self.directories}
            if verdict is RestrictionVerdict.NO_RULES:
                msg = f"The '{self._label}' restrictions have no paths specified"
                raise NoRestrictionsSetError(msg, path=pattern, data=data) from previous
            if verdict is RestrictionVerdict.WRITE:
                msg = (
                    f"Write access to path '{pattern}' denied by '{self._label}' "
                    "readonly restrictions"
                )
                raise WriteRestrictionsError(msg, path=pattern, data=data) from previous

            method = "Write" if write else "Read"
            msg = (
                f"{method} access to path '{pattern}' denied due to restrictions "
                f"defined by '{self._label}'"
            )
            raise RestrictionsError(msg, path=pattern, data=data) from previous

    def get_parent(self, levels: int = 1) -> "Restrictions":
        """Return restrictions with every rule directory moved up.

        Args:
            levels: Positive values strip that many trailing segments.
                Negative values keep only the first abs(levels) segments.

        Raises:
            OutOfBoundsError: If levels is 0.
        """
        if levels == 0:
            msg = "Invalid parent level 0 specified, must be non-zero"
            raise OutOfBoundsError(msg)

        parent = Restrictions(label=self._label, policy=self._policy)
        for directory, write in self._rules.items():
            segments = [segment for segment in directory.split("/") if segment]
            segments = segments[:-levels] if levels > 0 else segments[: abs(levels)]
            parent.add_directory("/" + "/".join(segments), write)
        return parent

    def get_child(self, children: str | Iterable[str], write: bool | None = None) -> "Restrictions":
        """Return restrictions scoped to child directories of every rule.

        Args:
            children: One or several relative child paths.
            write: Write flag for the new rules. None keeps each rule's flag.
        """
        if isinstance(children, str):
            children = [children]
        children = list(children)

        child = Restrictions(label=self._label, policy=self._policy)
        for directory, original_write in self._rules.items():
            for name in children:
                child.add_directory(
                    f"{directory.rstrip('/')}/{name.lstrip('/')}",
                    original_write if write is None else write,
                )
        return child

    def get_these_writable(self) -> "Restrictions":
        """Return the same directories with writes allowed everywhere."""
        writable = Restrictions(label=self._label, policy=self._policy)
        for directory in self._rules:
            writable.add_directory(directory, True)
        return writable

    def __len__(self) -> int:
        return len(self._rules)

    def __str__(self) -> str:
        return ",".join(self._rules)

    def __repr__(self) -> str:
        return f"Restrictions({self._rules!r}, label={self._label!r})"
