"""Named Rails project directories.

Rails tools accept an optional ``project`` name instead of a path so that
an agent can switch between the applications of a monorepo without
knowing where they live.  Names come from
:attr:`~rubykit.models.GlobalConfig.projects`; the name ``default`` always
exists and points at the working directory unless configured otherwise.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from rubykit.exceptions import ProjectError
from rubykit.models import ProjectConfig

DEFAULT_PROJECT = "default"


class ProjectManager:
    """Resolve project names to absolute directories.

    Args:
        projects: Configured projects.  A project named ``default``
            overrides *default_path*.
        default_path: Directory used when no project is named; the
            current working directory when ``None``.
    """

    def __init__(
        self,
        projects: Iterable[ProjectConfig] = (),
        default_path: Optional[str | Path] = None,
    ) -> None:
        self._default = Path(default_path or Path.cwd()).resolve()
        self._projects: dict[str, Path] = {DEFAULT_PROJECT: self._default}
        for project in projects:
            self._projects[project.name] = Path(project.path).expanduser().resolve()
        self._default = self._projects[DEFAULT_PROJECT]

    def add_project(self, name: str, path: str | Path) -> Path:
        """Register *path* under *name* after checking it is a readable directory.

        Raises:
            ProjectError: If the path does not exist or is not a directory.
        """
        resolved = Path(path).expanduser().resolve()
        if not resolved.exists():
            raise ProjectError(f"Project directory does not exist: {resolved}")
        if not resolved.is_dir():
            raise ProjectError(f"Project path is not a directory: {resolved}")
        self._projects[name] = resolved
        return resolved

    def get_project_path(self, name: Optional[str] = None) -> Path:
        """Return the directory of project *name*, or the default project.

        Raises:
            ProjectError: If *name* is not a known project.
        """
        if not name:
            return self._default
        try:
            return self._projects[name]
        except KeyError:
            raise ProjectError(
                f"Project not found: {name}. "
                f"Available projects: {', '.join(self.project_names())}"
            ) from None

    def project_names(self) -> list[str]:
        return list(self._projects)

    def has_project(self, name: str) -> bool:
        return name in self._projects

    def resolve_file_path(self, file_path: str | Path, name: Optional[str] = None) -> Path:
        """Resolve *file_path* inside project *name*; absolute paths are kept.

        Raises:
            ProjectError: If *name* is not a known project.
        """
        root = self.get_project_path(name)
        path = Path(file_path).expanduser()
        return path if path.is_absolute() else root / path
