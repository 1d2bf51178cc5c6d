"""Reports which third-party packages treepack can see, and their versions."""

import platform
from dataclasses import dataclass, fields
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

# Field name -> distribution name on the package index.
_DISTRIBUTIONS = {
    "tqdm": "tqdm",
    "zstandard": "zstandard",
    "lz4": "lz4",
    "backports_strenum": "backports.strenum",
}


@dataclass
class DependencyVersions:
    python: str
    tqdm: Optional[str] = None
    zstandard: Optional[str] = None
    lz4: Optional[str] = None
    backports_strenum: Optional[str] = None

    def missing(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is None]


def _installed_version(distribution: str) -> Optional[str]:
    try:
        return version(distribution)
    except PackageNotFoundError:
        return None


def get_dependency_versions() -> DependencyVersions:
    return DependencyVersions(
        python=platform.python_version(),
        **{
            name: _installed_version(distribution)
            for name, distribution in _DISTRIBUTIONS.items()
        },
    )


def format_dependency_versions(versions: DependencyVersions) -> str:
    """Render one aligned ``name  version`` line per dependency."""
    width = max(len(f.name) for f in fields(versions))
    lines = ["Dependency Versions:"]
    for f in fields(versions):
        value = getattr(versions, f.name)
        lines.append(f"  {f.name:<{width}}  {value or 'not installed'}")
    return "\n".join(lines)
