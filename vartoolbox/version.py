# vartoolbox/version.py
"""
Version and release metadata for the VAR Toolbox.

``__version__`` here is what ``vartoolbox.__version__`` exposes; the minimum
dependency versions in ``__dependencies__`` are checked on package import.
Versions follow MAJOR.MINOR.PATCH semantic versioning.
"""

from typing import Any, Dict

VERSION_MAJOR = 1
VERSION_MINOR = 0
VERSION_PATCH = 0

__version__ = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"

__title__ = "VAR Toolbox"
__description__ = "Vector autoregression estimation, forecasting and structural analysis"
__license__ = "MIT"
__python_requires__ = ">=3.10"

# Minimum tested versions of the runtime stack
__dependencies__ = {
    "numpy": "1.26.0",
    "scipy": "1.11.3",
    "pandas": "2.1.1",
    "numba": "0.58.0",
}

RELEASES = [
    {
        "version": "1.0.0",
        "release_date": "2026-10-19",
        "changes": [
            "Ordinary and restricted least-squares VAR estimation with cointegration terms",
            "Unconditional and conditional forecasting with instrument conditioning",
            "Efron and wild residual bootstrap with threaded re-estimation",
            "Recursive structural identification and impulse responses",
            "Theoretical and sample autocovariance functions",
            "Resimulation with shock contribution decompositions",
        ]
    },
]


def get_version_info() -> Dict[str, Any]:
    """Version string, components and the notes of the current release."""
    release = RELEASES[0]
    return {
        "version": __version__,
        "components": (VERSION_MAJOR, VERSION_MINOR, VERSION_PATCH),
        "release_date": release["release_date"],
        "changes": list(release["changes"]),
        "python_requires": __python_requires__,
        "dependencies": dict(__dependencies__),
    }


def is_compatible_with(version: str) -> bool:
    """
    True when code written against ``version`` runs on this release.

    That means the same major version and no newer minor or patch level.
    Malformed version strings are never compatible.
    """
    try:
        wanted = [int(part) for part in version.split(".")]
    except ValueError:
        return False
    if not 1 <= len(wanted) <= 3:
        return False
    wanted += [0] * (3 - len(wanted))
    if wanted[0] != VERSION_MAJOR:
        return False
    return (VERSION_MINOR, VERSION_PATCH) >= (wanted[1], wanted[2])
