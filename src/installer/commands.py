"""Per-method installer commands.

Each resolved InstallationMethod becomes exactly one external command: the
package manager invocation for standard packages, a single shell for a git
clone-and-build, or a curl download for prebuilt binaries. pip and git
installs are built in a staging directory and only replace the previous
install once they succeed.
"""

from __future__ import annotations

import hashlib
import logging
import os
import posixpath
import re
import shlex
import urllib.parse
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from constants import Constants
from locator.models import (
    GitBuild,
    GitReference,
    GitReferenceKind,
    InstallationMethod,
    PackageSource,
    PackageSourceType,
    PrebuiltBinary,
    StandardPackage,
)
from locator.options import build_tool, option_flag, option_list, option_value
from locator.tokenizer import DEFAULT_VERSION

logger = logging.getLogger(__name__)

_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_STAGING_DIR = ".staging"


@dataclass
class InstallCommand:
    """A single process invocation that installs one package."""

    argv: List[str]
    install_path: str
    artifact: str  # must exist after a successful run
    env: Dict[str, str] = field(default_factory=dict)
    cwd: Optional[str] = None
    description: str = ""

    def display(self) -> str:
        return " ".join(shlex.quote(part) for part in self.argv)


def _safe_name(raw: str) -> str:
    return _UNSAFE_PATH_CHARS.sub("_", raw).strip("._") or "package"


def package_dir_name(entry_name: str) -> str:
    """Filesystem-safe directory name for a catalog entry.

    Names that had to be rewritten get a short digest of the original, so
    two entries never share a directory.
    """
    name = _safe_name(entry_name)
    if name != entry_name:
        digest = hashlib.sha256(entry_name.encode("utf-8")).hexdigest()[:8]
        name = f"{name}-{digest}"
    return name


def install_path_for(source: PackageSource, install_root: str) -> str:
    return os.path.join(install_root, package_dir_name(source.entry_name))


def staging_path_for(install_path: str) -> str:
    """Scratch location a fresh install is built in before it replaces ``install_path``."""
    return os.path.join(os.path.dirname(install_path), _STAGING_DIR, os.path.basename(install_path))


def _staged_script(steps: List[str], staging: str, install_path: str) -> str:
    """Shell script running ``steps`` in ``staging``, then swapping it into place.

    The previous install is only removed once every step succeeded; on
    failure the staging directory is deleted and the exit status kept.
    """
    stage = shlex.quote(staging)
    target = shlex.quote(install_path)
    chain = [
        f"rm -rf {stage}",
        f"mkdir -p {shlex.quote(os.path.dirname(staging))}",
        *steps,
        f"rm -rf {target}",
        f"mv {stage} {target}",
    ]
    return " && ".join(chain) + f" || {{ status=$?; rm -rf {stage}; exit $status; }}"


def _is_pinned(version: str) -> bool:
    return version != DEFAULT_VERSION


def _effective_reference(ref: Optional[GitReference]) -> Optional[GitReference]:
    """Drop references that only carry the "latest" placeholder."""
    if ref is None or ref.value == DEFAULT_VERSION:
        return None
    return ref


# ---------- package managers ----------


def _build_cargo(source: PackageSource, install_path: str) -> InstallCommand:
    argv = ["cargo", "install", "--root", install_path]
    if source.repository_url:
        argv += ["--git", source.repository_url]
        ref = _effective_reference(source.git_reference)
        if ref is not None:
            flag = {
                GitReferenceKind.REVISION: "--rev",
                GitReferenceKind.TAG: "--tag",
                GitReferenceKind.BRANCH: "--branch",
            }[ref.kind]
            argv += [flag, ref.value]
    elif _is_pinned(source.version):
        argv += ["--version", source.version]

    features = option_list(source, "features")
    if features:
        argv += ["--features", ",".join(features)]
    if option_flag(source, "locked"):
        argv.append("--locked")
    argv.append(source.pkg_name)
    return InstallCommand(
        argv=argv,
        install_path=install_path,
        artifact=os.path.join(install_path, "bin"),
        description=f"cargo install {source.pkg_name}",
    )


def _build_npm(source: PackageSource, install_path: str) -> InstallCommand:
    spec = f"{source.pkg_name}@{source.version}" if _is_pinned(source.version) else source.pkg_name
    argv = ["npm", "install", "--prefix", install_path, spec]
    argv += option_list(source, "extra_packages")
    return InstallCommand(
        argv=argv,
        install_path=install_path,
        artifact=os.path.join(install_path, "node_modules"),
        description=f"npm install {spec}",
    )


def _build_pip(source: PackageSource, install_path: str) -> InstallCommand:
    requirement = source.pkg_name
    extra = option_value(source, "extra")
    if extra:
        requirement += f"[{extra}]"
    if _is_pinned(source.version):
        requirement += f"=={source.version}"
    staging = staging_path_for(install_path)
    pip = [Constants.PYTHON_EXECUTABLE, "-m", "pip", "install", "--upgrade", "--target", staging, requirement]
    pip += option_list(source, "extra_packages")
    script = _staged_script([" ".join(shlex.quote(part) for part in pip)], staging, install_path)
    return InstallCommand(
        argv=[Constants.SHELL, "-c", script],
        install_path=install_path,
        artifact=install_path,
        description=f"pip install {requirement}",
    )


def _build_go(source: PackageSource, install_path: str) -> InstallCommand:
    module = source.pkg_name
    subpath = option_value(source, "subpath")
    if subpath:
        module = f"{module}/{subpath.strip('/')}"
    target = f"{module}@{source.version}"
    bin_dir = os.path.join(install_path, "bin")
    return InstallCommand(
        argv=["go", "install", target],
        install_path=install_path,
        artifact=bin_dir,
        env={"GOBIN": bin_dir},
        description=f"go install {target}",
    )


def _build_gem(source: PackageSource, install_path: str) -> InstallCommand:
    argv = ["gem", "install", "--no-document", "--install-dir", install_path, source.pkg_name]
    if _is_pinned(source.version):
        argv += ["-v", source.version]
    argv += option_list(source, "extra_packages")
    return InstallCommand(
        argv=argv,
        install_path=install_path,
        artifact=os.path.join(install_path, "gems"),
        env={"GEM_HOME": install_path},
        description=f"gem install {source.pkg_name}",
    )


_STANDARD_BUILDERS: Dict[PackageSourceType, Callable[[PackageSource, str], InstallCommand]] = {
    PackageSourceType.CARGO: _build_cargo,
    PackageSourceType.NPM: _build_npm,
    PackageSourceType.PIP: _build_pip,
    PackageSourceType.GO: _build_go,
    PackageSourceType.GEM: _build_gem,
}


# ---------- git / binary ----------


def _git_build_script(method: GitBuild, install_path: str) -> str:
    staging = staging_path_for(install_path)
    url = shlex.quote(method.repository_url)
    stage = shlex.quote(staging)
    ref = _effective_reference(method.git_reference)

    if ref is None:
        steps = [f"git clone --depth 1 {url} {stage}"]
    elif ref.kind is GitReferenceKind.REVISION:
        steps = [
            f"git clone {url} {stage}",
            f"git -C {stage} checkout --detach {shlex.quote(ref.value)}",
        ]
    else:
        steps = [f"git clone --depth 1 --branch {shlex.quote(ref.value)} {url} {stage}"]

    build = option_value(method.source, "build")
    if build:
        steps.append(f"(cd {stage} && {build})")
    return _staged_script(steps, staging, install_path)


def _build_git(method: GitBuild, install_path: str) -> InstallCommand:
    script = _git_build_script(method, install_path)
    return InstallCommand(
        argv=[Constants.SHELL, "-c", script],
        install_path=install_path,
        artifact=os.path.join(install_path, ".git"),
        description=f"git clone {method.repository_url}",
    )


def _download_file_name(method: PrebuiltBinary) -> str:
    explicit = option_value(method.source, "file")
    if explicit:
        return _safe_name(explicit)
    path = urllib.parse.unquote(urllib.parse.urlsplit(method.download_url).path)
    name = posixpath.basename(path.rstrip("/"))
    return _safe_name(name or posixpath.basename(method.source.pkg_name))


def _build_binary(method: PrebuiltBinary, install_path: str) -> InstallCommand:
    dest = os.path.join(install_path, _download_file_name(method))
    return InstallCommand(
        argv=["curl", "-fsSL", "--create-dirs", "-o", dest, method.download_url],
        install_path=install_path,
        artifact=dest,
        description=f"download {method.download_url}",
    )


def build_command(method: InstallationMethod, install_root: str) -> InstallCommand:
    """Build the single command that installs ``method`` under ``install_root``.

    Raises:
        ValueError: for UNKNOWN or a source type without a builder.
    """
    if isinstance(method, StandardPackage):
        builder = _STANDARD_BUILDERS.get(method.source.type)
        if builder is None:
            raise ValueError(f"no package manager for {build_tool(method.source)!r}")
        return builder(method.source, install_path_for(method.source, install_root))
    if isinstance(method, GitBuild):
        return _build_git(method, install_path_for(method.source, install_root))
    if isinstance(method, PrebuiltBinary):
        return _build_binary(method, install_path_for(method.source, install_root))
    raise ValueError(f"cannot build an install command for {method.kind.value}")
