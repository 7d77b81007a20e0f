"""
Native library acquisition.

Produces the library and include search paths for OpenCV, either from the
environment (``OPENCV_LIB_DIR*`` / ``OPENCV_INCLUDE_DIR``), from
pkg-config, or by configuring and installing the vendored OpenCV source
with CMake.
"""

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from ..errors import BuildError
from .features import Features
from .settings import native_build_config

logger = logging.getLogger(__name__)

LIB_DIR_VAR = "OPENCV_LIB_DIR"
INCLUDE_DIR_VAR = "OPENCV_INCLUDE_DIR"
SOURCE_DIR_VAR = "OPENCV_FFI_SOURCE_DIR"

PKG_CONFIG_NAMES = ("opencv4", "opencv")

# Where CMake installs merged third-party archives, OpenCV 3 then 4 layouts
THIRDPARTY_LIB_DIRS = (
    "share/OpenCV/3rdparty/lib",
    "lib/opencv4/3rdparty",
    "lib64/opencv4/3rdparty",
)

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass
class NativeLibrary:
    """Where the OpenCV libraries and headers were found.

    ``lib_dirs`` are scanned for libraries by the link step, keyed by the
    variable that declared them. ``search_dirs`` and ``libraries`` come from
    pkg-config and are passed through as they are.
    """

    lib_dirs: Dict[str, Path] = field(default_factory=dict)
    include_dir: Optional[Path] = None
    search_dirs: List[Path] = field(default_factory=list)
    libraries: List[str] = field(default_factory=list)
    built_from_source: bool = False


def lib_dirs_from_env(environ: Mapping[str, str]) -> Dict[str, Path]:
    return {
        key: Path(value)
        for key, value in sorted(environ.items())
        if key.startswith(LIB_DIR_VAR) and value
    }


def from_environment(environ: Mapping[str, str]) -> Optional[NativeLibrary]:
    lib_dirs = lib_dirs_from_env(environ)
    include = environ.get(INCLUDE_DIR_VAR)
    if not lib_dirs and not include:
        return None
    for key, path in lib_dirs.items():
        logger.info("Using %s=%s", key, path)
    return NativeLibrary(lib_dirs=lib_dirs, include_dir=Path(include) if include else None)


def from_pkg_config(run: Runner = subprocess.run) -> Optional[NativeLibrary]:
    """Ask pkg-config for OpenCV; None when pkg-config or the package is missing."""
    for name in PKG_CONFIG_NAMES:
        try:
            cflags = run(["pkg-config", "--cflags", name], capture_output=True, text=True, check=True).stdout
            libs = run(["pkg-config", "--libs", name], capture_output=True, text=True, check=True).stdout
        except (subprocess.CalledProcessError, FileNotFoundError):
            continue
        includes = [flag[2:] for flag in cflags.split() if flag.startswith("-I")]
        native = NativeLibrary(
            include_dir=Path(includes[0]) if includes else None,
            search_dirs=[Path(flag[2:]) for flag in libs.split() if flag.startswith("-L")],
            libraries=[flag[2:] for flag in libs.split() if flag.startswith("-l")],
        )
        logger.info("Found %s through pkg-config (%d libraries)", name, len(native.libraries))
        return native
    return None


def rename_doubled_prefix(lib_dir: Path) -> List[Path]:
    """Rename ``liblibX.a`` style archives to ``libX.a``.

    Merged third-party libraries come out of OpenCV's build with a doubled
    prefix, which the linker could not resolve as ``-lX``.
    """
    renamed = []
    for path in sorted(lib_dir.iterdir()):
        if not path.name.startswith("liblib"):
            continue
        target = path.with_name(path.name[3:])
        try:
            path.rename(target)
        except OSError as e:
            raise BuildError(f"Unable to rename {path} to {target}: {e}") from e
        logger.debug("Renamed %s -> %s", path.name, target.name)
        renamed.append(target)
    return renamed


def _first_existing(root: Path, candidates) -> Optional[Path]:
    for candidate in candidates:
        path = root / candidate
        if path.is_dir():
            return path
    return None


def build_from_source(
    features: Features,
    out_dir: Path,
    source_dir: Path,
    environ: Optional[Mapping[str, str]] = None,
    run: Runner = subprocess.run,
) -> NativeLibrary:
    """Configure, build and install OpenCV into ``out_dir/opencv``."""
    environ = os.environ if environ is None else environ
    if not (source_dir / "CMakeLists.txt").is_file():
        raise BuildError(
            f"OpenCV source not found at {source_dir}. "
            f"Set {SOURCE_DIR_VAR} or check out OpenCV there."
        )

    install_dir = out_dir / "opencv"
    build_dir = out_dir / "opencv-build"
    try:
        install_dir.mkdir(parents=True, exist_ok=True)
        build_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BuildError(f"Unable to create opencv dir in {out_dir}: {e}") from e

    config = native_build_config(features, source_dir, environ)
    for key in config.tracked_env:
        logger.info("Native build override from %s", key)
    env = dict(environ)
    env.update(config.env)

    configure = [
        "cmake",
        "-S", str(source_dir),
        "-B", str(build_dir),
        f"-DCMAKE_INSTALL_PREFIX={install_dir}",
        "-DCMAKE_BUILD_TYPE=Release",
    ] + config.cmake_args()
    build = [
        "cmake",
        "--build", str(build_dir),
        "--target", "install",
        "--parallel", str(os.cpu_count() or 1),
    ]
    for cmd in (configure, build):
        logger.info("Running %s", " ".join(cmd[:4]))
        try:
            result = run(cmd, env=env, check=False)
        except FileNotFoundError as e:
            raise BuildError("cmake is required to build OpenCV from source") from e
        if result.returncode != 0:
            raise BuildError(f"{' '.join(cmd[:2])} failed with exit status {result.returncode}")

    lib_dir = _first_existing(install_dir, ("lib", "lib64"))
    if lib_dir is None:
        raise BuildError(f"No lib directory in OpenCV install {install_dir}")
    thirdparty = _first_existing(install_dir, THIRDPARTY_LIB_DIRS)
    if thirdparty is None:
        raise BuildError(f"Unable to open 3rdparty lib in {install_dir}")
    rename_doubled_prefix(thirdparty)

    include_dir = install_dir / "include" / "opencv4"
    if not include_dir.is_dir():
        include_dir = install_dir / "include"

    return NativeLibrary(
        lib_dirs={LIB_DIR_VAR: lib_dir, f"{LIB_DIR_VAR}_3RDPARTY": thirdparty},
        include_dir=include_dir,
        built_from_source=True,
    )


def default_source_dir(environ: Mapping[str, str]) -> Path:
    if environ.get(SOURCE_DIR_VAR):
        return Path(environ[SOURCE_DIR_VAR])
    return Path.cwd() / "opencv"


def acquire(
    features: Features,
    out_dir: Path,
    environ: Optional[Mapping[str, str]] = None,
    source_dir: Optional[Path] = None,
    run: Runner = subprocess.run,
) -> NativeLibrary:
    """Find or build OpenCV for ``features``."""
    environ = os.environ if environ is None else environ
    if features.build_opencv:
        source_dir = default_source_dir(environ) if source_dir is None else source_dir
        return build_from_source(features, out_dir, source_dir, environ, run)

    native = from_environment(environ)
    if native is not None:
        return native
    native = from_pkg_config(run)
    if native is not None:
        return native
    logger.warning(
        "No %s/%s set and pkg-config found no OpenCV; relying on default compiler paths",
        LIB_DIR_VAR,
        INCLUDE_DIR_VAR,
    )
    return NativeLibrary()
