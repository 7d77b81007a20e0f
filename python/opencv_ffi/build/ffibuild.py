"""
cffi builder for the ``opencv_ffi._opencv_sys`` extension module.

All shim sources are compiled together as C++11 into one extension, linked
against the OpenCV libraries found by ``acquire``.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional

import cffi

from ..errors import BuildError
from .acquire import NativeLibrary
from .bindgen import generate_bindings, header_paths, read_cdef
from .features import Features
from .link import link_directives, to_extension_kwargs
from .shims import SHIM_ROOT, shim_sources

logger = logging.getLogger(__name__)

MODULE_NAME = "opencv_ffi._opencv_sys"
PACKAGE_DIR = Path(__file__).resolve().parents[1]


def make_builder(
    features: Features,
    native: NativeLibrary,
    out_dir: Path,
    shim_root: Path = SHIM_ROOT,
) -> cffi.FFI:
    modules = features.modules()
    bindings, _ = generate_bindings(out_dir, modules, shim_root)
    headers = header_paths(shim_root, modules)
    sources = shim_sources(shim_root, modules)

    include_dirs = [str(shim_root / "shim"), str(shim_root)]
    if native.include_dir is not None:
        include_dirs.append(str(native.include_dir))
    for include in include_dirs:
        logger.debug("Including dir %s", include)

    link_kwargs = to_extension_kwargs(
        link_directives(native.lib_dirs),
        extra_libraries=native.libraries,
        extra_dirs=native.search_dirs,
    )
    logger.debug("Link settings: %s", link_kwargs)

    ffibuilder = cffi.FFI()
    ffibuilder.cdef(read_cdef(bindings))
    ffibuilder.set_source(
        MODULE_NAME,
        "\n".join(f'#include "{h.name}"' for h in headers),
        sources=[str(s) for s in sources],
        include_dirs=include_dirs,
        source_extension=".cpp",
        extra_compile_args=["-std=c++11", "-w"],
        **link_kwargs,
    )
    return ffibuilder


def build_extension(
    features: Features,
    native: NativeLibrary,
    out_dir: Path,
    shim_root: Path = SHIM_ROOT,
    dest: Optional[Path] = None,
    verbose: bool = False,
) -> Path:
    """Compile the extension in ``out_dir`` and install it into ``dest``.

    ``dest`` defaults to the ``opencv_ffi`` package directory so the module
    is importable right away.
    """
    ffibuilder = make_builder(features, native, out_dir, shim_root)
    logger.info("Compiling %s with modules: %s", MODULE_NAME, ", ".join(features.modules()))
    try:
        built = Path(ffibuilder.compile(tmpdir=str(out_dir), verbose=verbose))
    except (cffi.VerificationError, OSError) as e:
        raise BuildError(f"Compiling {MODULE_NAME} failed: {e}") from e

    dest = PACKAGE_DIR if dest is None else dest
    target = dest / built.name
    if target.resolve() != built.resolve():
        try:
            dest.mkdir(parents=True, exist_ok=True)
            shutil.copy2(built, target)
        except OSError as e:
            raise BuildError(f"Unable to install {built.name} into {dest}: {e}") from e
    logger.info("Built %s", target)
    return target
