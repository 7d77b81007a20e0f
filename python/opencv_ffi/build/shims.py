"""
Shim sources: the C++ glue compiled into the extension module.
"""

from pathlib import Path
from typing import List, Sequence

from ..errors import BuildError
from .bindgen import bound_modules

SHIM_ROOT = Path(__file__).resolve().parents[1] / "native"
SOURCE_CANDIDATES = ("shim/{}.cpp", "{}.cpp")


def find_source(shim_root: Path, module: str) -> Path:
    candidates = [shim_root / pattern.format(module) for pattern in SOURCE_CANDIDATES]
    for path in candidates:
        if path.is_file():
            return path
    tried = ", ".join(str(p.relative_to(shim_root)) for p in candidates)
    raise BuildError(f"No shim source found for module '{module}' (tried {tried})")


def shim_sources(shim_root: Path, modules: Sequence[str]) -> List[Path]:
    return [find_source(shim_root, m) for m in bound_modules(modules)]
