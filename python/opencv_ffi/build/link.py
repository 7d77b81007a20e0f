"""
Linker configuration.

Every declared OpenCV library directory is scanned and each library file
in it becomes a link directive: shared objects are linked dynamically,
archives statically.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

SEARCH = "search"
DYLIB = "dylib"
STATIC = "static"


@dataclass(frozen=True)
class LinkDirective:
    kind: str
    value: str


def library_directive(filename: str) -> Optional[LinkDirective]:
    """``libX.so`` -> dynamic ``X``, ``libX.a`` -> static ``X``, else None."""
    if not filename.startswith("lib"):
        return None
    if filename.endswith(".so"):
        return LinkDirective(DYLIB, filename[3:-3])
    if filename.endswith(".a"):
        return LinkDirective(STATIC, filename[3:-2])
    return None


def directives_for_dir(path: Path) -> List[LinkDirective]:
    directives = []
    for entry in sorted(path.iterdir()):
        if not entry.is_file():
            continue
        directive = library_directive(entry.name)
        if directive is not None:
            directives.append(directive)
    return directives


def link_directives(lib_dirs: Mapping[str, Path]) -> List[LinkDirective]:
    directives = []
    for var in sorted(lib_dirs):
        path = lib_dirs[var]
        directives.append(LinkDirective(SEARCH, str(path)))
        try:
            directives.extend(directives_for_dir(path))
        except OSError as e:
            logger.warning("Unable to read dir %s! %s", path, e)
    return directives


def to_extension_kwargs(
    directives: Sequence[LinkDirective],
    extra_libraries: Sequence[str] = (),
    extra_dirs: Sequence[Path] = (),
) -> Dict[str, List[str]]:
    """Convert directives into ``library_dirs``/``libraries``/``extra_link_args``.

    Static archives are grouped so their mutual references resolve in any
    order; linking switches back to dynamic mode afterwards.
    """
    library_dirs = [d.value for d in directives if d.kind == SEARCH]
    library_dirs += [str(d) for d in extra_dirs if str(d) not in library_dirs]
    libraries = [d.value for d in directives if d.kind == DYLIB]
    libraries += [lib for lib in extra_libraries if lib not in libraries]

    static = [d.value for d in directives if d.kind == STATIC]
    extra_link_args = []
    if static:
        extra_link_args = ["-Wl,-Bstatic", "-Wl,--start-group"]
        extra_link_args += [f"-l{name}" for name in static]
        extra_link_args += ["-Wl,--end-group", "-Wl,-Bdynamic"]
    return {
        "library_dirs": library_dirs,
        "libraries": libraries,
        "extra_link_args": extra_link_args,
    }
