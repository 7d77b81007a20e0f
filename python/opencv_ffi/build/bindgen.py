"""
Binding generator.

Collects one shim header per enabled module, reduces each to the plain C
declarations cffi's ``cdef`` understands and writes them to a single
``opencv_sys.h`` in the build output directory. The file is only rewritten
when its inputs changed, so repeated builds stay incremental.
"""

import logging
import os
from pathlib import Path
from typing import List, Sequence, Tuple

from ..errors import BuildError

logger = logging.getLogger(__name__)

HEADER_CANDIDATES = ("shim/{}.h", "shim/{}_shim.h", "{}.h")
BINDINGS_FILE = "opencv_sys.h"
# Always bound, whatever features are enabled
IMPLICIT_MODULES = ("version",)
STAMP_PREFIX = "// opencv-ffi bindings: "


def find_header(shim_root: Path, module: str) -> Path:
    candidates = [shim_root / pattern.format(module) for pattern in HEADER_CANDIDATES]
    for path in candidates:
        if path.is_file():
            return path
    tried = ", ".join(str(p.relative_to(shim_root)) for p in candidates)
    raise BuildError(f"No header found for module '{module}' (tried {tried})")


def bound_modules(modules: Sequence[str]) -> List[str]:
    return list(modules) + [m for m in IMPLICIT_MODULES if m not in modules]


def header_paths(shim_root: Path, modules: Sequence[str]) -> List[Path]:
    """One header per module plus the implicit ``version`` header, in order."""
    return [find_header(shim_root, m) for m in bound_modules(modules)]


def _c_branch(expr: str) -> bool:
    """Whether an #if/#elif expression holds when compiling plain C."""
    if "__cplusplus" not in expr:
        return True
    return expr.lstrip().startswith("!")


def _directive(line: str) -> Tuple[str, str]:
    body = line.strip()[1:].strip()
    name, _, rest = body.partition(" ")
    return name, rest.strip()


def header_to_cdef(text: str) -> str:
    """Strip a shim header down to declarations for ``FFI.cdef``.

    Branches guarded by ``__cplusplus`` are resolved as if compiling C.
    Any other conditional (include guards, mostly) is treated as true.
    """
    # Each entry: (branch is active, any branch of this group already taken)
    stack: List[Tuple[bool, bool]] = []
    out: List[str] = []
    lines = text.replace("\\\n", " ").splitlines()

    def active() -> bool:
        return all(state for state, _ in stack)

    for lineno, line in enumerate(lines, 1):
        if not line.lstrip().startswith("#"):
            if active():
                out.append(line.rstrip())
            continue

        name, rest = _directive(line)
        if name == "ifdef":
            state = rest != "__cplusplus"
            stack.append((state, state))
        elif name == "ifndef":
            state = True
            stack.append((state, state))
        elif name == "if":
            state = _c_branch(rest)
            stack.append((state, state))
        elif name == "elif":
            if not stack:
                raise BuildError(f"#elif without #if on line {lineno}")
            _, taken = stack.pop()
            state = not taken and _c_branch(rest)
            stack.append((state, taken or state))
        elif name == "else":
            if not stack:
                raise BuildError(f"#else without #if on line {lineno}")
            _, taken = stack.pop()
            stack.append((not taken, True))
        elif name == "endif":
            if not stack:
                raise BuildError(f"Unbalanced #endif on line {lineno}")
            stack.pop()
        # include, define, pragma and friends never reach the cdef

    if stack:
        raise BuildError("Unterminated conditional block in header")

    collapsed: List[str] = []
    for line in out:
        if not line and (not collapsed or not collapsed[-1]):
            continue
        collapsed.append(line)
    return "\n".join(collapsed).strip() + "\n"


def _stamp(shim_root: Path, headers: Sequence[Path]) -> str:
    return STAMP_PREFIX + " ".join(str(h.relative_to(shim_root)) for h in headers)


def _is_stale(out_file: Path, stamp: str, headers: Sequence[Path]) -> bool:
    if not out_file.is_file():
        return True
    with open(out_file, "r", encoding="utf-8") as f:
        if f.readline().rstrip("\n") != stamp:
            return True
    built = out_file.stat().st_mtime
    return any(h.stat().st_mtime > built for h in headers)


def generate_bindings(out_dir: Path, modules: Sequence[str], shim_root: Path) -> Tuple[Path, bool]:
    """Write ``opencv_sys.h`` for ``modules`` into ``out_dir``.

    Returns the output path and whether the file was (re)generated.
    """
    headers = header_paths(shim_root, modules)
    out_file = out_dir / BINDINGS_FILE
    stamp = _stamp(shim_root, headers)
    if not _is_stale(out_file, stamp, headers):
        logger.info("Bindings up to date: %s", out_file)
        return out_file, False

    parts = [stamp]
    for header in headers:
        logger.debug("Binding %s", header)
        parts.append(f"// {header.name}")
        parts.append(header_to_cdef(header.read_text(encoding="utf-8")))

    tmp = out_file.with_suffix(".h.tmp")
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        tmp.write_text("\n".join(parts), encoding="utf-8")
        os.replace(tmp, out_file)
    except OSError as e:
        raise BuildError(f"Unable to write bindings to {out_file}: {e}") from e
    logger.info("Generated %s from %d headers", out_file, len(headers))
    return out_file, True


def read_cdef(bindings: Path) -> str:
    """Bindings file contents without the stamp line, ready for ``FFI.cdef``."""
    text = bindings.read_text(encoding="utf-8")
    return "\n".join(line for line in text.splitlines() if not line.startswith("//")) + "\n"
