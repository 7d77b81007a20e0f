"""
Feature toggles: which optional OpenCV modules the extension is built with.
"""

import os
from dataclasses import dataclass
from typing import FrozenSet, List, Mapping, Optional

from ..errors import BuildError

FEATURES_ENV = "OPENCV_FFI_FEATURES"

# Canonical order; binding headers and shim sources follow it
OPTIONAL_MODULES = ("dnn", "features2d", "highgui", "imgcodecs", "imgproc", "objdetect", "cuda")
DEFAULT_FEATURES = ("dnn", "imgcodecs", "imgproc")
BUILD_OPENCV = "build-opencv"


@dataclass(frozen=True)
class Features:
    """Enabled optional modules plus the from-source build toggle."""

    enabled: FrozenSet[str] = frozenset(DEFAULT_FEATURES)
    build_opencv: bool = False

    @classmethod
    def parse(cls, text: str) -> "Features":
        """Parse a comma separated list such as ``"dnn,imgcodecs,build-opencv"``."""
        enabled = set()
        build_opencv = False
        for name in (part.strip() for part in text.split(",")):
            if not name:
                continue
            if name == "all":
                enabled.update(OPTIONAL_MODULES)
            elif name == BUILD_OPENCV:
                build_opencv = True
            elif name == "core":
                continue
            elif name in OPTIONAL_MODULES:
                enabled.add(name)
            else:
                raise BuildError(
                    f"Unknown feature '{name}'. Known features: "
                    f"{', '.join(OPTIONAL_MODULES + ('all', BUILD_OPENCV))}"
                )
        return cls(frozenset(enabled), build_opencv)

    @classmethod
    def resolve(cls, cli: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> "Features":
        """CLI value first, then ``OPENCV_FFI_FEATURES``, then the defaults."""
        if cli is not None:
            return cls.parse(cli)
        environ = os.environ if environ is None else environ
        text = environ.get(FEATURES_ENV, "").strip()
        if text:
            return cls.parse(text)
        return cls()

    def modules(self) -> List[str]:
        """``core`` followed by every enabled optional module."""
        return ["core"] + [m for m in OPTIONAL_MODULES if m in self.enabled]

    def __str__(self) -> str:
        names = self.modules()
        if self.build_opencv:
            names.append(BUILD_OPENCV)
        return ",".join(names)
