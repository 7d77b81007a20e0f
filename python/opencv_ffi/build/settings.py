"""
Native build configuration set for building OpenCV from source.

Defines are assembled once, in increasing precedence:

1. hardcoded defaults, which switch off everything this binding does not use
2. values implied by the enabled features
3. generic overrides ``OPENCV_FFI_DEFINE_<NAME>``
4. target overrides ``OPENCV_FFI_DEFINE_<TARGET>_<NAME>``

Build environment variables follow the same scheme with the
``OPENCV_FFI_ENV_`` prefix.
"""

import logging
import os
import sysconfig
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .features import Features

logger = logging.getLogger(__name__)

ON = "ON"
OFF = "OFF"

DEFINE_PREFIX = "OPENCV_FFI_DEFINE_"
ENV_PREFIX = "OPENCV_FFI_ENV_"
TARGET_ENV = "OPENCV_FFI_TARGET"
# Replaced by the OpenCV source dir inside override values
SRC_DIR_PLACEHOLDER = "OPENCV_FFI_SRC_DIR"

DEFAULT_DEFINES: Dict[str, str] = {
    "BUILD_ZLIB": ON,
    "WITH_PNG": OFF,
    "BUILD_PROTOBUF": OFF,
    "WITH_PROTOBUF": OFF,
    "BUILD_TBB": OFF,
    "WITH_TBB": OFF,
    "WITH_1394": OFF,
    "WITH_OPENGL": OFF,
    "WITH_OPENCL": OFF,
    "WITH_V4L": OFF,
    "WITH_LIBV4L": OFF,
    "WITH_GTK": OFF,
    "WITH_GDAL": OFF,
    "WITH_XINE": OFF,
    "WITH_FFMPEG": OFF,
    "WITH_CUDA": OFF,
    "WITH_GSTREAMER": OFF,
    "WITH_IMGCODEC_SUNRASTER": OFF,
    "WITH_IPP": OFF,
    "WITH_ITT": OFF,
    "WITH_JASPER": OFF,
    "WITH_OPENEXR": OFF,
    "WITH_PTHREADS_PF": OFF,
    "WITH_QUIRC": OFF,
    "WITH_TIFF": OFF,
    "WITH_VTK": OFF,
    "WITH_WEBP": OFF,
    "BUILD_opencv_cudabgsegm": OFF,
    "BUILD_opencv_cudalegacy": OFF,
    "BUILD_opencv_cudafilters": OFF,
    "BUILD_opencv_cudastereo": OFF,
    "BUILD_opencv_cudafeatures2d": OFF,
    "BUILD_opencv_cudaoptflow": OFF,
    "BUILD_opencv_cudacodec": OFF,
    "BUILD_opencv_cudaimgproc": OFF,
    "BUILD_opencv_cudawarping": OFF,
    "BUILD_opencv_cudaarithm": OFF,
    "BUILD_opencv_cudaobjdetect": OFF,
    "BUILD_opencv_cudev": OFF,
    "BUILD_opencv_superres": OFF,
    "BUILD_opencv_ts": OFF,
    "BUILD_opencv_videostab": OFF,
    "BUILD_opencv_gapi": OFF,
    "BUILD_opencv_apps": OFF,
    "BUILD_opencv_world": OFF,
    "BUILD_opencv_stitching": OFF,
    "BUILD_opencv_photo": OFF,
    "BUILD_opencv_flann": OFF,
    "BUILD_opencv_video": OFF,
    "BUILD_opencv_videoio": OFF,
    "BUILD_opencv_calib3d": OFF,
    "BUILD_opencv_shape": OFF,
    "BUILD_opencv_ml": OFF,
    "BUILD_opencv_python_bindings_generator": OFF,
    "BUILD_opencv_java_bindings_generator": OFF,
    "INSTALL_C_EXAMPLES": OFF,
    "BUILD_EXAMPLES": OFF,
    "BUILD_PERF_TESTS": OFF,
    "BUILD_TESTS": OFF,
    "BUILD_DOCS": OFF,
    "BUILD_JAVA": OFF,
    "BUILD_IPP_IW": OFF,
    "BUILD_ITT": OFF,
    "BUILD_PACKAGE": OFF,
    "CPACK_BINARY_DEB": OFF,
    "CPACK_BINARY_FREEBSD": OFF,
    "CPACK_BINARY_IFW": OFF,
    "CPACK_BINARY_NSIS": OFF,
    "CPACK_BINARY_RPM": OFF,
    "CPACK_BINARY_STGZ": OFF,
    "CPACK_BINARY_TBZ2": OFF,
    "CPACK_BINARY_TGZ": OFF,
    "CPACK_BINARY_TXZ": OFF,
    "CPACK_BINARY_TZ": OFF,
    "CPACK_SOURCE_RPM": OFF,
    "CPACK_SOURCE_TBZ2": OFF,
    "CPACK_SOURCE_TGZ": OFF,
    "CPACK_SOURCE_TXZ": OFF,
    "CPACK_SOURCE_TZ": OFF,
    "CPACK_SOURCE_ZIP": OFF,
    # libtiff compression schemes
    "ccitt": OFF,
    "logluv": OFF,
    "lzw": OFF,
    "mdi": OFF,
    "next": OFF,
    "old_jpeg": OFF,
    "packbits": OFF,
    "thunder": OFF,
    "opencv_dnn_PERF_CAFFE": OFF,
    "opencv_dnn_PERF_CLCAFFE": OFF,
    # Turned on below for enabled features
    "BUILD_opencv_imgproc": OFF,
    "BUILD_opencv_imgcodecs": OFF,
    "BUILD_opencv_highgui": OFF,
    "BUILD_opencv_objdetect": OFF,
    "BUILD_opencv_dnn": OFF,
    "BUILD_opencv_features2d": OFF,
    "BUILD_opencv_core": ON,
    # Static archives end up inside a Python extension module
    "CMAKE_POSITION_INDEPENDENT_CODE": ON,
}

FEATURE_DEFINES: Dict[str, Dict[str, str]] = {
    "imgproc": {"BUILD_opencv_imgproc": ON},
    "imgcodecs": {"BUILD_opencv_imgcodecs": ON},
    "highgui": {"BUILD_opencv_highgui": ON},
    "objdetect": {"BUILD_opencv_objdetect": ON},
    "dnn": {
        "BUILD_opencv_dnn": ON,
        "BUILD_PROTOBUF": ON,
        "WITH_PROTOBUF": ON,
        "OPENCV_DNN_OPENCL": OFF,
    },
    "features2d": {"BUILD_opencv_features2d": ON},
    "cuda": {"BUILD_opencv_cudaobjdetect": ON},
}

# Applied after every override: the from-source build is always linked statically
FORCED_DEFINES: Dict[str, str] = {"BUILD_SHARED_LIBS": OFF}


def target_name(environ: Optional[Mapping[str, str]] = None) -> str:
    """Normalized platform tag used in target-specific override names, e.g. ``LINUX_X86_64``."""
    environ = os.environ if environ is None else environ
    raw = environ.get(TARGET_ENV) or sysconfig.get_platform()
    return raw.replace("-", "_").replace(".", "_").upper()


@dataclass
class NativeBuildConfig:
    defines: Dict[str, str] = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    # Environment variables that influenced this configuration
    tracked_env: List[str] = field(default_factory=list)

    def cmake_args(self) -> List[str]:
        return [f"-D{key}={value}" for key, value in self.defines.items()]


def native_build_config(
    features: Features,
    source_dir: Path,
    environ: Optional[Mapping[str, str]] = None,
    target: Optional[str] = None,
) -> NativeBuildConfig:
    environ = os.environ if environ is None else environ
    target = target_name(environ) if target is None else target
    define_target = f"{DEFINE_PREFIX}{target}_"
    env_target = f"{ENV_PREFIX}{target}_"

    defines = dict(DEFAULT_DEFINES)
    for module in features.modules():
        defines.update(FEATURE_DEFINES.get(module, {}))

    generic_defines: Dict[str, str] = {}
    target_defines: Dict[str, str] = {}
    generic_env: Dict[str, str] = {}
    target_env: Dict[str, str] = {}
    tracked = []
    for key in sorted(environ):
        value = environ[key].replace(SRC_DIR_PLACEHOLDER, str(source_dir))
        # Target prefixes are checked first since they share the generic prefix
        if key.startswith(define_target):
            target_defines[key[len(define_target):]] = value
        elif key.startswith(DEFINE_PREFIX):
            generic_defines[key[len(DEFINE_PREFIX):]] = value
        elif key.startswith(env_target):
            target_env[key[len(env_target):]] = value
        elif key.startswith(ENV_PREFIX):
            generic_env[key[len(ENV_PREFIX):]] = value
        else:
            continue
        tracked.append(key)

    defines.update(generic_defines)
    defines.update(target_defines)
    defines.update(FORCED_DEFINES)
    for key, value in defines.items():
        logger.debug("Defining %s=%s", key, value)

    env = dict(generic_env)
    env.update(target_env)
    return NativeBuildConfig(defines=defines, env=env, tracked_env=tracked)
