"""
Deep neural network inference (``cv::dnn``).
"""

import logging
from enum import IntEnum
from typing import Dict, Iterable, List, Optional, Tuple

from .context import Context, resolve
from .core import Mat, Scalar, Size, mat_ptr
from .errors import UnknownError
from .handle import NativeHandle
from .marshal import MatSlots, StringTable, path_to_cstring, take_cstrings, to_cstring

logger = logging.getLogger(__name__)


class DnnBackend(IntEnum):
    """Backends available for use by DNN"""

    DEFAULT = 0
    HALIDE = 1
    INFERENCE_ENGINE = 2
    OPENCV = 3


class DnnTarget(IntEnum):
    """Targets available for use with DNN"""

    CPU = 0
    OPENCL = 1
    OPENCL_FP16 = 2
    MYRIAD = 3


class Net(NativeHandle):
    """A loaded network.

    Blobs given to ``set_input`` stay referenced by the network until the
    next forward pass, since the native network keeps pointing at them.
    """

    _release = "Net_Close"

    def _on_adopt(self) -> None:
        self._inputs: Dict[str, Mat] = {}

    @classmethod
    def _loaded(cls, ctx: Context, ptr, source) -> "Net":
        ctx.check()
        net = cls._adopt(ctx, ptr)
        if ctx.lib.Net_Empty(net.ptr):
            net.close()
            raise UnknownError(f"network loaded from {source!r} has no layers")
        logger.debug("Loaded network from %s", source)
        return net

    @classmethod
    def read_net(cls, model, config="", ctx: Optional[Context] = None) -> "Net":
        """Reads a network model, supported models are:

        * Caffe (caffemodel, prototxt)
        * Tensorflow (pb, pbtxt)
        * Darknet (weights, cfg)
        * OpenVino (bin, xml)
        * Torch (t7)
        * ONNX (onnx)
        """
        ctx = resolve(ctx)
        ctx.require("dnn")
        c_model = path_to_cstring(ctx, model)
        c_config = path_to_cstring(ctx, config)
        return cls._loaded(ctx, ctx.lib.Net_ReadNet(c_model, c_config), model)

    @classmethod
    def from_caffe(cls, prototxt, model, ctx: Optional[Context] = None) -> "Net":
        """Reads a network model stored in Caffe framework's format."""
        ctx = resolve(ctx)
        ctx.require("dnn")
        c_prototxt = path_to_cstring(ctx, prototxt)
        c_model = path_to_cstring(ctx, model)
        return cls._loaded(ctx, ctx.lib.Net_ReadNetFromCaffe(c_prototxt, c_model), model)

    @classmethod
    def from_tensorflow(cls, model, ctx: Optional[Context] = None) -> "Net":
        """Reads a network model stored in TensorFlow framework's format."""
        ctx = resolve(ctx)
        ctx.require("dnn")
        c_model = path_to_cstring(ctx, model)
        return cls._loaded(ctx, ctx.lib.Net_ReadNetFromTensorflow(c_model), model)

    @classmethod
    def from_onnx(cls, model, ctx: Optional[Context] = None) -> "Net":
        """Reads a network model in ONNX format."""
        ctx = resolve(ctx)
        ctx.require("dnn")
        c_model = path_to_cstring(ctx, model)
        return cls._loaded(ctx, ctx.lib.Net_ReadNetFromONNX(c_model), model)

    def empty(self) -> bool:
        """Returns true if there are no layers in the network."""
        return bool(self._ctx.lib.Net_Empty(self.ptr))

    def set_input(self, blob: Mat, name: str = "") -> None:
        """Sets the new value for the layer output blob."""
        c_name = to_cstring(self._ctx, name)
        self._ctx.lib.Net_SetInput(self.ptr, mat_ptr(blob, "blob"), c_name)
        self._ctx.check()
        self._inputs[name] = blob

    def forward(self, output_name: str = "") -> Mat:
        """Runs forward pass to compute output of layer with name ``output_name``."""
        c_name = to_cstring(self._ctx, output_name)
        ptr = self._ctx.lib.Net_Forward(self.ptr, c_name)
        self._inputs.clear()
        self._ctx.check()
        return Mat._adopt(self._ctx, ptr)

    def forward_multi(self, output_names: Iterable[str]) -> List[Mat]:
        """Runs forward pass for every layer in ``output_names``.

        Returns one independently owned Mat per name, in the same order.
        """
        if isinstance(output_names, str):
            raise TypeError("output_names must be a sequence of layer names, not a single str")
        names = list(output_names)
        with StringTable(self._ctx, names) as c_names, MatSlots(self._ctx, len(names)) as slots:
            self._ctx.lib.Net_ForwardLayers(self.ptr, slots.mats, c_names)
            self._inputs.clear()
            self._ctx.check()
            return slots.adopt_all(Mat._adopt)

    def unconnected_out_layer_names(self) -> List[str]:
        """Names of the layers with unconnected outputs, e.g. YOLO heads."""
        names = self._ctx.ffi.new("CStrings *")
        self._ctx.lib.Net_GetUnconnectedOutLayersNames(self.ptr, names)
        self._ctx.check()
        return take_cstrings(self._ctx, names[0])

    def set_preferable_backend(self, backend: DnnBackend) -> None:
        self._ctx.lib.Net_SetPreferableBackend(self.ptr, int(DnnBackend(backend)))
        self._ctx.check()

    def set_preferable_target(self, target: DnnTarget) -> None:
        self._ctx.lib.Net_SetPreferableTarget(self.ptr, int(DnnTarget(target)))
        self._ctx.check()


def blob_from_image(
    img: Mat,
    scale: float = 1.0,
    size: Size = Size(0, 0),
    mean: Scalar = Scalar(),
    swap_rb: bool = False,
    crop: bool = False,
) -> Mat:
    """Creates 4-dimensional blob from image. Optionally resizes and crops image
    from center, subtract mean values, scales values by scalefactor, swap Blue
    and Red channels.
    """
    img_ptr = mat_ptr(img, "img")
    ctx = img.ctx
    ctx.require("dnn")
    ptr = ctx.lib.Net_BlobFromImage(
        img_ptr,
        scale,
        Size(*size).as_c(ctx),
        Scalar(*mean).as_c(ctx),
        int(swap_rb),
        int(crop),
    )
    ctx.check()
    return Mat._adopt(ctx, ptr)


def get_blob_channel(blob: Mat, image_index: int, channel_index: int) -> Mat:
    """Extracts a single (2d) channel from a 4 dimensional blob structure (this
    might e.g. contain the results of a SSD or YOLO detection, a bones
    structure from pose detection, or a color plane from Colorization)

    The plane is copied out, so it stays valid after ``blob`` is closed.
    """
    blob_ptr = mat_ptr(blob, "blob")
    ctx = blob.ctx
    ctx.require("dnn")
    ptr = ctx.lib.Net_GetBlobChannel(blob_ptr, image_index, channel_index)
    ctx.check()
    return Mat._adopt(ctx, ptr)


def get_blob_size(blob: Mat) -> Tuple[int, int, int, int]:
    """Retrieves the 4 dimensional size information in (N,C,H,W) order"""
    blob_ptr = mat_ptr(blob, "blob")
    ctx = blob.ctx
    ctx.require("dnn")
    size = ctx.lib.Net_GetBlobSize(blob_ptr)
    ctx.check()
    return tuple(int(v) for v in Scalar.from_c(size))
