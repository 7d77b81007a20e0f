"""Shared fixtures: a Python stand-in for the compiled shim library.

The ``ffi`` object is real: it is built from the bindings generated out of
the shipped shim headers, so every struct, array and string that crosses
the boundary is marshaled exactly as it would be for the extension. Only
the functions behind ``lib`` are faked.
"""

import os
import sys
from collections import Counter

import cffi
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from opencv_ffi.build.bindgen import generate_bindings, read_cdef
from opencv_ffi.build.features import OPTIONAL_MODULES
from opencv_ffi.build.shims import SHIM_ROOT
from opencv_ffi.context import Context, set_default_context

FAKE_VERSION = b"4.5.4"
FREED_FILL = 0xCD

_DTYPES = {
    0: np.uint8,
    1: np.int8,
    2: np.uint16,
    3: np.int16,
    4: np.int32,
    5: np.float32,
    6: np.float64,
}


def _dtype(mat_type):
    return np.dtype(_DTYPES.get(mat_type & 7, np.uint8))


class FakeMat:
    """``array`` is (rows, cols, channels) for 2-D mats, the raw sizes otherwise."""

    def __init__(self, array=None, mat_type=0, dims=2, continuous=True):
        self.array = array
        self.mat_type = mat_type
        self.dims = dims
        self.continuous = continuous
        self.pinned = None

    def empty(self):
        return self.array is None or self.array.size == 0


class FakeNet:
    def __init__(self, source, layers):
        self.source = source
        self.layers = layers
        self.inputs = {}
        self.backend = None
        self.target = None


class FakeCascade:
    def __init__(self):
        self.path = None


class FakeORB:
    def __init__(self, params):
        self.params = params


class FakeGpuMat:
    def __init__(self):
        self.array = None


class FakeOpenCV:
    """Records calls and releases; hands out opaque addresses as handles."""

    def __init__(self, ffi):
        self.ffi = ffi
        self.objects = {}
        self.released = Counter()
        self.calls = []
        self.failures = {}
        self.windows = {}
        self.window_closes = Counter()
        self.forward_fill = None
        self._keep = {}
        self._error = None
        self._next = 0x1000

    # -- helpers used by the tests --

    def fail_on(self, name, message):
        self.failures[name] = message

    def addr(self, ptr):
        return int(self.ffi.cast("intptr_t", ptr))

    def get(self, ptr):
        return self.objects[self.addr(ptr)]

    def live(self, kind):
        return [obj for obj in self.objects.values() if isinstance(obj, kind)]

    def kept(self):
        """Natively allocated buffers not yet handed back."""
        return len(self._keep)

    # -- internals --

    def _new(self, obj):
        addr = self._next
        self._next += 0x10
        self.objects[addr] = obj
        return self.ffi.cast("void *", addr)

    def _free(self, ptr):
        addr = self.addr(ptr)
        self.released[addr] += 1
        self.objects.pop(addr, None)

    def _fails(self, name):
        message = self.failures.get(name)
        if message is None:
            return False
        self._error = self.ffi.new("char[]", message.encode())
        return True

    def _str(self, cstr):
        return self.ffi.string(cstr).decode("utf-8")

    def _keep_struct(self, ctype, pointer, storage, **fields):
        struct = self.ffi.new(ctype + " *", fields)
        self._keep[self.addr(pointer)] = (storage, struct)
        return struct[0]

    def _release_kept(self, pointer):
        self._keep.pop(self.addr(pointer), None)

    def _mat(self, array, mat_type, dims=2, continuous=True):
        return self._new(FakeMat(array, mat_type, dims, continuous))

    def _scribble(self, mat):
        """Overwrite freed pixels no live Mat still refers to."""
        array = mat.array
        if array is None or array.size == 0 or not array.flags.writeable:
            return
        for other in self.live(FakeMat):
            if other.array is not None and np.shares_memory(array, other.array):
                return
        array.fill(FREED_FILL)

    # -- core --

    def Error_Last(self):
        if self._error is None:
            return self.ffi.NULL
        return self.ffi.cast("const char *", self._error)

    def Error_Clear(self):
        self._error = None

    def openCVVersion(self):
        self._version = self.ffi.new("char[]", FAKE_VERSION)
        return self.ffi.cast("const char *", self._version)

    def Mat_New(self):
        if self._fails("Mat_New"):
            return self.ffi.NULL
        return self._new(FakeMat())

    def Mat_NewWithSize(self, rows, cols, mat_type):
        channels = 1 + (mat_type >> 3)
        return self._mat(np.zeros((rows, cols, channels), dtype=_dtype(mat_type)), mat_type)

    def Mat_NewFromBytes(self, rows, cols, mat_type, buf):
        channels = 1 + (mat_type >> 3)
        raw = self.ffi.buffer(buf.data, buf.length)[:]
        array = np.frombuffer(raw, dtype=_dtype(mat_type)).reshape(rows, cols, channels).copy()
        return self._mat(array, mat_type)

    def Mat_Clone(self, m):
        src = self.get(m)
        array = None if src.array is None else src.array.copy()
        return self._mat(array, src.mat_type, src.dims)

    def Mat_Region(self, m, r):
        src = self.get(m)
        view = src.array[r.y:r.y + r.height, r.x:r.x + r.width]
        return self._mat(view, src.mat_type, continuous=False)

    def Mat_Close(self, m):
        mat = self.objects.get(self.addr(m))
        self._free(m)
        if isinstance(mat, FakeMat):
            self._scribble(mat)

    def Mat_Empty(self, m):
        return int(self.get(m).empty())

    def Mat_Rows(self, m):
        mat = self.get(m)
        if mat.empty():
            return 0
        return mat.array.shape[0] if mat.dims == 2 else -1

    def Mat_Cols(self, m):
        mat = self.get(m)
        if mat.empty():
            return 0
        return mat.array.shape[1] if mat.dims == 2 else -1

    def Mat_Channels(self, m):
        return 1 + (self.get(m).mat_type >> 3)

    def Mat_Type(self, m):
        return self.get(m).mat_type

    def Mat_IsContinuous(self, m):
        return int(self.get(m).continuous)

    def Mat_Dims(self, m):
        mat = self.get(m)
        return 0 if mat.empty() else mat.dims

    def Mat_SizeAt(self, m, i):
        return self.get(m).array.shape[i]

    def Mat_Total(self, m):
        mat = self.get(m)
        if mat.empty():
            return 0
        shape = mat.array.shape[:2] if mat.dims == 2 else mat.array.shape
        return int(np.prod(shape))

    def Mat_DataPtr(self, m):
        mat = self.get(m)
        mat.array = np.ascontiguousarray(mat.array)
        mat.pinned = self.ffi.from_buffer("char[]", mat.array)
        mat.data_ptr = self.ffi.new("ByteArray *", {"data": mat.pinned, "length": mat.array.nbytes})
        return mat.data_ptr[0]

    def Rects_Close(self, rs):
        self._release_kept(rs.rects)

    def CStrings_Close(self, cstrs):
        self.calls.append(("CStrings_Close", cstrs.length))
        self._release_kept(cstrs.strs)

    def ByteArray_Release(self, buf):
        self._release_kept(buf.data)

    # -- dnn --

    def _read_net(self, name, source):
        if self._fails(name):
            return self.ffi.NULL
        layers = [] if "empty" in source else ["conv1", "relu1", "prob"]
        self.calls.append((name, source))
        return self._new(FakeNet(source, layers))

    def Net_ReadNet(self, model, config):
        return self._read_net("Net_ReadNet", self._str(model))

    def Net_ReadNetFromCaffe(self, prototxt, model):
        return self._read_net("Net_ReadNetFromCaffe", self._str(model))

    def Net_ReadNetFromTensorflow(self, model):
        return self._read_net("Net_ReadNetFromTensorflow", self._str(model))

    def Net_ReadNetFromONNX(self, model):
        return self._read_net("Net_ReadNetFromONNX", self._str(model))

    def Net_Close(self, net):
        self._free(net)

    def Net_Empty(self, net):
        return int(not self.get(net).layers)

    def Net_SetInput(self, net, blob, name):
        self.get(net).inputs[self._str(name)] = self.addr(blob)

    def Net_Forward(self, net, output_name):
        if self._fails("Net_Forward"):
            return self.ffi.NULL
        layer = self._str(output_name) or self.get(net).layers[-1]
        self.calls.append(("Net_Forward", layer))
        return self._mat(np.full((1, len(layer), 1), len(layer), dtype=np.float32), 5)

    def Net_ForwardLayers(self, net, output_blobs, out_blob_names):
        names = [self._str(out_blob_names.strs[i]) for i in range(out_blob_names.length)]
        self.calls.append(("Net_ForwardLayers", names))
        count = min(output_blobs.length, len(names))
        if self.forward_fill is not None:
            count = min(count, self.forward_fill)
        for i in range(count):
            output_blobs.mats[i] = self._mat(np.full((1, 1, 1), i, dtype=np.float32), 5)
        self._fails("Net_ForwardLayers")

    def Net_GetUnconnectedOutLayersNames(self, net, names):
        buffers = [self.ffi.new("char[]", layer.encode()) for layer in self.get(net).layers[-1:]]
        table = self.ffi.new("const char *[]", buffers)
        self._keep[self.addr(table)] = (buffers, table)
        names.strs = table
        names.length = len(buffers)

    def Net_SetPreferableBackend(self, net, backend):
        self.get(net).backend = backend

    def Net_SetPreferableTarget(self, net, target):
        self.get(net).target = target

    def Net_BlobFromImage(self, image, scalefactor, size, mean, swap_rb, crop):
        img = self.get(image)
        self.calls.append(("Net_BlobFromImage", scalefactor, (size.width, size.height), mean.val1, swap_rb, crop))
        height = size.height or img.array.shape[0]
        width = size.width or img.array.shape[1]
        channels = img.array.shape[2]
        values = np.arange(channels * height * width, dtype=np.float32)
        return self._mat(values.reshape(1, channels, height, width), 5, dims=4)

    def Net_GetBlobChannel(self, blob, imgidx, chnidx):
        # the shim clones the plane out of the blob
        plane = self.get(blob).array[imgidx, chnidx]
        return self._mat(plane.reshape(plane.shape + (1,)).copy(), 5)

    def Net_GetBlobSize(self, blob):
        shape = self.get(blob).array.shape
        self._scalar = self.ffi.new("Scalar *", tuple(float(v) for v in shape))
        return self._scalar[0]

    # -- imgcodecs --

    def Image_IMRead(self, filename, flags):
        path = self._str(filename)
        self.calls.append(("Image_IMRead", path, flags))
        with open(path, "rb") as f:
            content = f.read()
        if not content.startswith(b"FAKEIMG"):
            return self._new(FakeMat())
        return self._mat(np.full((2, 3, 3), 7, dtype=np.uint8), 16)

    def Image_IMWrite(self, filename, img):
        if self._fails("Image_IMWrite"):
            return 0
        with open(self._str(filename), "wb") as f:
            f.write(b"FAKEIMG")
        return 1

    def Image_IMEncode(self, ext, img):
        payload = self._str(ext).encode() + self.get(img).array.tobytes()
        data = self.ffi.new("char[]", payload)
        return self._keep_struct("ByteArray", data, data, data=data, length=len(payload))

    def Image_IMDecode(self, buf, flags):
        raw = self.ffi.buffer(buf.data, buf.length)[:]
        if not raw.startswith(b"."):
            return self._new(FakeMat())
        return self._mat(np.zeros((1, 1, 3), dtype=np.uint8), 16)

    # -- imgproc --

    def CvtColor(self, src, dst, code):
        array = self.get(src).array
        if code == 6:
            gray = array.mean(axis=2, keepdims=True).astype(np.uint8)
            self.get(dst).array, self.get(dst).mat_type = gray, 0
        else:
            self.get(dst).array, self.get(dst).mat_type = array.copy(), self.get(src).mat_type

    def Resize(self, src, dst, sz, fx, fy, interp):
        source = self.get(src)
        rows, cols = sz.height, sz.width
        if not rows or not cols:
            rows = int(round(source.array.shape[0] * fy))
            cols = int(round(source.array.shape[1] * fx))
        out = np.zeros((rows, cols, source.array.shape[2]), dtype=source.array.dtype)
        self.get(dst).array, self.get(dst).mat_type = out, source.mat_type

    def GaussianBlur(self, src, dst, ps, sx, sy, bt):
        if ps.width % 2 == 0 or ps.height % 2 == 0:
            self._error = self.ffi.new("char[]", b"ksize.width > 0 && ksize.width % 2 == 1")
            return
        source = self.get(src)
        self.get(dst).array, self.get(dst).mat_type = source.array.copy(), source.mat_type

    def Rectangle(self, img, r, color, thickness):
        self.calls.append(("Rectangle", (r.x, r.y, r.width, r.height), color.val1, thickness))

    def PutText(self, img, text, org, font_face, font_scale, color, thickness):
        self.calls.append(("PutText", self._str(text), (org.x, org.y), font_face))

    # -- objdetect --

    def CascadeClassifier_New(self):
        return self._new(FakeCascade())

    def CascadeClassifier_Close(self, cs):
        self._free(cs)

    def CascadeClassifier_Load(self, cs, name):
        path = self._str(name)
        if not (path.endswith(".xml") and os.path.exists(path)):
            self._error = self.ffi.new("char[]", b"Can't open file")
            return 0
        self.get(cs).path = path
        return 1

    def CascadeClassifier_DetectMultiScaleWithParams(self, cs, img, scale, min_neighbors, flags, min_size, max_size):
        self.calls.append(("DetectMultiScale", scale, min_neighbors, (min_size.width, min_size.height)))
        rects = self.ffi.new("Rect[]", [(1, 2, 3, 4), (5, 6, 7, 8)])
        return self._keep_struct("Rects", rects, rects, rects=rects, length=2)

    # -- features2d --

    def ORB_Create(self):
        return self._new(FakeORB(()))

    def ORB_CreateWithParams(self, *params):
        return self._new(FakeORB(params))

    def ORB_Close(self, o):
        self._free(o)

    def _keypoints(self):
        points = self.ffi.new("KeyPoint[]", [(1.0, 2.0, 31.0, 90.0, 0.5, 0, -1), (3.0, 4.0, 31.0, 45.0, 0.25, 1, -1)])
        return self._keep_struct("KeyPoints", points, points, keypoints=points, length=2)

    def ORB_Detect(self, o, src):
        return self._keypoints()

    def ORB_DetectAndCompute(self, o, src, mask, desc):
        self.calls.append(("ORB_DetectAndCompute", self.get(mask).empty()))
        descriptors = self.get(desc)
        descriptors.array, descriptors.mat_type = np.ones((2, 32, 1), dtype=np.uint8), 0
        return self._keypoints()

    def KeyPoints_Close(self, ks):
        self._release_kept(ks.keypoints)

    # -- highgui --

    def Window_New(self, winname, flags):
        self.windows[self._str(winname)] = flags

    def Window_Close(self, winname):
        name = self._str(winname)
        self.window_closes[name] += 1
        self.windows.pop(name, None)

    def Window_IMShow(self, winname, mat):
        self.calls.append(("Window_IMShow", self._str(winname), self.addr(mat)))

    def Window_WaitKey(self, delay):
        return -1

    # -- cuda --

    def GpuMat_New(self):
        return self._new(FakeGpuMat())

    def GpuMat_Close(self, m):
        self._free(m)

    def GpuMat_Upload(self, m, data):
        self.get(m).array = self.get(data).array.copy()
        self._upload_type = self.get(data).mat_type

    def GpuMat_Download(self, m, dst):
        gpu = self.get(m)
        if gpu.array is None:
            self._error = self.ffi.new("char[]", b"GpuMat is empty")
            return
        self.get(dst).array, self.get(dst).mat_type = gpu.array.copy(), self._upload_type

    def GpuMat_Empty(self, m):
        return int(self.get(m).array is None)

    def GetCudaEnabledDeviceCount(self):
        return 0


@pytest.fixture(scope="session")
def ffi(tmp_path_factory):
    """A real FFI declared from the bindings of every shim module."""
    out_dir = tmp_path_factory.mktemp("bindings")
    bindings, _ = generate_bindings(out_dir, ["core", *OPTIONAL_MODULES], SHIM_ROOT)
    ffi = cffi.FFI()
    ffi.cdef(read_cdef(bindings))
    return ffi


@pytest.fixture
def lib(ffi):
    return FakeOpenCV(ffi)


@pytest.fixture
def ctx(ffi, lib):
    """Context over the fake library, also installed as the default."""
    context = Context(ffi, lib)
    set_default_context(context)
    yield context.initialize()
    set_default_context(None)
