"""
Keypoint detection (``cv::features2d``).
"""

from typing import List, NamedTuple, Optional, Tuple

from .context import Context, resolve
from .core import Mat, mat_ptr
from .handle import NativeHandle


class KeyPoint(NamedTuple):
    x: float
    y: float
    size: float
    angle: float
    response: float
    octave: int
    class_id: int


def _take_keypoints(ctx, keypoints) -> List[KeyPoint]:
    try:
        out = []
        for i in range(keypoints.length):
            k = keypoints.keypoints[i]
            out.append(KeyPoint(k.x, k.y, k.size, k.angle, k.response, k.octave, k.classID))
        return out
    finally:
        ctx.lib.KeyPoints_Close(keypoints)


class ORB(NativeHandle):
    """Oriented FAST and rotated BRIEF detector/extractor."""

    _release = "ORB_Close"

    def __init__(
        self,
        n_features: int = 500,
        scale_factor: float = 1.2,
        n_levels: int = 8,
        edge_threshold: int = 31,
        first_level: int = 0,
        wta_k: int = 2,
        score_type: int = 0,
        patch_size: int = 31,
        fast_threshold: int = 20,
        ctx: Optional[Context] = None,
    ):
        ctx = resolve(ctx)
        ctx.require("features2d")
        ptr = ctx.lib.ORB_CreateWithParams(
            n_features,
            scale_factor,
            n_levels,
            edge_threshold,
            first_level,
            wta_k,
            score_type,
            patch_size,
            fast_threshold,
        )
        super().__init__(ctx, ptr)

    def detect(self, img: Mat) -> List[KeyPoint]:
        img_ptr = mat_ptr(img, "img")
        keypoints = self._ctx.lib.ORB_Detect(self.ptr, img_ptr)
        found = _take_keypoints(self._ctx, keypoints)
        self._ctx.check()
        return found

    def detect_and_compute(self, img: Mat, mask: Optional[Mat] = None) -> Tuple[List[KeyPoint], Mat]:
        """Detect keypoints and compute their descriptors (one row per keypoint)."""
        img_ptr = mat_ptr(img, "img")
        ctx = self._ctx
        descriptors = Mat(ctx)
        own_mask = mask is None
        if own_mask:
            mask = Mat(ctx)
        try:
            keypoints = ctx.lib.ORB_DetectAndCompute(self.ptr, img_ptr, mat_ptr(mask, "mask"), descriptors.ptr)
            found = _take_keypoints(ctx, keypoints)
            ctx.check()
        except BaseException:
            descriptors.close()
            raise
        finally:
            if own_mask:
                mask.close()
        return found, descriptors
