import numpy as np
import sys
import os

# Add the local python directory to sys.path to find the opencv_ffi package
sys.path.append(os.path.join(os.getcwd(), 'python'))

import opencv_ffi as cv
from opencv_ffi import dnn, imgproc

try:
    ctx = cv.default_context()
    print(f"opencv_ffi loaded, OpenCV {ctx.version}")
except ImportError as e:
    print(f"Error loading opencv_ffi: {e}")
    print("Build the extension first: python -m opencv_ffi.build --features dnn,imgcodecs,imgproc")
    sys.exit(1)


def main():
    if len(sys.argv) < 2:
        print("usage: dnn_demo.py MODEL.onnx [IMAGE]")
        sys.exit(2)
    model = sys.argv[1]

    if len(sys.argv) > 2:
        img = cv.imgcodecs.imread(sys.argv[2])
    else:
        # Dummy BGR frame
        img = cv.Mat.from_numpy(np.random.randint(0, 255, (480, 640, 3), dtype=np.uint8))
    print(f"  Input image shape: {img.shape}")

    print("\n1. Loading network...")
    net = dnn.Net.read_net(model)
    net.set_preferable_backend(dnn.DnnBackend.OPENCV)
    net.set_preferable_target(dnn.DnnTarget.CPU)
    outputs = net.unconnected_out_layer_names()
    print(f"  Output layers: {outputs}")

    print("\n2. Preparing blob...")
    small = imgproc.resize(img, cv.Size(416, 416))
    blob = dnn.blob_from_image(small, 1 / 255.0, cv.Size(416, 416), cv.Scalar(), swap_rb=True)
    print(f"  Blob size (N, C, H, W): {dnn.get_blob_size(blob)}")

    print("\n3. Forward pass...")
    net.set_input(blob)
    for name, out in zip(outputs, net.forward_multi(outputs)):
        print(f"  {name}: shape={out.shape}, type={out.mat_type.name}")
        out.close()

    print("\nDone.")


if __name__ == "__main__":
    main()
