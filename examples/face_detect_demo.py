import sys
import os

# Add the local python directory to sys.path to find the opencv_ffi package
sys.path.append(os.path.join(os.getcwd(), 'python'))

import opencv_ffi as cv
from opencv_ffi import highgui, imgcodecs, imgproc
from opencv_ffi.objdetect import CascadeClassifier


def main():
    if len(sys.argv) < 3:
        print("usage: face_detect_demo.py haarcascade.xml IMAGE [OUT.png]")
        sys.exit(2)
    cascade_path, image_path = sys.argv[1], sys.argv[2]

    try:
        classifier = CascadeClassifier.from_file(cascade_path)
    except ImportError as e:
        print(f"Error loading opencv_ffi: {e}")
        print("Build with: python -m opencv_ffi.build --features imgcodecs,imgproc,objdetect,highgui")
        sys.exit(1)
    except cv.InvalidCascadeModel as e:
        print(e)
        sys.exit(1)

    img = imgcodecs.imread(image_path)
    gray = imgproc.cvt_color(img, imgproc.ColorConversion.BGR2GRAY)
    faces = classifier.detect_multi_scale(gray, scale=1.1, min_neighbors=5, min_size=cv.Size(30, 30))
    print(f"Detected {len(faces)} faces")

    for i, face in enumerate(faces):
        imgproc.rectangle(img, face, cv.Scalar(0, 255, 0), thickness=2)
        imgproc.put_text(img, f"face {i}", (face.x, face.y - 4), font_scale=0.5, color=cv.Scalar(0, 255, 0))

    if len(sys.argv) > 3:
        imgcodecs.imwrite(sys.argv[3], img)
        print(f"Saved {sys.argv[3]}")
    elif img.ctx.has("highgui"):
        with highgui.Window("faces") as window:
            window.show(img)
            highgui.wait_key(0)


if __name__ == "__main__":
    main()
