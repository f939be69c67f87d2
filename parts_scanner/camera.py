import logging
import time
from typing import Callable, Optional

from PIL import Image
from PyQt6 import QtGui
from PyQt6.QtMultimedia import QCamera, QMediaCaptureSession, QMediaDevices, QVideoFrame, QVideoSink
from PyQt6.QtMultimediaWidgets import QVideoWidget

from .decoding import decode_first
from .session import CAMERA_START_FAILED, CameraUnavailable

logger = logging.getLogger(__name__)


def qimage_to_pil(image: QtGui.QImage) -> Image.Image:
    gray = image.convertToFormat(QtGui.QImage.Format.Format_Grayscale8)
    ptr = gray.constBits()
    ptr.setsize(gray.sizeInBytes())
    return Image.frombuffer(
        "L", (gray.width(), gray.height()), bytes(ptr), "raw", "L", gray.bytesPerLine(), 1
    )


class QtCameraDecoder:
    """
    Camera-backed code reader.

    Frames from the capture session are shown in ``viewfinder`` (when given)
    and sampled every ``interval_ms`` for a barcode or QR code.
    """

    def __init__(self, device_id: str = "", interval_ms: int = 100, viewfinder: Optional[QVideoWidget] = None):
        self.device_id = device_id
        self.interval = max(0, interval_ms) / 1000.0
        self.viewfinder = viewfinder
        self._camera: Optional[QCamera] = None
        self._capture: Optional[QMediaCaptureSession] = None
        self._sink: Optional[QVideoSink] = None
        self._on_decoded: Optional[Callable[[str], None]] = None
        self._on_error: Optional[Callable[[str], None]] = None
        self._last_sample = 0.0

    def start(self, on_decoded: Callable[[str], None], on_error: Callable[[str], None]) -> None:
        if self._camera is not None:
            raise CameraUnavailable("Camera is already running.")
        device = self._select_device()
        self._on_decoded = on_decoded
        self._on_error = on_error

        self._camera = QCamera(device)
        self._camera.errorOccurred.connect(self._handle_error)
        self._capture = QMediaCaptureSession()
        self._capture.setCamera(self._camera)
        if self.viewfinder is not None:
            self._capture.setVideoOutput(self.viewfinder)
            self._sink = self.viewfinder.videoSink()
        else:
            self._sink = QVideoSink()
            self._capture.setVideoSink(self._sink)
        self._sink.videoFrameChanged.connect(self._handle_frame)
        self._camera.start()
        if self._camera.error() != QCamera.Error.NoError:
            message = self._camera.errorString() or CAMERA_START_FAILED
            self.stop()
            raise CameraUnavailable(message)
        logger.info("Camera %s started", device.description())

    def stop(self) -> None:
        if self._camera is None:
            return
        # PyQt raises TypeError for a slot that is no longer connected
        for signal, slot in (
            (self._sink.videoFrameChanged, self._handle_frame),
            (self._camera.errorOccurred, self._handle_error),
        ):
            try:
                signal.disconnect(slot)
            except TypeError:
                logger.debug("Camera signal already disconnected")
        self._camera.stop()
        self._capture.setCamera(None)
        self._camera.deleteLater()
        self._camera = None
        self._capture = None
        self._sink = None
        self._on_decoded = None
        self._on_error = None
        logger.info("Camera stopped")

    def _select_device(self):
        devices = QMediaDevices.videoInputs()
        if not devices:
            raise CameraUnavailable("No camera was found on this computer.")
        if self.device_id:
            for device in devices:
                if bytes(device.id()).decode(errors="ignore") == self.device_id or device.description() == self.device_id:
                    return device
            logger.warning("Camera %s not found, using system default", self.device_id)
        return QMediaDevices.defaultVideoInput()

    def _handle_frame(self, frame: QVideoFrame) -> None:
        now = time.monotonic()
        if now - self._last_sample < self.interval or self._on_decoded is None:
            return
        self._last_sample = now
        image = frame.toImage()
        if image.isNull():
            return
        text = decode_first(qimage_to_pil(image))
        if text:
            logger.info("Camera decoded %s", text)
            self._on_decoded(text)

    def _handle_error(self, error, message: str) -> None:
        logger.warning("Camera error %s: %s", error, message)
        if self._on_error is not None:
            self._on_error(message or CAMERA_START_FAILED)
