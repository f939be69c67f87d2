import asyncio
import logging
import sys
from pathlib import Path

import qasync
from PyQt6 import QtWidgets

from .api import PartsApiClient
from .config import load_config
from .gui.main_window import MainWindow
from .tones import TonePlayer

logger = logging.getLogger(__name__)


def main(config_path: Path = Path("config.yaml")) -> int:
    config = load_config(config_path)

    app = QtWidgets.QApplication(sys.argv)
    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)
    quit_event = asyncio.Event()
    app.aboutToQuit.connect(quit_event.set)

    client = PartsApiClient(config.api)
    tones = TonePlayer(config.tones, parent=app)
    window = MainWindow(config, service=client, tones=tones)
    window.show()
    logger.info("Parts scanner started against %s", config.api.base_url)

    with loop:
        loop.run_until_complete(quit_event.wait())
        loop.run_until_complete(client.aclose())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
