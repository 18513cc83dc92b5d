import signal
import threading
from logging import getLogger

logger = getLogger(__name__)


class GracefulKiller:
    """Turns SIGINT/SIGTERM into a cancellation event shared by all workers"""

    def __init__(self, cancel_event: threading.Event = None):
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        signal.signal(signal.SIGINT, self.exit_gracefully)
        signal.signal(signal.SIGTERM, self.exit_gracefully)

    def exit_gracefully(self, signum, frame):
        logger.warning(f"received signal {signum}, cancelling consistency check")
        self.cancel_event.set()
