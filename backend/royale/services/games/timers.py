import threading


class TimerHandle:
    """A scheduled callback that can be cancelled until it fires."""

    def __init__(self, delay_sec, fn, args):
        self.delay = delay_sec
        self.fn = fn
        self.args = args
        self._cancelled = threading.Event()

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    def cancel(self):
        self._cancelled.set()

    def fire(self):
        if self.cancelled:
            return
        # A handle runs at most once
        self._cancelled.set()
        self.fn(*self.args)


class BackgroundTimers:
    """Runs callbacks on Socket.IO background tasks after a delay."""

    def __init__(self, socketio, logger=None):
        self.socketio = socketio
        self.logger = logger

    def call_later(self, delay_sec, fn, *args):
        handle = TimerHandle(delay_sec, fn, args)
        self.socketio.start_background_task(self._run, handle)
        return handle

    def _run(self, handle):
        self.socketio.sleep(handle.delay)
        try:
            handle.fire()
        except Exception:
            if self.logger:
                self.logger.exception(f"[timer-error] callback={getattr(handle.fn, '__name__', handle.fn)}")
