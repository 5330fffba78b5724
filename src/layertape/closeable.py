import logging
import warnings
import weakref
from . import config

logger = logging.getLogger(__name__)

_active_trackers = []


class LeakReport:
    """A guarded object that was collected without being closed."""
    __slots__ = ('description',)

    def __init__(self, description):
        self.description = description

    def __repr__(self):
        return f"LeakReport({self.description})"


class LeakTracker:
    """
    Collects leak reports and open handles created while the tracker is active.

    Finalization order is up to the interpreter, so a missing report is not
    proof that nothing leaked. Call ``gc.collect()`` before inspecting
    ``leaks`` when reference cycles may be involved.
    """
    __slots__ = ('leaks', '_handles', '__weakref__')

    def __init__(self):
        self.leaks = []
        self._handles = weakref.WeakSet()

    def __enter__(self):
        _active_trackers.append(self)
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        _active_trackers.remove(self)

    def track(self, closeable):
        self._handles.add(closeable)

    def outstanding(self):
        """Tracked handles that are still reachable and not closed yet."""
        return [h for h in self._handles if not h.closed]

    def __repr__(self):
        return f"LeakTracker(leaks={len(self.leaks)}, outstanding={len(self.outstanding())})"


class _ClosingFlag:
    __slots__ = ('closed',)

    def __init__(self):
        self.closed = False

    def close(self):
        assert not self.closed, "close() called twice on the same handle"
        self.closed = True


def _check_closed(flag, description):
    if flag.closed:
        return
    message = f"{description} was garbage collected without being closed"
    logger.error(message)
    report = LeakReport(description)
    for tracker in _active_trackers:
        tracker.leaks.append(report)
    warnings.warn(message, ResourceWarning, stacklevel=2)


class CloseableOnce:
    """
    Mixin that turns double close and never-closed into detectable faults.

    Both checks only exist when ``__debug__`` is true; under ``python -O`` the
    flag is never created and ``close`` does nothing.
    """
    __slots__ = ('_closing_flag', '_finalizer', '__weakref__')

    def __init__(self):
        if __debug__:
            flag = _ClosingFlag()
            self._closing_flag = flag
            if config.CHECK_LEAKS:
                self._finalizer = weakref.finalize(self, _check_closed, flag, self._leak_description())
                for tracker in _active_trackers:
                    tracker.track(self)
            else:
                self._finalizer = None

    def _leak_description(self):
        return f"{type(self).__qualname__} at {id(self):#x}"

    @property
    def closed(self):
        if __debug__:
            return self._closing_flag.closed
        return False

    def _assert_open(self):
        if __debug__:
            assert not self._closing_flag.closed, f"{type(self).__qualname__} used after close()"

    def close(self):
        if __debug__:
            self._closing_flag.close()
            if self._finalizer is not None:
                self._finalizer.detach()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
