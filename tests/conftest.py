import gc
import pytest
import torch
from layertape.closeable import LeakTracker
from layertape.optimizers import Optimizer
from layertape.tape import SharedTape

torch.manual_seed(42)


class RecordingTape(SharedTape):
    """Tape that records the deltas it receives and how often it was released."""
    __slots__ = ('deltas', 'released')

    def __init__(self, data, trainable=True):
        super().__init__(data, trainable)
        self.deltas = []
        self.released = 0

    def _force_backward(self, delta):
        self.deltas.append(delta)

    def _release(self):
        self.released += 1


class RecordingOptimizer(Optimizer):
    """Keeps the data unchanged and records every delta per weight."""
    __slots__ = ()

    def __init__(self, lr=1.0):
        super().__init__({'lr': lr})

    def _update(self, weight, data, delta):
        self.state.setdefault(weight, []).append(delta)
        return data


@pytest.fixture
def tracker():
    """Fails the test if a tape leaks or is still open when the test ends."""
    with LeakTracker() as leak_tracker:
        yield leak_tracker
        gc.collect()
    assert leak_tracker.leaks == []
    assert leak_tracker.outstanding() == []
