from typing import Generic, TypeVar, Callable, Union, Sequence
from .closeable import CloseableOnce

DataT = TypeVar('DataT', covariant=True)
DeltaT = TypeVar('DeltaT', contravariant=True)


class Tape(Generic[DataT, DeltaT]):
    """
    Intermediate result of a :meth:`Layer.forward` call.

    A tape holds the forward ``value`` and knows how to push a delta (usually
    the partial derivative of ``value``) back to the tapes it was built from.
    Every handle must be closed exactly once; ``duplicate`` is the only way to
    obtain another independently closeable handle to the same result.
    """
    __slots__ = ()

    @property
    def value(self) -> DataT:
        raise NotImplementedError

    @property
    def is_trainable(self) -> bool:
        raise NotImplementedError

    def duplicate(self) -> 'Tape[DataT, DeltaT]':
        raise NotImplementedError

    def close(self):
        raise NotImplementedError

    def _force_backward(self, delta):
        raise NotImplementedError

    def backward(self, delta: Union[DeltaT, Callable[[], DeltaT]]):
        """
        Propagate ``delta`` if this tape is trainable.

        ``delta`` may be a zero-argument callable; it is only evaluated when the
        tape is trainable, so frozen subtrees never pay for their deltas.
        """
        self._assert_open()
        if self.is_trainable:
            self._force_backward(delta() if callable(delta) else delta)

    def _assert_open(self):
        pass


class SharedTape(CloseableOnce, Tape[DataT, DeltaT]):
    """
    Base for concrete tapes. ``duplicate`` hands out extra handles that share
    this tape's value and backward; ``_release`` runs once the last handle is
    closed.
    """
    __slots__ = ('_data', '_trainable', '_references')

    def __init__(self, data: DataT, trainable: bool):
        super().__init__()
        self._data = data
        self._trainable = bool(trainable)
        self._references = 1

    @property
    def value(self) -> DataT:
        self._assert_open()
        return self._data

    @property
    def is_trainable(self):
        return self._trainable

    def duplicate(self) -> Tape[DataT, DeltaT]:
        self._assert_open()
        return self._share()

    def _share(self) -> '_DuplicateTape[DataT, DeltaT]':
        self._references += 1
        return _DuplicateTape(self)

    def _decref(self):
        self._references -= 1
        if self._references == 0:
            self._release()

    def _release(self):
        pass

    def close(self):
        super().close()
        self._decref()

    def __repr__(self):
        return f"{type(self).__name__}({self._data!r}, trainable={self._trainable})"


class _DuplicateTape(CloseableOnce, Tape[DataT, DeltaT]):
    __slots__ = ('_origin',)

    def __init__(self, origin: SharedTape[DataT, DeltaT]):
        self._origin = origin
        super().__init__()

    def _leak_description(self):
        return f"duplicate of {self._origin._leak_description()}"

    @property
    def value(self):
        self._assert_open()
        return self._origin._data

    @property
    def is_trainable(self):
        return self._origin._trainable

    def _force_backward(self, delta):
        self._origin._force_backward(delta)

    def duplicate(self):
        self._assert_open()
        return self._origin._share()

    def close(self):
        super().close()
        self._origin._decref()

    def __repr__(self):
        return f"Duplicate({self._origin!r})"


class LiteralTape(SharedTape[DataT, DeltaT]):
    """A constant; never trainable, so ``backward`` is always a no-op."""
    __slots__ = ()

    def __init__(self, data: DataT):
        super().__init__(data, False)

    def _force_backward(self, delta):
        pass


class InputTape(SharedTape[DataT, DeltaT]):
    """
    Wraps data handed to a network. When trainable, every delta received is
    summed into ``grad``.
    """
    __slots__ = ('grad',)

    def __init__(self, data: DataT, trainable: bool = True):
        super().__init__(data, trainable)
        self.grad = None

    def _force_backward(self, delta):
        self.grad = delta if self.grad is None else self.grad + delta


class CompositeTape(SharedTape[DataT, DeltaT]):
    """
    Tape built from upstream tapes it owns. Trainable when any upstream is;
    each upstream is closed once, after the last handle of this tape closes.
    """
    __slots__ = ('_upstreams',)

    def __init__(self, data: DataT, upstreams: Sequence[Tape]):
        upstreams = tuple(upstreams)
        super().__init__(data, any(u.is_trainable for u in upstreams))
        self._upstreams = upstreams

    def _release(self):
        upstreams, self._upstreams = self._upstreams, ()
        first_error = None
        for upstream in upstreams:
            try:
                upstream.close()
            except Exception as error:
                # keep closing the rest; report the first failure afterwards
                if first_error is None:
                    first_error = error
        if first_error is not None:
            raise first_error
