"""
Concrete layers over Python floats and torch tensors.

Every layer is generic in the tape type it accepts (``InT``) and, for the
numeric layers, in the data type it produces (``DataT``, which is also its
delta type). Composite constructors take operands of type
``Layer[InT, Tape[DataT, DataT]]`` so the input and data types of a whole
expression are inferred from its leaves, e.g.
``Plus[ScalarTape, float](Literal(1.0), Identity())``.
"""
import math
import numbers
from typing import Any, TypeVar
import torch
from . import config
from .layer import Layer, check_layer
from .tape import Tape, SharedTape, LiteralTape, CompositeTape
from .optimizers import Optimizer

InT = TypeVar('InT', bound=Tape)
DataT = TypeVar('DataT')


def as_data(data):
    """Python numbers become floats, everything else a tensor on the configured device."""
    if isinstance(data, torch.Tensor):
        return data
    if isinstance(data, numbers.Number):
        return float(data)
    return torch.as_tensor(data, dtype=config.dtype, device=config.device)


def reduce_for_broadcast(delta, target):
    """Reduces a delta to match the shape of an operand that was broadcasted."""
    if not isinstance(delta, torch.Tensor):
        return delta
    if not isinstance(target, torch.Tensor):
        # python float operands always get a python float back
        return delta.sum().item()
    target_shape = tuple(target.shape)
    if tuple(delta.shape) == target_shape:
        return delta

    # Add singleton dimensions to the front of target_shape to match delta's ndim
    padded_target_shape = (1,) * (delta.ndim - len(target_shape)) + target_shape
    sum_dims = [i for i, (delta_dim, target_dim) in enumerate(zip(delta.shape, padded_target_shape))
                if target_dim == 1 and delta_dim > 1]
    if sum_dims:
        delta = delta.sum(dim=sum_dims, keepdim=True)
    return delta.reshape(target_shape)


def _exp(x):
    return torch.exp(x) if isinstance(x, torch.Tensor) else math.exp(x)


def _log(x):
    return torch.log(x) if isinstance(x, torch.Tensor) else math.log(x)


# --- Leaves ---

class Identity(Layer[Tape[DataT, DataT], Tape[DataT, DataT]]):
    """Returns the input; stands in for ``x`` in an expression."""
    __slots__ = ()

    def forward(self, input: Tape[DataT, DataT]) -> Tape[DataT, DataT]:
        return input.duplicate()

    def __repr__(self):
        return "Identity()"


class Literal(Layer[InT, Tape[DataT, Any]]):
    """A constant. Its tapes are never trainable."""
    __slots__ = ('data',)

    def __init__(self, data: DataT):
        self.data = as_data(data)

    def forward(self, input: InT) -> LiteralTape[DataT, Any]:
        return LiteralTape(self.data)

    def __repr__(self):
        return f"Literal({self.data!r})"


class WeightTape(SharedTape[DataT, DataT]):
    __slots__ = ('_weight',)

    def __init__(self, weight: 'Weight[Any, DataT]'):
        super().__init__(weight.data, True)
        self._weight = weight

    def _force_backward(self, delta: DataT):
        self._weight.update(delta)


class Weight(Layer[InT, Tape[DataT, DataT]]):
    """
    A trainable value. Every delta reaching one of its tapes is handed to the
    optimizer, which returns the new ``data``.
    """
    __slots__ = ('data', 'optimizer')

    def __init__(self, data: DataT, optimizer: Optimizer):
        if not isinstance(optimizer, Optimizer):
            raise TypeError(f"{type(optimizer).__name__} is not a valid Optimizer")
        self.data = as_data(data)
        self.optimizer = optimizer

    def forward(self, input: InT) -> WeightTape[DataT]:
        return WeightTape(self)

    def update(self, delta: DataT):
        self.data = self.optimizer.update(self, self.data, delta)

    def __repr__(self):
        return f"Weight({self.data!r})"


# --- Composites ---

class _UnaryLayer(Layer[InT, Tape[DataT, DataT]]):
    __slots__ = ('operand',)

    def __init__(self, operand: Layer[InT, Tape[DataT, DataT]]):
        self.operand = check_layer(operand)

    @property
    def operands(self):
        return (self.operand,)

    def forward(self, input: InT) -> Tape[DataT, DataT]:
        upstream = self.operand.forward(input)
        try:
            return self._output(upstream)
        except BaseException:
            upstream.close()
            raise

    def _output(self, upstream: Tape[DataT, DataT]) -> CompositeTape[DataT, DataT]:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}({self.operand!r})"


class _BinaryLayer(Layer[InT, Tape[DataT, DataT]]):
    __slots__ = ('operand1', 'operand2')

    def __init__(self, operand1: Layer[InT, Tape[DataT, DataT]], operand2: Layer[InT, Tape[DataT, DataT]]):
        self.operand1 = check_layer(operand1, "operand1")
        self.operand2 = check_layer(operand2, "operand2")

    @property
    def operands(self):
        return (self.operand1, self.operand2)

    def forward(self, input: InT) -> Tape[DataT, DataT]:
        upstream1 = self.operand1.forward(input)
        try:
            upstream2 = self.operand2.forward(input)
        except BaseException:
            upstream1.close()
            raise
        try:
            return self._output(upstream1, upstream2)
        except BaseException:
            upstream1.close()
            upstream2.close()
            raise

    def _output(self, upstream1: Tape[DataT, DataT],
                upstream2: Tape[DataT, DataT]) -> CompositeTape[DataT, DataT]:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}({self.operand1!r}, {self.operand2!r})"


class PlusTape(CompositeTape[DataT, DataT]):
    __slots__ = ()

    def __init__(self, upstream1: Tape[DataT, DataT], upstream2: Tape[DataT, DataT]):
        super().__init__(upstream1.value + upstream2.value, (upstream1, upstream2))

    def _force_backward(self, delta: DataT):
        upstream1, upstream2 = self._upstreams
        upstream1.backward(lambda: reduce_for_broadcast(delta, upstream1.value))
        upstream2.backward(lambda: reduce_for_broadcast(delta, upstream2.value))


class Plus(_BinaryLayer[InT, DataT]):
    __slots__ = ()

    def _output(self, upstream1, upstream2) -> PlusTape[DataT]:
        return PlusTape(upstream1, upstream2)


class TimesTape(CompositeTape[DataT, DataT]):
    __slots__ = ()

    def __init__(self, upstream1: Tape[DataT, DataT], upstream2: Tape[DataT, DataT]):
        super().__init__(upstream1.value * upstream2.value, (upstream1, upstream2))

    def _force_backward(self, delta: DataT):
        upstream1, upstream2 = self._upstreams
        value1 = upstream1.value
        value2 = upstream2.value
        upstream1.backward(lambda: reduce_for_broadcast(delta * value2, value1))
        upstream2.backward(lambda: reduce_for_broadcast(delta * value1, value2))


class Times(_BinaryLayer[InT, DataT]):
    __slots__ = ()

    def _output(self, upstream1, upstream2) -> TimesTape[DataT]:
        return TimesTape(upstream1, upstream2)


class NegativeTape(CompositeTape[DataT, DataT]):
    __slots__ = ()

    def __init__(self, upstream: Tape[DataT, DataT]):
        super().__init__(-upstream.value, (upstream,))

    def _force_backward(self, delta: DataT):
        self._upstreams[0].backward(lambda: -delta)


class Negative(_UnaryLayer[InT, DataT]):
    __slots__ = ()

    def _output(self, upstream) -> NegativeTape[DataT]:
        return NegativeTape(upstream)


class ReciprocalTape(CompositeTape[DataT, DataT]):
    __slots__ = ()

    def __init__(self, upstream: Tape[DataT, DataT]):
        super().__init__(1.0 / upstream.value, (upstream,))

    def _force_backward(self, delta: DataT):
        output = self._data
        # d(1/a) = -1/a^2 = -(1/a)^2
        self._upstreams[0].backward(lambda: -delta * output * output)


class Reciprocal(_UnaryLayer[InT, DataT]):
    __slots__ = ()

    def _output(self, upstream) -> ReciprocalTape[DataT]:
        return ReciprocalTape(upstream)


class ExpTape(CompositeTape[DataT, DataT]):
    __slots__ = ()

    def __init__(self, upstream: Tape[DataT, DataT]):
        super().__init__(_exp(upstream.value), (upstream,))

    def _force_backward(self, delta: DataT):
        output = self._data
        self._upstreams[0].backward(lambda: delta * output)


class Exp(_UnaryLayer[InT, DataT]):
    __slots__ = ()

    def _output(self, upstream) -> ExpTape[DataT]:
        return ExpTape(upstream)


class LogTape(CompositeTape[DataT, DataT]):
    __slots__ = ()

    def __init__(self, upstream: Tape[DataT, DataT]):
        super().__init__(_log(upstream.value), (upstream,))

    def _force_backward(self, delta: DataT):
        upstream = self._upstreams[0]
        operand_value = upstream.value
        upstream.backward(lambda: delta / operand_value)


class Log(_UnaryLayer[InT, DataT]):
    __slots__ = ()

    def _output(self, upstream) -> LogTape[DataT]:
        return LogTape(upstream)


class SumTape(CompositeTape[DataT, DataT]):
    __slots__ = ()

    def __init__(self, upstream: Tape[DataT, DataT]):
        value = upstream.value
        super().__init__(value.sum() if isinstance(value, torch.Tensor) else value, (upstream,))

    def _force_backward(self, delta: DataT):
        upstream = self._upstreams[0]
        operand_value = upstream.value
        if isinstance(operand_value, torch.Tensor):
            upstream.backward(lambda: torch.ones_like(operand_value) * delta)
        else:
            upstream.backward(lambda: reduce_for_broadcast(delta, operand_value))


class Sum(_UnaryLayer[InT, DataT]):
    """Sums every element of a tensor into a scalar tensor."""
    __slots__ = ()

    def _output(self, upstream) -> SumTape[DataT]:
        return SumTape(upstream)
