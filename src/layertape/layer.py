"""
The ``Layer`` abstraction.

A layer describes one step of a computation and may hold other layers as
operands, so a whole network is a tree of layers, e.g.::

    Times(Plus(Literal(1.0), Identity()), Weight(2.0, SGD(lr=0.1)))

Each training iteration runs two traversals over this tree. ``forward`` on the
root calls ``forward`` on every operand with the same input tape and returns a
tree of :class:`~layertape.tape.Tape` objects shaped like the layer tree. The
caller reads ``value`` off the root tape, calls ``backward`` with a seed delta
and closes the tapes it created; composite tapes close their own upstreams.

``forward`` borrows its input: the caller still has to close it. The returned
tape is owned by the caller.

Typing follows the Aux pattern with generics: ``Layer[InputT, OutputT]`` where
the input tape type is contravariant and the output tape type covariant, and
``Tape[DataT, DeltaT]`` for the tapes themselves. The bundled layers are
generic in both, so ``Plus[ScalarTape, float]`` is a scalar expression.
``ScalarLayer`` and ``TensorLayer`` name the two common refinements, and
:func:`scalar_layer` and :func:`tensor_layer` narrow an arbitrary layer to them.
"""
from typing import Generic, TypeVar, Tuple, cast
import torch
from .tape import Tape

InputT = TypeVar('InputT', bound=Tape, contravariant=True)
OutputT = TypeVar('OutputT', bound=Tape, covariant=True)

ScalarTape = Tape[float, float]
TensorTape = Tape[torch.Tensor, torch.Tensor]


class Layer(Generic[InputT, OutputT]):
    """Base class for all layers. Subclasses implement :meth:`forward`."""
    __slots__ = ('__weakref__',)

    @property
    def operands(self) -> Tuple['Layer', ...]:
        """Layers this layer reads from; empty for leaves."""
        return ()

    def forward(self, input: InputT) -> OutputT:
        raise NotImplementedError("Subclasses of Layer must implement a forward method.")

    def __call__(self, input: InputT) -> OutputT:
        return self.forward(input)

    def weights(self):
        """Returns the distinct weight layers reachable from this layer."""
        from .graph import LayerGraph
        return LayerGraph(self).weights()


ScalarLayer = Layer[ScalarTape, ScalarTape]
TensorLayer = Layer[TensorTape, TensorTape]


def check_layer(layer, name="operand"):
    if not isinstance(layer, Layer):
        raise TypeError(f"{name} must be a Layer, got {type(layer).__name__}")
    return layer


def scalar_layer(layer) -> ScalarLayer:
    """Narrows ``layer`` to a layer over float tapes. Fails on non-layers only."""
    return cast(ScalarLayer, check_layer(layer, "layer"))


def tensor_layer(layer) -> TensorLayer:
    """Narrows ``layer`` to a layer over tensor tapes. Fails on non-layers only."""
    return cast(TensorLayer, check_layer(layer, "layer"))
