"""
Per-iteration driver: wrap the input in a tape, run ``forward`` on the root
layer, read the value, run ``backward`` from a seed and close every tape
created here. Composite tapes close their own upstreams.
"""
import logging
import torch
from .tape import InputTape
from .layers import as_data
from .losses import MSE
from .graph import LayerGraph

logger = logging.getLogger(__name__)


def _detached(value):
    return value.clone() if isinstance(value, torch.Tensor) else value


def predict(network, data):
    """Runs ``forward`` only and returns the output value."""
    with InputTape(as_data(data), trainable=False) as input_tape:
        with network.forward(input_tape) as output:
            return _detached(output.value)


def input_gradient(network, data, seed=1.0):
    """Returns ``(value, d value / d input)`` for a backward pass seeded with ``seed``."""
    with InputTape(as_data(data), trainable=True) as input_tape:
        with network.forward(input_tape) as output:
            value = _detached(output.value)
            output.backward(seed)
        return value, input_tape.grad


def train_step(network, data, target, loss=None):
    """One forward and backward pass; the weights update while the delta propagates."""
    loss = loss if loss is not None else MSE()
    with InputTape(as_data(data), trainable=False) as input_tape:
        with network.forward(input_tape) as output:
            return loss(output, target)


def fit(network, samples, epochs, loss=None, scheduler=None):
    """
    Trains ``network`` on ``(data, target)`` pairs and returns the mean loss of
    every epoch. ``scheduler`` is stepped once per epoch.
    """
    if epochs <= 0:
        raise ValueError("epochs must be > 0")
    samples = list(samples)
    if not samples:
        raise ValueError("fit() got an empty sample list.")

    graph = LayerGraph(network)
    logger.info("Training %r with %d weights for %d epochs", graph, len(graph.weights()), epochs)

    history = []
    for epoch in range(epochs):
        total = 0.0
        for data, target in samples:
            total += train_step(network, data, target, loss)
        mean_loss = total / len(samples)
        history.append(mean_loss)
        logger.info("epoch %d: loss=%.6f", epoch, mean_loss)
        if scheduler is not None:
            scheduler.step()
    return history
