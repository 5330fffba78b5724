import logging
import torch

logger = logging.getLogger(__name__)


def _clone(value):
    return value.clone() if isinstance(value, torch.Tensor) else value


class Optimizer:
    """
    Update rule invoked from a weight's tape during ``backward``.

    ``update`` receives the weight, its current data and the delta that reached
    it and returns new data. Updates are out-of-place so values captured by
    earlier forward passes stay untouched. Per-weight state lives in ``state``
    keyed by the weight layer, so one optimizer can be shared between weights.
    """
    __slots__ = ('defaults', 'state')

    def __init__(self, defaults):
        self.defaults = dict(defaults)
        self.state = {}

    @property
    def lr(self):
        return self.defaults['lr']

    @lr.setter
    def lr(self, value):
        self.defaults['lr'] = value

    def update(self, weight, data, delta):
        new_data = self._update(weight, data, delta)
        logger.debug("%s updated %r with lr=%s", type(self).__name__, weight, self.lr)
        return new_data

    def _update(self, weight, data, delta):
        raise NotImplementedError

    def clear(self):
        self.state.clear()

    def __repr__(self):
        args = ", ".join(f"{k}={v!r}" for k, v in self.defaults.items())
        return f"{type(self).__name__}({args})"


class SGD(Optimizer):
    """Plain learning-rate descent: ``data - lr * delta``, with optional L2 weight decay."""
    __slots__ = ()

    def __new__(cls, lr, weight_decay=None):
        assert lr > 0
        assert weight_decay is None or weight_decay > 0
        return super().__new__(cls)

    def __init__(self, lr, weight_decay=None):
        super().__init__({'lr': lr, 'weight_decay': weight_decay})

    def _update(self, weight, data, delta):
        weight_decay = self.defaults['weight_decay']
        if weight_decay:
            delta = delta + data * weight_decay
        return data - self.lr * delta


class Momentum(Optimizer):
    __slots__ = ()

    def __new__(cls, lr, momentum=0.9, weight_decay=None):
        assert lr > 0
        assert momentum > 0
        assert weight_decay is None or weight_decay > 0
        return super().__new__(cls)

    def __init__(self, lr, momentum=0.9, weight_decay=None):
        super().__init__({'lr': lr, 'momentum': momentum, 'weight_decay': weight_decay})

    def _update(self, weight, data, delta):
        momentum = self.defaults['momentum']
        weight_decay = self.defaults['weight_decay']
        if weight_decay:
            delta = delta + data * weight_decay

        if weight not in self.state:
            buf = _clone(delta)
        else:
            buf = self.state[weight]['momentum_buffer'] * momentum + delta
        self.state[weight] = {'momentum_buffer': buf}
        return data - self.lr * buf


class Nesterov(Optimizer):
    __slots__ = ()
    # PyTorch-style Nesterov: steps along delta + momentum * buffer
    def __new__(cls, lr, momentum=0.9, weight_decay=None):
        assert lr > 0
        assert momentum > 0
        assert weight_decay is None or weight_decay > 0
        return super().__new__(cls)

    def __init__(self, lr, momentum=0.9, weight_decay=None):
        super().__init__({'lr': lr, 'momentum': momentum, 'weight_decay': weight_decay})

    def _update(self, weight, data, delta):
        momentum = self.defaults['momentum']
        weight_decay = self.defaults['weight_decay']
        if weight_decay:
            delta = delta + data * weight_decay

        if weight not in self.state:
            buf = _clone(delta)
        else:
            buf = self.state[weight]['momentum_buffer'] * momentum + delta
        self.state[weight] = {'momentum_buffer': buf}
        return data - self.lr * (delta + momentum * buf)


class AdamW(Optimizer):
    __slots__ = ()

    def __new__(cls, lr, betas=(0.9, 0.999), eps=1e-8, weight_decay=None):
        assert lr > 0.0
        assert 0.0 <= betas[0] < 1.0
        assert 0.0 <= betas[1] < 1.0
        assert eps >= 0.0
        assert weight_decay is None or weight_decay > 0.0
        return super().__new__(cls)

    def __init__(self, lr, betas=(0.9, 0.999), eps=1e-8, weight_decay=None):
        super().__init__({'lr': lr, 'betas': betas, 'eps': eps, 'weight_decay': weight_decay})

    def _update(self, weight, data, delta):
        lr = self.lr
        beta1, beta2 = self.defaults['betas']
        eps = self.defaults['eps']
        weight_decay = self.defaults['weight_decay']

        state = self.state.get(weight)
        if state is None:
            state = self.state[weight] = {'time_step': 0, 'm': delta * 0.0, 'v': delta * 0.0}
        state['time_step'] += 1
        t_step = state['time_step']

        # decoupled weight decay
        if weight_decay:
            data = data * (1 - lr * weight_decay)

        state['m'] = state['m'] * beta1 + delta * (1 - beta1)
        state['v'] = state['v'] * beta2 + delta * delta * (1 - beta2)

        m_corrected = state['m'] / (1 - beta1 ** t_step)
        v_corrected = state['v'] / (1 - beta2 ** t_step)
        denom = v_corrected.sqrt() if isinstance(v_corrected, torch.Tensor) else v_corrected ** 0.5
        return data - lr * m_corrected / (denom + eps)
