import torch
import torch.nn.functional as F


class MSE:
    """
    Mean squared error between a network's output tape and a target.

    Calling the loss returns the loss value and seeds ``backward`` on the
    output tape with ``2 * (value - target) / n``. The seed is passed lazily,
    so a non-trainable output never computes it.
    """
    __slots__ = ()

    def __call__(self, output_tape, target):
        value = output_tape.value
        loss = self.loss(value, target)
        output_tape.backward(lambda: self._calculate_input_grad(value, target))
        return loss

    @staticmethod
    def loss(value, target):
        if isinstance(value, torch.Tensor):
            target = torch.as_tensor(target, dtype=value.dtype, device=value.device)
            return F.mse_loss(value, target.expand_as(value), reduction='mean').item()
        return (value - target) ** 2

    @staticmethod
    def _calculate_input_grad(value, target):
        if isinstance(value, torch.Tensor):
            target = torch.as_tensor(target, dtype=value.dtype, device=value.device)
            return 2 * (value - target) / value.numel()
        return 2 * (value - target)

    def __repr__(self):
        return "MSE()"
