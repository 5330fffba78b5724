import math
from .optimizers import Optimizer


class _LRScheduler:
    """
    Base class for all learning rate schedulers.
    """

    __slots__ = ('optimizer', 'last_epoch', 'base_lr')

    def __init__(self, optimizer, last_epoch=-1):
        if not isinstance(optimizer, Optimizer):
            raise TypeError(f"{type(optimizer).__name__} is not a valid Optimizer")

        self.optimizer = optimizer
        self.last_epoch = last_epoch
        self.base_lr = optimizer.lr

        # This ensures the optimizer lr matches the schedule at creation (avoids off-by-one bug)
        self.step()

    def get_lr(self):
        """
        Must return the new learning rate.
        """
        raise NotImplementedError

    def step(self):
        """
        Advances the scheduler by one epoch and updates the learning rate.
        """
        if self.last_epoch == -1:
            # First call at initialization, set epoch to 0
            self.last_epoch = 0
        else:
            self.last_epoch += 1
        self.optimizer.lr = self.get_lr()


class StepLR(_LRScheduler):
    """
    Decays the learning rate by gamma every step_size epochs.
    """

    __slots__ = ('step_size', 'gamma')

    def __init__(self, optimizer, step_size, gamma=0.1, last_epoch=-1):
        if step_size <= 0:
            raise ValueError("step_size must be > 0")
        self.step_size = step_size
        self.gamma = gamma
        super().__init__(optimizer, last_epoch)

    def get_lr(self):
        return self.base_lr * self.gamma ** (self.last_epoch // self.step_size)


class ExponentialLR(_LRScheduler):
    __slots__ = ('gamma',)

    def __init__(self, optimizer, gamma, last_epoch=-1):
        self.gamma = gamma
        super().__init__(optimizer, last_epoch)

    def get_lr(self):
        return self.base_lr * self.gamma ** self.last_epoch


class CosineAnnealingLR(_LRScheduler):
    """
    Cosine annealing learning rate schedule.
    """

    __slots__ = ('T_max', 'eta_min')

    def __init__(self, optimizer, T_max, eta_min=0.0, last_epoch=-1):
        if T_max <= 0:
            raise ValueError("T_max must be > 0")
        self.T_max = T_max
        self.eta_min = eta_min
        super().__init__(optimizer, last_epoch)

    def get_lr(self):
        return self.eta_min + (self.base_lr - self.eta_min) * \
            (1 + math.cos(math.pi * self.last_epoch / self.T_max)) / 2
