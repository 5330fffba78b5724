import math
import pytest
from layertape.optimizers import SGD
from layertape.lr_scheduler import StepLR, ExponentialLR, CosineAnnealingLR


def test_step_lr():
    optimizer = SGD(lr=1.0)
    scheduler = StepLR(optimizer, step_size=2, gamma=0.5)
    lrs = [optimizer.lr]
    for _ in range(4):
        scheduler.step()
        lrs.append(optimizer.lr)
    assert lrs == [1.0, 1.0, 0.5, 0.5, 0.25]


def test_exponential_lr():
    optimizer = SGD(lr=0.1)
    scheduler = ExponentialLR(optimizer, gamma=0.5)
    scheduler.step()
    scheduler.step()
    assert optimizer.lr == pytest.approx(0.025)


def test_cosine_annealing_lr():
    optimizer = SGD(lr=1.0)
    scheduler = CosineAnnealingLR(optimizer, T_max=4, eta_min=0.2)
    assert optimizer.lr == 1.0
    scheduler.step()
    assert optimizer.lr == pytest.approx(0.2 + 0.8 * (1 + math.cos(math.pi / 4)) / 2)
    for _ in range(3):
        scheduler.step()
    assert optimizer.lr == pytest.approx(0.2)


def test_scheduler_rejects_non_optimizer():
    with pytest.raises(TypeError, match="not a valid Optimizer"):
        StepLR(object(), step_size=1)


def test_invalid_schedule_arguments():
    with pytest.raises(ValueError):
        StepLR(SGD(lr=0.1), step_size=0)
    with pytest.raises(ValueError):
        CosineAnnealingLR(SGD(lr=0.1), T_max=0)
