import pytest
import torch
from conftest import RecordingTape
from layertape.tape import Tape, LiteralTape, InputTape, CompositeTape
from layertape.layers import PlusTape, TimesTape


def _never_evaluated():
    raise AssertionError("delta of a non-trainable tape must not be evaluated")


def test_non_trainable_backward_skips_delta():
    with LiteralTape(1.0) as tape:
        assert not tape.is_trainable
        tape.backward(_never_evaluated)


def test_non_trainable_composite_does_not_reach_upstreams():
    upstream1 = RecordingTape(1.0, trainable=False)
    upstream2 = RecordingTape(2.0, trainable=False)
    with PlusTape(upstream1, upstream2) as output:
        assert not output.is_trainable
        output.backward(_never_evaluated)
    assert upstream1.deltas == []
    assert upstream2.deltas == []


def test_trainable_backward_evaluates_thunk_once():
    calls = []

    def delta():
        calls.append(1)
        return 5.0

    with RecordingTape(1.0) as tape:
        tape.backward(delta)
        assert tape.deltas == [5.0]
    assert calls == [1]


def test_backward_accepts_eager_tensor_delta():
    with RecordingTape(torch.zeros(2)) as tape:
        tape.backward(torch.ones(2))
        assert torch.equal(tape.deltas[0], torch.ones(2))


def test_composite_backward_calls_each_upstream_once():
    upstream1 = RecordingTape(3.0)
    upstream2 = RecordingTape(4.0)
    with TimesTape(upstream1, upstream2) as output:
        assert output.value == 12.0
        output.backward(2.0)
    assert upstream1.deltas == [8.0]
    assert upstream2.deltas == [6.0]


def test_mixed_trainability_only_reaches_trainable_upstream():
    frozen = RecordingTape(3.0, trainable=False)
    trainable = RecordingTape(4.0)
    with TimesTape(frozen, trainable) as output:
        assert output.is_trainable
        output.backward(1.0)
    assert frozen.deltas == []
    assert trainable.deltas == [3.0]


def test_composite_closes_upstreams_once():
    upstream1 = RecordingTape(1.0)
    upstream2 = RecordingTape(2.0)
    output = PlusTape(upstream1, upstream2)
    assert not upstream1.closed
    output.close()
    assert upstream1.closed and upstream2.closed
    assert upstream1.released == 1
    assert upstream2.released == 1


def test_composite_closes_every_upstream_when_one_close_fails():
    upstream1 = RecordingTape(1.0)
    upstream2 = RecordingTape(2.0)
    output = PlusTape(upstream1, upstream2)
    upstream1.close()
    with pytest.raises(AssertionError, match="called twice"):
        output.close()
    assert upstream2.closed
    assert upstream2.released == 1
    assert upstream1.released == 1


def test_duplicate_shares_value_and_backward():
    tape = RecordingTape(7.0)
    duplicate = tape.duplicate()
    assert duplicate.value == tape.value
    assert duplicate.is_trainable
    duplicate.backward(1.0)
    tape.backward(2.0)
    assert tape.deltas == [1.0, 2.0]
    duplicate.close()
    tape.close()


def test_closing_duplicate_keeps_original_usable():
    tape = RecordingTape(7.0)
    duplicate = tape.duplicate()
    duplicate.close()
    assert tape.released == 0
    assert tape.value == 7.0
    tape.close()
    assert tape.released == 1


def test_closing_original_keeps_duplicate_usable():
    tape = RecordingTape(7.0)
    duplicate = tape.duplicate()
    tape.close()
    assert tape.released == 0
    assert duplicate.value == 7.0
    duplicate.backward(3.0)
    assert tape.deltas == [3.0]
    duplicate.close()
    assert tape.released == 1


def test_second_close_on_duplicate_is_a_fault():
    tape = RecordingTape(7.0)
    duplicate = tape.duplicate()
    duplicate.close()
    with pytest.raises(AssertionError):
        duplicate.close()
    tape.close()
    assert tape.released == 1


def test_closed_duplicate_is_a_fault_while_origin_stays_open():
    tape = RecordingTape(7.0)
    duplicate = tape.duplicate()
    duplicate.close()
    with pytest.raises(AssertionError, match="used after close"):
        duplicate.value
    with pytest.raises(AssertionError, match="used after close"):
        duplicate.backward(1.0)
    assert tape.deltas == []
    assert tape.value == 7.0
    tape.close()
    assert tape.released == 1


def test_duplicate_of_duplicate():
    tape = RecordingTape(1.0)
    first = tape.duplicate()
    second = first.duplicate()
    first.close()
    tape.close()
    assert second.value == 1.0
    assert tape.released == 0
    second.close()
    assert tape.released == 1


def test_duplicate_after_close_is_a_fault():
    tape = LiteralTape(1.0)
    tape.close()
    with pytest.raises(AssertionError):
        tape.duplicate()


def test_input_tape_sums_deltas():
    with InputTape(1.0) as tape:
        tape.backward(2.0)
        tape.backward(lambda: 3.0)
        assert tape.grad == 5.0


def test_frozen_input_tape_keeps_no_grad():
    with InputTape(1.0, trainable=False) as tape:
        tape.backward(_never_evaluated)
        assert tape.grad is None


def test_composite_trainability_is_fixed_at_construction():
    upstream = RecordingTape(1.0, trainable=False)
    with CompositeTape(1.0, (upstream,)) as output:
        assert output.is_trainable is False


def test_base_tape_is_abstract():
    tape = Tape()
    with pytest.raises(NotImplementedError):
        tape.value
    with pytest.raises(NotImplementedError):
        tape.duplicate()
