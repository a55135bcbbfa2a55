import pytest

from devnet.deploy.planner import plan, UnknownDependencyError, CyclicDependencyError, OrderingError
from devnet.deploy.steps import Step
from devnet.observers.dispatcher import EventBus
from devnet.observers.events import PlanComputed, PlanFailed

class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)

def _step(name, after=()):
    return Step(name=name, description=name, action=lambda: None, after=tuple(after))

def test_plan_keeps_declared_order_and_emits_event():
    steps = [_step("a"), _step("b", ["a"]), _step("c", ["b"]), _step("d", ["a"])]
    cap = Capture()
    ordered = plan(steps, bus=EventBus([cap]))
    assert [s.name for s in ordered] == ["a", "b", "c", "d"]
    pc = next(e for e in cap.events if isinstance(e, PlanComputed))
    assert pc.order == ["a", "b", "c", "d"]

def test_plan_strict_rejects_out_of_order_declaration():
    steps = [_step("c", ["b"]), _step("b", ["a"]), _step("a")]
    with pytest.raises(OrderingError) as ei:
        plan(steps)
    assert "a -> b -> c" in str(ei.value)

def test_plan_non_strict_reorders():
    steps = [_step("c", ["b"]), _step("b", ["a"]), _step("a")]
    assert [s.name for s in plan(steps, strict=False)] == ["a", "b", "c"]

def test_plan_unknown_dep_raises_and_emits_failure():
    cap = Capture()
    try:
        plan([_step("x", ["missing"])], bus=EventBus([cap]))
        assert False, "expected UnknownDependencyError"
    except UnknownDependencyError:
        pf = next(e for e in cap.events if isinstance(e, PlanFailed))
        assert "unknown step" in pf.error

def test_plan_cycle_detected_and_emits_failure():
    cap = Capture()
    try:
        plan([_step("a", ["b"]), _step("b", ["a"])], bus=EventBus([cap]))
        assert False, "expected CyclicDependencyError"
    except CyclicDependencyError:
        kinds = {e.__class__.__name__ for e in cap.events}
        assert "PlanFailed" in kinds

def test_plan_duplicate_names_rejected():
    with pytest.raises(ValueError):
        plan([_step("a"), _step("a")])
