from core.context import OperationContext


class ManualMonotonic:
    def __init__(self) -> None:
        self.value = 100.0

    def __call__(self) -> float:
        return self.value


def test_background_context_is_unbounded():
    context = OperationContext.background()

    assert context.deadline is None
    assert context.remaining() is None
    assert not context.cancelled
    assert not context.expired


def test_derived_context_observes_parent_cancellation():
    parent = OperationContext.background()
    derived = parent.with_timeout(60)

    parent.cancel()

    assert derived.cancelled


def test_timeout_expires_and_never_extends_parent():
    clock = ManualMonotonic()
    parent = OperationContext(monotonic=clock).with_timeout(5)
    derived = parent.with_timeout(60)

    assert derived.deadline == parent.deadline == 105.0
    clock.value = 104.0
    assert derived.remaining() == 1.0
    assert not derived.expired
    clock.value = 105.0
    assert derived.expired
    assert derived.remaining() == 0.0
    assert not derived.cancelled


def test_cancelling_derived_context_leaves_parent_running():
    parent = OperationContext.background()
    derived = parent.with_timeout(60)

    derived.cancel()

    assert derived.cancelled
    assert not parent.cancelled
