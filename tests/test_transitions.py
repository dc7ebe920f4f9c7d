from __future__ import annotations

import pytest
from PySide6.QtCore import QEasingCurve

from repoverse.animation.transitions import EasingType, Transition, clamp_duration, ease, get_easing_curve
from repoverse.layout.store import Position


@pytest.mark.parametrize("easing", list(EasingType))
def test_easing_curves_are_anchored(easing: EasingType) -> None:
    assert ease(easing, 0.0) == pytest.approx(0.0)
    assert ease(easing, 1.0) == pytest.approx(1.0)
    assert ease(easing, 2.0) == pytest.approx(1.0)


def test_quad_out_leads_linear() -> None:
    assert ease(EasingType.EASE_OUT, 0.5) == pytest.approx(0.75)
    assert ease(EasingType.EASE_IN_OUT, 0.5) == pytest.approx(0.5)


@pytest.mark.parametrize(
    "easing, kind",
    [
        (EasingType.LINEAR, QEasingCurve.Type.Linear),
        (EasingType.EASE_OUT, QEasingCurve.Type.OutQuad),
        (EasingType.EASE_IN_OUT, QEasingCurve.Type.InOutCubic),
    ],
)
def test_easing_follows_qt_curves(easing: EasingType, kind: QEasingCurve.Type) -> None:
    assert get_easing_curve(easing).type() == kind
    reference = QEasingCurve(kind)
    for t in (0.1, 0.5, 0.9):
        assert ease(easing, t) == pytest.approx(reference.valueForProgress(t), abs=1e-9)


def test_clamp_duration() -> None:
    assert clamp_duration(100, 0.5, 300, 800) == 300
    assert clamp_duration(1000, 0.5, 300, 800) == 500
    assert clamp_duration(5000, 0.5, 300, 800) == 800


def test_transition_interpolates_over_time() -> None:
    transition = Transition(Position(0, 0), Position(100, 50), started_at=1000, duration=400, easing=EasingType.LINEAR)

    assert transition.position_at(900) == (0, 0)
    assert transition.position_at(1200) == (50, 25)
    assert transition.position_at(5000) == (100, 50)
    assert transition.finishes_at == 1400
    assert not transition.is_finished(1399)
    assert transition.is_finished(1400)


def test_zero_duration_finishes_immediately() -> None:
    transition = Transition(Position(0, 0), Position(1, 1), started_at=0, duration=0)

    assert transition.progress(0) == 1.0
