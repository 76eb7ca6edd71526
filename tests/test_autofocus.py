"""
Autofocus Controller Tests
==========================
"""

from infinity_ocr.perception.autofocus import AutofocusController, AutofocusPhase, refocus
from infinity_ocr.stream.video_source import DeviceError

from conftest import FakeVideoSource


def _controller(**kwargs):
    calls = []
    controller = AutofocusController(
        threshold=20,
        on_refocus=lambda: calls.append(True),
        **kwargs,
    )
    return controller, calls


class TestAutofocusController:
    """Tests for the sustained-blur refocus heuristic."""

    def test_starts_steady(self):
        controller, _ = _controller()
        assert controller.phase == AutofocusPhase.STEADY
        assert controller.low_sharpness_start is None
        assert controller.last_focus_attempt is None

    def test_first_low_score_starts_tracking(self):
        controller, calls = _controller()

        assert controller.observe(5, now=100.0) is False
        assert controller.phase == AutofocusPhase.BLUR_TRACKING
        assert controller.low_sharpness_start == 100.0
        assert calls == []

    def test_sustained_blur_fires_exactly_once(self):
        controller, calls = _controller()

        fired = [controller.observe(5, now=t) for t in (100.0, 101.0, 102.5, 102.6, 103.0)]

        assert fired == [False, False, True, False, False]
        assert len(calls) == 1
        assert controller.refocus_count == 1
        assert controller.last_focus_attempt == 102.5

    def test_blur_window_is_strict(self):
        controller, calls = _controller()

        controller.observe(5, now=100.0)
        assert controller.observe(5, now=102.0) is False
        assert calls == []

    def test_second_episode_within_cooldown_fires_none(self):
        controller, calls = _controller()
        controller.observe(5, now=100.0)
        controller.observe(5, now=102.5)
        assert len(calls) == 1

        # New episode starts right after the attempt and outlasts the window
        for t in (103.0, 104.0, 105.5, 106.5, 107.4):
            assert controller.observe(5, now=t) is False
        assert len(calls) == 1

    def test_refocus_allowed_again_after_cooldown(self):
        controller, calls = _controller()
        controller.observe(5, now=100.0)
        controller.observe(5, now=102.5)

        controller.observe(5, now=103.0)
        assert controller.observe(5, now=107.6) is True
        assert len(calls) == 2

    def test_sharp_score_resets_tracking(self):
        controller, calls = _controller()

        controller.observe(5, now=100.0)
        controller.observe(50, now=101.0)
        assert controller.phase == AutofocusPhase.STEADY

        controller.observe(5, now=101.5)
        assert controller.observe(5, now=103.0) is False
        assert calls == []

    def test_score_at_threshold_counts_as_sharp(self):
        controller, _ = _controller()
        controller.observe(20, now=100.0)
        assert controller.phase == AutofocusPhase.STEADY

    def test_custom_timing(self):
        controller, calls = _controller(blur_window_sec=0.5, cooldown_sec=1.0)

        controller.observe(0, now=10.0)
        assert controller.observe(0, now=10.6) is True
        controller.observe(0, now=10.7)
        assert controller.observe(0, now=11.4) is False
        controller.observe(0, now=11.5)
        assert controller.observe(0, now=11.8) is True
        assert len(calls) == 2

    def test_reset_clears_history(self):
        controller, _ = _controller()
        controller.observe(5, now=100.0)
        controller.observe(5, now=102.5)

        controller.reset()
        assert controller.low_sharpness_start is None
        assert controller.last_focus_attempt is None


class TestRefocus:
    """Tests for the best-effort focus toggle."""

    def test_success(self, run_async):
        source = FakeVideoSource()
        assert run_async(refocus(source, restore_delay=0)) is True
        assert source.focus_toggles == 1

    def test_device_failure_is_swallowed(self, run_async):
        source = FakeVideoSource(focus_error=DeviceError("focus not supported"))
        assert run_async(refocus(source, restore_delay=0)) is False
        assert source.focus_toggles == 1
