"""Timeline playback that drives the commit animator's index."""
from __future__ import annotations

from typing import Mapping, Optional

from PySide6.QtCore import QObject, Signal

from repoverse.core.logging import get_logger
from repoverse.core.scheduler import Scheduler, TimerHandle
from repoverse.animation.commit_animator import CommitAnimator

logger = get_logger(__name__)


class PlaybackController(QObject):
    """Play, pause, step and seek through the commit history.

    Signals:
        playback_state_changed: Emitted with ``True`` when playing, ``False`` when paused
        index_changed: Emitted with the new commit index
    """

    playback_state_changed = Signal(bool)
    index_changed = Signal(int)

    def __init__(
        self,
        scheduler: Scheduler,
        animator: CommitAnimator,
        settings: Mapping | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._scheduler = scheduler
        self._animator = animator
        self._speed = float((settings or {}).get("speed", 1.0))
        if self._speed <= 0:
            raise ValueError("playback speed must be positive")
        self._playing = False
        self._pending: Optional[TimerHandle] = None

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def speed(self) -> float:
        return self._speed

    def set_speed(self, speed: float) -> None:
        """Commits per second; applies from the next scheduled step."""

        if speed <= 0:
            logger.debug("Ignoring non-positive playback speed %s", speed)
            return
        self._speed = float(speed)
        if self._playing:
            self._schedule_next()

    @property
    def interval_ms(self) -> float:
        return 1000.0 / self._speed

    @property
    def count(self) -> int:
        return len(self._animator.commits)

    @property
    def index(self) -> int:
        current = self._animator.current_index
        return -1 if current is None else current

    # --- Transport ---

    def play(self) -> None:
        if self._playing or self.count == 0:
            return
        if self.index >= self.count - 1 or self.index < 0:
            self.seek(0)
        self._set_playing(True)
        self._schedule_next()

    def pause(self) -> None:
        if not self._playing:
            return
        self._cancel_pending()
        self._set_playing(False)

    def toggle(self) -> None:
        if self._playing:
            self.pause()
        else:
            self.play()

    def step_forward(self) -> None:
        self.seek(self.index + 1)

    def step_back(self) -> None:
        self.seek(self.index - 1)

    def skip_to_start(self) -> None:
        self.seek(0)

    def skip_to_end(self) -> None:
        self.seek(self.count - 1)

    def seek(self, index: int) -> None:
        if self.count == 0:
            return
        index = max(0, min(index, self.count - 1))
        if index == self.index:
            return
        self._animator.set_commit_index(index)
        self.index_changed.emit(index)

    def stop(self) -> None:
        """Pause and cancel every timer owned by this controller."""

        self._scheduler.cancel_all(self)
        self._pending = None
        self._set_playing(False)

    # --- Internals ---

    def _advance(self) -> None:
        self._pending = None
        if not self._playing:
            return
        if self.index >= self.count - 1:
            logger.info("Playback reached the last commit")
            self._set_playing(False)
            return
        self.step_forward()
        if self.index >= self.count - 1:
            self._set_playing(False)
            return
        self._schedule_next()

    def _schedule_next(self) -> None:
        self._cancel_pending()
        self._pending = self._scheduler.call_later(self.interval_ms, self._advance, owner=self)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _set_playing(self, playing: bool) -> None:
        if playing == self._playing:
            return
        self._playing = playing
        self.playback_state_changed.emit(playing)
