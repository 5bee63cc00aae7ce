"""
Image Carousel Module

A small state machine for swiping through an entry's images. Touch and
mouse input share one drag model: each input source only supplies a
function that pulls the horizontal coordinate out of its events.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Callable, Any, Tuple

from config import settings
from utils.helpers import safe_get
from utils.logger import get_logger

logger = get_logger(__name__)

IDLE = "idle"
DRAGGING = "dragging"


class GestureCarousel:
    """
    Tracks the visible image of a fixed sequence.

    States are ``idle`` and ``dragging``. A drag changes the index at most
    once: as soon as it travels past the threshold the step is taken and
    the carousel returns to ``idle`` until a new drag starts.
    """

    def __init__(self, images: Sequence[str], start_index: int = 0,
                 threshold: Optional[float] = None):
        if not images:
            raise ValueError("A carousel needs at least one image")
        if not 0 <= start_index < len(images):
            raise ValueError(f"start_index {start_index} is outside 0..{len(images) - 1}")

        self._images: Tuple[str, ...] = tuple(images)
        self._index = start_index
        self._anchor: Optional[float] = None
        self.threshold = settings.DRAG_THRESHOLD if threshold is None else threshold

    @property
    def images(self) -> Tuple[str, ...]:
        return self._images

    @property
    def index(self) -> int:
        return self._index

    @property
    def current_image(self) -> str:
        return self._images[self._index]

    @property
    def state(self) -> str:
        return DRAGGING if self._anchor is not None else IDLE

    @property
    def can_step_prev(self) -> bool:
        return self._index > 0

    @property
    def can_step_next(self) -> bool:
        return self._index < len(self._images) - 1

    def start_drag(self, x: float) -> None:
        """Begin a drag anchored at ``x``."""
        self._anchor = x

    def move_drag(self, x: float) -> bool:
        """
        Feed a new pointer position.

        Returns:
            bool: True if the visible image changed.
        """
        if self._anchor is None:
            return False

        delta = self._anchor - x
        if abs(delta) <= self.threshold:
            return False

        # Threshold crossed: the gesture is spent whether or not a step is possible
        self._anchor = None
        if delta > 0:
            return self.step_next()
        return self.step_prev()

    def end_drag(self) -> None:
        """Release or leave: drop the anchor without moving."""
        self._anchor = None

    def step_prev(self) -> bool:
        if not self.can_step_prev:
            return False
        self._index -= 1
        logger.debug(f"Carousel moved to image {self._index}")
        return True

    def step_next(self) -> bool:
        if not self.can_step_next:
            return False
        self._index += 1
        logger.debug(f"Carousel moved to image {self._index}")
        return True


@dataclass(frozen=True)
class PointerSource:
    """An input device: how to read the x coordinate from its events."""
    name: str
    extract_x: Callable[[Any], Optional[float]]


def _touch_x(event: Any) -> Optional[float]:
    return safe_get(event, "touches", 0, "clientX")


def _mouse_x(event: Any) -> Optional[float]:
    return safe_get(event, "clientX")


TOUCH_SOURCE = PointerSource("touch", _touch_x)
MOUSE_SOURCE = PointerSource("mouse", _mouse_x)


class PointerStream:
    """Routes raw events from one input source into a carousel."""

    def __init__(self, carousel: GestureCarousel, source: PointerSource):
        self.carousel = carousel
        self.source = source

    def on_start(self, event: Any) -> None:
        x = self.source.extract_x(event)
        if x is None:
            logger.debug(f"Ignoring {self.source.name} start event without a coordinate")
            return
        self.carousel.start_drag(x)

    def on_move(self, event: Any) -> bool:
        x = self.source.extract_x(event)
        if x is None:
            return False
        return self.carousel.move_drag(x)

    def on_end(self, event: Any = None) -> None:
        self.carousel.end_drag()

    # Leaving the element ends the drag the same way releasing does
    on_leave = on_end
