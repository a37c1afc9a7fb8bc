"""State container behind the tip calculator screen.

The controller owns the bill text, the tip percent, the round-up switch and the
transient pressed flag of the Calculate button. Rendering code subscribes to it
and receives an immutable `TipState` after every change.
"""
import itertools
import logging
import math
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from calculator.core import CurrencyFormatter, calculate_tip, format_currency, parse_amount

logger = logging.getLogger(__name__)

TIP_PERCENT_MIN = 0.0
TIP_PERCENT_MAX = 30.0
TIP_PERCENT_STEP = 5.0
DEFAULT_TIP_PERCENT = 15.0
PRESS_RESET_DELAY = 0.150  # seconds


@dataclass(frozen=True)
class TipState:
    amount_input: str
    tip_percent: float
    round_up: bool
    pressed: bool
    tip: str


Listener = Callable[[TipState], None]


class ThreadingScheduler:
    """Run callbacks after a delay on daemon `threading.Timer` threads."""

    def schedule(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


def snap_tip_percent(value) -> float:
    """Clamp `value` into the slider range and move it to the nearest stop.

    Anything that is not a number lands on the lowest stop.
    """
    try:
        value = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Tip percent {value!r} is not a number, using {TIP_PERCENT_MIN}")
        return TIP_PERCENT_MIN
    if math.isnan(value):
        return TIP_PERCENT_MIN
    value = max(TIP_PERCENT_MIN, min(TIP_PERCENT_MAX, value))
    return math.floor(value / TIP_PERCENT_STEP + 0.5) * TIP_PERCENT_STEP


class TipCalculatorController:
    def __init__(
        self,
        formatter: CurrencyFormatter = format_currency,
        scheduler=None,
        press_reset_delay: float = PRESS_RESET_DELAY,
        tip_percent: float = DEFAULT_TIP_PERCENT,
    ):
        self._formatter = formatter
        self._scheduler = scheduler if scheduler is not None else ThreadingScheduler()
        self._press_reset_delay = press_reset_delay
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []
        # Pending pressed-state resets keyed by press token; a missing token means
        # the reset already ran or was cancelled by close().
        self._pending: Dict[int, Optional[object]] = {}
        self._tokens = itertools.count()

        self._amount_input = ""
        self._tip_percent = snap_tip_percent(tip_percent)
        self._round_up = False
        self._pressed = False

    @property
    def state(self) -> TipState:
        with self._lock:
            return self._snapshot()

    @property
    def tip_percent_label(self) -> str:
        with self._lock:
            return f"Tip Percentage: {int(self._tip_percent)}%"

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener` for state changes and return a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_amount_input(self, text: str) -> None:
        with self._lock:
            state = self._snapshot(amount_input="" if text is None else str(text))
            self._amount_input = state.amount_input
        logger.debug(f"Bill text changed to {state.amount_input!r}")
        self._notify(state)

    def set_tip_percent(self, value) -> None:
        with self._lock:
            state = self._snapshot(tip_percent=snap_tip_percent(value))
            self._tip_percent = state.tip_percent
        logger.debug(f"Tip percent changed to {state.tip_percent}")
        self._notify(state)

    def set_round_up(self, round_up: bool) -> None:
        with self._lock:
            state = self._snapshot(round_up=bool(round_up))
            self._round_up = state.round_up
        logger.debug(f"Round up set to {state.round_up}")
        self._notify(state)

    def press(self, on_click: Optional[Callable[[], None]] = None) -> None:
        """Activate the Calculate button.

        The pressed flag is set and `on_click` runs before this returns; the flag
        is cleared `press_reset_delay` seconds later. Earlier pending resets are
        left to fire on their own schedule. The reset is scheduled even if
        `on_click` or a listener raises.
        """
        token = next(self._tokens)
        with self._lock:
            state = self._snapshot(pressed=True)
            self._pressed = True
            self._pending[token] = None
        try:
            self._notify(state)
            if on_click is not None:
                on_click()
        finally:
            handle = self._scheduler.schedule(self._press_reset_delay, lambda: self._release(token))
            with self._lock:
                if token in self._pending:
                    self._pending[token] = handle

    def close(self) -> None:
        """Cancel every pending pressed-state reset."""
        with self._lock:
            handles = [h for h in self._pending.values() if h is not None]
            self._pending.clear()
        for handle in handles:
            handle.cancel()
        if handles:
            logger.debug(f"Cancelled {len(handles)} pending button resets")

    def _release(self, token: int) -> None:
        with self._lock:
            if token not in self._pending:
                return
            state = self._snapshot(pressed=False)
            del self._pending[token]
            self._pressed = False
        self._notify(state)

    def _snapshot(self, **changes) -> TipState:
        """Build the state that results from applying `changes` to the current fields."""
        amount_input = changes.get("amount_input", self._amount_input)
        tip_percent = changes.get("tip_percent", self._tip_percent)
        round_up = changes.get("round_up", self._round_up)
        tip = calculate_tip(parse_amount(amount_input), tip_percent, round_up, formatter=self._formatter)
        return TipState(
            amount_input=amount_input,
            tip_percent=tip_percent,
            round_up=round_up,
            pressed=changes.get("pressed", self._pressed),
            tip=tip,
        )

    def _notify(self, state: TipState) -> None:
        for listener in list(self._listeners):
            listener(state)
