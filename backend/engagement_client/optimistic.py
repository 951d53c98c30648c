"""
Optimistic toggle state machine.

    IDLE --begin()--> OPTIMISTIC --confirm(server == guess)--> CONFIRMED
                                 --confirm(server != guess)--> ROLLED_BACK
                                 --fail()------------------> ROLLED_BACK

CONFIRMED and ROLLED_BACK accept a new begin(); OPTIMISTIC does not (the
button is disabled while a call is in flight).

For a server-side toggle, a mismatch means the server flipped from the
state we guessed we were leaving, so the authoritative value equals the
pre-click value: rollback and "adopt the server" are the same thing.
"""
import enum
from typing import Optional


class ToggleState(enum.Enum):
    IDLE = "idle"
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class ToggleInFlight(RuntimeError):
    pass


class OptimisticToggle:
    def __init__(self, value: bool = False) -> None:
        self.value = value
        self.state = ToggleState.IDLE
        self._previous: Optional[bool] = None

    @property
    def pending(self) -> bool:
        return self.state is ToggleState.OPTIMISTIC

    def begin(self) -> bool:
        """Flip the local value immediately. Returns the optimistic guess."""
        if self.pending:
            raise ToggleInFlight("A toggle is already in flight")
        self._previous = self.value
        self.value = not self.value
        self.state = ToggleState.OPTIMISTIC
        return self.value

    def confirm(self, server_value: bool) -> bool:
        """
        Reconcile with the server's answer. Returns True when the guess
        held, False when it was rolled back.
        """
        self._require_pending()
        if server_value == self.value:
            self.state = ToggleState.CONFIRMED
        else:
            self.value = server_value
            self.state = ToggleState.ROLLED_BACK
        self._previous = None
        return self.state is ToggleState.CONFIRMED

    def fail(self) -> None:
        """The call errored: restore the pre-click value."""
        self._require_pending()
        self.value = self._previous
        self._previous = None
        self.state = ToggleState.ROLLED_BACK

    def reset(self, value: bool) -> None:
        """Adopt a freshly fetched value (e.g. status check on mount)."""
        if self.pending:
            raise ToggleInFlight("Cannot reset while a toggle is in flight")
        self.value = value
        self.state = ToggleState.IDLE

    def _require_pending(self) -> None:
        if not self.pending:
            raise RuntimeError(f"No toggle in flight (state={self.state.value})")
