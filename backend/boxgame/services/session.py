"""In-memory game session: phase, reveal guard and live connections."""
import enum
import threading
from dataclasses import dataclass
from typing import Dict, Optional

from boxgame.errors import AlreadyRevealed


class Role(enum.Enum):
    VIDEOBOARD = 'videoboard'
    CONTROLLER = 'controller'
    AUDIENCE = 'audience'

    @property
    def room(self) -> str:
        return ROLE_ROOMS[self]

    @classmethod
    def parse(cls, raw) -> Optional['Role']:
        try:
            return cls(str(raw or '').strip().lower())
        except ValueError:
            return None


ROLE_ROOMS = {
    Role.VIDEOBOARD: 'videoboard',
    Role.CONTROLLER: 'controller',
    Role.AUDIENCE: 'audience',
}


class Phase(enum.Enum):
    COLLECTING = 'collecting'
    REVEALED = 'revealed'


@dataclass
class Connection:
    sid: str
    role: Role
    email: Optional[str] = None


class GameSession:
    """Owns the phase flag and connection bookkeeping for the single game.

    Participant rows are the source of truth; this object only tracks what
    the store cannot: who is connected, and whether a reveal is in flight.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self.phase = Phase.COLLECTING
        self.correct_box = None
        self.launched = False
        self._revealing = False
        self.connections: Dict[str, Connection] = {}

    def restore(self, state) -> None:
        with self._lock:
            if state is not None and state.phase == Phase.REVEALED.value:
                self.phase = Phase.REVEALED
                self.correct_box = state.correct_box
            else:
                self.phase = Phase.COLLECTING
                self.correct_box = None
            self.launched = bool(state is not None and state.launched_at)
            self._revealing = False

    # ---- connections ----

    def register(self, sid: str, role: Role) -> bool:
        """Bind a role to a connection. The role cannot change afterwards."""
        with self._lock:
            existing = self.connections.get(sid)
            if existing is not None:
                return existing.role is role
            self.connections[sid] = Connection(sid=sid, role=role)
            return True

    def role_of(self, sid: str) -> Optional[Role]:
        conn = self.connections.get(sid)
        return conn.role if conn else None

    def is_controller(self, sid: str) -> bool:
        return self.role_of(sid) is Role.CONTROLLER

    def remember_email(self, sid: str, email: str) -> None:
        conn = self.connections.get(sid)
        if conn is not None:
            conn.email = email

    def disconnect(self, sid: str) -> Optional[Connection]:
        with self._lock:
            return self.connections.pop(sid, None)

    def connection_counts(self) -> Dict[str, int]:
        counts = {role.value: 0 for role in Role}
        for conn in list(self.connections.values()):
            counts[conn.role.value] += 1
        return counts

    # ---- phase ----

    def can_submit(self) -> bool:
        return self.phase is Phase.COLLECTING and not self._revealing

    def begin_reveal(self, correct_box) -> None:
        with self._lock:
            if self.phase is Phase.REVEALED or self._revealing:
                raise AlreadyRevealed()
            self._revealing = True
            self.correct_box = correct_box

    def complete_reveal(self) -> None:
        with self._lock:
            self._revealing = False
            self.phase = Phase.REVEALED

    def abort_reveal(self) -> None:
        with self._lock:
            self._revealing = False
            self.correct_box = None

    def mark_launched(self) -> None:
        self.launched = True

    def reset(self) -> None:
        with self._lock:
            self.phase = Phase.COLLECTING
            self.correct_box = None
            self.launched = False
            self._revealing = False

    def to_dict(self) -> dict:
        return {
            'phase': self.phase.value,
            'correctBox': self.correct_box,
            'revealed': self.phase is Phase.REVEALED,
            'launched': self.launched,
            'connections': self.connection_counts(),
        }
