"""Session engine: owns every live game, its turn order, deck and timelines.

Sessions are kept in a registry keyed by code. Each entry carries its own
re-entrant lock; every mutation of a session happens while holding that
lock, and callers that need a read-check-mutate sequence to be atomic wrap
it in ``locked(code)``. The registry lock only guards the dict itself.
"""

import logging
import random
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from app.models import CatalogItem, Member, Phase, Session
from .result import Error, Result
from .values import ConnectionId, Nickname, Position, SessionCode

logger = logging.getLogger(__name__)


def placement_is_valid(timeline: List[CatalogItem], item: CatalogItem, position: int) -> bool:
    """True when ``item`` fits at ``position`` without breaking year order.

    Equal years are fine on either side.
    """
    if position < 0 or position > len(timeline):
        return False
    if position > 0 and timeline[position - 1].year > item.year:
        return False
    if position < len(timeline) and item.year > timeline[position].year:
        return False
    return True


@dataclass(frozen=True)
class Departure:
    """What happened when a connection was removed from its game."""
    code: str
    nickname: str
    was_host: bool
    session_ended: bool


class _Entry:
    __slots__ = ('session', 'lock')

    def __init__(self, session: Session):
        self.session = session
        self.lock = threading.RLock()


class SessionEngine:
    def __init__(self, max_sessions: int = 1, min_players: int = 2, max_players: int = 4,
                 winning_length: int = 10, rng: Optional[random.Random] = None):
        self.max_sessions = max_sessions
        self.min_players = min_players
        self.max_players = max_players
        self.winning_length = winning_length
        self._rng = rng or random.Random()
        self._entries: Dict[str, _Entry] = {}
        self._registry_lock = threading.Lock()

    # ---- registry helpers ----

    def _entry(self, code: str) -> Optional[_Entry]:
        with self._registry_lock:
            return self._entries.get(code)

    def _new_code(self) -> str:
        # caller holds the registry lock
        while True:
            code = SessionCode.generate(self._rng).value
            if code not in self._entries:
                return code

    @contextmanager
    def locked(self, code: SessionCode) -> Iterator[Optional[Session]]:
        """Hold the session's lock for the duration of the block.

        Yields None when no such session exists, including when it was
        destroyed while we were waiting for the lock.
        """
        entry = self._entry(code.value)
        if entry is None:
            yield None
            return
        with entry.lock:
            yield entry.session if self._entry(code.value) is entry else None

    def active_sessions(self) -> List[Session]:
        with self._registry_lock:
            return [e.session for e in self._entries.values()]

    # ---- operations ----

    def create_session(self, connection_id: ConnectionId, nickname: Nickname) -> Result[Session]:
        with self._registry_lock:
            if len(self._entries) >= self.max_sessions:
                if self.max_sessions == 1:
                    message = 'A game already exists. Only one game at a time is supported.'
                else:
                    message = f'Maximum of {self.max_sessions} active games reached.'
                return Result.failure(Error.conflict(message))
            if any(e.session.find_member(connection_id.value) for e in self._entries.values()):
                return Result.failure(Error.conflict('You are already in a game.'))
            code = self._new_code()
            session = Session(
                code=code,
                members=[Member(connection_id=connection_id.value, nickname=nickname.value, is_host=True)],
            )
            self._entries[code] = _Entry(session)
        logger.info('[session-created] game=%s host=%s', code, nickname.value)
        return Result.success(session)

    def get_session(self, code: SessionCode) -> Optional[Session]:
        entry = self._entry(code.value)
        return entry.session if entry else None

    def join_session(self, code: SessionCode, connection_id: ConnectionId, nickname: Nickname) -> bool:
        with self.locked(code) as session:
            if session is None or session.phase != Phase.LOBBY:
                return False
            if len(session.members) >= self.max_players:
                return False
            if any(nickname.matches(m.nickname) for m in session.members):
                return False
            if session.find_member(connection_id.value):
                return False
            session.members.append(Member(connection_id=connection_id.value, nickname=nickname.value))
            logger.info('[session-joined] game=%s nickname=%s players=%d',
                        session.code, nickname.value, len(session.members))
            return True

    def start_session(self, code: SessionCode, items: Iterable[CatalogItem]) -> bool:
        """Deal a shuffled deck and draw the first card.

        ``items`` must already be fetched; no I/O happens under the lock.
        """
        with self.locked(code) as session:
            if session is None or session.phase != Phase.LOBBY:
                return False
            if len(session.members) < self.min_players:
                return False
            deck = list(items)
            self._rng.shuffle(deck)
            session.deck = deck
            session.discard = []
            session.turn_index = 0
            session.phase = Phase.PLAYING
            self._draw(session)
            logger.info('[session-started] game=%s deck=%d first_turn=%s',
                        session.code, len(deck), session.members[0].nickname)
            return True

    def place_card(self, code: SessionCode, connection_id: ConnectionId, position: Position) -> bool:
        """Place the active card for ``connection_id``; returns placement validity.

        Turn ownership is checked by the caller. A winning placement ends the
        game without advancing the turn; anything else passes the turn on and
        deals the next card.
        """
        with self.locked(code) as session:
            if session is None or session.active_item is None or session.phase != Phase.PLAYING:
                return False
            member = session.find_member(connection_id.value)
            if member is None:
                return False

            item = session.active_item
            is_valid = placement_is_valid(member.timeline, item, position.value)
            if is_valid:
                member.timeline.insert(position.value, item)
                if len(member.timeline) >= self.winning_length:
                    session.active_item = None
                    session.phase = Phase.FINISHED
                    logger.info('[session-won] game=%s winner=%s', session.code, member.nickname)
                    return True
            else:
                session.discard.append(item)

            session.active_item = None
            session.turn_index = (session.turn_index + 1) % len(session.members)
            self._draw(session)
            return is_valid

    def get_winner(self, code: SessionCode) -> Optional[Member]:
        with self.locked(code) as session:
            if session is None:
                return None
            return next((m for m in session.members if len(m.timeline) >= self.winning_length), None)

    def remove_member(self, connection_id: ConnectionId) -> Optional[Departure]:
        """Drop a connection from its game.

        Losing the host or the last member destroys the session.
        """
        with self._registry_lock:
            entries = list(self._entries.values())
        # membership is only read under each entry's own lock
        for entry in entries:
            with entry.lock:
                session = entry.session
                if self._entry(session.code) is not entry:
                    continue
                index = next((i for i, m in enumerate(session.members)
                              if m.connection_id == connection_id.value), None)
                if index is None:
                    continue
                member = session.members.pop(index)
                ended = member.is_host or not session.members
                if ended:
                    with self._registry_lock:
                        self._entries.pop(session.code, None)
                    logger.info('[session-ended] game=%s reason=%s', session.code,
                                'host-left' if member.is_host else 'empty')
                else:
                    # keep turn_index pointing at the same member; if the
                    # current member left, the next one inherits the card
                    if index < session.turn_index:
                        session.turn_index -= 1
                    if session.turn_index >= len(session.members):
                        session.turn_index = 0
                    logger.info('[session-left] game=%s nickname=%s players=%d',
                                session.code, member.nickname, len(session.members))
                return Departure(code=session.code, nickname=member.nickname,
                                 was_host=member.is_host, session_ended=ended)
        return None

    # ---- internals ----

    def _draw(self, session: Session) -> None:
        """Move the next card into play, recycling discards when the deck runs dry.

        With nothing left anywhere the game finishes without a winner.
        """
        if not session.deck and session.discard:
            session.deck, session.discard = session.discard, []
            self._rng.shuffle(session.deck)
            logger.info('[deck-reshuffled] game=%s cards=%d', session.code, len(session.deck))
        if not session.deck:
            session.active_item = None
            session.phase = Phase.FINISHED
            logger.info('[deck-exhausted] game=%s', session.code)
            return
        session.active_item = session.deck.pop(0)
