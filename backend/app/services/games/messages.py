"""Wire shapes: handler responses, acknowledgement results and broadcasts.

Acknowledgements are a closed set of variants, each serialized with an
explicit ``$type`` discriminator next to ``success``. Broadcast events carry
their Socket.IO event name in ``name``.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from app.models import CatalogItem, Member, Session


@dataclass(frozen=True)
class PlayerView:
    nickname: str
    is_host: bool

    @classmethod
    def of(cls, member: Member) -> 'PlayerView':
        return cls(member.nickname, member.is_host)

    def to_dict(self):
        return {'nickname': self.nickname, 'isHost': self.is_host}


def roster(session: Session) -> Tuple[PlayerView, ...]:
    return tuple(PlayerView.of(m) for m in session.members)


def _card(item: Optional[CatalogItem]):
    return item.to_dict() if item else None


# ---- handler responses ----

@dataclass(frozen=True)
class CreateGameResponse:
    game_code: str
    players: Tuple[PlayerView, ...]


@dataclass(frozen=True)
class JoinGameResponse:
    game_code: str
    players: Tuple[PlayerView, ...]


@dataclass(frozen=True)
class StartGameResponse:
    game_code: str
    current_player_nickname: str
    current_card_title: Optional[str]
    current_card: Optional[CatalogItem] = None


@dataclass(frozen=True)
class PlaceCardResponse:
    game_code: str
    is_valid: bool
    game_finished: bool
    player_nickname: str
    position: int
    player_timeline: Tuple[CatalogItem, ...]
    current_player_nickname: Optional[str]
    next_card: Optional[CatalogItem]
    winner_nickname: Optional[str]


# ---- acknowledgement results ----

class HubResult:
    type_name = ''
    success = True

    def payload(self):
        return {}

    def to_dict(self):
        data = {'$type': self.type_name, 'success': self.success}
        data.update(self.payload())
        return data


@dataclass(frozen=True)
class Failure(HubResult):
    message: str
    type_name = 'failure'
    success = False

    def payload(self):
        return {'message': self.message}


@dataclass(frozen=True)
class CreateGameSuccess(HubResult):
    game_code: str
    players: Tuple[PlayerView, ...]
    type_name = 'createGameSuccess'

    def payload(self):
        return {'gameCode': self.game_code, 'players': [p.to_dict() for p in self.players]}


@dataclass(frozen=True)
class JoinGameSuccess(HubResult):
    players: Tuple[PlayerView, ...]
    type_name = 'joinGameSuccess'

    def payload(self):
        return {'players': [p.to_dict() for p in self.players]}


@dataclass(frozen=True)
class StartGameSuccess(HubResult):
    type_name = 'startGameSuccess'


@dataclass(frozen=True)
class LeaveGameSuccess(HubResult):
    game_code: str
    game_ended: bool
    type_name = 'leaveGameSuccess'

    def payload(self):
        return {'gameCode': self.game_code, 'gameEnded': self.game_ended}


@dataclass(frozen=True)
class PlaceCardSuccess(HubResult):
    is_valid: bool
    game_finished: bool
    type_name = 'placeCardSuccess'

    def payload(self):
        return {'isValid': self.is_valid, 'gameFinished': self.game_finished}


# ---- broadcast events ----

@dataclass(frozen=True)
class PlayerJoined:
    player: str
    players: Tuple[PlayerView, ...]
    name = 'PlayerJoined'

    def to_dict(self):
        return {'player': self.player, 'players': [p.to_dict() for p in self.players]}


@dataclass(frozen=True)
class GameStarted:
    current_turn: str
    card: Optional[CatalogItem]
    name = 'GameStarted'

    def to_dict(self):
        return {'currentTurn': self.current_turn, 'card': _card(self.card)}


@dataclass(frozen=True)
class CardPlaced:
    player: str
    is_valid: bool
    position: int
    timeline: Tuple[CatalogItem, ...]
    current_turn: Optional[str]
    next_card: Optional[CatalogItem]
    name = 'CardPlaced'

    @classmethod
    def from_response(cls, response: PlaceCardResponse) -> 'CardPlaced':
        return cls(
            player=response.player_nickname,
            is_valid=response.is_valid,
            position=response.position,
            timeline=response.player_timeline,
            current_turn=response.current_player_nickname,
            next_card=response.next_card,
        )

    def to_dict(self):
        return {
            'player': self.player,
            'isValid': self.is_valid,
            'position': self.position,
            'timeline': [c.to_dict() for c in self.timeline],
            'currentTurn': self.current_turn,
            'nextCard': _card(self.next_card),
        }


@dataclass(frozen=True)
class GameWon:
    winner: str
    timeline: Tuple[CatalogItem, ...]
    name = 'GameWon'

    def to_dict(self):
        return {'winner': self.winner, 'timeline': [c.to_dict() for c in self.timeline]}


@dataclass(frozen=True)
class GameEnded:
    reason: str
    name = 'GameEnded'

    def to_dict(self):
        return {'reason': self.reason}


@dataclass(frozen=True)
class PlayerLeft:
    nickname: str
    game_ended: bool
    name = 'PlayerLeft'

    def to_dict(self):
        return {'nickname': self.nickname, 'gameEnded': self.game_ended}
