"""Command handlers: one per player action.

Each handler validates raw input into value objects, checks the session
under its lock, delegates the mutation to the engine and shapes a response.
Every expected failure comes back as a failed Result.
"""

import logging
from typing import Optional

from app.models import Phase, Session
from .catalog import CatalogProvider, CatalogUnavailable
from .engine import SessionEngine
from .messages import (
    CreateGameResponse,
    JoinGameResponse,
    PlaceCardResponse,
    StartGameResponse,
    roster,
)
from .result import Error, Result
from .values import ConnectionId, Nickname, Position, SessionCode

logger = logging.getLogger(__name__)


def _first_failure(*results: Result) -> Optional[Error]:
    for result in results:
        if result.is_failure:
            return result.error
    return None


def _not_found(raw_code) -> Error:
    return Error.not_found(f"Game with code '{raw_code}' not found.")


def create_game(engine: SessionEngine, connection_id, nickname) -> Result[CreateGameResponse]:
    cid = ConnectionId.create(connection_id)
    if cid.is_failure:
        return Result.failure(cid.error)
    nick = Nickname.create(nickname)
    if nick.is_failure:
        return Result.failure(nick.error)

    created = engine.create_session(cid.value, nick.value)
    if created.is_failure:
        return Result.failure(created.error)
    session = created.value
    return Result.success(CreateGameResponse(session.code, roster(session)))


def join_game(engine: SessionEngine, game_code, connection_id, nickname) -> Result[JoinGameResponse]:
    code, cid, nick = SessionCode.create(game_code), ConnectionId.create(connection_id), Nickname.create(nickname)
    error = _first_failure(code, cid, nick)
    if error:
        return Result.failure(error)
    code, cid, nick = code.value, cid.value, nick.value

    with engine.locked(code) as session:
        if session is None:
            return Result.failure(_not_found(game_code))
        if session.phase != Phase.LOBBY:
            return Result.failure(Error.business_rule('Cannot join a game that has already started.'))
        if len(session.members) >= engine.max_players:
            return Result.failure(Error.business_rule(
                f'Game is full. Maximum {engine.max_players} players allowed.'))
        if any(nick.matches(m.nickname) for m in session.members):
            return Result.failure(Error.conflict(
                f"A player with nickname '{nick}' already exists in this game."))
        if session.find_member(cid.value):
            return Result.failure(Error.conflict('You are already in this game.'))

        if not engine.join_session(code, cid, nick):
            return Result.failure(Error.business_rule('Failed to join game due to an unexpected error.'))

        updated = engine.get_session(code)
        if updated is None:
            return Result.failure(Error.business_rule('Game disappeared after join operation.'))
        return Result.success(JoinGameResponse(updated.code, roster(updated)))


def _check_startable(engine: SessionEngine, session: Optional[Session], cid: ConnectionId, raw_code) -> Optional[Error]:
    if session is None:
        return _not_found(raw_code)
    if session.phase != Phase.LOBBY:
        return Error.business_rule('Game has already been started.')
    host = session.host
    if host is None:
        return Error.business_rule('No host found for this game.')
    if host.connection_id != cid.value:
        return Error.unauthorized('Only the host can start the game.')
    if len(session.members) < engine.min_players:
        return Error.business_rule(f'At least {engine.min_players} players are required to start the game.')
    return None


def start_game(engine: SessionEngine, catalog: CatalogProvider, game_code, connection_id) -> Result[StartGameResponse]:
    code, cid = SessionCode.create(game_code), ConnectionId.create(connection_id)
    error = _first_failure(code, cid)
    if error:
        return Result.failure(error)
    code, cid = code.value, cid.value

    with engine.locked(code) as session:
        error = _check_startable(engine, session, cid, game_code)
    if error:
        return Result.failure(error)

    # catalog I/O happens outside the session lock
    try:
        items = catalog.fetch_items()
    except CatalogUnavailable as exc:
        logger.warning('[start] game=%s catalog=%s unavailable: %s', code, catalog.name, exc)
        return Result.failure(Error.business_rule('The music catalog is currently unavailable.'))
    if not items:
        return Result.failure(Error.business_rule('The music catalog returned no playable songs.'))

    with engine.locked(code) as session:
        # state may have moved on while the catalog was fetched
        error = _check_startable(engine, session, cid, game_code)
        if error:
            return Result.failure(error)

        if not engine.start_session(code, items):
            return Result.failure(Error.business_rule('Failed to start game due to an unexpected error.'))

        updated = engine.get_session(code)
        if updated is None:
            return Result.failure(Error.business_rule('Game disappeared after start operation.'))
        current = updated.current_member
        card = updated.active_item
        return Result.success(StartGameResponse(
            game_code=updated.code,
            current_player_nickname=current.nickname if current else 'Unknown',
            current_card_title=card.title if card else None,
            current_card=card,
        ))


def place_card(engine: SessionEngine, game_code, connection_id, position) -> Result[PlaceCardResponse]:
    code, cid, pos = SessionCode.create(game_code), ConnectionId.create(connection_id), Position.create(position)
    error = _first_failure(code, cid, pos)
    if error:
        return Result.failure(error)
    code, cid, pos = code.value, cid.value, pos.value

    with engine.locked(code) as session:
        if session is None:
            return Result.failure(_not_found(game_code))
        if session.phase != Phase.PLAYING:
            return Result.failure(Error.business_rule('Game is not in playing state.'))
        if session.active_item is None:
            return Result.failure(Error.business_rule('No card is currently drawn.'))
        member = session.find_member(cid.value)
        if member is None:
            return Result.failure(Error.not_found('Player not found in game.'))
        current = session.current_member
        if current is None or current.connection_id != cid.value:
            return Result.failure(Error.business_rule('It is not your turn.'))
        if pos.value > len(member.timeline):
            return Result.failure(Error.business_rule(
                f'Position {pos.value} is out of range. Timeline length is {len(member.timeline)}.'))

        is_valid = engine.place_card(code, cid, pos)
        winner = engine.get_winner(code)

        updated = engine.get_session(code)
        if updated is None:
            return Result.failure(Error.business_rule('Game disappeared after card placement.'))
        finished = updated.phase == Phase.FINISHED
        next_member = None if finished else updated.current_member
        return Result.success(PlaceCardResponse(
            game_code=updated.code,
            is_valid=is_valid,
            game_finished=finished,
            player_nickname=member.nickname,
            position=pos.value,
            player_timeline=tuple(member.timeline),
            current_player_nickname=next_member.nickname if next_member else None,
            next_card=updated.active_item,
            winner_nickname=winner.nickname if winner else None,
        ))
