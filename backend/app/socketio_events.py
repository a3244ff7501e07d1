from functools import wraps

from flask import current_app, request
from flask_socketio import close_room, emit, join_room, leave_room

from app import get_catalog, get_engine, socketio
from app.services.games import handlers
from app.services.games.messages import (
    CardPlaced,
    CreateGameSuccess,
    Failure,
    GameEnded,
    GameStarted,
    GameWon,
    JoinGameSuccess,
    LeaveGameSuccess,
    PlaceCardSuccess,
    PlayerJoined,
    PlayerLeft,
    StartGameSuccess,
)
from app.services.games.values import ConnectionId

NAMESPACE = '/ws'


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _room(game_code: str) -> str:
    return f"game:{game_code}"


def _broadcast(event, game_code: str) -> None:
    socketio.emit(event.name, event.to_dict(), to=_room(game_code), namespace=NAMESPACE)


def _hub_method(failure_message: str):
    """Turn a handler returning a HubResult into an acknowledgement.

    Any fault that escapes is logged and reported as ``failure_message``;
    raw exceptions never reach the client.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(data=None):
            try:
                return fn(data if isinstance(data, dict) else {}).to_dict()
            except Exception:
                current_app.logger.exception(f"[hub-error] event={fn.__name__} sid={_get_sid()}")
                return Failure(failure_message).to_dict()
        return wrapper
    return decorator


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


@_hub_method('Failed to create game')
def handle_create_game(data):
    nickname = data.get('nickname')
    result = handlers.create_game(get_engine(), _get_sid(), nickname)
    if result.is_failure:
        return Failure(result.error.message)
    response = result.value
    join_room(_room(response.game_code))
    current_app.logger.info(f"[create] game={response.game_code} nickname={nickname}")
    return CreateGameSuccess(response.game_code, response.players)


@_hub_method('Failed to join game')
def handle_join_game(data):
    nickname = data.get('nickname')
    result = handlers.join_game(get_engine(), data.get('gameCode'), _get_sid(), nickname)
    if result.is_failure:
        return Failure(result.error.message)
    response = result.value
    join_room(_room(response.game_code))
    _broadcast(PlayerJoined(player=response.players[-1].nickname, players=response.players), response.game_code)
    current_app.logger.info(f"[join] game={response.game_code} nickname={nickname} players={len(response.players)}")
    return JoinGameSuccess(response.players)


@_hub_method('Failed to start game')
def handle_start_game(data):
    result = handlers.start_game(get_engine(), get_catalog(), data.get('gameCode'), _get_sid())
    if result.is_failure:
        return Failure(result.error.message)
    response = result.value
    code = response.game_code
    _broadcast(GameStarted(current_turn=response.current_player_nickname, card=response.current_card), code)
    current_app.logger.info(f"[start] game={code} first_turn={response.current_player_nickname}")
    return StartGameSuccess()


@_hub_method('Failed to place card')
def handle_place_card(data):
    result = handlers.place_card(get_engine(), data.get('gameCode'), _get_sid(), data.get('position'))
    if result.is_failure:
        return Failure(result.error.message)
    response = result.value
    code = response.game_code

    if response.game_finished and response.winner_nickname is not None:
        _broadcast(GameWon(winner=response.winner_nickname, timeline=response.player_timeline), code)
        current_app.logger.info(f"[won] game={code} winner={response.winner_nickname}")
        return PlaceCardSuccess(is_valid=response.is_valid, game_finished=True)

    _broadcast(CardPlaced.from_response(response), code)
    current_app.logger.info(
        f"[place] game={code} player={response.player_nickname} position={response.position} valid={response.is_valid}"
    )
    if response.game_finished:
        _broadcast(GameEnded(reason='deck_exhausted'), code)
        current_app.logger.info(f"[finish] game={code} reason=deck_exhausted")
    return PlaceCardSuccess(is_valid=response.is_valid, game_finished=response.game_finished)


def _depart():
    """Remove the current connection from its game and tell the room."""
    cid = ConnectionId.create(_get_sid())
    if cid.is_failure:
        return None
    departure = get_engine().remove_member(cid.value)
    if departure is None:
        return None
    room = _room(departure.code)
    _broadcast(PlayerLeft(nickname=departure.nickname, game_ended=departure.session_ended), departure.code)
    current_app.logger.info(
        f"[leave] game={departure.code} nickname={departure.nickname} ended={departure.session_ended}"
    )
    if departure.session_ended:
        close_room(room, namespace=NAMESPACE)
    else:
        leave_room(room)
    return departure


def handle_disconnect(reason=None):
    try:
        _depart()
    except Exception:
        current_app.logger.exception(f"[hub-error] event=disconnect sid={_get_sid()}")


@_hub_method('Failed to leave game')
def handle_leave_game(data):
    departure = _depart()
    if departure is None:
        return Failure('You are not in a game.')
    return LeaveGameSuccess(departure.code, departure.session_ended)


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('create_game', handle_create_game, namespace=NAMESPACE)
    socketio.on_event('join_game', handle_join_game, namespace=NAMESPACE)
    socketio.on_event('start_game', handle_start_game, namespace=NAMESPACE)
    socketio.on_event('place_card', handle_place_card, namespace=NAMESPACE)
    socketio.on_event('leave_game', handle_leave_game, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
