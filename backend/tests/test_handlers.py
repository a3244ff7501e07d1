import threading

import pytest

from app.models import CatalogItem, Phase
from app.services.games import handlers
from app.services.games.catalog import CatalogProvider, CatalogUnavailable, StaticCatalog
from app.services.games.result import ErrorKind
from app.services.games.values import ConnectionId, SessionCode
from conftest import songs


class BrokenCatalog(CatalogProvider):
    name = 'broken'

    def fetch_items(self):
        raise CatalogUnavailable('catalog is down')


@pytest.fixture()
def catalog():
    return StaticCatalog(songs(2000, 1990, 2010, 1980, 2020))


def new_game(engine, *names):
    code = handlers.create_game(engine, 'sid-0', names[0]).value.game_code
    for i, name in enumerate(names[1:], start=1):
        assert handlers.join_game(engine, code, f'sid-{i}', name).is_success
    return code


def started(engine, catalog, *names):
    code = new_game(engine, *names)
    assert handlers.start_game(engine, catalog, code, 'sid-0').is_success
    return code


def session_of(engine, code):
    return engine.get_session(SessionCode.create(code).value)


# ---- create ----

def test_create_returns_code_and_host():
    from app.services.games.engine import SessionEngine
    engine = SessionEngine()
    result = handlers.create_game(engine, 'sid-0', '  Alice ')
    assert result.is_success
    response = result.value
    assert len(response.game_code) == 8
    assert [(p.nickname, p.is_host) for p in response.players] == [('Alice', True)]


def test_create_twice_conflicts(engine):
    handlers.create_game(engine, 'sid-0', 'Alice')
    result = handlers.create_game(engine, 'sid-1', 'Bob')
    assert result.error.kind == ErrorKind.CONFLICT


@pytest.mark.parametrize('connection_id, nickname', [('', 'Alice'), ('sid-0', 'A'), ('sid-0', 'x' * 21), ('sid-0', None)])
def test_create_validates_input(engine, connection_id, nickname):
    result = handlers.create_game(engine, connection_id, nickname)
    assert result.error.kind == ErrorKind.VALIDATION
    assert engine.active_sessions() == []


# ---- join ----

def test_join_adds_non_host_and_accepts_lowercase_code(engine):
    code = new_game(engine, 'Alice')
    result = handlers.join_game(engine, code.lower(), 'sid-1', 'Bob')
    assert result.is_success
    assert result.value.game_code == code
    assert [(p.nickname, p.is_host) for p in result.value.players] == [('Alice', True), ('Bob', False)]


def test_join_with_case_variant_nickname_conflicts(engine):
    code = new_game(engine, 'Alice', 'Bob')
    result = handlers.join_game(engine, code, 'sid-2', 'alice')
    assert result.error.kind == ErrorKind.CONFLICT
    assert len(session_of(engine, code).members) == 2


def test_join_same_connection_twice_conflicts(engine):
    code = new_game(engine, 'Alice')
    result = handlers.join_game(engine, code, 'sid-0', 'Alias')
    assert result.error.kind == ErrorKind.CONFLICT


def test_join_unknown_and_malformed_codes(engine):
    new_game(engine, 'Alice')
    assert handlers.join_game(engine, 'ZZZZ9999', 'sid-1', 'Bob').error.kind == ErrorKind.NOT_FOUND
    assert handlers.join_game(engine, 'bad', 'sid-1', 'Bob').error.kind == ErrorKind.VALIDATION
    assert handlers.join_game(engine, 'ZZZZ9999', 'sid-1', 'B').error.kind == ErrorKind.VALIDATION


def test_join_full_game_is_business_rule(engine):
    code = new_game(engine, 'Alice', 'Bob', 'Cara', 'Dave')
    result = handlers.join_game(engine, code, 'sid-9', 'Erin')
    assert result.error.kind == ErrorKind.BUSINESS_RULE
    assert 'Maximum 4 players' in result.error.message


def test_join_after_start_is_business_rule(engine, catalog):
    code = started(engine, catalog, 'Alice', 'Bob')
    result = handlers.join_game(engine, code, 'sid-9', 'Cara')
    assert result.error.kind == ErrorKind.BUSINESS_RULE


# ---- start ----

def test_start_by_non_host_is_unauthorized(engine, catalog):
    code = new_game(engine, 'Alice', 'Bob')
    result = handlers.start_game(engine, catalog, code, 'sid-1')
    assert result.error.kind == ErrorKind.UNAUTHORIZED
    assert session_of(engine, code).phase == Phase.LOBBY


def test_start_alone_needs_two_players(engine, catalog):
    code = new_game(engine, 'Alice')
    result = handlers.start_game(engine, catalog, code, 'sid-0')
    assert result.error.kind == ErrorKind.BUSINESS_RULE
    assert 'At least 2 players' in result.error.message


def test_start_reports_first_turn_and_card(engine, catalog):
    code = new_game(engine, 'Alice', 'Bob')
    result = handlers.start_game(engine, catalog, code.lower(), 'sid-0')
    assert result.is_success
    response = result.value
    assert response.game_code == code
    assert response.current_player_nickname == 'Alice'
    assert response.current_card_title == 'Song 0'
    assert response.current_card.year == 2000
    assert session_of(engine, code).phase == Phase.PLAYING


def test_start_twice_is_business_rule(engine, catalog):
    code = started(engine, catalog, 'Alice', 'Bob')
    assert handlers.start_game(engine, catalog, code, 'sid-0').error.kind == ErrorKind.BUSINESS_RULE


def test_start_unknown_game_is_not_found(engine, catalog):
    assert handlers.start_game(engine, catalog, 'ZZZZ9999', 'sid-0').error.kind == ErrorKind.NOT_FOUND


def test_start_with_unavailable_catalog_stays_in_lobby(engine):
    code = new_game(engine, 'Alice', 'Bob')
    result = handlers.start_game(engine, BrokenCatalog(), code, 'sid-0')
    assert result.error.kind == ErrorKind.BUSINESS_RULE
    assert 'unavailable' in result.error.message
    assert session_of(engine, code).phase == Phase.LOBBY


def test_start_with_empty_catalog_is_business_rule(engine):
    code = new_game(engine, 'Alice', 'Bob')
    result = handlers.start_game(engine, StaticCatalog([]), code, 'sid-0')
    assert result.error.kind == ErrorKind.BUSINESS_RULE


# ---- place card ----

def test_place_card_valid_then_turn_passes(engine, catalog):
    code = started(engine, catalog, 'Alice', 'Bob')
    result = handlers.place_card(engine, code.lower(), 'sid-0', 0)
    assert result.is_success
    response = result.value
    assert response.is_valid is True
    assert response.game_finished is False
    assert response.player_nickname == 'Alice'
    assert [c.year for c in response.player_timeline] == [2000]
    assert response.current_player_nickname == 'Bob'
    assert response.next_card.year == 1990
    assert response.winner_nickname is None


def test_place_card_invalid_still_passes_turn(engine, catalog):
    code = started(engine, catalog, 'Alice', 'Bob')
    handlers.place_card(engine, code, 'sid-0', 0)      # Alice: [2000]
    handlers.place_card(engine, code, 'sid-1', 0)      # Bob: [1990]
    result = handlers.place_card(engine, code, 'sid-0', 0)  # 2010 before 2000
    response = result.value
    assert response.is_valid is False
    assert [c.year for c in response.player_timeline] == [2000]
    assert response.current_player_nickname == 'Bob'


def test_place_card_out_of_turn(engine, catalog):
    code = started(engine, catalog, 'Alice', 'Bob')
    result = handlers.place_card(engine, code, 'sid-1', 0)
    assert result.error.kind == ErrorKind.BUSINESS_RULE
    assert result.error.message == 'It is not your turn.'


def test_place_card_by_stranger_is_not_found(engine, catalog):
    code = started(engine, catalog, 'Alice', 'Bob')
    assert handlers.place_card(engine, code, 'sid-9', 0).error.kind == ErrorKind.NOT_FOUND


def test_place_card_position_checks(engine, catalog):
    code = started(engine, catalog, 'Alice', 'Bob')
    too_far = handlers.place_card(engine, code, 'sid-0', 1)
    assert too_far.error.kind == ErrorKind.BUSINESS_RULE
    assert 'out of range' in too_far.error.message
    assert handlers.place_card(engine, code, 'sid-0', -1).error.kind == ErrorKind.VALIDATION


@pytest.mark.parametrize('position', ['--1', '\u00b2', '1e3', '9' * 5000])
def test_place_card_malformed_position_is_validation(engine, catalog, position):
    code = started(engine, catalog, 'Alice', 'Bob')
    result = handlers.place_card(engine, code, 'sid-0', position)
    assert result.error.kind == ErrorKind.VALIDATION
    assert result.error.message in ('Position must be an integer', 'Position cannot be negative')
    assert session_of(engine, code).turn_index == 0


def test_place_card_before_start(engine):
    code = new_game(engine, 'Alice', 'Bob')
    result = handlers.place_card(engine, code, 'sid-0', 0)
    assert result.error.kind == ErrorKind.BUSINESS_RULE


def test_place_card_winning_move(engine, catalog):
    code = started(engine, catalog, 'Alice', 'Bob')
    session = session_of(engine, code)
    alice = session.members[0]
    alice.timeline[:] = [CatalogItem(f'Old {i}', 'Someone', 1900 + i) for i in range(9)]

    result = handlers.place_card(engine, code, 'sid-0', 9)
    response = result.value
    assert response.is_valid and response.game_finished
    assert response.winner_nickname == 'Alice'
    assert response.current_player_nickname is None
    assert len(response.player_timeline) == 10
    assert handlers.place_card(engine, code, 'sid-0', 0).error.kind == ErrorKind.BUSINESS_RULE


def test_place_card_when_deck_runs_dry(engine):
    code = started(engine, StaticCatalog(songs(2000)), 'Alice', 'Bob')
    response = handlers.place_card(engine, code, 'sid-0', 0).value
    assert response.is_valid
    assert response.game_finished
    assert response.winner_nickname is None
    assert response.next_card is None


# ---- concurrency ----

def run_together(count, target):
    barrier = threading.Barrier(count)
    results = [None] * count

    def worker(i):
        barrier.wait()
        results[i] = target(i)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    return results


def test_racing_placements_apply_once(engine, catalog):
    code = started(engine, catalog, 'Alice', 'Bob')
    results = run_together(8, lambda i: handlers.place_card(engine, code, 'sid-0', 0))

    assert sum(r.is_success for r in results) == 1
    assert all(r.error.message == 'It is not your turn.' for r in results if r.is_failure)
    session = session_of(engine, code)
    assert session.turn_index == 1
    assert [c.year for c in session.members[0].timeline] == [2000]


def test_departure_racing_placement_keeps_turn_in_bounds(engine):
    code = started(engine, StaticCatalog(songs(*range(1960, 1990))), 'Alice', 'Bob', 'Cara')

    def act(i):
        if i == 0:
            return engine.remove_member(ConnectionId.create('sid-1').value)
        return handlers.place_card(engine, code, 'sid-0', 0)

    results = run_together(4, act)
    assert results[0].nickname == 'Bob'
    placed = [r for r in results[1:] if r.is_success]
    assert len(placed) == 1
    session = session_of(engine, code)
    assert [m.nickname for m in session.members] == ['Alice', 'Cara']
    assert session.current_member.nickname == 'Cara'
    assert len(session.members[0].timeline) == 1
