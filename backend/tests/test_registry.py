import pytest

from royale.services.games.errors import RoomNotFound, ValidationError
from royale.services.games.registry import RoomRegistry, normalize_room_code
from royale.services.games.state import GameMode, RoomState


class ScriptedRandom:
    """Returns queued randint values, for forcing code collisions."""

    def __init__(self, values):
        self.values = list(values)

    def randint(self, a, b):
        return self.values.pop(0)


def test_new_room_is_waiting_with_four_digit_code():
    registry = RoomRegistry()
    room = registry.create_room(GameMode.REFLEX, 'host-1')
    assert room.state is RoomState.WAITING
    assert room.code.isdigit() and len(room.code) == 4
    assert registry.get_room(room.code) is room


def test_live_codes_never_collide():
    registry = RoomRegistry()
    codes = {registry.create_room(GameMode.REFLEX, f'h{i}').code for i in range(300)}
    assert len(codes) == 300


def test_collision_rerolls_until_free():
    registry = RoomRegistry(rng=ScriptedRandom([4242, 4242, 4242, 1111]))
    first = registry.create_room(GameMode.REFLEX, 'h1')
    second = registry.create_room(GameMode.CONQUEST, 'h2')
    assert first.code == '4242'
    assert second.code == '1111'


def test_codes_are_reusable_after_delete():
    registry = RoomRegistry(rng=ScriptedRandom([5000, 5000]))
    room = registry.create_room(GameMode.REFLEX, 'h1')
    registry.delete_room(room.code)
    again = registry.create_room(GameMode.REFLEX, 'h2')
    assert again.code == '5000'
    assert again.host_connection_id == 'h2'


def test_delete_is_safe_to_repeat():
    registry = RoomRegistry()
    room = registry.create_room(GameMode.REFLEX, 'h1')
    assert registry.delete_room(room.code) is room
    assert registry.delete_room(room.code) is None
    assert registry.get_room(room.code) is None


@pytest.mark.parametrize('raw', ['', '12', '12345', 'abcd', '12a4', None, ['1234'], True])
def test_malformed_codes_are_rejected_before_lookup(raw):
    with pytest.raises(ValidationError):
        normalize_room_code(raw)


def test_code_normalisation_accepts_ints_and_whitespace():
    assert normalize_room_code(' 1234 ') == '1234'
    assert normalize_room_code(1234) == '1234'


def test_require_room_raises_not_found():
    with pytest.raises(RoomNotFound):
        RoomRegistry().require_room('9999')
