import json
import queue

import pytest

from infinirust.server_players import Player, Players


def _drain(q):
    items = []
    while not q.empty():
        items.append(q.get_nowait())
    return items


def test_new_players_get_consecutive_uids(tmp_path):
    players = Players(tmp_path)
    assert players.login("alice", queue.Queue()) == 0
    assert players.login("bob", queue.Queue()) == 1
    assert [p.player.name for p in players.online()] == ["alice", "bob"]


def test_double_login_is_refused(tmp_path):
    players = Players(tmp_path)
    players.login("alice", queue.Queue())
    assert players.login("alice", queue.Queue()) is None


def test_logout_keeps_state_for_next_login(tmp_path):
    players = Players(tmp_path)
    uid = players.login("alice", queue.Queue())
    players.get_player(uid).pos = (1.0, 2.0, 3.0)
    players.logout(uid)
    assert list(players.online()) == []
    assert players.login("alice", queue.Queue()) == uid
    assert players.get_player(uid).pos == (1.0, 2.0, 3.0)


def test_logout_of_offline_player_fails(tmp_path):
    players = Players(tmp_path)
    with pytest.raises(KeyError):
        players.logout(0)


def test_client_of_offline_player_fails(tmp_path):
    players = Players(tmp_path)
    uid = players.login("alice", queue.Queue())
    players.logout(uid)
    with pytest.raises(KeyError):
        players.client(uid)


def test_client_returns_the_login_queue(tmp_path):
    players = Players(tmp_path)
    client = queue.Queue()
    uid = players.login("alice", client)
    assert players.client(uid) is client


def test_sync_to_disk_round_trip(tmp_path):
    players = Players(tmp_path)
    uid = players.login("alice", queue.Queue())
    players.login("bob", queue.Queue())
    player = players.get_player(uid)
    player.pos = (4.5, -1.0, 2.0)
    player.pitch = 0.25
    player.yaw = 1.5
    players.sync_to_disk(tmp_path)

    loaded = Players(tmp_path)
    assert loaded.registered == [
        Player("alice", (4.5, -1.0, 2.0), 0.25, 1.5),
        Player("bob"),
    ]
    assert list(loaded.online()) == []
    assert loaded.login("bob", queue.Queue()) == 1


def test_invalid_players_file(tmp_path):
    (tmp_path / "players.json").write_text(json.dumps([{"name": "x"}]))
    with pytest.raises(ValueError):
        Players(tmp_path)


def test_broadcast_reaches_everyone_and_drops_on_full(tmp_path):
    players = Players(tmp_path)
    full = queue.Queue(maxsize=1)
    full.put(b"old")
    open_queue = queue.Queue()
    players.login("alice", full)
    players.login("bob", open_queue)
    players.broadcast(b"hello")
    assert _drain(full) == [b"old"]
    assert _drain(open_queue) == [b"hello"]


def test_broadcast_filtered(tmp_path):
    players = Players(tmp_path)
    queues = [queue.Queue() for _ in range(3)]
    for name, q in zip(["a", "b", "c"], queues):
        players.login(name, q)
    players.broadcast_filtered(b"x", lambda p: p.uid != 1)
    assert [_drain(q) for q in queues] == [[b"x"], [], [b"x"]]