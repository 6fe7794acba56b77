import pytest

from giveawaybot.models import (
    ActiveGame,
    ClassicData,
    Giveaway,
    GiveawayType,
    GuessData,
    PendingCreation,
    RuntimeState,
)


def guess_giveaway(**overrides) -> Giveaway:
    options = dict(
        message_id=10,
        channel_id=20,
        guild_id=30,
        organizer_id=40,
        prize="Nitro",
        end_timestamp=5_000,
        type=GiveawayType.GUESS,
        data=GuessData(
            secret_number=7, required_role_id=99, hints_enabled=True, cooldown_ms=20_000
        ),
        thread_id=11,
    )
    options.update(overrides)
    return Giveaway(**options)


def pending(user_id: int, created_at: int) -> PendingCreation:
    return PendingCreation(
        user_id=user_id, prize="x", duration_ms=1, cooldown_ms=1, created_at=created_at
    )


class TestPayloads:
    def test_guess_payload(self):
        data = GuessData(secret_number=-3, hints_enabled=True, winner_id=5)
        assert GuessData.from_payload(data.to_payload()) == data

    def test_classic_payload_defaults(self):
        assert ClassicData.from_payload({}) == ClassicData()

    def test_data_dispatch(self):
        assert isinstance(
            Giveaway.data_from_payload(GiveawayType.CLASSIC, {"winner_count": 3}),
            ClassicData,
        )
        assert isinstance(
            Giveaway.data_from_payload(GiveawayType.GUESS, {"secret_number": 1}),
            GuessData,
        )


class TestActiveGame:
    def test_from_guess_giveaway(self):
        game = ActiveGame.from_giveaway(guess_giveaway())
        assert game.thread_id == 11
        assert game.message_id == 10
        assert game.secret_number == 7
        assert game.required_role_id == 99
        assert game.hints_enabled is True
        assert game.cooldown_ms == 20_000
        assert game.end_timestamp == 5_000

    def test_rejects_classic(self):
        giveaway = guess_giveaway(type=GiveawayType.CLASSIC, data=ClassicData())
        with pytest.raises(ValueError):
            ActiveGame.from_giveaway(giveaway)

    def test_rejects_missing_thread(self):
        with pytest.raises(ValueError):
            ActiveGame.from_giveaway(guess_giveaway(thread_id=None))


class TestRuntimeState:
    def test_game_index(self):
        state = RuntimeState()
        game = ActiveGame.from_giveaway(guess_giveaway())
        state.upsert_game(game)
        assert state.get_game(11) is game
        assert state.remove_game(11) is game
        assert state.remove_game(11) is None
        assert state.remove_game(None) is None

    def test_replace_games(self):
        state = RuntimeState()
        state.upsert_game(ActiveGame.from_giveaway(guess_giveaway(thread_id=1)))
        state.replace_games([ActiveGame.from_giveaway(guess_giveaway(thread_id=2))])
        assert list(state.games) == [2]

    def test_pending_take_and_prune(self):
        state = RuntimeState()
        state.put_pending(pending(1, 100))
        state.put_pending(pending(2, 500))
        assert state.prune_pending(older_than=200) == 1
        assert state.take_pending(1) is None
        assert state.take_pending(2).created_at == 500
        assert state.take_pending(2) is None
