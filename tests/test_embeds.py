from giveawaybot import embeds
from giveawaybot.models import (
    ClassicData,
    Giveaway,
    GiveawayStatus,
    GiveawayType,
    GuessData,
)

END_MS = 1_700_000_180_000


def classic(**overrides) -> Giveaway:
    options = dict(
        message_id=1,
        channel_id=2,
        guild_id=3,
        organizer_id=4,
        prize="Gift card",
        end_timestamp=END_MS,
        type=GiveawayType.CLASSIC,
        data=ClassicData(winner_count=2, required_role_id=55),
        image_url="https://example.com/a.png",
    )
    options.update(overrides)
    return Giveaway(**options)


def guess(**overrides) -> Giveaway:
    options = dict(
        message_id=1,
        channel_id=2,
        guild_id=3,
        organizer_id=4,
        prize="Nitro",
        end_timestamp=END_MS,
        type=GiveawayType.GUESS,
        data=GuessData(secret_number=42, hints_enabled=True, cooldown_ms=90_000),
        thread_id=5,
    )
    options.update(overrides)
    return Giveaway(**options)


def field_values(embed) -> dict:
    return {field.name: field.value for field in embed.fields}


class TestClassicEmbeds:
    def test_active(self):
        embed = embeds.render(classic(), participants=3)
        assert embed.title == "🎉 GIVEAWAY: Gift card"
        assert embed.color == embeds.CLASSIC_COLOR
        fields = field_values(embed)
        assert fields["Winners"] == "2"
        assert fields["Participants"] == "3"
        assert fields["Required Role"] == "<@&55>"
        assert f"<t:{END_MS // 1000}:R>" in fields["Ends"]
        assert embed.image.url == "https://example.com/a.png"

    def test_ended_with_winners(self):
        giveaway = classic(
            status=GiveawayStatus.ENDED, data=ClassicData(winner_count=2, winners=[7, 8])
        )
        embed = embeds.render(giveaway, participants=4)
        assert "<@7>, <@8>" in embed.description
        assert embed.color == embeds.WIN_COLOR
        assert embed.footer.text == "Giveaway Ended"

    def test_ended_without_participants(self):
        embed = embeds.render(classic(status=GiveawayStatus.ENDED))
        assert "No one joined" in embed.description
        assert embed.color == embeds.EXPIRED_COLOR


class TestGuessEmbeds:
    def test_active(self):
        embed = embeds.render(guess())
        assert embed.color == embeds.GUESS_COLOR
        fields = field_values(embed)
        assert fields["Cooldown"] == "1m 30s"
        assert fields["Hints"] == "Enabled"
        assert fields["Required Role"] == "None"
        assert "42" not in (embed.description or "")

    def test_won(self):
        data = GuessData(secret_number=42, winner_id=9)
        embed = embeds.render(guess(status=GiveawayStatus.ENDED, data=data))
        assert "<@9>" in embed.description
        assert "42" in embed.description
        assert embed.color == embeds.WIN_COLOR

    def test_expired(self):
        embed = embeds.render(guess(status=GiveawayStatus.ENDED))
        assert "No one guessed the number (42)" in embed.description
        assert embed.color == embeds.EXPIRED_COLOR

    def test_renders_current_prize(self):
        giveaway = guess()
        giveaway.prize = "Nitro Classic"
        assert embeds.render(giveaway).title == "🔢 Guess the Number: Nitro Classic"
