"""Tests for core.store.MemoryStore."""

import pytest


@pytest.mark.asyncio
class TestMemoryStore:
    async def test_returned_records_are_copies(self, store, session):
        combatant = await store.create_combatant({"session_id": session.id, "name": "Ada"})
        combatant.name = "changed"
        assert (await store.get_combatant(combatant.id)).name == "Ada"

    async def test_get_combatants_sorted_and_scoped(self, store, session):
        other = await store.create_session({"name": "Other"})
        await store.create_combatant({"session_id": session.id, "name": "Low", "initiative": 2})
        await store.create_combatant({"session_id": session.id, "name": "High", "initiative": 9})
        await store.create_combatant({"session_id": other.id, "name": "Elsewhere"})

        names = [c.name for c in await store.get_combatants(session.id)]
        assert names == ["High", "Low"]

    async def test_update_ignores_identity_fields(self, store, session):
        combatant = await store.create_combatant({"session_id": session.id, "name": "Ada"})
        updated = await store.update_combatant(
            combatant.id, {"id": "other", "session_id": "other", "initiative": 4}
        )
        assert updated.id == combatant.id
        assert updated.session_id == session.id
        assert updated.initiative == 4

    async def test_missing_records(self, store):
        assert await store.get_session("missing") is None
        assert await store.update_session("missing", {"name": "x"}) is None
        assert await store.update_combatant("missing", {"name": "x"}) is None
        assert await store.delete_combatant("missing") is False
        assert await store.get_character("missing") is None

    async def test_active_session(self, store, session):
        await store.create_session({"name": "Inactive"})
        assert (await store.get_active_session()).id == session.id

    async def test_dice_rolls_newest_first_with_limit(self, store, session):
        for value in range(5):
            await store.create_dice_roll(
                {
                    "session_id": session.id,
                    "player_name": "alice",
                    "formula": "1d20",
                    "result": value,
                }
            )
        rolls = await store.get_dice_rolls(session.id, limit=3)
        assert [r.result for r in rolls] == [4, 3, 2]
        assert await store.get_dice_rolls(session.id, limit=0) == []

    async def test_character_documents(self, store):
        character = await store.create_character({"name": "Vex", "class": "Rogue"})
        updated = await store.update_character(character["id"], {"level": 3, "id": "x"})
        assert updated == {"id": character["id"], "name": "Vex", "class": "Rogue", "level": 3}
