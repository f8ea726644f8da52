"""Tests for the RPC endpoint handlers, called directly with a TableWorld."""

import pytest
from fastapi import HTTPException

from tabletop.game_server.api import (
    character_create,
    character_get,
    character_update,
    combat_end,
    combat_next_turn,
    combat_start,
    combatant_ac,
    combatant_add,
    combatant_effect_add,
    combatant_effect_remove,
    combatant_hp,
    combatant_list,
    combatant_remove,
    combatant_update,
    dice_history,
    dice_roll,
    session_active,
    session_create,
    session_get,
    session_list,
    session_update,
)
from tabletop.game_server.api.utils import normalize_fields, record_fields, rpc_success
from tabletop.game_server.errors import CombatStateError, EmptyRosterError, ValidationError


def test_rpc_success_minimal():
    assert rpc_success() == {"success": True}


def test_normalize_fields_maps_camel_case():
    assert normalize_fields({"sessionId": "s1", "maxHP": 9, "name": "x"}) == {
        "session_id": "s1",
        "max_hp": 9,
        "name": "x",
    }


def test_record_fields_strips_routing_keys():
    payload = {"session_id": "s1", "actor": "dm", "request_id": "r", "name": "Ogre"}
    assert record_fields(payload) == {"name": "Ogre"}


@pytest.mark.asyncio
class TestSessionEndpoints:
    async def test_create_list_and_active(self, table):
        created = await session_create.handle({"name": "Crypt", "isActive": True}, table)
        assert created["success"] is True
        assert created["session"]["name"] == "Crypt"

        listed = await session_list.handle({}, table)
        assert [s["id"] for s in listed["sessions"]] == [created["session"]["id"]]

        active = await session_active.handle({}, table)
        assert active["session"]["id"] == created["session"]["id"]

    async def test_no_active_session(self, table):
        assert await session_active.handle({}, table) == {"success": True, "session": None}

    async def test_create_requires_name(self, table):
        with pytest.raises(HTTPException) as exc:
            await session_create.handle({}, table)
        assert exc.value.status_code == 400

    async def test_get_returns_combat_state(self, table, session):
        await combatant_add.handle({"sessionId": session.id, "name": "Ogre"}, table)
        result = await session_get.handle({"session_id": session.id}, table)
        assert result["session"]["id"] == session.id
        assert [c["name"] for c in result["combatants"]] == ["Ogre"]
        assert result["activeCombatant"] is None

    async def test_get_missing_is_404(self, table):
        with pytest.raises(HTTPException) as exc:
            await session_get.handle({"session_id": "nope"}, table)
        assert exc.value.status_code == 404

    async def test_update_broadcasts(self, table, session, viewer):
        result = await session_update.handle(
            {"session_id": session.id, "name": "Renamed", "actor": "dm"}, table
        )
        assert result["session"]["name"] == "Renamed"
        assert viewer.types() == ["session_updated"]

    async def test_update_rejects_combat_fields(self, table, session):
        with pytest.raises(HTTPException) as exc:
            await session_update.handle(
                {"session_id": session.id, "currentTurn": 3}, table
            )
        assert "current_turn" in exc.value.detail


@pytest.mark.asyncio
class TestCombatantEndpoints:
    async def test_add_defaults(self, table, session):
        result = await combatant_add.handle({"session_id": session.id, "name": "Ogre"}, table)
        combatant = result["combatant"]
        assert combatant["initiative"] == 0
        assert combatant["armorClass"] == 10
        assert (combatant["currentHP"], combatant["maxHP"]) == (1, 1)

    async def test_add_to_missing_session(self, table):
        with pytest.raises(HTTPException) as exc:
            await combatant_add.handle({"session_id": "nope", "name": "Ogre"}, table)
        assert exc.value.status_code == 404

    async def test_add_requires_session_id(self, table):
        with pytest.raises(HTTPException) as exc:
            await combatant_add.handle({"name": "Ogre"}, table)
        assert exc.value.status_code == 400

    async def test_hp_ac_and_effects(self, table, session):
        added = await combatant_add.handle(
            {"session_id": session.id, "name": "Fighter", "currentHP": 18, "maxHP": 18},
            table,
        )
        cid = added["combatant"]["id"]

        healed = await combatant_hp.handle({"combatant_id": cid, "delta": 5}, table)
        assert healed["combatant"]["currentHP"] == 18

        hit = await combatant_hp.handle({"combatantId": cid, "delta": -7}, table)
        assert hit["combatant"]["currentHP"] == 11

        armored = await combatant_ac.handle({"combatant_id": cid, "armorClass": 19}, table)
        assert armored["combatant"]["armorClass"] == 19

        await combatant_effect_add.handle(
            {"combatant_id": cid, "effect": {"name": "Blessed", "duration": 10}}, table
        )
        result = await combatant_effect_add.handle(
            {"combatant_id": cid, "effect": {"name": "Prone"}}, table
        )
        assert [e["name"] for e in result["combatant"]["statusEffects"]] == [
            "Blessed",
            "Prone",
        ]

        result = await combatant_effect_remove.handle(
            {"combatant_id": cid, "effectIndex": 0}, table
        )
        assert [e["name"] for e in result["combatant"]["statusEffects"]] == ["Prone"]

    async def test_hp_validation_error(self, table, session):
        added = await combatant_add.handle({"session_id": session.id, "name": "Imp"}, table)
        with pytest.raises(ValidationError):
            await combatant_hp.handle(
                {"combatant_id": added["combatant"]["id"], "delta": "lots"}, table
            )

    async def test_update_and_list(self, table, session):
        a = await combatant_add.handle({"session_id": session.id, "name": "A"}, table)
        await combatant_add.handle(
            {"session_id": session.id, "name": "B", "initiative": 4}, table
        )
        await combatant_update.handle(
            {"combatant_id": a["combatant"]["id"], "initiative": 9}, table
        )
        listed = await combatant_list.handle({"session_id": session.id}, table)
        assert [c["name"] for c in listed["combatants"]] == ["A", "B"]

    async def test_update_without_fields(self, table, session):
        added = await combatant_add.handle({"session_id": session.id, "name": "A"}, table)
        with pytest.raises(HTTPException):
            await combatant_update.handle({"combatant_id": added["combatant"]["id"]}, table)

    async def test_remove(self, table, session, viewer):
        added = await combatant_add.handle({"session_id": session.id, "name": "A"}, table)
        cid = added["combatant"]["id"]
        result = await combatant_remove.handle({"combatant_id": cid}, table)
        assert result == {"success": True, "id": cid, "sessionId": session.id}
        assert viewer.types()[-1] == "combatant_removed"

        with pytest.raises(HTTPException) as exc:
            await combatant_remove.handle({"combatant_id": cid}, table)
        assert exc.value.status_code == 404


@pytest.mark.asyncio
class TestCombatEndpoints:
    async def test_full_combat_cycle(self, table, session):
        for name, initiative in (("A", 15), ("B", 18), ("C", 12)):
            await combatant_add.handle(
                {"session_id": session.id, "name": name, "initiative": initiative},
                table,
            )

        started = await combat_start.handle({"session_id": session.id}, table)
        assert started["activeCombatant"]["name"] == "B"
        assert [c["name"] for c in started["combatants"]] == ["B", "A", "C"]

        names = []
        for _ in range(3):
            state = await combat_next_turn.handle({"session_id": session.id}, table)
            names.append(state["activeCombatant"]["name"])
        assert names == ["A", "C", "B"]
        assert state["session"]["currentRound"] == 2

        ended = await combat_end.handle({"session_id": session.id}, table)
        assert ended["session"]["inCombat"] is False
        assert ended["session"]["currentRound"] == 2

    async def test_errors(self, table, session):
        with pytest.raises(EmptyRosterError):
            await combat_start.handle({"session_id": session.id}, table)
        with pytest.raises(CombatStateError):
            await combat_next_turn.handle({"session_id": session.id}, table)
        with pytest.raises(HTTPException) as exc:
            await combat_end.handle({"session_id": "missing"}, table)
        assert exc.value.status_code == 404


@pytest.mark.asyncio
class TestDiceEndpoints:
    async def test_roll_records_and_broadcasts(self, table, session, viewer):
        result = await dice_roll.handle(
            {"session_id": session.id, "formula": "2d6+3", "player_name": "alice"}, table
        )
        roll = result["roll"]
        assert roll["formula"] == "2d6+3"
        assert roll["playerName"] == "alice"
        assert roll["result"] == sum(roll["rolls"]) + 3
        assert viewer.types() == ["dice_rolled"]

    async def test_player_name_defaults_to_actor(self, table, session):
        result = await dice_roll.handle(
            {"session_id": session.id, "formula": "d20", "actor": "bob"}, table
        )
        assert result["roll"]["playerName"] == "bob"

    async def test_roll_without_name(self, table, session):
        with pytest.raises(HTTPException):
            await dice_roll.handle({"session_id": session.id, "formula": "d20"}, table)

    async def test_bad_formula(self, table, session):
        with pytest.raises(ValidationError):
            await dice_roll.handle(
                {"session_id": session.id, "formula": "lots", "player_name": "a"}, table
            )

    async def test_history_newest_first(self, table, session):
        for formula in ("1d4", "1d6", "1d8"):
            await dice_roll.handle(
                {"session_id": session.id, "formula": formula, "player_name": "a"}, table
            )
        history = await dice_history.handle({"session_id": session.id, "limit": 2}, table)
        assert [r["formula"] for r in history["rolls"]] == ["1d8", "1d6"]

    async def test_history_bad_limit(self, table, session):
        with pytest.raises(HTTPException):
            await dice_history.handle({"session_id": session.id, "limit": 0}, table)


@pytest.mark.asyncio
class TestCharacterEndpoints:
    async def test_create_get_update(self, table, viewer):
        created = await character_create.handle({"name": "Vex", "class": "Rogue"}, table)
        character_id = created["character"]["id"]

        fetched = await character_get.handle({"characterId": character_id}, table)
        assert fetched["character"]["class"] == "Rogue"

        updated = await character_update.handle(
            {"character_id": character_id, "level": 4, "maxHp": 31}, table
        )
        assert updated["character"]["level"] == 4
        assert updated["character"]["maxHp"] == 31
        assert viewer.types() == ["character_updated"]

    async def test_missing_character(self, table):
        with pytest.raises(HTTPException) as exc:
            await character_get.handle({"character_id": "nope"}, table)
        assert exc.value.status_code == 404
        with pytest.raises(HTTPException) as exc:
            await character_update.handle({"character_id": "nope", "level": 2}, table)
        assert exc.value.status_code == 404

    async def test_create_requires_name(self, table):
        with pytest.raises(HTTPException):
            await character_create.handle({"class": "Rogue"}, table)
