#!/usr/bin/env python3

"""
Feature Router Unit Tests

Each operation is called the way the dispatcher calls it, against the
in-memory host collaborators, and the reply frames are checked.
"""

import base64
import inspect

import pytest

from hostlink.host import HostServices, SearchIndex
from hostlink.routing import all_routers
from hostlink.routing.routers.file_system import decode_file_data, encode_data_url
from shared.functional import Failure
from tests.test_utils import RecordingSend, make_context


async def call(services, operation, request_id="req-1", **payload):
    """Invoke the route for operation and return the frames it sent"""
    handler = next(
        route.handler
        for router in all_routers(services)
        for route in router.routes
        if route.operation == operation
    )

    send = RecordingSend()
    frame = {"type": operation, **payload}
    if request_id is not None:
        frame["requestId"] = request_id

    outcome = handler(frame, make_context(operation, request_id, send))
    if inspect.isawaitable(outcome):
        await outcome
    return send.frames


class BrokenIndex(SearchIndex):
    @property
    def ready(self):
        return False

    async def build(self):
        return Failure("index backend unavailable")

    async def search(self, query, limit=200, filters=None):
        return Failure("not built")


@pytest.mark.unit
class TestPingPongRoutes:

    @pytest.mark.asyncio
    async def test_ping_answers_pong_without_request_id(self, host_services):
        assert await call(host_services, "ping", request_id=None) == [{"type": "pong"}]

    @pytest.mark.asyncio
    async def test_pong_is_not_answered(self, host_services):
        assert await call(host_services, "pong", request_id=None) == []


@pytest.mark.unit
class TestEntityRoutes:

    @pytest.mark.asyncio
    async def test_get_entity(self, host_services, document_store):
        actor = (await document_store.create("Actor", {"name": "Goblin"})).value

        frames = await call(host_services, "get-entity", uuid=actor["uuid"])

        assert frames == [{"type": "entity-data", "uuid": actor["uuid"], "data": actor, "requestId": "req-1"}]

    @pytest.mark.asyncio
    async def test_get_entity_not_found(self, host_services):
        frames = await call(host_services, "get-entity", uuid="Actor.missing")

        assert frames == [{
            "type": "entity-data",
            "uuid": "Actor.missing",
            "error": "Entity not found",
            "data": None,
            "requestId": "req-1"
        }]

    @pytest.mark.asyncio
    async def test_get_entity_requires_uuid(self, host_services):
        frames = await call(host_services, "get-entity")

        assert frames == [{
            "type": "entity-data",
            "error": "Missing required parameters (uuid)",
            "data": None,
            "requestId": "req-1"
        }]

    @pytest.mark.asyncio
    async def test_get_selected_entities_through_get_entity(self, host_services, document_store):
        actor = (await document_store.create("Actor", {"name": "Goblin"})).value
        await document_store.select([actor["uuid"]])

        frames = await call(host_services, "get-entity", selected=True)

        assert frames[0]["uuid"] == actor["uuid"]
        assert frames[0]["data"] == [actor]

    @pytest.mark.asyncio
    async def test_create_entity(self, host_services, document_store):
        frames = await call(host_services, "create-entity", entityType="Item", data={"name": "Sword"}, folder="f1")

        reply = frames[0]
        assert reply["type"] == "entity-created"
        assert reply["requestId"] == "req-1"
        assert reply["entity"]["name"] == "Sword"
        assert reply["entity"]["folder"] == "f1"
        assert (await document_store.get(reply["uuid"])).value == reply["entity"]

    @pytest.mark.asyncio
    async def test_create_entity_invalid_type(self, host_services):
        frames = await call(host_services, "create-entity", entityType="Spaceship", data={})

        assert frames == [{
            "type": "entity-created",
            "error": "Invalid entity type: Spaceship",
            "message": "Failed to create entity",
            "requestId": "req-1"
        }]

    @pytest.mark.asyncio
    async def test_update_entity(self, host_services, document_store):
        actor = (await document_store.create("Actor", {"name": "Goblin"})).value

        frames = await call(host_services, "update-entity", uuid=actor["uuid"], updateData={"name": "Goblin Boss"})

        assert frames[0]["type"] == "entity-updated"
        assert frames[0]["entity"]["name"] == "Goblin Boss"

    @pytest.mark.asyncio
    async def test_update_entity_requires_changes(self, host_services, document_store):
        actor = (await document_store.create("Actor", {"name": "Goblin"})).value

        frames = await call(host_services, "update-entity", uuid=actor["uuid"], updateData={})

        assert frames[0]["error"] == "Update data must be a non-empty object"
        assert frames[0]["message"] == "Failed to update entity"

    @pytest.mark.asyncio
    async def test_delete_entity(self, host_services, document_store):
        actor = (await document_store.create("Actor", {"name": "Goblin"})).value

        frames = await call(host_services, "delete-entity", uuid=actor["uuid"])
        assert frames == [{"type": "entity-deleted", "uuid": actor["uuid"], "success": True, "requestId": "req-1"}]

        frames = await call(host_services, "delete-entity", uuid=actor["uuid"])
        assert frames[0]["success"] is False
        assert "Entity not found" in frames[0]["error"]


@pytest.mark.unit
class TestSearchRoute:

    @pytest.mark.asyncio
    async def test_search_builds_index_and_filters(self, host_services, document_store):
        await document_store.create("Actor", {"name": "Goblin"})
        await document_store.create("Item", {"name": "Goblin Ear"})

        frames = await call(host_services, "perform-search", query="goblin", filter="Actor")

        reply = frames[0]
        assert reply["type"] == "search-results"
        assert reply["query"] == "goblin"
        assert reply["filter"] == "Actor"
        assert [r["name"] for r in reply["results"]] == ["Goblin"]
        assert reply["results"][0]["formattedMatch"] == "Goblin"
        assert reply["results"][0]["documentType"] == "Actor"
        assert host_services.search.ready

    @pytest.mark.asyncio
    async def test_filter_applies_before_result_limit(self, host_services, document_store):
        for number in range(250):
            await document_store.create("Item", {"name": f"goblin item {number}"})
        await document_store.create("Actor", {"name": "goblin chief"})

        frames = await call(host_services, "perform-search", query="goblin", filter="Actor")

        assert [r["name"] for r in frames[0]["results"]] == ["goblin chief"]

    @pytest.mark.asyncio
    async def test_search_sees_documents_changed_after_build(self, host_services, document_store):
        frames = await call(host_services, "perform-search", query="orc")
        assert frames[0]["results"] == []

        created = await call(host_services, "create-entity", entityType="Actor", data={"name": "Orc Boss"})
        frames = await call(host_services, "perform-search", query="orc")
        assert [r["name"] for r in frames[0]["results"]] == ["Orc Boss"]

        await call(host_services, "delete-entity", uuid=created[0]["uuid"])
        frames = await call(host_services, "perform-search", query="orc")
        assert frames[0]["results"] == []

    @pytest.mark.asyncio
    async def test_search_index_not_ready(self, document_store, temp_dir):
        services = HostServices(documents=document_store, search=BrokenIndex(), files=None)

        frames = await call(services, "perform-search", query="x")

        assert frames == [{
            "type": "search-results",
            "error": "Search index not ready",
            "query": "x",
            "results": [],
            "requestId": "req-1"
        }]


@pytest.mark.unit
class TestStructureRoute:

    @pytest.mark.asyncio
    async def test_structure(self, host_services, document_store):
        document_store.add_folder("Monsters", "Actor")
        await document_store.create("Actor", {"name": "Goblin"})

        frames = await call(host_services, "get-structure")

        assert frames[0]["type"] == "structure-data"
        assert [f["name"] for f in frames[0]["folders"]] == ["Monsters"]
        assert frames[0]["collections"] == [{"id": "Actor", "name": "Actor", "size": 1}]


@pytest.mark.unit
class TestSelectionRoutes:

    @pytest.mark.asyncio
    async def test_select_by_name_and_read_back(self, host_services, document_store):
        goblin = (await document_store.create("Actor", {"name": "Goblin"})).value
        await document_store.create("Actor", {"name": "Orc"})

        frames = await call(host_services, "select-entities", name="goblin")
        assert frames == [{
            "type": "select-entities-result",
            "success": True,
            "count": 1,
            "message": "1 entities selected",
            "requestId": "req-1"
        }]

        frames = await call(host_services, "get-selected-entities")
        assert frames[0]["selected"] == [{"uuid": goblin["uuid"], "name": "Goblin"}]

    @pytest.mark.asyncio
    async def test_select_all_deduplicates(self, host_services, document_store):
        goblin = (await document_store.create("Actor", {"name": "Goblin"})).value
        await document_store.create("Actor", {"name": "Orc"})

        frames = await call(host_services, "select-entities", all=True, uuids=[goblin["uuid"]], overwrite=True)
        assert frames[0]["count"] == 2

    @pytest.mark.asyncio
    async def test_select_nothing(self, host_services):
        frames = await call(host_services, "select-entities", name="nobody")

        assert frames == [{
            "type": "select-entities-result",
            "error": "No matching entities found",
            "success": False,
            "requestId": "req-1"
        }]


@pytest.mark.unit
class TestFileSystemRoutes:

    def test_decode_file_data(self):
        encoded = base64.b64encode(b"map data").decode()

        assert decode_file_data(encoded) == b"map data"
        assert decode_file_data(f"data:image/png;base64,{encoded}") == b"map data"
        with pytest.raises(ValueError, match="Invalid base64"):
            decode_file_data("@@not base64@@")

    def test_encode_data_url(self):
        assert encode_data_url(b"hi", "note.txt") == "data:text/plain;base64,aGk="
        assert encode_data_url(b"hi", "blob").startswith("data:application/octet-stream;base64,")

    @pytest.mark.asyncio
    async def test_upload_browse_download(self, host_services):
        payload = "data:text/plain;base64," + base64.b64encode(b"hello").decode()

        frames = await call(host_services, "upload-file", path="notes", filename="a.txt", fileData=payload)
        assert frames == [{"type": "upload-file-result", "success": True, "path": "notes/a.txt", "requestId": "req-1"}]

        frames = await call(host_services, "get-file-system", path="notes")
        assert frames[0]["results"] == [{"name": "a.txt", "path": "notes/a.txt", "type": "file"}]
        assert frames[0]["recursive"] is False

        frames = await call(host_services, "download-file", path="notes/a.txt")
        reply = frames[0]
        assert reply["success"] is True
        assert reply["filename"] == "a.txt"
        assert reply["mimeType"] == "text/plain"
        assert decode_file_data(reply["fileData"]) == b"hello"

    @pytest.mark.asyncio
    async def test_upload_requires_file_data(self, host_services):
        frames = await call(host_services, "upload-file", path="notes", filename="a.txt")

        assert frames[0]["success"] is False
        assert "fileData is required" in frames[0]["error"]

    @pytest.mark.asyncio
    async def test_upload_without_overwrite(self, host_services):
        data = base64.b64encode(b"x").decode()
        await call(host_services, "upload-file", path="uploads", filename="a.txt", fileData=data)

        frames = await call(host_services, "upload-file", path="uploads", filename="a.txt", fileData=data)
        assert frames[0]["success"] is False
        assert "Set overwrite to true" in frames[0]["error"]

    @pytest.mark.asyncio
    async def test_download_missing(self, host_services):
        frames = await call(host_services, "download-file", path="missing.bin")

        assert frames[0]["success"] is False
        assert "File not found" in frames[0]["error"]


@pytest.mark.unit
class TestMacroRoutes:

    @pytest.mark.asyncio
    async def test_list_macros(self, host_services, document_store):
        macro = (await document_store.create("Macro", {"name": "Heal", "command": "heal()"})).value
        await document_store.create("Macro", {"name": "Locked"})
        host_services.macros.bind(macro["uuid"], lambda args: None)

        frames = await call(host_services, "get-macros")

        assert frames[0]["type"] == "macros-list"
        listed = {m["name"]: m for m in frames[0]["macros"]}
        assert listed["Heal"]["canExecute"] is True
        assert listed["Heal"]["command"] == "heal()"
        assert listed["Locked"]["canExecute"] is False

    @pytest.mark.asyncio
    async def test_execute_wraps_plain_results(self, host_services, document_store):
        macro = (await document_store.create("Macro", {"name": "Double"})).value

        async def double(args):
            return args["n"] * 2
        host_services.macros.bind(macro["uuid"], double)

        frames = await call(host_services, "execute-macro", uuid=macro["uuid"], args={"n": 21})

        assert frames == [{
            "type": "macro-execution-result",
            "uuid": macro["uuid"],
            "success": True,
            "result": {"value": 42},
            "requestId": "req-1"
        }]

    @pytest.mark.asyncio
    async def test_execute_failures(self, host_services, document_store):
        actor = (await document_store.create("Actor", {"name": "Goblin"})).value
        locked = (await document_store.create("Macro", {"name": "Locked"})).value

        frames = await call(host_services, "execute-macro")
        assert frames[0]["error"] == "Macro UUID is required"
        assert frames[0]["success"] is False

        frames = await call(host_services, "execute-macro", uuid="Macro.missing")
        assert frames[0]["error"] == "Macro not found with UUID: Macro.missing"

        frames = await call(host_services, "execute-macro", uuid=actor["uuid"])
        assert frames[0]["error"] == f"Entity with UUID {actor['uuid']} is not a macro"

        frames = await call(host_services, "execute-macro", uuid=locked["uuid"])
        assert frames[0]["error"] == "Macro 'Locked' cannot be executed by the current user"

    @pytest.mark.asyncio
    async def test_raising_macro_is_reported(self, host_services, document_store):
        macro = (await document_store.create("Macro", {"name": "Broken"})).value

        def broken(args):
            raise RuntimeError("boom")
        host_services.macros.bind(macro["uuid"], broken)

        frames = await call(host_services, "execute-macro", uuid=macro["uuid"])

        assert frames[0]["success"] is False
        assert frames[0]["error"] == "Macro 'Broken' failed: boom"

    @pytest.mark.asyncio
    async def test_host_without_macros(self, document_store, host_services):
        services = HostServices(documents=document_store, search=host_services.search, files=None)

        frames = await call(services, "get-macros")

        assert frames == [{
            "type": "macros-list",
            "error": "Macros are not available on this host",
            "macros": [],
            "requestId": "req-1"
        }]


@pytest.mark.unit
class TestSceneRoutes:

    @pytest.mark.asyncio
    async def test_list_and_get(self, host_services, document_store):
        scene = (await document_store.create("Scene", {"name": "Tavern"})).value

        frames = await call(host_services, "get-scenes")
        assert frames[0]["type"] == "get-scenes-result"
        assert [s["name"] for s in frames[0]["scene"]] == ["Tavern"]

        frames = await call(host_services, "get-scene", id=scene["id"])
        assert frames[0]["scene"]["uuid"] == scene["uuid"]

        frames = await call(host_services, "get-scene", id="nope")
        assert frames[0]["error"] == "Scene with id nope not found"
        assert frames[0]["scene"] is None

    @pytest.mark.asyncio
    async def test_activate_moves_the_active_flag(self, host_services, document_store):
        tavern = (await document_store.create("Scene", {"name": "Tavern"})).value
        dungeon = (await document_store.create("Scene", {"name": "Dungeon"})).value

        frames = await call(host_services, "get-active-scene")
        assert frames[0]["error"] == "No active scene found"

        await call(host_services, "activate-scene", id=tavern["id"])
        frames = await call(host_services, "activate-scene", id=dungeon["id"])
        assert frames[0]["type"] == "activate-scene-result"
        assert frames[0]["scene"]["active"] is True

        frames = await call(host_services, "get-active-scene")
        assert frames[0]["scene"]["name"] == "Dungeon"
        assert (await document_store.get(tavern["uuid"])).value["active"] is False

    @pytest.mark.asyncio
    async def test_activate_unknown_scene(self, host_services):
        frames = await call(host_services, "activate-scene", id="nope")

        assert frames == [{
            "type": "activate-scene-result",
            "error": "Scene with id nope not found",
            "scene": None,
            "requestId": "req-1"
        }]


@pytest.mark.unit
class TestEncounterRoutes:

    async def combatants(self, document_store):
        fighter = (await document_store.create("Actor", {"name": "Fighter", "hasPlayerOwner": True, "initiative": 12})).value
        goblin = (await document_store.create("Actor", {"name": "Goblin", "initiative": 15})).value
        token = (await document_store.create("Token", {"name": "Wolf", "actorUuid": "Actor.wolf", "initiative": 8})).value
        return fighter, goblin, token

    @pytest.mark.asyncio
    async def test_start_orders_by_initiative(self, host_services, document_store):
        fighter, goblin, token = await self.combatants(document_store)

        frames = await call(
            host_services, "start-encounter",
            name="Ambush", tokenUuids=[token["uuid"], goblin["uuid"]], startWithPlayers=True
        )

        reply = frames[0]
        assert reply["type"] == "encounter-started"
        encounter = reply["encounter"]
        assert reply["encounterId"] == encounter["id"]
        assert encounter["name"] == "Ambush"
        assert (encounter["round"], encounter["turn"], encounter["current"]) == (1, 0, True)
        assert [c["name"] for c in encounter["combatants"]] == ["Goblin", "Fighter", "Wolf"]
        assert encounter["combatants"][2]["tokenUuid"] == token["uuid"]
        assert encounter["combatants"][2]["actorUuid"] == "Actor.wolf"

        frames = await call(host_services, "get-encounters")
        assert [e["id"] for e in frames[0]["encounters"]] == [encounter["id"]]

    @pytest.mark.asyncio
    async def test_start_with_selected_and_default_name(self, host_services, document_store):
        fighter, goblin, _ = await self.combatants(document_store)
        await document_store.select([goblin["uuid"]])

        frames = await call(host_services, "start-encounter", startWithSelected=True)

        assert frames[0]["encounter"]["name"] == "New Encounter"
        assert [c["actorUuid"] for c in frames[0]["encounter"]["combatants"]] == [goblin["uuid"]]

    @pytest.mark.asyncio
    async def test_navigation_wraps_rounds(self, host_services, document_store):
        fighter, goblin, _ = await self.combatants(document_store)
        started = await call(host_services, "start-encounter", tokenUuids=[fighter["uuid"], goblin["uuid"]])
        encounter_id = started[0]["encounterId"]

        frames = await call(host_services, "encounter-next-turn")
        assert frames[0]["action"] == "nextTurn"
        assert (frames[0]["currentRound"], frames[0]["currentTurn"]) == (1, 1)
        assert frames[0]["actorTurn"] == fighter["uuid"]
        assert frames[0]["tokenTurn"] is None

        frames = await call(host_services, "encounter-next-turn", encounterId=encounter_id)
        assert (frames[0]["currentRound"], frames[0]["currentTurn"]) == (2, 0)
        assert frames[0]["encounter"] == {"id": encounter_id, "name": "New Encounter", "round": 2, "turn": 0}

        frames = await call(host_services, "encounter-previous-turn")
        assert (frames[0]["currentRound"], frames[0]["currentTurn"]) == (1, 1)

        frames = await call(host_services, "encounter-next-round")
        assert (frames[0]["currentRound"], frames[0]["currentTurn"]) == (2, 0)

        await call(host_services, "encounter-previous-round")
        frames = await call(host_services, "encounter-previous-round")
        assert frames[0]["action"] == "previousRound"
        assert (frames[0]["currentRound"], frames[0]["currentTurn"]) == (1, 0)

    @pytest.mark.asyncio
    async def test_navigation_errors(self, host_services):
        frames = await call(host_services, "encounter-next-turn")
        assert frames == [{"type": "encounter-navigation", "error": "No active encounter", "requestId": "req-1"}]

        frames = await call(host_services, "encounter-previous-round", encounterId="nope")
        assert frames[0]["error"] == "Encounter with ID nope not found"

    @pytest.mark.asyncio
    async def test_add_and_remove_combatants(self, host_services, document_store):
        fighter, goblin, token = await self.combatants(document_store)
        item = (await document_store.create("Item", {"name": "Sword"})).value
        await call(host_services, "start-encounter", tokenUuids=[fighter["uuid"]])

        frames = await call(
            host_services, "add-to-encounter",
            uuids=[goblin["uuid"], item["uuid"], "Actor.ghost", fighter["uuid"]]
        )
        reply = frames[0]
        assert reply["type"] == "add-to-encounter-result"
        assert reply["added"] == [goblin["uuid"]]
        assert reply["failed"] == [
            {"uuid": item["uuid"], "reason": "Entity must be a Token or Actor"},
            {"uuid": "Actor.ghost", "reason": "Entity not found"},
            {"uuid": fighter["uuid"], "reason": "Already in this encounter"}
        ]

        await document_store.select([token["uuid"]])
        frames = await call(host_services, "add-to-encounter", selected=True)
        assert frames[0]["added"] == [token["uuid"]]

        frames = await call(host_services, "remove-from-encounter", uuids=[goblin["uuid"], item["uuid"]])
        assert frames[0]["removed"] == [goblin["uuid"]]
        assert frames[0]["failed"] == [{"uuid": item["uuid"], "reason": "No combatant found for this entity"}]

        listed = (await call(host_services, "get-encounters"))[0]["encounters"][0]
        assert [c["name"] for c in listed["combatants"]] == ["Fighter", "Wolf"]

    @pytest.mark.asyncio
    async def test_end_encounter(self, host_services):
        first = (await call(host_services, "start-encounter", name="First"))[0]["encounterId"]
        second = (await call(host_services, "start-encounter", name="Second"))[0]["encounterId"]

        frames = await call(host_services, "end-encounter")
        assert frames == [{
            "type": "encounter-ended",
            "encounterId": second,
            "message": "Encounter successfully ended",
            "requestId": "req-1"
        }]

        encounters = (await call(host_services, "get-encounters"))[0]["encounters"]
        assert [(e["id"], e["current"]) for e in encounters] == [(first, True)]

        await call(host_services, "end-encounter", encounterId=first)
        frames = await call(host_services, "end-encounter")
        assert frames[0]["error"] == "No active encounter"
