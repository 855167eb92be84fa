import json

import pytest

from agentrpc.core.errors import ValidationError
from agentrpc.registry.commands import (
    GetProviderServicesCommand,
    ListServicesCommand,
    RegisterServiceCommand,
    RegistryCommands,
    UpdateServiceCommand,
)

REGISTER = {
    "op": "register_service",
    "serviceId": "img_gen_v1",
    "method": "generate_image",
    "description": "AI image generation",
    "priceInTNK": "5.0",
    "category": "ai",
}


@pytest.fixture
def commands(registry):
    return RegistryCommands(registry)


def test_map_command_forms():
    assert isinstance(RegistryCommands.map_command("list_services"), ListServicesCommand)
    assert isinstance(RegistryCommands.map_command(json.dumps(REGISTER)), RegisterServiceCommand)
    cmd = RegistryCommands.map_command({"op": "get_provider_services", "providerAddress": "trac1x"})
    assert isinstance(cmd, GetProviderServicesCommand)
    assert cmd.provider_address == "trac1x"
    cmd = RegistryCommands.map_command({"op": "update_service", "serviceId": "a", "priceInTNK": "1"})
    assert isinstance(cmd, UpdateServiceCommand)


@pytest.mark.parametrize(
    "command",
    [
        "not json",
        "[1, 2]",
        {"op": "drop_tables"},
        {"serviceId": "a"},
        {**REGISTER, "extra": "field"},
        {**REGISTER, "priceInTNK": 5},
        {**REGISTER, "serviceId": ""},
        {"op": "update_service", "serviceId": "a"},
        {"op": "get_provider_services", "providerAddress": ""},
        {"op": "remove_service"},
    ],
)
def test_map_command_rejects(command):
    with pytest.raises(ValidationError):
        RegistryCommands.map_command(command)


@pytest.mark.asyncio
async def test_execute_lifecycle(commands):
    result = await commands.execute("trac1alice", REGISTER)
    assert result.ok
    assert result.op == "register_service"
    assert result.result["serviceId"] == "img_gen_v1"
    assert result.result["providerAddress"] == "trac1alice"

    listed = await commands.execute("trac1bob", "list_services")
    assert [s["serviceId"] for s in listed.result] == ["img_gen_v1"]

    got = await commands.execute("trac1bob", {"op": "get_service", "serviceId": "img_gen_v1"})
    assert got.result["priceInTNK"] == "5.0"

    updated = await commands.execute(
        "trac1alice", {"op": "update_service", "serviceId": "img_gen_v1", "priceInTNK": "7.5"}
    )
    assert updated.ok and updated.result["priceInTNK"] == "7.5"

    removed = await commands.execute("trac1alice", {"op": "remove_service", "serviceId": "img_gen_v1"})
    assert removed.ok and removed.result["active"] is False

    gone = await commands.execute("trac1bob", {"op": "get_service", "serviceId": "img_gen_v1"})
    assert gone.ok and gone.result is None


@pytest.mark.asyncio
async def test_execute_reports_failures(commands, store):
    await commands.execute("trac1alice", REGISTER)
    before = store.snapshot()

    denied = await commands.execute(
        "trac1bob", {"op": "remove_service", "serviceId": "img_gen_v1"}
    )
    assert not denied.ok
    assert denied.op == "remove_service"
    assert denied.error["type"] == "Unauthorized"

    dup = await commands.execute("trac1bob", REGISTER)
    assert dup.error["type"] == "AlreadyExists"

    missing = await commands.execute("trac1bob", {"op": "update_service", "serviceId": "x", "category": "y"})
    assert missing.error["type"] == "NotFound"

    bad = await commands.execute("trac1bob", "garbage")
    assert bad.error["type"] == "ValidationError"
    assert bad.op == ""

    assert store.snapshot() == before


@pytest.mark.asyncio
async def test_provider_services_command(commands):
    await commands.execute("trac1alice", REGISTER)
    await commands.execute("trac1bob", {**REGISTER, "serviceId": "other"})
    result = await commands.execute(
        "trac1bob", {"op": "get_provider_services", "providerAddress": "trac1alice"}
    )
    assert [s["serviceId"] for s in result.result] == ["img_gen_v1"]
