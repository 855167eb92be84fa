import asyncio

import pytest
from fastapi.testclient import TestClient

from agentrpc.capability.keys import PeerIdentity
from agentrpc.channel.transport import LoopbackHub
from agentrpc.core.config import NodeConfig
from agentrpc.core.storage import MemoryStore
from agentrpc.node import RpcNode, policies_from_config
from agentrpc.rpc.tools import register_all_example_tools
from agentrpc.server import create_app


@pytest.fixture
def node():
    config = NodeConfig(provider_address="trac1node", enabled_channels=["rpc"], auto_publish=False)
    node = RpcNode(PeerIdentity.generate(address="trac1node"), MemoryStore(), config)
    register_all_example_tools(node.dispatcher)
    asyncio.run(node.registry.register_service("trac1node", "calc_add", "calc.add", "Add", "0.1", "math"))
    return node


@pytest.fixture
def client(node):
    with TestClient(create_app(node)) as client:
        yield client


def test_identity(client, node):
    body = client.get("/identity").json()
    assert body["public_key"] == node.identity.public_key
    assert body["provider_address"] == "trac1node"
    assert body["channels"] == []


def test_tools_and_services(client):
    assert len(client.get("/tools").json()) == 19
    services = client.get("/services").json()
    assert [s["serviceId"] for s in services] == ["calc_add"]
    assert client.get("/services/calc_add").json()["priceInTNK"] == "0.1"
    assert client.get("/services/missing").status_code == 404
    provider = client.get("/providers/trac1node/services").json()
    assert [s["method"] for s in provider] == ["calc.add"]
    assert client.get("/providers/trac1other/services").json() == []


def test_rpc_endpoint(client):
    resp = client.post("/rpc/rpc", json={"jsonrpc": "2.0", "method": "calc.add", "params": [5, 3], "id": 1})
    assert resp.status_code == 200
    assert resp.json() == {"jsonrpc": "2.0", "result": 8, "id": 1}

    resp = client.post("/rpc/rpc", json={"jsonrpc": "2.0", "method": "nope", "params": [], "id": 2})
    assert resp.json()["error"]["code"] == -32601

    notification = client.post("/rpc/rpc", json={"jsonrpc": "2.0", "method": "echo", "params": []})
    assert notification.status_code == 204

    other_channel = client.post("/rpc/chat", json={"jsonrpc": "2.0", "method": "echo", "params": [], "id": 3})
    assert other_channel.status_code == 204


def test_stats(client, node):
    body = client.get("/stats").json()
    assert body["registry"]["active"] == 1
    assert body["tools"] == 19
    assert node.dispatcher.running


def test_lifespan_stops_dispatcher(node):
    with TestClient(create_app(node)):
        assert node.dispatcher.running
    assert not node.dispatcher.running


def test_node_from_config(tmp_path):
    config = NodeConfig(
        provider_address="trac1me",
        key_file=str(tmp_path / "peer.key"),
        store_path=str(tmp_path / "registry.json"),
        invite_channels=["market"],
        owner_keys=["AB" * 32],
        invite_ttl_seconds=120,
    )
    node = RpcNode.from_config(config, transport=LoopbackHub().endpoint("me"))
    assert node.identity.address == "trac1me"
    assert (tmp_path / "peer.key").exists()
    assert node.sidechannel is not None
    assert node.capabilities.policies["market"].owner_keys == {"ab" * 32}
    assert node.capabilities.default_invite_ttl == 120
    assert node.publisher.provider_address == "trac1me"

    again = RpcNode.from_config(config)
    assert again.identity.public_key == node.identity.public_key
    assert again.sidechannel is None


def test_policies_from_config():
    config = NodeConfig(invite_channels=["a", "b"], inviter_keys=["K1"], owner_write_only=True)
    policies = policies_from_config(config)
    assert sorted(policies) == ["a", "b"]
    assert policies["a"].invite_required
    assert policies["a"].inviter_keys == {"k1"}
    assert policies["b"].owner_write_only


@pytest.mark.asyncio
async def test_node_publishes_tools_to_its_registry():
    node = RpcNode(PeerIdentity.generate(), MemoryStore(), NodeConfig(provider_address="trac1pub"))
    await node.start()
    register_all_example_tools(node.dispatcher)
    await node.stop()
    services = await node.registry.get_provider_services("trac1pub")
    assert len(services) == 19
    assert {s.service_id for s in services} >= {"calc_add", "echo", "hash"}


def test_registry_commands_endpoint(client, node):
    register = {
        "op": "register_service",
        "serviceId": "img_gen_v1",
        "method": "generate_image",
        "description": "AI image generation",
        "priceInTNK": "5.0",
        "category": "ai",
    }
    body = client.post("/commands", json=register).json()
    assert body["ok"] is True
    assert body["result"]["providerAddress"] == "trac1node"
    assert client.get("/services/img_gen_v1").status_code == 200

    body = client.post("/commands", json={"op": "update_service", "serviceId": "img_gen_v1", "priceInTNK": "7"}).json()
    assert body["result"]["priceInTNK"] == "7"

    listed = client.post("/commands", content="list_services").json()
    assert {s["serviceId"] for s in listed["result"]} == {"calc_add", "img_gen_v1"}

    body = client.post("/commands", json={"op": "remove_service", "serviceId": "img_gen_v1"}).json()
    assert body["result"]["active"] is False
    assert client.get("/services/img_gen_v1").status_code == 404


def test_commands_endpoint_reports_failures(client, node):
    asyncio.run(node.registry.register_service("trac1other", "theirs", "m", "", "1"))
    body = client.post("/commands", json={"op": "remove_service", "serviceId": "theirs"}).json()
    assert body["ok"] is False
    assert body["op"] == "remove_service"
    assert body["error"]["type"] == "Unauthorized"

    body = client.post("/commands", content="drop everything").json()
    assert body["error"]["type"] == "ValidationError"
