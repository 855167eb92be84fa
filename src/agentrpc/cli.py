"""agentrpc CLI — keys, invites, welcomes, and a local node.

Usage:
    agentrpc keygen --key-file ./keys/peer.key
    agentrpc welcome --channel market --text "Be nice"
    agentrpc invite --channel market --pubkey <peer-hex> --ttl 3600
    agentrpc verify --channel market --invite b64:eyJ...
    agentrpc tools
    agentrpc service '{"op":"register_service","serviceId":"img_v1",...}'
    agentrpc service list_services --url http://127.0.0.1:9100
    agentrpc call --url http://127.0.0.1:9100 --method calc.add --params '[5, 3]'
    agentrpc serve --port 9100 --example-tools
"""

import argparse
import asyncio
import json
import sys

import httpx

from agentrpc.capability.encoding import encode_capability, parse_capability_arg
from agentrpc.capability.keys import PeerIdentity
from agentrpc.capability.protocol import CapabilityProtocol
from agentrpc.core.config import NodeConfig
from agentrpc.core.errors import ConfigurationError
from agentrpc.core.logging import setup_logging
from agentrpc.core.types import RpcRequest


def _identity(args, config: NodeConfig) -> PeerIdentity:
    path = args.key_file or config.key_file
    if not path:
        raise ConfigurationError("No key file: pass --key-file or set AGENTRPC_KEY_FILE")
    return PeerIdentity.load_or_create(path, address=config.provider_address)


def cmd_keygen(args, config):
    """Create (or load) a key file and print the public key."""
    identity = _identity(args, config)
    print(identity.public_key)
    return 0


def cmd_welcome(args, config):
    protocol = CapabilityProtocol(_identity(args, config))
    welcome = protocol.issue_welcome(args.channel, args.text)
    text, b64 = encode_capability(welcome)
    print(text)
    print("welcome_b64:", b64)
    return 0


def cmd_invite(args, config):
    protocol = CapabilityProtocol(_identity(args, config), default_invite_ttl=config.invite_ttl_seconds)
    welcome = None
    if args.welcome:
        welcome = parse_capability_arg(args.welcome)
        if welcome is None:
            print("Invalid welcome. Pass JSON, base64, or @file.", file=sys.stderr)
            return 1
    invite = protocol.issue_invite(args.channel, args.pubkey, ttl_seconds=args.ttl, welcome=welcome)
    text, b64 = encode_capability(invite)
    print(text)
    print("invite_b64:", b64)
    return 0


def cmd_verify(args, config):
    invite = parse_capability_arg(args.invite)
    if invite is None:
        print("Invalid invite. Pass JSON, base64, or @file.", file=sys.stderr)
        return 1
    protocol = CapabilityProtocol(PeerIdentity.generate())
    if not protocol.verify_invite(invite, args.channel):
        print("invalid")
        return 1
    invitee = invite["payload"].get("inviteePubKey", "").strip().lower()
    if args.pubkey and invitee != args.pubkey.strip().lower():
        print("invalid (invite names another peer)")
        return 1
    print("valid")
    return 0


def cmd_tools(args, config):
    from agentrpc.rpc.dispatcher import ToolDispatcher
    from agentrpc.rpc.tools import register_all_example_tools

    dispatcher = ToolDispatcher()
    register_all_example_tools(dispatcher, price_in_tnk=args.price)
    tools = dispatcher.list_tools()
    print(f"Available RPC Tools ({len(tools)}):")
    print()
    for t in tools:
        print(f"  {t['method']}")
        print(f"    Description: {t['description'] or 'N/A'}")
        print(f"    Price: {t['priceInTNK']} TNK")
        print(f"    Category: {t['category']}")
        print()
    return 0


def _post(url: str, **kwargs) -> httpx.Response | None:
    try:
        resp = httpx.post(url, **kwargs)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        print(f"Request failed: {e}", file=sys.stderr)
        return None
    return resp


def cmd_service(args, config):
    """Run a registry command against a running node, or against the configured store."""
    if args.url:
        resp = _post(f"{args.url.rstrip('/')}/commands", content=args.command, timeout=args.timeout)
        if resp is None:
            return 1
        result = resp.json()
    else:
        from agentrpc.node import RpcNode

        node = RpcNode.from_config(config)
        result = asyncio.run(node.commands.execute(config.provider_address, args.command)).model_dump()
    print(json.dumps(result, indent=2))
    return 0 if result.get("ok") else 1


def cmd_call(args, config):
    try:
        params = json.loads(args.params)
    except ValueError:
        params = None
    if not isinstance(params, list):
        print("Invalid --params. Pass a JSON array.", file=sys.stderr)
        return 1
    request = RpcRequest(method=args.method, params=params, id=args.id)
    resp = _post(
        f"{args.url.rstrip('/')}/rpc/{args.channel}", json=request.to_wire(), timeout=args.timeout
    )
    if resp is None:
        return 1
    if resp.status_code == 204:
        print(f"No response on channel {args.channel}", file=sys.stderr)
        return 1
    body = resp.json()
    print(json.dumps(body, indent=2))
    return 1 if "error" in body else 0


def cmd_serve(args, config):
    from agentrpc.node import RpcNode
    from agentrpc.rpc.tools import register_all_example_tools
    from agentrpc.server import run_server

    node = RpcNode.from_config(config)
    if args.example_tools:
        register_all_example_tools(node.dispatcher, price_in_tnk=args.price)
        if config.auto_publish:
            asyncio.run(_publish_all(node))
    print("=" * 60)
    print("agentrpc node")
    print(f"   Public key: {node.identity.public_key}")
    print(f"   Provider:   {config.provider_address}")
    print(f"   URL:        http://{args.host}:{args.port}")
    print("=" * 60)
    run_server(node, host=args.host, port=args.port)
    return 0


async def _publish_all(node) -> None:
    for t in node.dispatcher.list_tools():
        await node.publisher.publish(t["method"], node.dispatcher.get_tool(t["method"]).metadata)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentrpc",
        description="Peer tool registry, JSON-RPC dispatch and signed channel invites",
    )
    sub = parser.add_subparsers(dest="command", help="Available commands")

    p_key = sub.add_parser("keygen", help="Create or show this peer's key")
    p_key.add_argument("--key-file", help="Path to the secret key file")
    p_key.set_defaults(func=cmd_keygen)

    p_wel = sub.add_parser("welcome", help="Sign a channel welcome")
    p_wel.add_argument("--channel", required=True)
    p_wel.add_argument("--text", required=True)
    p_wel.add_argument("--key-file")
    p_wel.set_defaults(func=cmd_welcome)

    p_inv = sub.add_parser("invite", help="Sign a channel invite for a peer")
    p_inv.add_argument("--channel", required=True)
    p_inv.add_argument("--pubkey", required=True, help="Invitee public key (hex)")
    p_inv.add_argument("--ttl", type=int, default=None, help="Validity in seconds")
    p_inv.add_argument("--welcome", help="Welcome to embed (JSON, b64:..., or @file)")
    p_inv.add_argument("--key-file")
    p_inv.set_defaults(func=cmd_invite)

    p_ver = sub.add_parser("verify", help="Verify an invite for a channel")
    p_ver.add_argument("--channel", required=True)
    p_ver.add_argument("--invite", required=True, help="Invite (JSON, b64:..., or @file)")
    p_ver.add_argument("--pubkey", help="Expected invitee public key")
    p_ver.set_defaults(func=cmd_verify)

    p_tools = sub.add_parser("tools", help="List the example tools")
    p_tools.add_argument("--price", default="0.1", help="Price in TNK for paid tools")
    p_tools.set_defaults(func=cmd_tools)

    p_svc = sub.add_parser("service", help="Run a registry command (register, update, remove, get, list)")
    p_svc.add_argument("command", help="list_services or a JSON command with an \"op\" field")
    p_svc.add_argument("--url", help="Node URL; without it the command runs against AGENTRPC_STORE_PATH")
    p_svc.add_argument("--timeout", type=float, default=10.0)
    p_svc.set_defaults(func=cmd_service)

    p_call = sub.add_parser("call", help="Send a JSON-RPC request to a running node")
    p_call.add_argument("--url", required=True)
    p_call.add_argument("--method", required=True)
    p_call.add_argument("--params", default="[]", help="JSON array of parameters")
    p_call.add_argument("--channel", default="rpc")
    p_call.add_argument("--id", type=int, default=1)
    p_call.add_argument("--timeout", type=float, default=10.0)
    p_call.set_defaults(func=cmd_call)

    p_serve = sub.add_parser("serve", help="Run a node with the HTTP inspection API")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=9100)
    p_serve.add_argument("--example-tools", action="store_true", help="Register the example tools")
    p_serve.add_argument("--price", default="0.1", help="Price in TNK for paid example tools")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    try:
        config = NodeConfig.from_env()
        setup_logging(config.log_level, config.log_json)
        return args.func(args, config)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
