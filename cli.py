#!/usr/bin/env python3
"""Simple CLI for running the AMA wallet bot locally"""

import argparse
import asyncio

from amabot.config import settings
from amabot.core.wallet import generate_keypair
from amabot.logging_config import setup_logging
from amabot.providers.amadeus import AmadeusProvider
from amabot.services.runtime import create_runtime


async def cli_balance(address: str):
    """CLI command to look up a wallet balance"""
    print(f"🔍 Fetching balance for {address}...")

    oracle = AmadeusProvider(settings.rpc_url, settings.request_timeout_seconds)
    balance = await oracle.get_balance(address)
    print(f"💰 {balance} AMA")


def cli_keygen():
    """Print a fresh keypair"""
    keypair = generate_keypair()
    print(f"Public key:  {keypair.public_key}")
    print(f"Private key: {keypair.private_key}")
    print("⚠️  Store the private key securely; it is shown only once.")


async def cli_chat(user_id: str, display_name: str):
    """Interactive chat mode"""
    print("🤖 AMA Wallet Bot")
    print("Type 'exit' to quit, 'help' for commands")
    print("-" * 40)

    runtime = await create_runtime(settings)
    try:
        while True:
            try:
                user_input = input("\n💬 You: ").strip()

                if user_input.lower() in ['exit', 'quit', 'q']:
                    print("Goodbye! 👋")
                    break

                elif user_input.lower() in ['help', 'h']:
                    print("\nCommands:")
                    print("  help     - Show this help")
                    print("  exit     - Quit the chat")
                    print("  balance  - Show your wallet balance (free)")
                    print("  deposit  - Show your deposit address (free)")
                    print("  stats    - Show your usage statistics (free)")
                    print("  faucet   - Claim testnet AMA (free)")
                    print("  Send 5 AMA to <address> - Ask the agent")
                    continue

                elif not user_input:
                    continue

                print("🤖 Assistant: ", end="")
                reply = await runtime.service.handle_message(user_id, display_name, user_input)
                print(reply)

            except KeyboardInterrupt:
                print("\nGoodbye! 👋")
                break
    finally:
        await runtime.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AMA Wallet Bot CLI")
    subparsers = parser.add_subparsers(dest="command")

    chat_parser = subparsers.add_parser("chat", help="Interactive chat mode")
    chat_parser.add_argument("--user-id", default="cli-user", help="User ID to act as")
    chat_parser.add_argument("--display-name", default="cli", help="Display name for a new account")

    balance_parser = subparsers.add_parser("balance", help="Look up a wallet balance")
    balance_parser.add_argument("address", help="Wallet address")

    subparsers.add_parser("keygen", help="Generate a new keypair")

    return parser


async def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    setup_logging()
    command = args.command.lower()

    if command == "chat":
        await cli_chat(args.user_id, args.display_name)

    elif command == "balance":
        await cli_balance(args.address)

    elif command == "keygen":
        cli_keygen()

    else:
        print(f"❌ Unknown command: {command}")
        parser.print_help()


if __name__ == "__main__":
    asyncio.run(main())
