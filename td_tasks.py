# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    td_tasks.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# td_tasks.py
'''
Command line front end for the ToDo token list.

  python td_tasks.py list
  python td_tasks.py add "Buy milk" --amount 1000
  python td_tasks.py complete <txid>.<vout>
  python td_tasks.py verify <txid>.<vout>
  python td_tasks.py wait [--timeout 60]

Requires a running wallet (Signing Service) on Config.WALLET_BASE_URL.
'''

import asyncio
import logging
import argparse
import sys

import todotokens
from todotokens.config import Config
from todotokens.errors import TodoTokenError, ValidationError, WorkflowError
from todotokens.manager import TodoManager
from todotokens.orchestrator import validate_new_task

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool):
    Config.ensure_dirs()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(Config.LOG_FILE, mode='a', encoding='utf-8'),
            logging.StreamHandler()
        ]
    )


def _print_tasks(manager: TodoManager):
    tasks = manager.list_tasks()
    if not tasks:
        print("No ToDo Items. Use 'add' to start a task.")
        return
    for record in tasks:
        print(f"[ ] {record.plaintext_payload}  ({record.value} satoshis)  {record.outpoint}")


async def _load(manager: TodoManager, timeout: float) -> bool:
    await manager.open()
    if manager.catalog.loading:
        print("Waiting for the wallet (Signing Service) ...")
        if not await manager.wait_for_tasks(timeout):
            logger.error(f"Wallet not available after {timeout} seconds.")
            return False
    return True


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description=f"ToDo Tokens {todotokens.__version__}: tasks as encrypted BSV tokens.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('--timeout', type=float, default=60.0, help="Seconds to wait for the wallet.")
    parser.add_argument('--no-verify', action='store_true', help="Skip the evidence (BEEF) check before completing a task.")
    parser.add_argument('--strict', action='store_true', help="Abort completion if the evidence check fails.")
    parser.add_argument('-v', '--verbose', action='store_true', help="Debug logging.")

    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('list', help="Show open tasks, newest first.")
    sub.add_parser('wait', help="Wait until the wallet is reachable.")

    add_parser = sub.add_parser('add', help="Create a task token.")
    add_parser.add_argument('task', type=str, help="The task to complete.")
    add_parser.add_argument('--amount', type=str, default=str(Config.DEFAULT_AMOUNT), help="Satoshis to lock until the task is done.")

    complete_parser = sub.add_parser('complete', help="Complete a task and get its satoshis back.")
    complete_parser.add_argument('outpoint', type=str, help="<txid>.<vout> of the task.")

    verify_parser = sub.add_parser('verify', help="Check the evidence of a task against block headers.")
    verify_parser.add_argument('outpoint', type=str, help="<txid>.<vout> of the task.")

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    manager = TodoManager(
        verify_evidence=not args.no_verify and Config.VERIFY_EVIDENCE,
        strict_evidence=args.strict or Config.STRICT_EVIDENCE,
    )
    print(f"ToDo Tokens {todotokens.__version__} (network={Config.ACTIVE_NETWORK_NAME})")

    try:
        if args.command == 'wait':
            await manager.open()
            ok = await manager.wait_for_tasks(args.timeout)
            print("Wallet available." if ok else "Wallet not available.")
            return 0 if ok else 1

        if args.command == 'add':
            # Validate before contacting the wallet at all
            validate_new_task(args.task, args.amount)
            result = await manager.add_task(args.task, args.amount)
            print(f"Task successfully created! {result.record.outpoint}")  # type: ignore[union-attr]
            return 0

        if not await _load(manager, args.timeout):
            return 1

        if args.command == 'list':
            _print_tasks(manager)
        elif args.command == 'complete':
            result = await manager.complete_task(args.outpoint)
            for warning in result.warnings:
                print(f"WARNING: {warning}")
            print("Congrats! Task complete 🎉")
        elif args.command == 'verify':
            ok = await manager.verify_task(args.outpoint)
            print("Evidence valid." if ok else "Evidence NOT valid!")
            return 0 if ok else 2
        return 0

    except ValidationError as e:
        logger.error(e.message)
        return 2
    except WorkflowError as e:
        logger.error(f"Error {'completing' if args.command == 'complete' else 'creating'} task: {e.message}")
        return 1
    except (TodoTokenError, KeyError, ValueError) as e:
        logger.error(f"{e}")
        return 1
    finally:
        await manager.close()


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logging.info("\n--- Stopped by user (Ctrl+C). ---")


if __name__ == "__main__":
    run()
