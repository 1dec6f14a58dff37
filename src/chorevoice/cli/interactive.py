#!/usr/bin/env python3
"""
Interactive CLI for the ChoreVoice dialogue engine

A REPL (Read-Eval-Print Loop) for talking to the slot-filling engine with
typed utterances instead of audio. Useful for manual testing, debugging, and
demonstration.

Usage:
    python -m chorevoice.cli.interactive --child 1:Emma --child 2:Liam

Commands inside the REPL:
    new     - start a fresh session
    state   - show the current session slots
    quit    - exit
"""
import argparse
import json
import sys
import uuid
from typing import Callable, List, Optional

from ..app import DialogueService
from ..config.core import SPEAK_TURN_IGNORED
from ..data_types import Child, Turn
from ..errors import ChoreVoiceError


def parse_child_arg(value: str) -> Child:
    """Parse 'id:name' (or just 'name', which gets a generated id)."""
    child_id, sep, name = value.partition(":")
    if not sep:
        child_id, name = uuid.uuid4().hex[:6], value
    if not child_id.strip() or not name.strip():
        raise argparse.ArgumentTypeError(f"Expected id:name, got {value!r}")
    return Child(id=child_id.strip(), name=name.strip())


def print_banner(roster: List[Child]):
    """Print welcome banner."""
    print("\n" + "=" * 60)
    print("🎙️  ChoreVoice - Interactive Mode")
    print("=" * 60)
    print(f"\nChildren: {', '.join(c.name for c in roster) or '(none)'}")
    print("\nCommands:")
    print("  - Type what you would say to create a task")
    print("  - 'new' starts over, 'state' shows the current slots")
    print("  - Type 'quit' or 'exit' to quit")
    print("\nExamples:")
    print("  - 'Emma'")
    print("  - 'clean room tomorrow for 20 points'")
    print("=" * 60)


def interactive_main(
    roster: List[Child],
    verbose: bool = False,
    service: Optional[DialogueService] = None,
    input_fn: Callable[[str], str] = input,
    user_id: str = "cli-user",
):
    """
    Interactive mode for the dialogue engine.

    Args:
        roster: Children tasks can be assigned to
        verbose: If True, print the full turn result as JSON
        service: Dialogue service (defaults to a configured one)
        input_fn: Line reader (tests pass a scripted one)
        user_id: User the sessions belong to
    """
    service = service or DialogueService()
    print_banner(roster)

    session = service.start_session(user_id, roster)
    turn_index = 0
    print(f"\n🆕 Session {session.session_id}")

    while True:
        try:
            text = input_fn("\n💬 You: ").strip()

            if not text or text.lower() in ["quit", "exit", "q"]:
                print("\n👋 Goodbye!")
                break

            if text.lower() == "new":
                session = service.start_session(user_id, roster)
                turn_index = 0
                print(f"🆕 Session {session.session_id}")
                continue

            if text.lower() == "state":
                current = service.store.get(session.session_id)
                print(json.dumps(current.to_dict() if current else None, indent=2, ensure_ascii=False))
                continue

            try:
                result = service.submit_turn(Turn(
                    user_id=user_id,
                    session_id=session.session_id,
                    turn_id=uuid.uuid4().hex,
                    turn_index=turn_index,
                    transcript=text,
                ))
            except ChoreVoiceError as e:
                print(f"❌ {e.code}: {e}")
                print("Type 'new' to start a fresh session.")
                continue

            turn_index += 1
            print(f"🔊 {result.speak}")
            if verbose or result.result:
                print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
            if result.result:
                service.complete_session(session.session_id)
            if not result.needs_followup and result.speak != SPEAK_TURN_IGNORED:
                print("\n(Session finished - type 'new' for another task)")

        except (KeyboardInterrupt, EOFError):
            print("\n\n👋 Goodbye!")
            break


def main():
    """Entry point for the interactive CLI."""
    parser = argparse.ArgumentParser(
        description="ChoreVoice - Interactive Mode",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--child",
        action="append",
        type=parse_child_arg,
        default=[],
        metavar="ID:NAME",
        help="Child to put on the roster (repeatable)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print the full turn result for every turn",
    )

    args = parser.parse_args()

    try:
        interactive_main(args.child, verbose=args.verbose)
    except Exception as e:
        print(f"\n❌ Fatal error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
