"""Command-line interface loop for the kanban board.

The loop runs on an asyncio event loop. Input is read in a worker thread
so drag commits and promotions keep running in the background while the
prompt waits; the board is redrawn after every command.
"""
import asyncio
from typing import List, Optional, Union

from board import Board
from models import BUCKETS, ItemId

# --- terminal control helpers ---
# ESC[3J (scrollback), ESC[H (home), ESC[2J (screen), ESC[H (home); 3J first
# improves reliability in some terminals.
def _clear_screen() -> None:  # pragma: no cover
    print("\033[3J\033[H\033[2J\033[H", end="", flush=True)


def _enter_alt_screen() -> None:  # pragma: no cover
    print("\033[?1049h", end="", flush=True)


def _leave_alt_screen() -> None:  # pragma: no cover
    print("\033[?1049l", end="", flush=True)


BUCKET_ALIASES = {
    'n': 'new',
    'new': 'new',
    'w': 'working',
    'working': 'working',
    'c': 'complete',
    'complete': 'complete',
}


def parse_id(raw: str) -> ItemId:
    """Numeric ids are ints on the wire; anything else stays a string."""
    raw = raw.rstrip('.')
    return int(raw) if raw.isdigit() else raw


def parse_target(raw: str) -> Union[str, ItemId]:
    """A bucket alias resolves to its bucket key, otherwise an item id."""
    return BUCKET_ALIASES.get(raw.lower()) or parse_id(raw)


class CLI:
    def __init__(self, board: Board, alt_screen: bool = True):
        self.board: Board = board
        self.alt_screen: bool = alt_screen
        self.messages: List[str] = []
        self.logged_out: bool = False

    def run(self) -> None:
        asyncio.run(self.run_async())

    async def run_async(self) -> None:
        """Main REPL loop; board is always cleared/redrawn each cycle."""
        exit_message: Optional[str] = None
        if self.alt_screen:
            _enter_alt_screen()
        try:
            await self.board.load()
            while not self.logged_out:
                self._redraw()
                line = (await asyncio.to_thread(input, "\n: ")).strip()
                self.messages = []
                if not line:
                    continue
                lower = line.lower()
                if lower == 'help':
                    _clear_screen()
                    self._help()
                    await asyncio.to_thread(input, "\nPress Enter to return to the board...")
                    continue
                if lower == 'exit':
                    exit_message = "Goodbye."
                    break
                await self.handle_command(line)
            else:
                exit_message = "Session rejected by the server. Log in again and restart."
        except (KeyboardInterrupt, EOFError):
            exit_message = "Interrupted. Goodbye."
        finally:
            await self.board.close()
            if self.alt_screen:
                _leave_alt_screen()
            if exit_message:
                print(exit_message)

    def logout(self) -> None:
        self.logged_out = True

    def _redraw(self) -> None:
        _clear_screen()
        print("Kanban Board:" + ("  (saving...)" if self.board.busy else ""))
        self.board.display()
        for message in self.messages:
            print(message)

    def say(self, message: str) -> None:
        self.messages.append(message)

    # -------------------- command dispatch --------------------
    async def handle_command(self, line: str) -> None:
        tokens = line.split()
        if not tokens:
            return
        cmd = tokens[0].lower()
        if cmd == 'add':
            await self._cmd_add(tokens)
        elif cmd == 'edit':
            await self._cmd_edit(tokens)
        elif cmd in ('rm', 'remove'):
            await self._cmd_rm(tokens)
        elif cmd == 'mv':
            self._cmd_mv(tokens)
        elif cmd == 'drag':
            self._cmd_drag(tokens)
        elif cmd == 'over':
            self._cmd_over(tokens)
        elif cmd == 'drop':
            self._finish_gesture(dropped=True)
        elif cmd == 'cancel':
            self._finish_gesture(dropped=False)
        elif cmd == 'star':
            self._cmd_star(tokens)
        elif cmd == 'sync':
            if not await self.board.resync():
                self.say("Sync failed; showing last known state.")
        else:
            self.say("Unknown command. Type 'help' for instructions.")

    # ---- individual command helpers ----
    async def _cmd_add(self, tokens: List[str]) -> None:
        if len(tokens) < 2:
            self.say("Usage: add [n:|w:|c:]<title...>")
            return
        bucket = 'new'
        head, sep, rest = tokens[1].partition(':')
        if sep and head.lower() in BUCKET_ALIASES:
            bucket = BUCKET_ALIASES[head.lower()]
            tokens = tokens[:1] + ([rest] if rest else []) + tokens[2:]
        title = ' '.join(tokens[1:]).strip()
        if not title:
            self.say("Title required.")
            return
        if await self.board.add_item(title, bucket=bucket) is None:
            self.say("Could not add item.")

    async def _cmd_edit(self, tokens: List[str]) -> None:
        if len(tokens) < 3:
            self.say("Usage: edit <id> <title...>")
            return
        item_id = parse_id(tokens[1])
        if self.board.get(item_id) is None:
            self.say(f"Item {item_id} not found.")
            return
        if await self.board.update_item(item_id, title=' '.join(tokens[2:])) is None:
            self.say(f"Could not update item {item_id}.")

    async def _cmd_rm(self, tokens: List[str]) -> None:
        if len(tokens) != 2:
            self.say("Usage: rm <id>")
            return
        item_id = parse_id(tokens[1])
        if self.board.get(item_id) is None:
            self.say(f"Item {item_id} not found.")
            return
        if not await self.board.delete_item(item_id):
            self.say(f"Could not remove item {item_id}.")

    def _cmd_mv(self, tokens: List[str]) -> None:
        if len(tokens) != 3:
            self.say("Usage: mv <id> <bucket|id>; buckets: n/w/c")
            return
        item_id = parse_id(tokens[1])
        if not self.board.start_drag(item_id):
            self.say(f"Item {item_id} not found.")
            return
        self.board.hover(parse_target(tokens[2]))
        self.board.end_drag()

    def _cmd_drag(self, tokens: List[str]) -> None:
        if len(tokens) != 2:
            self.say("Usage: drag <id>")
            return
        item_id = parse_id(tokens[1])
        if not self.board.start_drag(item_id):
            self.say(f"Item {item_id} not found.")
            return
        self.say(f"Dragging {item_id}: 'over <bucket|id>' to move, 'drop' or 'cancel' to finish.")

    def _cmd_over(self, tokens: List[str]) -> None:
        if len(tokens) != 2:
            self.say("Usage: over <bucket|id>")
            return
        if not self.board.drag.active:
            self.say("Nothing is being dragged. Start with 'drag <id>'.")
            return
        self.board.hover(parse_target(tokens[1]))
        self.say(f"Dragging {self.board.drag.active_id}: 'drop' or 'cancel' to finish.")

    def _finish_gesture(self, dropped: bool) -> None:
        if not self.board.drag.active:
            self.say("Nothing is being dragged.")
            return
        self.board.end_drag(dropped=dropped)

    def _cmd_star(self, tokens: List[str]) -> None:
        if len(tokens) != 2:
            self.say("Usage: star <id>")
            return
        item_id = parse_id(tokens[1])
        if self.board.get(item_id) is None:
            self.say(f"Item {item_id} not found.")
            return
        self.board.spawn(self.board.toggle_important(item_id))

    # -------------------- help --------------------
    def _help(self) -> None:
        print("Commands:")
        print("  add <title...>          Add to NEW (prefix w: or c: for another column, e.g. add w:fix login)")
        print("  edit <id> <title...>    Rename an item")
        print("  rm <id>                 Remove an item")
        print("  mv <id> <bucket|id>     Move onto a column (n/w/c) or into another item's slot")
        print("  drag <id>               Start a drag; then 'over <bucket|id>' any number of times")
        print("  drop | cancel           Finish the drag (both keep what the hovers did)")
        print("  star <id>               Toggle important; starring pins the item to the top")
        print("  sync                    Discard local state and reload from the server")
        print("  help                    Show this help (press Enter to return)")
        print("  exit                    Wait for pending saves and exit")
        print(f"Columns: {', '.join(BUCKETS)}")
