"""
PostBoy Playground - interactive shell over a workspace.

Browse and edit collections, folders, requests and environments from the
terminal. Every command goes through the same stores the library exposes, so
the files under ~/.postboy/workspaces/<name>/ change as you type.

Usage:
    python playground/main.py                      # Workspace "playground" on disk
    python playground/main.py --workspace "My APIs"
    python playground/main.py --memory             # Nothing is persisted

Folder paths are written Collection/Folder/Subfolder. Quote names that
contain spaces: new-request "My API/Users" "List users" GET {{url}}/users
"""

import argparse
import asyncio
import json
import logging
import os
import shlex
import sys
from pathlib import Path

from dotenv import load_dotenv
from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory

# Add parent directory to path for local development
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from postboy import PostBoy, PostBoyConfig, Request, list_workspaces
from postboy.tree import count_requests
from postboy.types import Container, OperationResult

load_dotenv()

HISTORY_FILE = Path.home() / ".postboy" / "playground_history"


# ANSI color codes
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    GRAY = "\033[90m"


METHOD_COLORS = {
    "GET": Colors.GREEN,
    "POST": Colors.YELLOW,
    "PUT": Colors.BLUE,
    "PATCH": Colors.MAGENTA,
    "DELETE": Colors.RED,
}

HELP = f"""
{Colors.WHITE}Commands:{Colors.RESET}
  {Colors.CYAN}tree [collection]{Colors.RESET}                        - Show the collection tree
  {Colors.CYAN}collections{Colors.RESET}                              - List collections
  {Colors.CYAN}show <path> <request>{Colors.RESET}                    - Print a request document
  {Colors.CYAN}new-collection <name>{Colors.RESET}
  {Colors.CYAN}new-folder <parent path> <name>{Colors.RESET}
  {Colors.CYAN}new-request <path> <name> [method] [url]{Colors.RESET}
  {Colors.CYAN}update-request <path> <name> <field> <value>{Colors.RESET}  - method, url or description
  {Colors.CYAN}rename-collection <old> <new>{Colors.RESET}
  {Colors.CYAN}rename-folder <path> <new name>{Colors.RESET}
  {Colors.CYAN}rename-request <path> <old> <new>{Colors.RESET}
  {Colors.CYAN}move-folder <path> <new path>{Colors.RESET}             - Same collection; last segment is the name
  {Colors.CYAN}move-request <path> <name> <destination path>{Colors.RESET}
  {Colors.CYAN}delete-collection <name>{Colors.RESET} / {Colors.CYAN}delete-folder <path>{Colors.RESET} / {Colors.CYAN}delete-request <path> <name>{Colors.RESET}
  {Colors.CYAN}reorder <path> folder|request <from> <to>{Colors.RESET}
  {Colors.CYAN}envs{Colors.RESET} / {Colors.CYAN}new-env <name>{Colors.RESET} / {Colors.CYAN}use-env <name|->{Colors.RESET}
  {Colors.CYAN}import <file.json>{Colors.RESET}                       - Postman collection or environment
  {Colors.CYAN}orphans <collection> [--purge]{Colors.RESET}
  {Colors.CYAN}log{Colors.RESET}                                      - Recent operations
  {Colors.CYAN}quit{Colors.RESET}
"""


def print_header(text: str, color: str = Colors.CYAN):
    """Print a styled header."""
    width = 70
    print(f"\n{color}{'=' * width}{Colors.RESET}")
    print(f"{color}{Colors.BOLD}  {text}{Colors.RESET}")
    print(f"{color}{'=' * width}{Colors.RESET}")


def print_info(label: str, value: str):
    """Print an info line."""
    print(f"  {Colors.GRAY}{label}:{Colors.RESET} {value}")


def print_success(msg: str):
    print(f"{Colors.GREEN}+ {msg}{Colors.RESET}")


def print_error(msg: str):
    print(f"{Colors.RED}x {msg}{Colors.RESET}")


def print_warning(msg: str):
    print(f"{Colors.YELLOW}! {msg}{Colors.RESET}")


def print_result(result: OperationResult):
    if result.status == "success":
        print_success(result.message)
    elif result.status == "noop":
        print_warning(result.message)
    else:
        print_error(result.message)


def split_path(path: str) -> tuple[str, list[str]]:
    """'Collection/Folder/Sub' -> ('Collection', ['Folder', 'Sub'])."""
    collection, *folders = [p for p in path.split("/") if p]
    return collection, folders


def print_container(container: Container, indent: int = 1):
    pad = "  " * indent
    for folder in container.folders:
        print(f"{pad}{Colors.YELLOW}{folder.name}/{Colors.RESET}")
        print_container(folder, indent + 1)
    for request in container.requests:
        color = METHOD_COLORS.get(request.method, Colors.WHITE)
        print(
            f"{pad}{color}{request.method:<6}{Colors.RESET} {request.name}"
            f" {Colors.GRAY}{request.url}{Colors.RESET}"
        )


class Shell:
    """Parses one command line at a time and runs it against a PostBoy workspace."""

    def __init__(self, postboy: PostBoy):
        self.postboy = postboy
        self.store = postboy.collections
        self.commands = {
            "tree": self.cmd_tree,
            "collections": self.cmd_collections,
            "show": self.cmd_show,
            "new-collection": self.cmd_new_collection,
            "new-folder": self.cmd_new_folder,
            "new-request": self.cmd_new_request,
            "update-request": self.cmd_update_request,
            "rename-collection": self.cmd_rename_collection,
            "rename-folder": self.cmd_rename_folder,
            "rename-request": self.cmd_rename_request,
            "move-folder": self.cmd_move_folder,
            "move-request": self.cmd_move_request,
            "delete-collection": self.cmd_delete_collection,
            "delete-folder": self.cmd_delete_folder,
            "delete-request": self.cmd_delete_request,
            "reorder": self.cmd_reorder,
            "envs": self.cmd_envs,
            "new-env": self.cmd_new_env,
            "use-env": self.cmd_use_env,
            "import": self.cmd_import,
            "orphans": self.cmd_orphans,
            "log": self.cmd_log,
        }

    async def dispatch(self, line: str) -> bool:
        """Run one command line. Returns False when the shell should exit."""
        try:
            parts = shlex.split(line)
        except ValueError as e:
            print_error(f"Could not parse command: {e}")
            return True
        if not parts:
            return True

        action, args = parts[0].lower(), parts[1:]
        if action in ("quit", "exit"):
            return False
        if action == "help":
            print(HELP)
            return True

        handler = self.commands.get(action)
        if handler is None:
            print_warning(f"Unknown command: {action} (type 'help')")
            return True
        try:
            await handler(*args)
        except TypeError:
            print_error(f"Wrong arguments for {action} (type 'help')")
        except ValueError as e:
            print_error(str(e))
        return True

    async def cmd_tree(self, collection: str | None = None):
        names = [collection] if collection else sorted(self.store.collections)
        for name in names:
            coll = self.store.get_collection(name)
            if coll is None:
                print_warning(f"Collection not found: {name}")
                continue
            print(f"{Colors.CYAN}{Colors.BOLD}{coll.name}{Colors.RESET}")
            print_container(coll)

    async def cmd_collections(self):
        if not self.store.collections:
            print(f"  {Colors.GRAY}(no collections){Colors.RESET}")
        for name, coll in sorted(self.store.collections.items()):
            print_info(name, f"{len(coll.folders)} folders, {count_requests(coll)} requests")

    async def cmd_show(self, path: str, name: str):
        collection, folders = split_path(path)
        request = self.store.get_request(collection, folders, name)
        if request is None:
            print_warning(f"Request not found: {path}/{name}")
            return
        print(json.dumps(request.to_dict(), indent=2, ensure_ascii=False))

    async def cmd_new_collection(self, name: str):
        print_result(await self.store.create_collection(name))

    async def cmd_new_folder(self, path: str, name: str):
        collection, folders = split_path(path)
        print_result(await self.store.create_folder(collection, folders, name))

    async def cmd_new_request(self, path: str, name: str, method: str = "GET", url: str = ""):
        collection, folders = split_path(path)
        request = Request(name=name, method=method, url=url)
        print_result(await self.store.create_request(collection, folders, request))

    async def cmd_update_request(self, path: str, name: str, field: str, value: str):
        if field not in ("method", "url", "description"):
            raise ValueError("Only method, url and description can be set from the shell")
        collection, folders = split_path(path)
        print_result(await self.store.update_request(collection, folders, name, {field: value}))

    async def cmd_rename_collection(self, old: str, new: str):
        print_result(await self.store.rename_collection(old, new))

    async def cmd_rename_folder(self, path: str, new_name: str):
        collection, folders = split_path(path)
        print_result(await self.store.rename_folder(collection, folders, new_name))

    async def cmd_rename_request(self, path: str, old: str, new: str):
        collection, folders = split_path(path)
        print_result(await self.store.rename_request(collection, folders, old, new))

    async def cmd_move_folder(self, path: str, new_path: str):
        collection, folders = split_path(path)
        to_collection, to_folders = split_path(new_path)
        if to_collection != collection:
            raise ValueError("Folders can only move inside their collection")
        print_result(await self.store.move_folder(collection, folders, to_folders))

    async def cmd_move_request(self, path: str, name: str, destination: str):
        collection, folders = split_path(path)
        to_collection, to_folders = split_path(destination)
        print_result(
            await self.store.move_request(collection, folders, to_collection, to_folders, name)
        )

    async def cmd_delete_collection(self, name: str):
        print_result(await self.store.delete_collection(name))

    async def cmd_delete_folder(self, path: str):
        collection, folders = split_path(path)
        print_result(await self.store.delete_folder(collection, folders))

    async def cmd_delete_request(self, path: str, name: str):
        collection, folders = split_path(path)
        print_result(await self.store.delete_request(collection, folders, name))

    async def cmd_reorder(self, path: str, item_type: str, from_index: str, to_index: str):
        collection, folders = split_path(path)
        print_result(
            await self.store.reorder_items(
                collection, folders, item_type, int(from_index), int(to_index)
            )
        )

    async def cmd_envs(self):
        envs = self.postboy.environments
        for name in envs.list_environment_names():
            marker = "*" if name == envs.current_environment else " "
            count = len(envs.environments[name].variables)
            print(f"  {Colors.GREEN}{marker}{Colors.RESET} {name} {Colors.GRAY}({count} variables){Colors.RESET}")

    async def cmd_new_env(self, name: str):
        print_result(await self.postboy.environments.create_environment(name))

    async def cmd_use_env(self, name: str):
        print_result(
            await self.postboy.environments.set_current_environment(None if name == "-" else name)
        )

    async def cmd_import(self, file_path: str):
        path = Path(file_path).expanduser()
        if not path.is_file():
            raise ValueError(f"File not found: {path}")
        text = path.read_text(encoding="utf-8")
        try:
            is_collection = "info" in json.loads(text)
        except (ValueError, TypeError):
            is_collection = True
        if is_collection:
            print_result(await self.postboy.import_postman_collection(text))
        else:
            print_result(await self.postboy.import_postman_environment(text))

    async def cmd_orphans(self, collection: str, flag: str | None = None):
        if flag == "--purge":
            print_result(await self.store.purge_orphans(collection))
            return
        orphans = await self.store.find_orphans(collection)
        if not orphans:
            print_success("No orphaned documents")
        for path in orphans:
            print(f"  {Colors.GRAY}{path}{Colors.RESET}")

    async def cmd_log(self, count: str = "10"):
        for entry in list(self.store.logs)[-int(count):]:
            status = f"{Colors.GREEN}ok{Colors.RESET}" if entry.success else f"{Colors.RED}failed{Colors.RESET}"
            print(f"  {entry.operation:<18} {status} {entry.path}")
            if entry.error_message:
                print(f"    {Colors.GRAY}{entry.error_message}{Colors.RESET}")


async def run_shell(postboy: PostBoy):
    """Interactive loop."""
    HISTORY_FILE.parent.mkdir(parents=True, exist_ok=True)
    session = PromptSession(history=FileHistory(str(HISTORY_FILE)))
    shell = Shell(postboy)

    print(HELP)
    while True:
        try:
            line = await session.prompt_async(f"{postboy.workspace_name}> ")
        except (EOFError, KeyboardInterrupt):
            break
        if not await shell.dispatch(line):
            break
    print(f"\n{Colors.CYAN}Goodbye!{Colors.RESET}")


async def run(args: argparse.Namespace):
    config = PostBoyConfig.in_memory() if args.memory else PostBoyConfig.from_env()
    config.debug = config.debug or args.debug

    if not args.memory:
        existing = list_workspaces(config)
        if existing:
            print_info("Workspaces", ", ".join(existing))

    async with PostBoy(args.workspace, config=config) as postboy:
        print_header(f"PostBoy Playground - {args.workspace}")
        if not args.memory:
            print_info("Location", str(config.storage.get_workspace_path(args.workspace)))
        print_info("Collections", str(len(postboy.collections.collections)))
        print_info("Environment", postboy.environments.current_environment or "(none)")
        await run_shell(postboy)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="PostBoy interactive shell")
    parser.add_argument("--workspace", default="playground", help="Workspace name")
    parser.add_argument("--memory", action="store_true", help="Use in-memory storage")
    parser.add_argument("--debug", action="store_true", help="Log every storage step")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
