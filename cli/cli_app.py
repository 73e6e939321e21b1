"""Interactive CLI for GemChat."""

import uuid

from gemchat.chat import ChatSession
from gemchat.config import ChatConfig
from gemchat.models import ModelClient, TracedModelClient, create_model_client
from gemchat.telemetry import Telemetry
from extensions.extension_manager import ExtensionManager


# ANSI color codes
RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
CYAN = "\033[36m"
GREEN = "\033[32m"
RED = "\033[31m"

VERSION = "2.0.3"

QUIT_COMMANDS = ("quit", "exit", "/quit", "/exit")
HELP_COMMANDS = ("help", "/help")


class CLIApp:
    """Line-oriented REPL: one line of input is one user turn."""

    def __init__(self, config: ChatConfig, client: ModelClient | None = None):
        self.config = config
        self.client = client
        self.session: ChatSession | None = None

    async def run(self) -> int:
        """Main REPL loop. Returns the process exit status."""
        self.session = self._new_session()
        self._print_banner()

        try:
            while True:
                try:
                    user_input = input("> ").strip()
                except (EOFError, KeyboardInterrupt):
                    print()
                    break

                if not user_input:
                    continue
                if user_input.lower() in QUIT_COMMANDS:
                    break
                if user_input.lower() in HELP_COMMANDS:
                    self._print_help()
                    continue

                try:
                    await self.session.process_input(user_input)
                except KeyboardInterrupt:
                    print()
                    break
                except Exception as e:
                    print(f"{RED}[Error: {e}]{RESET}")
                    continue
                print()
        finally:
            self._close()
        return 0

    def _new_session(self) -> ChatSession:
        """Wire the model client, tracing and extensions into a fresh session."""
        session_id = uuid.uuid4().hex[:12]
        telemetry = Telemetry(self.config.telemetry, session_id)
        client = self.client or create_model_client(self.config)
        if telemetry.tracing_active:
            client = TracedModelClient(client, telemetry)

        ext_mgr = ExtensionManager(self.config)
        ext_mgr.discover_extensions()

        session = ChatSession(
            self.config,
            client,
            extension_manager=ext_mgr,
            telemetry=telemetry,
            session_id=session_id,
        )
        session.on_reply = self._print_reply
        session.on_error = self._print_error
        return session

    def _close(self):
        if self.config.history.enabled:
            print(f"\n{DIM}Saving chat history before exit...{RESET}")
        path = self.session.close()
        if path:
            print(f"{DIM}Chat history saved to {path}{RESET}")
        print("Exiting GemChat. Goodbye!")

    @staticmethod
    def _print_reply(text: str):
        print(f"{BOLD}{GREEN}AI:{RESET} {text}")

    @staticmethod
    def _print_error(message: str):
        print(f"{RED}{message}{RESET}")

    def _print_banner(self):
        print(f"{BOLD}{CYAN}Welcome to GemChat v{VERSION}, AI powered CLI assistant with file system capabilities.{RESET}")
        print(f"{DIM}Using model: {self.config.model.model_name} ({self.config.model.provider}){RESET}")
        if self.session and self.session.telemetry.tracing_active:
            print(f"{DIM}LangSmith tracing enabled{RESET}")
        if not self.config.history.enabled:
            print(f"{DIM}Chat history saving disabled{RESET}")
        if not self.config.tools.enabled:
            print(f"{DIM}File tools disabled, plain chat mode{RESET}")
        print(f"{DIM}Type 'help' for commands, 'quit' to exit.{RESET}")

    def _print_help(self):
        print(f"""
{BOLD}Commands:{RESET}
  {CYAN}help{RESET}    Show this help
  {CYAN}quit{RESET}    Save chat history and exit

{BOLD}How it works:{RESET}
  Every message is sent to the model together with the file tools
  (list, read, create, update, search, move, copy files and folders).
  When the model asks for a tool, GemChat runs it in the current
  directory and the model explains the result.
""")
