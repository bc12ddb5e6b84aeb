import sys
from typing import Optional, Sequence

from commands import parse_command
from config import credentials_path, load_config, log_path
from dispatcher import connect, execute
from errors import SpoticError
from spotify_api.token_manager import TokenManager
from utils.logger import log_debug, log_error, log_info, setup_logging


def run(argv: Sequence[str]) -> int:
    # Parse before touching config, credentials or the network.
    invocation = parse_command(argv)
    config = load_config()

    level = "DEBUG" if invocation.verbose else config.get("log_level", "INFO")
    setup_logging(level, log_path() if config.get("log_file", True) else None)
    log_debug(f"Running {invocation}")

    token_manager = TokenManager(credentials_path())

    if invocation.logout:
        if token_manager.clear():
            log_info("Stored credentials removed.")
        else:
            log_info("No stored credentials to remove.")
        return 0

    player = connect(config, force_authorize=invocation.authorize, token_manager=token_manager)
    try:
        if invocation.command is not None:
            execute(invocation.command, player, config)
    finally:
        player.client.close()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    setup_logging()
    try:
        return run(sys.argv[1:] if argv is None else argv)
    except SpoticError as e:
        log_error(str(e))
        return e.exit_code
    except KeyboardInterrupt:
        log_error("Interrupted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
