"""
Apply the procurement schema without an alembic.ini.

    python -m procurement_engine.db.run_migrations             # upgrade head
    python -m procurement_engine.db.run_migrations downgrade base
    python -m procurement_engine.db.run_migrations current
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List

from alembic import command
from alembic.config import Config

from procurement_engine.db.config import get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

_COMMANDS: Dict[str, Callable[..., None]] = {
    "upgrade": command.upgrade,
    "downgrade": command.downgrade,
    "current": command.current,
    "history": command.history,
}
_DEFAULT_TARGET = {"upgrade": "head", "downgrade": "-1"}


def build_config() -> Config:
    """Alembic config pointing at the bundled migrations and the configured database."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # Offline mode reads this URL; env.py connects with the async URL when online.
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url)
    return cfg


# PUBLIC_INTERFACE
def upgrade_to_head() -> None:
    """Bring the schema to the latest revision; used at API startup."""
    command.upgrade(build_config(), "head")


# PUBLIC_INTERFACE
def main(argv: List[str] | None = None) -> int:
    """Dispatch one schema command; returns the process exit code."""
    args = list(sys.argv[1:] if argv is None else argv) or ["upgrade"]
    name, rest = args[0], args[1:]
    runner = _COMMANDS.get(name)
    if runner is None:
        print(f"Unsupported migration command: {name}. Expected one of: {', '.join(_COMMANDS)}")
        return 2

    if name in _DEFAULT_TARGET:
        target = rest[0] if rest else _DEFAULT_TARGET[name]
        logger.info("Running schema %s to %s", name, target)
        runner(build_config(), target)
    else:
        runner(build_config())
    return 0


if __name__ == "__main__":
    sys.exit(main())
