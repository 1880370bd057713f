"""Discovery and loading of command extensions.

An extension is a directory under the extensions dir containing a
``commands.py`` that defines ``setup(registry)``. ``setup`` builds the
extension's commands and groups against the registry it is given::

    extensions/
      moderation/
        commands.py      # def setup(registry): ...

A failing extension is logged and skipped; the others still load.
"""

import importlib.util
import re
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from .exceptions import ContractViolation, ExtensionLoadError
from .registry import CommandRegistry

logger = structlog.get_logger("chatroute.extensions")

ENTRY_FILE = "commands.py"
SETUP_FUNCTION = "setup"
_NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class ExtensionLoader:
    """Imports extensions and runs their ``setup(registry)``.

    Args:
        extensions_dir: Directory scanned for extension packages.
        registry: Registry handed to each ``setup``.
        allowlist: If given, only these directory names are loaded.
    """

    def __init__(
        self,
        extensions_dir: Path,
        registry: CommandRegistry,
        allowlist: Optional[List[str]] = None,
    ):
        self.extensions_dir = Path(extensions_dir)
        self.registry = registry
        self.allowlist = allowlist
        self.loaded: List[str] = []
        self.failed: List[str] = []

    def discover_and_load(self) -> List[str]:
        """Load every extension found. Returns the names that loaded."""
        if not self.extensions_dir.is_dir():
            logger.info("extensions_no_dir", path=str(self.extensions_dir))
            return []

        for ext_dir in sorted(self.extensions_dir.iterdir()):
            entry = ext_dir / ENTRY_FILE
            if not ext_dir.is_dir() or not entry.is_file():
                continue
            name = ext_dir.name
            if self.allowlist is not None and name not in self.allowlist:
                logger.warning("extension_blocked_not_in_allowlist", extension=name)
                continue
            try:
                self.load(name, entry)
            except ContractViolation:
                raise
            except ExtensionLoadError as e:
                self.failed.append(name)
                logger.error("extension_load_failed", extension=name, error=str(e))
            except Exception as e:
                self.failed.append(name)
                logger.error(
                    "extension_load_failed",
                    extension=name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        logger.info(
            "extensions_loaded",
            loaded=len(self.loaded),
            failed=len(self.failed),
            commands=len(self.registry),
        )
        return list(self.loaded)

    def load(self, name: str, entry: Path) -> None:
        """Import one extension file and call its setup function.

        Raises:
            ExtensionLoadError: Bad name or no callable ``setup``.
            ContractViolation: A command built by ``setup`` is malformed.
        """
        if not _NAME_PATTERN.match(name):
            raise ExtensionLoadError("Invalid extension name.", extension=name)

        module_name = f"chatroute_ext_{name}"
        spec = importlib.util.spec_from_file_location(module_name, entry)
        if spec is None or spec.loader is None:
            raise ExtensionLoadError("Cannot import extension.", extension=name)
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)

        setup = getattr(module, SETUP_FUNCTION, None)
        if not callable(setup):
            raise ExtensionLoadError(
                f"Extension has no {SETUP_FUNCTION}(registry) function.", extension=name
            )
        before = len(self.registry)
        setup(self.registry)
        self.loaded.append(name)
        logger.info(
            "extension_loaded", extension=name, commands=len(self.registry) - before
        )
