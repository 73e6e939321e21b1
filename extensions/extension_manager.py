"""Extension manager: finds built-in extensions and fans hook calls out to them."""

import importlib
import inspect
import logging
import pkgutil
from extensions.base_extension import Extension

BUILTIN_PACKAGE = "extensions.builtin"


class ExtensionManager:
    """Ordered set of active extensions for one chat session."""

    def __init__(self, config):
        self.config = config
        self.extensions: list[Extension] = []
        self._logger = logging.getLogger("gemchat.extensions")

    def discover_extensions(self, package: str = BUILTIN_PACKAGE) -> None:
        """Import every module of ``package`` and register its enabled extensions."""
        try:
            pkg = importlib.import_module(package)
        except ImportError as e:
            self._logger.warning("Extension package %s unavailable: %s", package, e)
            return

        for info in sorted(pkgutil.iter_modules(pkg.__path__), key=lambda m: m.name):
            if info.name.startswith("_"):
                continue
            module_name = f"{package}.{info.name}"
            try:
                module = importlib.import_module(module_name)
            except Exception as e:
                self._logger.warning("Skipping extension module %s: %s", module_name, e)
                continue
            for ext_cls in self._extension_classes(module):
                self.register(ext_cls(self.config))

    @staticmethod
    def _extension_classes(module) -> list[type[Extension]]:
        return [
            obj for _, obj in inspect.getmembers(module, inspect.isclass)
            if issubclass(obj, Extension)
            and obj is not Extension
            and obj.__module__ == module.__name__
            and obj.name
        ]

    def register(self, extension: Extension) -> None:
        """Add an extension if its toggle is on."""
        if not extension.enabled:
            self._logger.debug("Extension %s disabled", extension.name)
            return
        self.extensions.append(extension)

    async def dispatch(self, hook_name: str, **kwargs) -> None:
        """Call ``on_<hook_name>`` on each extension; a failing hook is logged and skipped."""
        for ext in self.extensions:
            hook = getattr(ext, f"on_{hook_name}", None)
            if hook is None:
                continue
            try:
                await hook(**kwargs)
            except Exception as e:
                self._logger.warning("Hook %s of extension %s failed: %s", hook_name, ext.name, e)
