import importlib
from types import ModuleType
from typing import Any


class LazyModule:
    """
    Defers importing a heavy optional dependency until one of its attributes is used.

    Example:
        pa = LazyModule("pyarrow")
        pa.table({"x": [1]})  # pyarrow is imported here
    """

    def __init__(self, module_name: str, package: str | None = None):
        self._module_name = module_name
        self._package = package
        self._module: ModuleType | None = None

    def _load_module(self) -> ModuleType:
        if self._module is None:
            self._module = importlib.import_module(self._module_name, self._package)
        return self._module

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            # internal attributes never reach the wrapped module
            raise AttributeError(
                f"'{self.__class__.__name__}' object has no attribute '{name}'"
            )
        return getattr(self._load_module(), name)

    @property
    def is_loaded(self) -> bool:
        return self._module is not None

    def __repr__(self) -> str:
        state = "loaded" if self.is_loaded else "not loaded"
        return f"<LazyModule '{self._module_name}' ({state})>"
