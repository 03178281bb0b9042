"""
Lazy Import Utilities

numpy and sentence-transformers are only needed once a rule computes a
similarity matrix, so they are bound lazily. sentence-transformers is an
optional extra; require_optional() turns its absence into an actionable
error instead of a bare ModuleNotFoundError deep inside a rule.
"""

from typing import Any, Optional, TypeVar, Generic
import importlib
import importlib.util
import sys

T = TypeVar('T')

# Optional module -> pip extra that provides it
OPTIONAL_EXTRAS: dict[str, str] = {
    "sentence_transformers": "semantic",
    "torch": "semantic",
}


class MissingDependencyError(ImportError):
    """An optional dependency needed by the requested feature is not installed."""

    def __init__(self, module_name: str, feature: str) -> None:
        extra = OPTIONAL_EXTRAS.get(module_name)
        hint = f"pip install 'domainscope[{extra}]'" if extra else f"pip install {module_name}"
        super().__init__(f"{feature} requires '{module_name}'. Install it with: {hint}")
        self.module_name = module_name


class LazyModule(Generic[T]):
    """
    Module reference that imports on first use.

    Usage:
        _np = lazy_import('numpy')
        np = _np._load()  # numpy imported here
    """

    def __init__(self, module_name: str) -> None:
        self._module_name = module_name
        self._module: Optional[Any] = None

    def _load(self) -> Any:
        if self._module is None:
            self._module = importlib.import_module(self._module_name)
        return self._module

    def __getattr__(self, name: str) -> Any:
        return getattr(self._load(), name)

    def __repr__(self) -> str:
        state = "loaded" if self._module is not None else "not loaded"
        return f"<LazyModule '{self._module_name}' ({state})>"


def lazy_import(module_name: str) -> LazyModule[Any]:
    return LazyModule(module_name)


def is_available(module_name: str) -> bool:
    """True if the module can be imported; does not import it."""
    if module_name in sys.modules:
        return True
    return importlib.util.find_spec(module_name) is not None


def require_optional(module_name: str, feature: str) -> None:
    """
    Fail early when an optional dependency is missing.

    Raises:
        MissingDependencyError: If module_name cannot be imported
    """
    if not is_available(module_name):
        raise MissingDependencyError(module_name, feature)


class LazyClassLoader:
    """
    Class reference that imports its module on first call.

    Usage:
        DecisionEngine = LazyClassLoader('domainscope.decision_engine', 'DecisionEngine')
        engine = DecisionEngine(base_path=".")  # module imported here
    """

    def __init__(self, module_name: str, class_name: str) -> None:
        self._module_name = module_name
        self._class_name = class_name
        self._class: Optional[type] = None

    def _load(self) -> type:
        if self._class is None:
            module = importlib.import_module(self._module_name)
            self._class = getattr(module, self._class_name)
        return self._class

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._load()(*args, **kwargs)

    def __repr__(self) -> str:
        return f"<LazyClassLoader '{self._module_name}.{self._class_name}'>"
