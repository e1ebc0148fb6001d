"""Recognized source languages: the single source of truth for the allow-list.

Adding a new language:
  1. Add a LanguageConfig entry to LANGUAGES below.
  2. That's it. Language tags and restriction pick it up automatically.
"""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable, Optional

from ..exceptions import InvalidConfigError


@dataclass(frozen=True)
class LanguageConfig:
    """A language and the file extensions (lower-case, with dot) it owns."""

    name: str
    extensions: tuple[str, ...]


def _lang(name: str, *extensions: str) -> tuple[str, LanguageConfig]:
    return name, LanguageConfig(name=name, extensions=tuple(extensions))


LANGUAGES: dict[str, LanguageConfig] = dict(
    [
        _lang("ada", ".ada", ".adb", ".ads"),
        _lang("c", ".c", ".h"),
        _lang("c++", ".cpp", ".cc", ".cxx", ".c++", ".hpp", ".hh", ".hxx", ".inl"),
        _lang("c#", ".cs"),
        _lang("clojure", ".clj", ".cljs", ".cljc", ".edn"),
        _lang("cmake", ".cmake"),
        _lang("coffeescript", ".coffee"),
        _lang("css", ".css", ".scss", ".sass", ".less"),
        _lang("d", ".d"),
        _lang("dart", ".dart"),
        _lang("elixir", ".ex", ".exs"),
        _lang("elm", ".elm"),
        _lang("erlang", ".erl", ".hrl"),
        _lang("f#", ".fs", ".fsi", ".fsx"),
        _lang("fortran", ".f", ".for", ".f90", ".f95", ".f03"),
        _lang("go", ".go"),
        _lang("groovy", ".groovy", ".gradle"),
        _lang("haskell", ".hs", ".lhs"),
        _lang("html", ".html", ".htm", ".xhtml"),
        _lang("java", ".java"),
        _lang("javascript", ".js", ".jsx", ".mjs", ".cjs"),
        _lang("julia", ".jl"),
        _lang("kotlin", ".kt", ".kts"),
        _lang("lisp", ".lisp", ".cl", ".el"),
        _lang("lua", ".lua"),
        _lang("nim", ".nim"),
        _lang("objective-c", ".m", ".mm"),
        _lang("ocaml", ".ml", ".mli"),
        _lang("pascal", ".pas", ".pp", ".lpr"),
        _lang("perl", ".pl", ".pm"),
        _lang("php", ".php"),
        _lang("powershell", ".ps1", ".psm1"),
        _lang("python", ".py", ".pyi", ".pyx"),
        _lang("r", ".r"),
        _lang("racket", ".rkt"),
        _lang("ruby", ".rb"),
        _lang("rust", ".rs"),
        _lang("scala", ".scala", ".sc"),
        _lang("scheme", ".scm", ".ss"),
        _lang("shell", ".sh", ".bash", ".zsh", ".fish"),
        _lang("sql", ".sql"),
        _lang("swift", ".swift"),
        _lang("tcl", ".tcl"),
        _lang("typescript", ".ts", ".tsx", ".mts", ".cts"),
        _lang("verilog", ".v", ".sv", ".svh"),
        _lang("vhdl", ".vhd", ".vhdl"),
        _lang("visual-basic", ".vb", ".vbs"),
        _lang("zig", ".zig"),
    ]
)


# Extension to language mapping (built from LANGUAGES)
_EXTENSION_TO_LANGUAGE: dict[str, str] = {}
for _lang_name, _cfg in LANGUAGES.items():
    for _ext in _cfg.extensions:
        _EXTENSION_TO_LANGUAGE[_ext] = _lang_name


def extension_of(path: str) -> str:
    """Lower-cased extension with leading dot, or "" for extensionless paths."""
    return PurePosixPath(path).suffix.lower()


def language_for_path(path: str) -> Optional[str]:
    """Language tag for a path, or None if the extension is not recognized."""
    return _EXTENSION_TO_LANGUAGE.get(extension_of(path))


def allowed_extensions(languages: Iterable[str] = ()) -> frozenset[str]:
    """Extensions of the named languages; all recognized ones when empty."""
    names = list(languages)
    if not names:
        return frozenset(_EXTENSION_TO_LANGUAGE)

    exts: set[str] = set()
    for name in names:
        try:
            exts.update(LANGUAGES[name].extensions)
        except KeyError:
            supported = ", ".join(sorted(LANGUAGES))
            raise InvalidConfigError("allowed_languages", name, f"supported: {supported}")
    return frozenset(exts)


def is_source_file(path: Optional[str], extensions: frozenset[str]) -> bool:
    if not path:
        return False
    return extension_of(path) in extensions
