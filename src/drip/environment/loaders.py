"""Template loaders for drip environments.

Loaders provide template source to the Environment. They implement
``resolve(name, roots)`` returning a cache key and
``get_source(name, roots)`` returning ``(source, filename)``.

Built-in Loaders:
- ``FileSystemLoader``: Probe root directories in order
- ``DictLoader``: Load from an in-memory dictionary (testing/embedded)
- ``ChoiceLoader``: Try multiple loaders in order (theme fallback)

Names without an extension get the loader's ``extname`` (``.liquid`` for
the default loader), so ``{% include 'header' %}`` finds ``header.liquid``.

Custom Loaders:
    ```python
    class DatabaseLoader:
        def resolve(self, name, roots=()):
            return f"db://{name}"

        def get_source(self, name, roots=()):
            row = db.query("SELECT source FROM templates WHERE name = ?", name)
            if not row:
                raise TemplateNotFoundError(f"Failed to lookup {name} in: database")
            return row.source, f"db://{name}"
    ```

Thread-Safety:
Loaders are called from worker threads (``asyncio.to_thread``) and must be
safe for concurrent calls. The built-in loaders keep no mutable state.

"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Mapping, Sequence
from difflib import get_close_matches
from pathlib import Path
from typing import Protocol

from drip.environment.exceptions import TemplateNotFoundError


class Loader(Protocol):
    def resolve(self, name: str, roots: Sequence[str | Path] = ()) -> str: ...

    def get_source(self, name: str, roots: Sequence[str | Path] = ()) -> tuple[str, str | None]: ...


def with_extname(name: str, extname: str) -> str:
    """Append ``extname`` when ``name`` has no extension of its own."""
    if extname and not posixpath.splitext(name)[1]:
        return name + extname
    return name


class FileSystemLoader:
    """Load templates from filesystem directories.

    Roots are probed in order; the first existing file wins. Roots passed
    per call (``roots=``) are searched after the loader's own.

    Example:
            >>> loader = FileSystemLoader(["views/", "shared/"])
            >>> source, filename = loader.get_source("header")
            >>> filename
            '/app/views/header.liquid'

    Raises:
        TemplateNotFoundError: ``Failed to lookup header.liquid in: views, shared``

    """

    __slots__ = ("_encoding", "_extname", "_paths")

    def __init__(
        self,
        paths: str | Path | Iterable[str | Path],
        extname: str = ".liquid",
        encoding: str = "utf-8",
    ):
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self._paths = [Path(p) for p in paths]
        self._extname = extname
        self._encoding = encoding

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def _candidates(self, roots: Sequence[str | Path]) -> list[Path]:
        candidates = list(self._paths)
        for root in roots:
            path = Path(root)
            if path not in candidates:
                candidates.append(path)
        return candidates

    def resolve(self, name: str, roots: Sequence[str | Path] = ()) -> str:
        """Absolute path of the first matching file.

        Raises:
            TemplateNotFoundError: No root contains the file.
        """
        filename = with_extname(name, self._extname)
        candidates = self._candidates(roots)
        for base in candidates:
            path = base / filename
            if path.is_file():
                return str(path.resolve())
        raise TemplateNotFoundError(
            f"Failed to lookup {filename} in: {', '.join(str(p) for p in candidates)}"
        )

    def get_source(self, name: str, roots: Sequence[str | Path] = ()) -> tuple[str, str]:
        path = self.resolve(name, roots)
        return Path(path).read_text(self._encoding), path

    def list_templates(self) -> list[str]:
        """All template names (with extension) under the loader's roots."""
        pattern = f"*{self._extname}" if self._extname else "*"
        templates = set()
        for base in self._paths:
            if base.is_dir():
                for path in base.rglob(pattern):
                    if path.is_file():
                        templates.add(path.relative_to(base).as_posix())
        return sorted(templates)

    def __repr__(self) -> str:
        return f"FileSystemLoader({[str(p) for p in self._paths]!r})"


class DictLoader:
    """Load templates from an in-memory dictionary.

    Maps template names to source strings. Useful for testing, embedded
    templates, or dynamically generated templates. Per-call roots are
    ignored.

    Example:
            >>> env = Environment(loader=DictLoader({
            ...     "base.liquid": "<main>{% block content %}{% endblock %}</main>",
            ...     "page.liquid": "{% layout 'base' %}{% block content %}Hi{% endblock %}",
            ... }))
            >>> env.render_file("page")
            '<main>Hi</main>'

    """

    __slots__ = ("_extname", "_mapping")

    def __init__(self, mapping: Mapping[str, str], extname: str = ".liquid"):
        self._mapping = mapping
        self._extname = extname

    def resolve(self, name: str, roots: Sequence[str | Path] = ()) -> str:
        if name in self._mapping:
            return name
        filename = with_extname(name, self._extname)
        if filename in self._mapping:
            return filename

        available = sorted(self._mapping)
        msg = f"Failed to lookup {filename} in: <memory>"
        matches = get_close_matches(filename, available, n=1, cutoff=0.6)
        if matches:
            msg += f". Did you mean '{matches[0]}'?"
        elif available:
            msg += f". Available: {', '.join(available[:10])}"
            if len(available) > 10:
                msg += f" ... ({len(available)} total)"
        raise TemplateNotFoundError(msg)

    def get_source(self, name: str, roots: Sequence[str | Path] = ()) -> tuple[str, None]:
        return self._mapping[self.resolve(name)], None

    def list_templates(self) -> list[str]:
        return sorted(self._mapping)


class ChoiceLoader:
    """Try multiple loaders in order, returning the first match.

    Example:
            >>> loader = ChoiceLoader([
            ...     DictLoader({"nav.liquid": "<nav>Custom</nav>"}),
            ...     FileSystemLoader("themes/default/"),
            ... ])

    Raises:
        TemplateNotFoundError: No loader has the template; the message lists
            every loader's failure.

    """

    __slots__ = ("_loaders",)

    def __init__(self, loaders: Iterable[Loader]):
        self._loaders = list(loaders)

    def _first(self, name: str, roots: Sequence[str | Path]) -> Loader:
        failures: list[str] = []
        for loader in self._loaders:
            try:
                loader.resolve(name, roots)
            except TemplateNotFoundError as e:
                failures.append(str(e))
                continue
            return loader
        raise TemplateNotFoundError("; ".join(failures) or f"Failed to lookup {name}: no loaders")

    def resolve(self, name: str, roots: Sequence[str | Path] = ()) -> str:
        return self._first(name, roots).resolve(name, roots)

    def get_source(self, name: str, roots: Sequence[str | Path] = ()) -> tuple[str, str | None]:
        return self._first(name, roots).get_source(name, roots)
