"""Template lookup across directories, most specific first.

Search order for ``<name>.yaml``:

1. explicit: ``--templates-dir``
2. local: ``./.jcfa/templates`` (project-local)
3. config: ``templates_dir`` from the config file
4. user: ``~/.jcfa/templates``
5. builtin: defaults shipped with the package
"""

import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path

logger = logging.getLogger("jcfa.templates.resolver")

__all__ = [
    "BUILTIN_SOURCE",
    "LOCAL_TEMPLATES_DIR",
    "TemplateError",
    "TemplateInfo",
    "TemplateResolver",
    "builtin_template_names",
    "read_builtin_template",
]

LOCAL_TEMPLATES_DIR = Path(".jcfa") / "templates"
BUILTIN_SOURCE = "builtin"
TEMPLATE_SUFFIX = ".yaml"


class TemplateError(Exception):
    """Raised when a template is missing, malformed or fails to render."""

    pass


@dataclass
class TemplateInfo:
    """Where a template was found.

    Attributes:
        name: Template name without extension
        path: File path, or "(builtin)" for packaged defaults
        source: explicit, local, config, user or builtin
    """

    name: str
    path: str
    source: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "path": self.path, "source": self.source}


def _defaults_dir():
    return resources.files("jcfa.templates").joinpath("defaults")


def builtin_template_names() -> list[str]:
    names = [
        entry.name[: -len(TEMPLATE_SUFFIX)]
        for entry in _defaults_dir().iterdir()
        if entry.name.endswith(TEMPLATE_SUFFIX)
    ]
    return sorted(names)


def read_builtin_template(name: str) -> str:
    entry = _defaults_dir().joinpath(name + TEMPLATE_SUFFIX)
    if not entry.is_file():
        raise TemplateError(f"builtin template '{name}' not found")
    return entry.read_text(encoding="utf-8")


def _check_name(name: str) -> None:
    if not name or "/" in name or "\\" in name or name.startswith("."):
        raise TemplateError(f"invalid template name '{name}'")


class TemplateResolver:
    """Finds template files along the directory fallback chain."""

    def __init__(
        self,
        explicit_dir: str | Path | None = None,
        config_dir: str | Path | None = None,
        local_dir: str | Path | None = LOCAL_TEMPLATES_DIR,
        user_dir: str | Path | None = None,
    ):
        self.explicit_dir = Path(explicit_dir) if explicit_dir else None
        self.local_dir = Path(local_dir) if local_dir else None
        self.config_dir = Path(config_dir).expanduser() if config_dir else None
        self.user_dir = (
            Path(user_dir) if user_dir else Path.home() / ".jcfa" / "templates"
        )

    def search_dirs(self) -> list[tuple[Path, str]]:
        dirs = [
            (self.explicit_dir, "explicit"),
            (self.local_dir, "local"),
            (self.config_dir, "config"),
            (self.user_dir, "user"),
        ]
        return [(path, source) for path, source in dirs if path is not None]

    def resolve(self, name: str) -> TemplateInfo:
        """Locate template ``name``.

        Raises:
            TemplateError: Listing every searched path when nothing matches.
        """
        _check_name(name)
        filename = name + TEMPLATE_SUFFIX
        searched: list[str] = []

        for directory, source in self.search_dirs():
            candidate = directory / filename
            searched.append(str(candidate))
            if candidate.is_file():
                logger.debug(
                    "template_resolved",
                    extra={"template": name, "source": source, "path": str(candidate)},
                )
                return TemplateInfo(name=name, path=str(candidate), source=source)

        if name in builtin_template_names():
            return TemplateInfo(name=name, path="(builtin)", source=BUILTIN_SOURCE)

        raise TemplateError(
            f"template '{name}' not found in:\n  " + "\n  ".join(searched + ["(builtin)"])
        )

    def list(self) -> list[TemplateInfo]:
        """All visible templates; a name found earlier in the chain shadows later ones."""
        seen: set[str] = set()
        templates: list[TemplateInfo] = []

        for directory, source in self.search_dirs():
            if not directory.is_dir():
                continue
            for path in sorted(directory.glob("*" + TEMPLATE_SUFFIX)):
                name = path.name[: -len(TEMPLATE_SUFFIX)]
                if name not in seen:
                    seen.add(name)
                    templates.append(TemplateInfo(name=name, path=str(path), source=source))

        for name in builtin_template_names():
            if name not in seen:
                seen.add(name)
                templates.append(TemplateInfo(name=name, path="(builtin)", source=BUILTIN_SOURCE))

        return templates
