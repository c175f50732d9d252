"""Configuration template rendering.

Templates are plain text files with ``__NAME__`` placeholders (or
``${NAME}`` for templates declared with shell syntax). Rendering is a
single pass: substituted values are inserted literally and are never
re-scanned for placeholders. Every placeholder must be bound; the error
names all of the unbound ones at once.

Writing a rendered file always backs up an existing target to
``<target>.bak.<timestamp>`` first and then replaces the target
atomically, with least-privilege permissions for its content class.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from tempfile import NamedTemporaryFile

from ncctl.core.errors import (
    ConfigWriteError,
    InvalidVariableError,
    MissingVariableError,
    TemplateError,
)

logger = logging.getLogger(__name__)

VARIABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Characters that would break the line structure of a config file
_FORBIDDEN_IN_VALUES = ("\n", "\r", "\x00")


class PlaceholderSyntax(Enum):
    """Placeholder notation used by a template.

    Attributes:
        UNDERSCORE: ``__NAME__`` tokens; ``${...}`` is left alone so Apache
            and systemd variables survive rendering.
        SHELL: ``${NAME}`` tokens.
    """

    UNDERSCORE = "underscore"
    SHELL = "shell"

    @property
    def pattern(self) -> re.Pattern[str]:
        """Regex matching one placeholder, with the name in group 1."""
        if self is PlaceholderSyntax.SHELL:
            return re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
        return re.compile(r"__([A-Z][A-Z0-9]*(?:_[A-Z0-9]+)*)__")


class FileClass(Enum):
    """Content class of a rendered file, mapped to its permission bits."""

    SECRET = 0o600
    SERVICE = 0o640
    PUBLIC = 0o644

    @property
    def mode(self) -> int:
        """Octal permission bits for the class."""
        return self.value


@dataclass(frozen=True, slots=True)
class ConfigTemplate:
    """A template and the file it renders to.

    Attributes:
        template_path: Template source file.
        target_path: Destination of the rendered file.
        file_class: Permission class of the rendered file.
        owner: Optional owning user for the rendered file.
        group: Optional owning group for the rendered file.
        syntax: Placeholder notation used in the template.
    """

    template_path: Path
    target_path: Path
    file_class: FileClass = FileClass.PUBLIC
    owner: str | None = None
    group: str | None = None
    syntax: PlaceholderSyntax = PlaceholderSyntax.UNDERSCORE

    def read(self) -> str:
        """Read the template text.

        Raises:
            TemplateError: If the template cannot be read.
        """
        try:
            return self.template_path.read_text(encoding="utf-8")
        except OSError as e:
            raise TemplateError(f"Cannot read template {self.template_path}: {e}") from e

    def variables(self) -> set[str]:
        """Names of every placeholder the template requires."""
        return find_placeholders(self.read(), self.syntax)


@dataclass(frozen=True, slots=True)
class RenderedConfig:
    """Outcome of writing one rendered template.

    Attributes:
        target_path: File that was written.
        backup_path: Copy of the previous content, None if the target was new.
        mode: Permission bits applied to the target.
        changed: Whether the new content differs from the previous content.
    """

    target_path: Path
    backup_path: Path | None
    mode: int
    changed: bool


def find_placeholders(
    text: str, syntax: PlaceholderSyntax = PlaceholderSyntax.UNDERSCORE
) -> set[str]:
    """Return the set of placeholder names used in text."""
    return set(syntax.pattern.findall(text))


def escape_value(value: str) -> str:
    """Escape a value for use as a regex substitution template.

    Backslashes are doubled so that sequences like ``\\1`` or ``\\g<0>``
    in the value are inserted literally instead of being expanded as
    group references.

    Raises:
        InvalidVariableError: If the value contains a newline, carriage
            return or NUL, any of which would corrupt line-based configs.
    """
    for char in _FORBIDDEN_IN_VALUES:
        if char in value:
            raise InvalidVariableError(f"Value contains forbidden character {char!r}")
    return value.replace("\\", "\\\\")


def render_text(
    text: str,
    variables: Mapping[str, object],
    syntax: PlaceholderSyntax = PlaceholderSyntax.UNDERSCORE,
) -> str:
    """Substitute variables into template text.

    Args:
        text: Template text.
        variables: Placeholder name to value. Values are converted with str().
        syntax: Placeholder notation.

    Returns:
        The rendered text.

    Raises:
        MissingVariableError: Naming every placeholder without a value.
        InvalidVariableError: If a name or value is not acceptable.
    """
    for name in variables:
        if not VARIABLE_NAME.match(name):
            raise InvalidVariableError(f"Invalid variable name: {name!r}")

    missing = {
        name for name in find_placeholders(text, syntax) if variables.get(name) is None
    }
    if missing:
        raise MissingVariableError(missing)

    escaped = {name: escape_value(str(value)) for name, value in variables.items()}

    def _substitute(match: re.Match[str]) -> str:
        return match.expand(escaped[match.group(1)])

    return syntax.pattern.sub(_substitute, text)


def extract_variables(
    template_text: str,
    rendered_text: str,
    syntax: PlaceholderSyntax = PlaceholderSyntax.UNDERSCORE,
) -> dict[str, str] | None:
    """Recover variable values from a rendered file.

    Builds a matcher from the template in which every placeholder becomes
    a capture group and all other text must match literally.

    Returns:
        Mapping of placeholder name to the value found, or None if the
        rendered text does not follow the template.
    """
    pattern = syntax.pattern
    parts: list[str] = []
    seen: set[str] = set()
    position = 0
    for match in pattern.finditer(template_text):
        parts.append(re.escape(template_text[position : match.start()]))
        name = match.group(1)
        if name in seen:
            parts.append(f"(?P={name})")
        else:
            parts.append(f"(?P<{name}>[^\\n]*?)")
            seen.add(name)
        position = match.end()
    parts.append(re.escape(template_text[position:]))

    found = re.fullmatch("".join(parts), rendered_text)
    if found is None:
        return None
    return found.groupdict()


def _timestamp() -> str:
    return datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")


class ConfigRenderer:
    """Renders templates to disk under the backup-then-write discipline.

    Attributes:
        clock: Callable returning the timestamp used in backup names.
    """

    def __init__(self, clock: Callable[[], str] = _timestamp) -> None:
        self.clock = clock

    def render_to_string(self, template: ConfigTemplate, variables: Mapping[str, object]) -> str:
        """Render a template in memory without touching the target."""
        return render_text(template.read(), variables, template.syntax)

    def is_current(self, template: ConfigTemplate, variables: Mapping[str, object]) -> bool:
        """Check whether the target already holds exactly the rendered content.

        Read-only: a missing target, an unreadable target, or an unbound
        variable all count as "not current".
        """
        try:
            expected = self.render_to_string(template, variables)
            return template.target_path.read_text(encoding="utf-8") == expected
        except (OSError, TemplateError):
            return False

    def render(self, template: ConfigTemplate, variables: Mapping[str, object]) -> RenderedConfig:
        """Render a template and write it to its target path.

        The template is fully rendered before the filesystem is touched,
        so a missing variable leaves the target untouched.

        Raises:
            MissingVariableError: If any placeholder is unbound.
            ConfigWriteError: If the backup or the write fails.
        """
        content = self.render_to_string(template, variables)
        target = template.target_path

        previous: str | None = None
        backup_path: Path | None = None
        if target.exists():
            backup_path = self._backup(target)
            try:
                previous = target.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                previous = None

        self._write_atomic(target, content, template)
        logger.info("Wrote %s (mode %o)", target, template.file_class.mode)

        return RenderedConfig(
            target_path=target,
            backup_path=backup_path,
            mode=template.file_class.mode,
            changed=previous != content,
        )

    def _backup(self, target: Path) -> Path:
        backup_path = target.with_name(f"{target.name}.bak.{self.clock()}")
        try:
            shutil.copy2(target, backup_path)
        except OSError as e:
            raise ConfigWriteError(f"Cannot back up {target} to {backup_path}: {e}") from e
        logger.debug("Backed up %s to %s", target, backup_path)
        return backup_path

    def _write_atomic(self, target: Path, content: str, template: ConfigTemplate) -> None:
        tmp_path: Path | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with NamedTemporaryFile(
                mode="w",
                dir=target.parent,
                delete=False,
                prefix=f".{target.name}.",
                suffix=".tmp",
                encoding="utf-8",
            ) as f:
                tmp_path = Path(f.name)
                os.chmod(tmp_path, template.file_class.mode)
                f.write(content)
            if template.owner or template.group:
                shutil.chown(tmp_path, user=template.owner, group=template.group)
            # os.replace() is atomic on POSIX
            os.replace(tmp_path, target)
        except (OSError, LookupError) as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise ConfigWriteError(f"Failed to write {target}: {e}") from e


@dataclass(slots=True)
class TemplateSet:
    """Resolves bundled template names to :class:`ConfigTemplate` objects."""

    templates_dir: Path
    cache: dict[str, Path] = field(default_factory=dict)

    def get(
        self,
        name: str,
        target_path: Path,
        *,
        file_class: FileClass = FileClass.PUBLIC,
        owner: str | None = None,
        group: str | None = None,
    ) -> ConfigTemplate:
        """Build a ConfigTemplate for ``<templates_dir>/<name>.tmpl``."""
        path = self.cache.get(name)
        if path is None:
            path = self.templates_dir / f"{name}.tmpl"
            self.cache[name] = path
        return ConfigTemplate(
            template_path=path,
            target_path=target_path,
            file_class=file_class,
            owner=owner,
            group=group,
        )
