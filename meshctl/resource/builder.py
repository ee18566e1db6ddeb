"""Resolution of command line inputs into resource sources.

The inputs are described by an immutable ``BuilderConfig``; ``resolve`` turns
it into ordered sources plus every problem found along the way. Problems are
collected rather than raised so that a single run reports all bad inputs.
``VisitorBuilder`` is a fluent front end over the same configuration.
"""
import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union
from urllib.parse import urlparse

from ..errors import BuilderError
from .decoder import FILE_EXTENSIONS
from .visitor import DEFAULT_HTTP_ATTEMPTS, CommandSource, FileSource, Source, StdinSource, URLSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOptions:
    kind: str
    name: str = ""


@dataclass(frozen=True)
class FilenameOptions:
    filenames: Tuple[str, ...] = ()
    recursive: bool = False


@dataclass(frozen=True)
class URLInput:
    url: str


@dataclass(frozen=True)
class StdinInput:
    pass


Input = Union[CommandOptions, FilenameOptions, URLInput, StdinInput]


@dataclass(frozen=True)
class BuilderConfig:
    """Inputs to resolve, in the order they were given."""
    inputs: Tuple[Input, ...] = ()
    http_attempts: int = DEFAULT_HTTP_ATTEMPTS

    @classmethod
    def from_options(
        cls,
        filenames: Sequence[str] = (),
        recursive: bool = False,
        command: Optional[CommandOptions] = None,
        http_attempts: int = DEFAULT_HTTP_ATTEMPTS,
    ) -> "BuilderConfig":
        inputs: List[Input] = []
        if command is not None:
            inputs.append(command)
        if filenames:
            inputs.append(FilenameOptions(tuple(filenames), recursive))
        return cls(inputs=tuple(inputs), http_attempts=http_attempts)

    def with_input(self, item: Input) -> "BuilderConfig":
        return dataclasses.replace(self, inputs=self.inputs + (item,))


@dataclass(frozen=True)
class Resolution:
    sources: Tuple[Source, ...]
    errors: Tuple[str, ...]
    single_item_implied: bool = False

    def sources_or_raise(self) -> List[Source]:
        if self.errors:
            raise BuilderError(self.errors)
        return list(self.sources)


def _has_extension(path: str, extensions: Sequence[str]) -> bool:
    return os.path.splitext(path)[1].lower() in extensions


def expand_path(path: str, recursive: bool, extensions: Sequence[str] = FILE_EXTENSIONS) -> List[FileSource]:
    """Expand a path into file sources.

    A file named explicitly is used as-is. Directories contribute the files
    with a recognised extension, descending into subdirectories only when
    ``recursive`` is set.
    """
    if not os.path.isdir(path):
        return [FileSource(path)]

    sources = []
    if recursive:
        for root, dirs, files in os.walk(path):
            dirs.sort()
            for name in sorted(files):
                if _has_extension(name, extensions):
                    sources.append(FileSource(os.path.join(root, name)))
    else:
        for name in sorted(os.listdir(path)):
            candidate = os.path.join(path, name)
            if os.path.isfile(candidate) and _has_extension(name, extensions):
                sources.append(FileSource(candidate))
    return sources


def _resolve_path(path: str, recursive: bool) -> Tuple[List[Source], List[str]]:
    try:
        os.stat(path)
    except FileNotFoundError:
        return [], [f"the path {path!r} does not exist"]
    except OSError as e:
        return [], [f"the path {path!r} cannot be accessed: {e}"]

    try:
        sources = expand_path(path, recursive)
    except OSError as e:
        return [], [f"error reading {path!r}: {e}"]

    if not sources:
        return [], [f"error reading {[path]}: recognized file extensions are {list(FILE_EXTENSIONS)}"]
    return list(sources), []


def _parse_url(value: str) -> Optional[str]:
    """Return an error message if ``value`` is not a usable URL."""
    try:
        parsed = urlparse(value)
    except ValueError as e:
        return str(e)
    if not parsed.netloc:
        return "missing host"
    return None


def resolve(config: BuilderConfig) -> Resolution:
    """Turn builder inputs into ordered sources and accumulated errors."""
    sources: List[Source] = []
    errors: List[str] = []
    stdin_in_use = False
    single_item_implied = False

    def add_stdin():
        nonlocal stdin_in_use
        if stdin_in_use:
            errors.append("Stdin already in use")
            return
        stdin_in_use = True
        sources.append(StdinSource())

    def add_url(value: str):
        problem = _parse_url(value)
        if problem:
            errors.append(f"the URL passed to filename {value!r} is not valid: {problem}")
            return
        sources.append(URLSource(value, config.http_attempts))

    for item in config.inputs:
        if isinstance(item, CommandOptions):
            sources.append(CommandSource(item.kind, item.name))
        elif isinstance(item, URLInput):
            add_url(item.url)
        elif isinstance(item, StdinInput):
            add_stdin()
        elif isinstance(item, FilenameOptions):
            for value in item.filenames:
                if value == "-":
                    add_stdin()
                elif value.startswith(("http://", "https://")):
                    add_url(value)
                else:
                    if not item.recursive:
                        single_item_implied = True
                    path_sources, path_errors = _resolve_path(value, item.recursive)
                    sources.extend(path_sources)
                    errors.extend(path_errors)
        else:
            raise TypeError(f"unknown builder input: {item!r}")

    kinds = [i for i in config.inputs if isinstance(i, CommandOptions)]
    if kinds and len(kinds) != len(config.inputs):
        errors.append("a resource kind cannot be combined with filenames, URLs or stdin")

    for error in errors:
        logger.debug(f"Input error: {error}")
    return Resolution(tuple(sources), tuple(errors), single_item_implied)


class VisitorBuilder:
    """Fluent assembly of resource sources.

    ``filename_param`` and ``command_param`` only record options; ``file`` and
    ``command`` add them to the inputs. ``do`` adds whichever of the two has
    not been added yet, resolves everything and raises ``BuilderError`` with
    all accumulated problems if there were any.
    """

    def __init__(self):
        self._config = BuilderConfig()
        self._command_options: Optional[CommandOptions] = None
        self._filename_options: Optional[FilenameOptions] = None
        self._command_added = False
        self._file_added = False

    @property
    def config(self) -> BuilderConfig:
        return self._config

    def http_attempt_count(self, attempts: int) -> "VisitorBuilder":
        self._config = dataclasses.replace(self._config, http_attempts=attempts)
        return self

    def filename_param(self, options: Optional[FilenameOptions]) -> "VisitorBuilder":
        self._filename_options = options
        return self

    def command_param(self, options: Optional[CommandOptions]) -> "VisitorBuilder":
        self._command_options = options
        return self

    def command(self) -> "VisitorBuilder":
        if self._command_options is not None and not self._command_added:
            self._config = self._config.with_input(self._command_options)
            self._command_added = True
        return self

    def file(self) -> "VisitorBuilder":
        if self._filename_options is not None and not self._file_added:
            self._config = self._config.with_input(self._filename_options)
            self._file_added = True
        return self

    def url(self, *urls: str) -> "VisitorBuilder":
        for url in urls:
            self._config = self._config.with_input(URLInput(url))
        return self

    def stdin(self) -> "VisitorBuilder":
        self._config = self._config.with_input(StdinInput())
        return self

    def resolve(self) -> Resolution:
        self.command()
        self.file()
        return resolve(self._config)

    def do(self) -> List[Source]:
        return self.resolve().sources_or_raise()
