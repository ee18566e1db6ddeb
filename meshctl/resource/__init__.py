"""Resource documents and the sources they are read from."""
from .builder import (
    BuilderConfig,
    CommandOptions,
    FilenameOptions,
    Resolution,
    VisitorBuilder,
    resolve,
)
from .decoder import FILE_EXTENSIONS, Decoder
from .document import ResourceDocument
from .visitor import CommandSource, FileSource, StdinSource, URLSource, visit

__all__ = [
    'BuilderConfig', 'CommandOptions', 'FilenameOptions', 'Resolution',
    'VisitorBuilder', 'resolve', 'FILE_EXTENSIONS', 'Decoder',
    'ResourceDocument', 'CommandSource', 'FileSource', 'StdinSource',
    'URLSource', 'visit',
]
