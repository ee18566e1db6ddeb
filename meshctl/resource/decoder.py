"""Decoding of JSON and YAML resource streams."""
import json
import logging
from typing import IO, Any, List, Union

import yaml

from ..errors import DecodeError
from .document import ResourceDocument

logger = logging.getLogger(__name__)

# Extensions of the files that hold mesh resources
FILE_EXTENSIONS = (".json", ".yaml", ".yml")


def _load_json_stream(text: str) -> List[Any]:
    """Parse one or more JSON values written back to back."""
    decoder = json.JSONDecoder()
    values = []
    index = 0
    while True:
        while index < len(text) and text[index].isspace():
            index += 1
        if index == len(text):
            return values
        value, index = decoder.raw_decode(text, index)
        values.append(value)


class Decoder:
    """Turns a raw stream into resource documents.

    A stream starting with ``{`` or ``[`` is read as JSON, possibly several
    values back to back. Anything else goes through the YAML loader and is
    split on ``---``. The whole stream is parsed before anything is
    returned, so a malformed document never yields a partial result.
    """

    def _load(self, text: str) -> List[Any]:
        if text.lstrip()[:1] in ("{", "["):
            try:
                return _load_json_stream(text)
            except ValueError as e:
                # YAML flow style also starts with a brace
                logger.debug(f"Not a JSON stream ({e}), trying YAML")
        return list(yaml.safe_load_all(text))

    def decode(self, stream: Union[bytes, str, IO], source: str = "") -> List[ResourceDocument]:
        if hasattr(stream, "read"):
            stream = stream.read()
        if isinstance(stream, bytes):
            try:
                stream = stream.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(f"error decoding {source or 'stream'}: {e}") from e

        stream = stream.lstrip("\ufeff")
        try:
            raw_documents = self._load(stream)
        except (ValueError, yaml.YAMLError) as e:
            raise DecodeError(f"error decoding {source or 'stream'}: {e}") from e

        documents = []
        for index, raw in enumerate(raw_documents):
            if raw is None:
                continue
            # A JSON array holds several resources in one document
            items = raw if isinstance(raw, list) else [raw]
            for item in items:
                if not isinstance(item, dict):
                    raise DecodeError(
                        f"error decoding {source or 'stream'}: document {index} "
                        f"is a {type(item).__name__}, expected a mapping"
                    )
                documents.append(ResourceDocument.from_dict(item, source=source))

        logger.debug(f"Decoded {len(documents)} resource(s) from {source or 'stream'}")
        return documents
