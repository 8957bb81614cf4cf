"""Decode NF-e XML documents into plain nested dictionaries.

The cost engine works on an already parsed tree: mappings of tag name to
either text, a nested mapping or a list of mappings when a tag repeats
(``det`` usually does).  Namespaces are dropped and attributes are stored
under ``@name`` keys, e.g. ``tree["nfeProc"]["NFe"]["infNFe"]["@Id"]``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Union

from lxml import etree


LOGGER = logging.getLogger(__name__)


class DocumentReader:
    """Read NF-e XML bytes or files into the tree consumed by the normalizer."""

    def __init__(self) -> None:
        self._parser = etree.XMLParser(recover=True, remove_comments=True, resolve_entities=False)

    def read_bytes(self, data: Union[bytes, str]) -> Dict[str, Any]:
        if isinstance(data, str):
            data = data.encode("utf-8")
        root = etree.fromstring(data, parser=self._parser)
        if root is None:
            raise ValueError("Empty or unreadable XML document")
        return {_local_name(root): element_to_tree(root)}

    def read_file(self, file_path: Path) -> Dict[str, Any]:
        file_path = Path(file_path)
        return self.read_bytes(file_path.read_bytes())


def _local_name(element) -> str:
    return etree.QName(element).localname


def element_to_tree(element) -> Any:
    """Convert ``element`` into text or a mapping, recursively."""

    children = [child for child in element if isinstance(child.tag, str)]
    if not children and not element.attrib:
        text = element.text.strip() if element.text else ""
        return text

    node: Dict[str, Any] = {f"@{etree.QName(key).localname}": value for key, value in element.attrib.items()}
    for child in children:
        key = _local_name(child)
        value = element_to_tree(child)
        if key in node:
            existing = node[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[key] = [existing, value]
        else:
            node[key] = value

    if not children and element.text and element.text.strip():
        node["#text"] = element.text.strip()
    return node


__all__ = ["DocumentReader", "element_to_tree"]
