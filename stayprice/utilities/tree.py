"""
tree.py

The generic attributed tree handed to the interpreters, plus the decoders
that build it from a rate plans document (XML, or xml2js-shaped JSON).

The interpreters only ever see Node objects; the decoders are used at the
boundary (CLI, tests) and never by the core.
"""

import json
import os
import xml.etree.ElementTree as ElementTree

from stayprice.errors import InputError


class Node:
    """
    One element: a tag, a flat attribute mapping and named, ordered child lists.
    """

    def __init__(self, tag: str, attrs: dict = None, children: dict = None):
        self.tag = tag
        self.attrs = dict(attrs or {})
        self.children = {}
        for name, nodes in (children or {}).items():
            self.children[name] = list(nodes)

    def get(self, name: str):
        return self.attrs.get(name)

    def has_child(self, tag: str) -> bool:
        return tag in self.children

    def children_named(self, tag: str) -> list:
        return self.children.get(tag, [])

    def add_child(self, node: "Node"):
        self.children.setdefault(node.tag, []).append(node)
        return node

    def __repr__(self):
        return f"Node({self.tag!r}, attrs={self.attrs!r}, children={list(self.children)!r})"


def _local_name(name: str) -> str:
    if name.startswith("{"):
        return name.split("}", 1)[1]
    return name


def _from_element(element) -> Node:
    attrs = {}
    for key, value in element.attrib.items():
        # namespaced attributes (xsi:schemaLocation, ...) carry no pricing data
        if key.startswith("{"):
            continue
        attrs[key] = value
    node = Node(_local_name(element.tag), attrs)
    for child in element:
        if not isinstance(child.tag, str):
            continue
        node.add_child(_from_element(child))
    return node


def decode_xml(text: str) -> Node:
    """
    Decode an XML document into a Node tree rooted at the document element.
    """
    try:
        root = ElementTree.fromstring(text)
    except ElementTree.ParseError as e:
        raise InputError(f"[decode_xml] rate plans document: XML parse error ({e})")
    return _from_element(root)


def _from_json_object(tag: str, obj) -> Node:
    if not isinstance(obj, dict):
        # xml2js renders text-only elements as plain strings
        return Node(tag)
    attrs = obj.get("$", {})
    if not isinstance(attrs, dict):
        raise InputError(f"[decode_json] element '{tag}': '$' must be an object")
    node = Node(tag, {k: str(v) for k, v in attrs.items()})
    for key, value in obj.items():
        if key in ("$", "_"):
            continue
        items = value if isinstance(value, list) else [value]
        for item in items:
            node.add_child(_from_json_object(key, item))
    return node


def decode_json(text: str) -> Node:
    """
    Decode an xml2js-shaped JSON document: {"Root": {"$": {...}, "Child": [...]}}.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InputError(f"[decode_json] rate plans document: JSON parse error ({e})")
    if not isinstance(data, dict) or len(data) != 1:
        raise InputError("[decode_json] rate plans document: expected an object with exactly one root element")
    tag, obj = next(iter(data.items()))
    return _from_json_object(tag, obj)


def load_document(filepath: str) -> Node:
    if not os.path.isfile(filepath):
        raise InputError(f"[load_document] rate plans file not found: {filepath}")
    with open(filepath, "r", encoding="utf-8") as f:
        text = f.read()
    if filepath.lower().endswith(".json"):
        return decode_json(text)
    return decode_xml(text)
