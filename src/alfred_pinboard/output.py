"""Alfred script-filter output (JSON for Alfred 3+, XML for Alfred 2)."""

import json
import logging
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Iterable, TextIO

logger = logging.getLogger("alfred_pinboard.output")

ERROR_ICON = "erroricon.icns"


@dataclass
class Item:
    """One row in Alfred's result list."""
    title: str
    subtitle: str = ""
    arg: str = ""
    uid: str = ""
    valid: bool = True
    icon_path: str = ""
    autocomplete: str = ""
    quicklook_url: str = ""
    mods: dict[str, dict] = field(default_factory=dict)
    variables: dict[str, str] = field(default_factory=dict)

    def to_json(self) -> dict:
        data: dict = {"title": self.title, "valid": self.valid}
        if self.subtitle:
            data["subtitle"] = self.subtitle
        if self.arg:
            data["arg"] = self.arg
        if self.uid:
            data["uid"] = self.uid
        if self.icon_path:
            data["icon"] = {"path": self.icon_path}
        if self.autocomplete:
            data["autocomplete"] = self.autocomplete
        if self.quicklook_url:
            data["quicklookurl"] = self.quicklook_url
        if self.mods:
            data["mods"] = self.mods
        if self.variables:
            data["variables"] = self.variables
        return data

    def to_xml(self) -> ET.Element:
        elem = ET.Element("item", valid="yes" if self.valid else "no")
        if self.uid:
            elem.set("uid", self.uid)
        if self.arg:
            elem.set("arg", self.arg)
        if self.autocomplete:
            elem.set("autocomplete", self.autocomplete)
        ET.SubElement(elem, "title").text = self.title
        ET.SubElement(elem, "subtitle").text = self.subtitle
        for mod, spec in self.mods.items():
            if "subtitle" in spec:
                ET.SubElement(elem, "subtitle", mod=mod).text = spec["subtitle"]
        if self.icon_path:
            ET.SubElement(elem, "icon").text = self.icon_path
        if self.quicklook_url:
            ET.SubElement(elem, "quicklookurl").text = self.quicklook_url
        return elem


def error_item(message: str) -> Item:
    return Item(title="Error", subtitle=message, valid=False, icon_path=ERROR_ICON)


class AlfredOutput:
    """Writes one result per invocation to Alfred."""

    def __init__(self, stream: TextIO | None = None, execution_counter: str = "1"):
        self.stream = stream if stream is not None else sys.stdout
        self.execution_counter = execution_counter
        self.writes = 0

    def write(
        self,
        items: Iterable[Item],
        supports_json: bool = True,
        variables: dict[str, str] | None = None,
    ) -> None:
        items = list(items)
        all_vars = {"apr_execution_counter": self.execution_counter}
        if variables:
            all_vars.update(variables)
        logger.debug("Writing %d items, variables: %s", len(items), all_vars)

        if supports_json:
            payload = {"items": [item.to_json() for item in items], "variables": all_vars}
            self._emit(json.dumps(payload, ensure_ascii=False))
        else:
            root = ET.Element("items")
            for item in items:
                root.append(item.to_xml())
            self._emit('<?xml version="1.0"?>' + ET.tostring(root, encoding="unicode"))

    def write_error(self, message: str) -> None:
        """Write a single error item. Always JSON, it must work before setup."""
        logger.debug("Reporting error: %s", message)
        payload = {"items": [error_item(message).to_json()]}
        self._emit(json.dumps(payload, ensure_ascii=False))

    def write_lines(self, lines: Iterable[str]) -> None:
        """Plain text output for non-interactive use (one value per line)."""
        self._emit("\n".join(lines))

    def _emit(self, text: str) -> None:
        self.writes += 1
        self.stream.write(text)
        self.stream.write("\n")
        self.stream.flush()
