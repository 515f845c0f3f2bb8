"""ZWS command envelope: ``<zulu-server><Command><Op>...</Op></Command></zulu-server>``.

Built with xml.etree.ElementTree, so layer names are escaped.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

ZWS_CONTENT_TYPE = "application/xml"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


def build_command(operation: str, params: list[tuple[str, object]]) -> str:
    """Serialize one ZWS command.

    Args:
        operation: Command element name, e.g. "GetLayerTile".
        params: Ordered (tag, value) pairs written as child elements.

    Returns:
        XML document string with declaration.
    """
    root = ET.Element("zulu-server", {"service": "zws", "version": "1.0.0"})
    command = ET.SubElement(root, "Command")
    op = ET.SubElement(command, operation)
    for tag, value in params:
        ET.SubElement(op, tag).text = str(value)
    # Body is sent UTF-8 encoded, whatever the locale says
    return XML_DECLARATION + ET.tostring(root, encoding="unicode")


def request_headers(credentials=None) -> dict[str, str]:
    headers = {"Content-Type": ZWS_CONTENT_TYPE}
    if credentials is not None:
        headers["Authorization"] = credentials.basic_auth_header()
    return headers
