"""Software facts: routing engines, versions and multi-RE detection.

``get-software-information`` answers in two shapes.  A single routing
engine replies with ``<software-information>``; a chassis cluster or
dual-RE system wraps one block per engine in
``<multi-routing-engine-results>``.  The shape is picked before decoding.
"""

import re
from dataclasses import dataclass
from logging import getLogger

from lxml import etree

logger = getLogger(__name__)

MULTI_RE_MARKER = "multi-routing-engine-results"
MULTI_RE_ITEM = "multi-routing-engine-item"

# JUNOS Software Release [12.1X47-D10.4]
VERSION_PATTERN = re.compile(r"\[([^\[\]]+)\]")


@dataclass(frozen=True)
class RoutingEngine:
    model: str
    version: str
    name: str = ""


@dataclass(frozen=True)
class Facts:
    hostname: str
    routing_engines: tuple

    @property
    def re_count(self):
        return len(self.routing_engines)


def as_element(data):
    """Accept an element, or raw reply text/bytes."""
    if isinstance(data, etree._Element):
        return data
    if isinstance(data, str):
        data = data.encode()
    return etree.fromstring(data.strip())


def extract_version(text) -> str:
    """Return the bracketed version token of ``text``, or "" if there is none."""
    if not text:
        return ""
    m = VERSION_PATTERN.search(text)
    if m is None:
        return ""
    return m.group(1).strip()


def is_multi_re(elem) -> bool:
    if elem.tag == MULTI_RE_MARKER:
        return True
    return elem.find(f".//{MULTI_RE_MARKER}") is not None


def split_multi_re(elem):
    """Yield ``(re_name, payload)`` for each engine block of a multi-RE reply."""
    for item in elem.iter(MULTI_RE_ITEM):
        name = item.findtext("re-name", default="").strip()
        payload = [child for child in item if child.tag != "re-name"]
        yield name, payload[0] if payload else item


def _routing_engine(info, name=""):
    model = info.findtext("product-model", default="").strip().upper()
    version = ""
    for comment in info.iterfind("package-information/comment"):
        version = extract_version(comment.text)
        if version:
            break
    if not version:
        version = info.findtext("junos-version", default="").strip()
    return RoutingEngine(model=model, version=version, name=name)


def parse_software_information(data) -> Facts:
    elem = as_element(data)
    if is_multi_re(elem):
        hostname = ""
        engines = []
        for name, info in split_multi_re(elem):
            if not engines:
                hostname = info.findtext("host-name", default="").strip()
            engines.append(_routing_engine(info, name))
        logger.debug(f"parse_software_information: multi-RE {len(engines)=}")
        return Facts(hostname=hostname, routing_engines=tuple(engines))

    if elem.tag != "software-information":
        info = elem.find(".//software-information")
        if info is None:
            return Facts(hostname="", routing_engines=())
        elem = info
    hostname = elem.findtext("host-name", default="").strip()
    return Facts(hostname=hostname, routing_engines=(_routing_engine(elem),))
