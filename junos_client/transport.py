"""NETCONF transport over PyEZ.

:class:`NetconfTransport` owns one ``jnpr.junos.Device``.  ``execute``
never raises for errors the device reports: they come back on the
:class:`Reply`.  Connection-level failures raise
:class:`~junos_client.exceptions.TransportError`.
"""

import os
from logging import getLogger

from jnpr.junos import Device
from jnpr.junos.exception import (
    ConnectClosedError,
    ConnectError,
    RpcError,
    RpcTimeoutError,
)
from lxml import etree
from ncclient.operations.errors import TimeoutExpiredError

from junos_client.exceptions import RpcErrorDetail, TransportError

logger = getLogger(__name__)


class Reply:
    """Result of one RPC: the reply element (or None) and its errors."""

    def __init__(self, data=None, errors=None):
        self.data = data
        self.errors = list(errors or [])

    @property
    def ok(self):
        return not self.errors

    def tostring(self):
        if self.data is None:
            return ""
        return etree.tostring(self.data, encoding="unicode")

    def __repr__(self):
        return f"Reply(ok={self.ok}, data={self.tostring()[:60]!r})"


def _child_text(node, name):
    return node.xpath("string(*[local-name()=$name])", name=name).strip()


def parse_rpc_errors(elem) -> list[RpcErrorDetail]:
    """Collect ``rpc-error`` entries of severity error under ``elem``.

    Warnings are dropped.
    """
    if elem is None or not isinstance(elem, etree._Element):
        return []
    errors = []
    for node in elem.xpath("descendant-or-self::*[local-name()='rpc-error']"):
        severity = _child_text(node, "error-severity") or "error"
        if severity == "warning":
            continue
        element = node.xpath(
            "string(*[local-name()='error-info']/*[local-name()='bad-element'])"
        ).strip()
        errors.append(
            RpcErrorDetail(
                message=_child_text(node, "error-message") or "rpc error",
                severity=severity,
                path=_child_text(node, "error-path"),
                element=element,
            )
        )
    return errors


def rpc_error_details(errs) -> list[RpcErrorDetail]:
    """Convert the ``errs`` dicts of a PyEZ ``RpcError``, warnings dropped."""
    errors = []
    for err in errs or []:
        if not isinstance(err, dict):
            continue
        severity = (err.get("severity") or "error").strip()
        if severity == "warning":
            continue
        errors.append(
            RpcErrorDetail(
                message=(err.get("message") or "rpc error").strip(),
                severity=severity,
                path=(err.get("edit_path") or "").strip(),
                element=(err.get("bad_element") or "").strip(),
            )
        )
    return errors


class NetconfTransport:
    """One authenticated NETCONF/SSH channel to a device."""

    def __init__(
        self,
        host,
        user,
        password=None,
        port=830,
        ssh_private_key_file=None,
        timeout=None,
        huge_tree=False,
    ):
        self.host = host
        kwargs = dict(
            host=host,
            port=int(port),
            user=user,
            passwd=password,
            huge_tree=huge_tree,
            gather_facts=False,
        )
        if ssh_private_key_file:
            kwargs["ssh_private_key_file"] = os.path.expanduser(ssh_private_key_file)
        self.dev = Device(**kwargs)
        self.timeout = timeout

    def open(self):
        logger.debug(f"open: {self.host}")
        try:
            self.dev.open()
        except ConnectError as e:
            raise TransportError(f"{self.host}: {e}") from e
        if self.timeout:
            self.dev.timeout = self.timeout

    def execute(self, request) -> Reply:
        try:
            rsp = self.dev.execute(request, ignore_warning=True)
        except (RpcTimeoutError, TimeoutExpiredError) as e:
            raise TransportError(f"{self.host}: rpc timeout: {e}") from e
        except ConnectClosedError as e:
            raise TransportError(f"{self.host}: connection closed: {e}") from e
        except RpcError as e:
            # e.rsp holds only the first <rpc-error>, e.errs all of them
            if isinstance(e.errs, list):
                errors = rpc_error_details(e.errs)
            else:
                errors = parse_rpc_errors(e.rsp)
            if not errors:
                errors = [RpcErrorDetail(message=str(e))]
            logger.debug(f"execute: {request.tag}: {errors}")
            return Reply(errors=errors)
        # PyEZ returns True for replies that carry only <ok/>
        if not isinstance(rsp, etree._Element):
            return Reply()
        return Reply(rsp, parse_rpc_errors(rsp))

    def close(self):
        try:
            self.dev.close()
        except ConnectError as e:
            raise TransportError(f"{self.host}: {e}") from e
