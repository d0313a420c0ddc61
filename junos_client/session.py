"""Session facade: configuration lifecycle, rollback and operational commands.

Recommended sequence::

    with Session.connect(host, user, password) as jnpr:
        jnpr.lock()
        jnpr.load_configuration(["set system host-name rt1"], fmt="set")
        jnpr.commit_check()
        jnpr.commit()
        jnpr.unlock()

The order is not enforced.  Skipping ``lock()`` races with other
operators editing the same candidate configuration.
"""

import os
import time
from logging import getLogger

from lxml import etree

from junos_client import rpc
from junos_client.exceptions import (
    CommitError,
    DeviceRPCError,
    InvalidArgument,
    LoadError,
    LockConflict,
    NotFoundError,
    TransportError,
    ValidationError,
)
from junos_client.facts import parse_software_information
from junos_client.rollback import (
    Numbered,
    RescueAction,
    configuration_output,
    is_not_found,
    rollback_target,
)
from junos_client.transport import NetconfTransport
from junos_client import views

logger = getLogger(__name__)


class NoOutput(str):
    """Soft result of a command that produced no body."""

    def __new__(cls, value="No output available."):
        return super().__new__(cls, value)


def _raise_for(reply, exc_class):
    if not reply.ok:
        raise exc_class(errors=reply.errors)


class Session:
    """One connection to exactly one device."""

    def __init__(self, transport, rpc_table=None, platform_table=None, commit_timeout=0):
        self.transport = transport
        self.rpc_table = rpc_table if rpc_table is not None else rpc.RPC_TABLE
        self.platform_table = (
            platform_table if platform_table is not None else views.PLATFORM_TABLE
        )
        self.commit_timeout = commit_timeout or 0
        self.facts = None

    @classmethod
    def connect(
        cls,
        host,
        user,
        password=None,
        port=830,
        ssh_private_key_file=None,
        commit_timeout=0,
        timeout=None,
        huge_tree=False,
        **kwargs,
    ):
        """Open a NETCONF session and gather software facts."""
        transport = NetconfTransport(
            host,
            user,
            password=password,
            port=port,
            ssh_private_key_file=ssh_private_key_file,
            timeout=timeout,
            huge_tree=huge_tree,
        )
        session = cls(transport, commit_timeout=commit_timeout, **kwargs)
        session.open()
        return session

    def open(self):
        self.transport.open()
        try:
            reply = self._execute("software")
            if not reply.ok:
                raise TransportError(f"cannot gather facts: {reply.errors[0]}")
            if reply.data is None:
                raise TransportError("cannot gather facts: empty reply")
            facts = parse_software_information(reply.data)
            if facts.re_count == 0:
                raise TransportError("device reported no routing engines")
        except Exception:
            self.transport.close()
            raise
        self.facts = facts
        logger.debug(f"open: {facts.hostname} re_count={facts.re_count}")
        return self

    def close(self):
        self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.close()

    @property
    def hostname(self):
        return self.facts.hostname if self.facts else None

    @property
    def routing_engines(self):
        return self.facts.routing_engines if self.facts else ()

    @property
    def re_count(self):
        return len(self.routing_engines)

    @property
    def model(self):
        if not self.routing_engines:
            return ""
        return self.routing_engines[0].model

    def _execute(self, name, *args):
        request = rpc.build(self.rpc_table, name, *args)
        return self.transport.execute(request)

    def _pace(self):
        if self.commit_timeout > 0:
            logger.debug(f"sleep {self.commit_timeout}s")
            time.sleep(self.commit_timeout)

    def rpc(self, name, *args):
        """Run any entry of the RPC table and return the reply element."""
        reply = self._execute(name, *args)
        _raise_for(reply, DeviceRPCError)
        return reply.data

    # --- lifecycle ---

    def lock(self):
        """Lock the candidate configuration."""
        _raise_for(self._execute("lock"), LockConflict)
        self._pace()

    def unlock(self):
        """Release the candidate configuration lock."""
        _raise_for(self._execute("unlock"), DeviceRPCError)
        self._pace()

    def commit(self):
        _raise_for(self._execute("commit"), CommitError)
        self._pace()

    def commit_check(self):
        """Validate the candidate configuration. Never activates it."""
        _raise_for(self._execute("commit-check"), ValidationError)

    def commit_at(self, at_time, log=None):
        """Schedule a commit at ``at_time`` (HH:MM:SS, device local time).

        Returns once the device has accepted the schedule.
        """
        _raise_for(self._execute("commit-at", at_time, log), CommitError)

    def commit_confirmed(self, minutes):
        """Commit now; the device rolls back unless ``commit()`` follows within ``minutes``."""
        _raise_for(self._execute("commit-confirm", minutes), CommitError)

    def commit_full(self):
        _raise_for(self._execute("commit-full"), CommitError)

    def _load_request(self, payload, fmt):
        rpc.check_format(fmt)
        if isinstance(payload, (list, tuple)):
            return rpc.build(self.rpc_table, "load-config", self._inline(
                "\n".join(payload), fmt), fmt)
        if isinstance(payload, os.PathLike):
            payload = os.fspath(payload)
            if not os.path.isfile(payload):
                raise LoadError(f"{payload}: no such file")
        if not isinstance(payload, str):
            raise InvalidArgument(f"unsupported configuration payload: {type(payload).__name__}")
        if "tp://" in payload:
            return rpc.build(self.rpc_table, "load-config-url", payload, fmt)
        if os.path.isfile(payload):
            try:
                with open(payload) as f:
                    payload = f.read()
            except OSError as e:
                raise LoadError(f"cannot read {payload}: {e}") from e
        return rpc.build(self.rpc_table, "load-config", self._inline(payload, fmt), fmt)

    @staticmethod
    def _inline(text, fmt):
        if fmt != "xml":
            return text
        try:
            elem = etree.fromstring(text.strip().encode())
        except etree.XMLSyntaxError as e:
            raise LoadError(f"malformed xml configuration: {e}") from e
        if elem.tag == "configuration":
            return elem
        wrapper = etree.Element("configuration")
        wrapper.append(elem)
        return wrapper

    def load_configuration(self, payload, fmt="text", commit=False):
        """Load ``payload`` into the candidate configuration.

        :param payload: file path, ``ftp://``/``http://`` URL, inline text,
            or a list of lines.
        :param fmt: ``set``, ``text`` or ``xml``. Not auto-detected.
        :param commit: commit right after a successful load.  A failed
            commit leaves the loaded change staged.
        """
        request = self._load_request(payload, fmt)
        reply = self.transport.execute(request)
        _raise_for(reply, LoadError)
        if reply.data is not None:
            count = reply.data.findtext(".//load-error-count")
            if count and int(count) > 0:
                raise LoadError(f"{count} load errors reported")
        if commit:
            self.commit()

    # --- rollback / diff ---

    def diff(self, slot=0):
        """Pending candidate changes compared with rollback ``slot``."""
        reply = self._execute("get-candidate-compare", slot)
        _raise_for(reply, DeviceRPCError)
        return configuration_output(reply, f"candidate diff against rollback {slot}")

    def config_diff(self, slot):
        """Active configuration compared with rollback ``slot``."""
        reply = self._execute("get-rollback-information-compare", slot)
        if not reply.ok and is_not_found(reply.errors):
            raise NotFoundError(str(reply.errors[0]))
        _raise_for(reply, DeviceRPCError)
        return configuration_output(reply, f"rollback {slot}")

    def rollback_config(self, slot):
        """Full text of rollback ``slot``."""
        reply = self._execute("get-rollback-information", slot)
        if not reply.ok and is_not_found(reply.errors):
            raise NotFoundError(str(reply.errors[0]))
        _raise_for(reply, DeviceRPCError)
        return configuration_output(reply, f"rollback {slot}")

    def rescue_config(self):
        """Text of the saved rescue configuration."""
        reply = self._execute("get-rescue-information")
        if not reply.ok and is_not_found(reply.errors):
            raise NotFoundError(str(reply.errors[0]))
        _raise_for(reply, DeviceRPCError)
        return configuration_output(reply, "rescue configuration")

    def rollback(self, target):
        """Load rollback ``target`` (slot number or ``"rescue"``) and commit it.

        If the commit fails the rolled-back content stays in the candidate.
        """
        target = rollback_target(target)
        if isinstance(target, Numbered):
            reply = self._execute("rollback-config", target.slot)
        else:
            reply = self._execute("rescue-config")
        if not reply.ok:
            if is_not_found(reply.errors):
                raise NotFoundError(str(reply.errors[0]))
            raise LoadError(errors=reply.errors)
        self.commit()

    def rescue(self, action):
        """``save`` the active configuration as rescue, or ``delete`` it."""
        action = RescueAction.parse(action)
        if action is RescueAction.SAVE:
            reply = self._execute("rescue-save")
        else:
            reply = self._execute("rescue-delete")
        _raise_for(reply, DeviceRPCError)

    def get_config(self, section=None, fmt="text"):
        """Committed configuration, or one section of it (``"security>zones"``).

        ``text`` and ``set`` return a string, ``xml`` the ``<configuration>``
        element.
        """
        reply = self._execute("get-config", section, fmt)
        _raise_for(reply, DeviceRPCError)
        if reply.data is None:
            raise NotFoundError(f"{section or 'configuration'}: no output available")
        if fmt == "xml":
            return reply.data
        return "".join(reply.data.itertext())

    # --- operational ---

    def command(self, cmd, fmt="text"):
        """Run an operational command such as ``show version``.

        ``text`` returns what the CLI would print.  An empty body returns
        :class:`NoOutput`.
        """
        reply = self._execute("command", cmd, fmt)
        _raise_for(reply, DeviceRPCError)
        if reply.data is None:
            return NoOutput()
        if fmt == "text":
            if reply.data.tag == "output":
                text = reply.data.text
            else:
                text = reply.data.findtext(".//output")
            if not text or not text.strip():
                return NoOutput()
            return text
        if len(reply.data) == 0 and not (reply.data.text or "").strip():
            return NoOutput()
        return reply.tostring()

    def view(self, name, interface=None):
        """Decoded operational view, see :mod:`junos_client.views`."""
        views.get_view(name)
        views.check_platform(name, self.model, self.platform_table)
        request = views.build_view_rpc(name, interface)
        reply = self.transport.execute(request)
        _raise_for(reply, DeviceRPCError)
        if reply.data is None or len(reply.data) == 0:
            raise NotFoundError(f"{name}: no output available")
        return views.decode_view(name, reply.data)
