"""Junos Space REST client.

Device inventory, software image management and job status.  Security
Director objects live in :mod:`junos_client.sd` and are mixed into
:class:`Space`.  Every request is XML over HTTPS with Basic auth::

    space = Space("space.example.net", "admin", "secret")
    job = space.stage_software("rt1", "junos-srxsme-15.1X49-D100.6.tgz")
    print(space.job(job))
"""

from dataclasses import dataclass
from logging import getLogger
from types import MappingProxyType

import requests
from lxml import etree
from lxml.builder import E
from requests.auth import HTTPBasicAuth

from junos_client.exceptions import (
    InvalidArgument,
    NotFoundError,
    SpaceAPIError,
    TransportError,
)
from junos_client.sd import IPV4_PATTERN, SecurityDirector

logger = getLogger(__name__)

CONTENT_TYPES = MappingProxyType(
    {
        "discover-devices": "application/vnd.net.juniper.space.device-management.discover-devices+xml;version=2;charset=UTF-8",
        "exec-deploy": "application/vnd.net.juniper.space.software-management.exec-deploy+xml;version=1;charset=UTF-8",
        "exec-remove": "application/vnd.net.juniper.space.software-management.exec-remove+xml;version=1;charset=UTF-8",
        "exec-stage": "application/vnd.net.juniper.space.software-management.exec-stage+xml;version=1;charset=UTF-8",
        "exec-resync": "application/vnd.net.juniper.space.device-management.exec-resync+xml;version=1",
        "address": "application/vnd.juniper.sd.address-management.address+xml;version=1;charset=UTF-8",
        "address-patch": "application/vnd.juniper.sd.address-management.address_patch+xml;version=1;charset=UTF-8",
        "service": "application/vnd.juniper.sd.service-management.service+xml;version=1;charset=UTF-8",
        "service-patch": "application/vnd.juniper.sd.service-management.service_patch+xml;version=1;charset=UTF-8",
        "update-devices": "application/vnd.juniper.sd.device-management.update-devices+xml;version=1;charset=UTF-8",
        "publish": "application/vnd.juniper.sd.fwpolicy-management.publish+xml;version=1;charset=UTF-8",
        "variable": "application/vnd.juniper.sd.variable-management.variable-definition+xml;version=1;charset=UTF-8",
    }
)

DEVICES_PATH = "space/device-management/devices"
PACKAGES_PATH = "space/software-management/packages"


def _int(value, default=0):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _flag(value):
    return "true" if value else "false"


@dataclass(frozen=True)
class Device:
    id: int
    name: str
    ip_address: str
    family: str = ""
    version: str = ""
    platform: str = ""
    serial: str = ""

    @classmethod
    def from_xml(cls, elem):
        return cls(
            id=_int(elem.get("key")),
            name=elem.findtext("name", default=""),
            ip_address=elem.findtext("ipAddr", default=""),
            family=elem.findtext("deviceFamily", default=""),
            version=elem.findtext("OSVersion", default=""),
            platform=elem.findtext("platform", default=""),
            serial=elem.findtext("serialNumber", default=""),
        )


@dataclass(frozen=True)
class SoftwarePackage:
    id: int
    name: str
    version: str = ""
    platform: str = ""

    @classmethod
    def from_xml(cls, elem):
        return cls(
            id=_int(elem.get("key")),
            name=elem.findtext("fileName", default=""),
            version=elem.findtext("version", default=""),
            platform=elem.findtext("platformType", default=""),
        )


@dataclass(frozen=True)
class Job:
    id: int
    name: str
    state: str
    status: str
    percent: float

    @classmethod
    def from_xml(cls, elem):
        try:
            percent = float(elem.findtext("percent-complete", default="0"))
        except ValueError:
            percent = 0.0
        return cls(
            id=_int(elem.findtext("id")),
            name=elem.findtext("name", default=""),
            state=elem.findtext("job-state", default=""),
            status=elem.findtext("job-status", default=""),
            percent=percent,
        )


@dataclass(frozen=True)
class SoftwareUpgrade:
    """Options of an image deployment."""

    use_downloaded: bool = False  # image already staged on the device
    validate: bool = True  # check compatibility with the current configuration
    reboot: bool = False
    reboot_after: int = 0  # minutes
    cleanup: bool = False  # remove existing packages first
    remove_after: bool = False  # remove the package after installation


def job_id(elem) -> int:
    """Job id of an asynchronous task reply."""
    if elem is None:
        raise SpaceAPIError("empty reply, no job id")
    value = elem.findtext("id")
    if value is None and elem.tag == "id":
        value = elem.text
    if value is None or not value.strip().isdigit():
        raise SpaceAPIError(f"no job id in reply <{elem.tag}>")
    return int(value)


def _device_ref(device_id):
    return E("devices", E("device", href=f"/api/{DEVICES_PATH}/{device_id}"))


class Space(SecurityDirector):
    """A Junos Space server."""

    _job_id = staticmethod(job_id)

    def __init__(
        self,
        host,
        user,
        password,
        verify=True,
        timeout=None,
        content_types=None,
        session=None,
    ):
        self.host = host
        self.base_url = f"https://{host}/api/"
        self.timeout = timeout
        self.content_types = content_types if content_types is not None else CONTENT_TYPES
        self.session = session if session is not None else requests.Session()
        self.session.auth = HTTPBasicAuth(user, password)
        self.session.verify = verify

    def api_call(self, method, path, body=None, operation=None, params=None):
        """Send one request and return the parsed XML reply, or None if empty.

        :param path: path below ``/api/``
        :param operation: key of :data:`CONTENT_TYPES` for the request body
        """
        headers = {}
        if operation is not None:
            try:
                headers["Content-Type"] = self.content_types[operation]
            except KeyError:
                raise InvalidArgument(f"unknown operation: {operation}") from None
        if body is not None and not isinstance(body, (str, bytes)):
            body = etree.tostring(body)
        url = self.base_url + path.lstrip("/")
        logger.debug(f"api_call: {method.upper()} {url}")
        try:
            resp = self.session.request(
                method.upper(),
                url,
                data=body,
                headers=headers,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"{self.host}: {e}") from e
        if resp.status_code >= 400:
            raise SpaceAPIError(
                f"{method.upper()} {path}: HTTP {resp.status_code} {resp.text.strip()[:200]}",
                status_code=resp.status_code,
            )
        if not resp.content or not resp.content.strip():
            return None
        try:
            return etree.fromstring(resp.content.strip())
        except etree.XMLSyntaxError as e:
            raise SpaceAPIError(
                f"{method.upper()} {path}: unreadable reply: {e}",
                status_code=resp.status_code,
            ) from e

    def _list(self, path, tag, cls, params=None):
        elem = self.api_call("get", path, params=params)
        if elem is None:
            return []
        return [cls.from_xml(e) for e in elem.iter(tag)]

    # --- devices ---

    def devices(self) -> list[Device]:
        """Every device managed by Space."""
        return self._list(DEVICES_PATH, "device", Device)

    def device_id(self, device) -> int:
        """Resolve a device id from an id, an IPv4 address or a name."""
        if isinstance(device, int) and not isinstance(device, bool):
            return device
        if not isinstance(device, str):
            raise InvalidArgument(f"invalid device: {device!r}")
        if IPV4_PATTERN.match(device):
            matches = [d.id for d in self.devices() if d.ip_address == device]
        else:
            matches = [d.id for d in self.devices() if d.name == device]
        if not matches:
            raise NotFoundError(f"device not found: {device}")
        return matches[-1]

    def add_device(self, host, user, password) -> int:
        """Discover and manage ``host``. Returns the job id."""
        body = E("discover-devices")
        if IPV4_PATTERN.match(host):
            body.append(E("ipAddressDiscoveryTarget", E("ipAddress", host)))
        body.append(E("hostNameDiscoveryTarget", E("hostName", host)))
        body.append(E("sshCredential", E("userName", user), E("password", password)))
        body.append(E("manageDiscoveredSystemsFlag", "true"))
        body.append(E("usePing", "true"))
        return job_id(
            self.api_call(
                "post", "space/device-management/discover-devices", body, "discover-devices"
            )
        )

    def remove_device(self, device):
        device_id = self.device_id(device)
        self.api_call("delete", f"{DEVICES_PATH}/{device_id}")

    def resync_device(self, device) -> int:
        """Resynchronize Space with the device configuration. Returns the job id."""
        device_id = self.device_id(device)
        body = E("exec-resync", _device_ref(device_id))
        return job_id(
            self.api_call("post", f"{DEVICES_PATH}/exec-resync", body, "exec-resync")
        )

    def job(self, job_id) -> Job:
        elem = self.api_call("get", f"space/job-management/jobs/{int(job_id)}")
        if elem is None:
            raise NotFoundError(f"job not found: {job_id}")
        return Job.from_xml(elem)

    # --- software ---

    def software(self) -> list[SoftwarePackage]:
        """Every software image managed by Space."""
        return self._list(PACKAGES_PATH, "package", SoftwarePackage)

    def software_id(self, image) -> int:
        matches = [p.id for p in self.software() if p.name == image]
        if not matches:
            raise NotFoundError(f"software image not found: {image}")
        return matches[-1]

    def deploy_software(self, device, image, options=None) -> int:
        """Upgrade ``device`` to ``image``. Returns the job id."""
        options = options or SoftwareUpgrade()
        device_id = self.device_id(device)
        software_id = self.software_id(image)
        body = E(
            "exec-deploy",
            _device_ref(device_id),
            E(
                "deployOptions",
                E("useAlreadyDownloaded", _flag(options.use_downloaded)),
                E("validate", _flag(options.validate)),
                E("bestEffortLoad", "false"),
                E("snapShotRequired", "false"),
                E("rebootDevice", _flag(options.reboot)),
                E("rebootAfterXMinutes", str(options.reboot_after)),
                E("cleanUpExistingOnDevice", _flag(options.cleanup)),
                E("removePkgAfterInstallation", _flag(options.remove_after)),
            ),
        )
        return job_id(
            self.api_call("post", f"{PACKAGES_PATH}/{software_id}/exec-deploy", body, "exec-deploy")
        )

    def stage_software(self, device, image, cleanup=False) -> int:
        """Copy ``image`` to /var/tmp on ``device`` without installing it."""
        device_id = self.device_id(device)
        software_id = self.software_id(image)
        body = E(
            "exec-stage",
            _device_ref(device_id),
            E("stageOptions", E("cleanUpExistingOnDevice", _flag(cleanup))),
        )
        return job_id(
            self.api_call("post", f"{PACKAGES_PATH}/{software_id}/exec-stage", body, "exec-stage")
        )

    def remove_staged_software(self, device, image) -> int:
        device_id = self.device_id(device)
        software_id = self.software_id(image)
        body = E("exec-remove", _device_ref(device_id))
        return job_id(
            self.api_call("post", f"{PACKAGES_PATH}/{software_id}/exec-remove", body, "exec-remove")
        )
