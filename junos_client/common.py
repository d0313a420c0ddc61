"""Common utilities: config loading, session setup, target resolution, parallel execution."""

from concurrent import futures
import configparser
import logging
import logging.config
import os
import sys
from logging import getLogger

from junos_client.exceptions import InvalidArgument, JunosError
from junos_client.session import Session

logger = getLogger(__name__)

config = None

DEFAULT_CONFIG = "config.ini"
LOGGING_CONFIG = "logging.ini"


def setup_logging():
    """Configure logging from logging.ini, or INFO to stdout."""
    if os.path.isfile(LOGGING_CONFIG):
        logging.config.fileConfig(LOGGING_CONFIG)
    else:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s [%(levelname)s] %(message)s",
            handlers=[logging.StreamHandler(sys.stdout)],
        )


def get_default_config():
    """Search for config file in standard locations."""
    # カレントディレクトリ
    if os.path.isfile(DEFAULT_CONFIG):
        return DEFAULT_CONFIG
    # XDG_CONFIG_HOME（未設定なら ~/.config）
    xdg = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    xdg_path = os.path.join(xdg, "junos-client", DEFAULT_CONFIG)
    if os.path.isfile(xdg_path):
        return xdg_path
    return DEFAULT_CONFIG


def read_config(path=None):
    """Read and parse the INI config file. Returns True if it is empty."""
    global config
    path = path or get_default_config()
    config = configparser.ConfigParser(allow_no_value=True)
    config.read(path)
    if len(config.sections()) == 0:
        logger.error(f"{path} is empty")
        return True
    for section in config.sections():
        if config.get(section, "host", fallback=None) is None:
            # host is [section] name
            config.set(section, "host", section)
        for key in config[section]:
            logger.debug(f"{section} > {key} : {config[section][key]}")
    return False


def connect(hostname):
    """Open a Session to the device of config section ``hostname``.

    Returns ``(err, session)``; ``session`` is None when ``err`` is True.
    """
    logger.debug(f"connect: {hostname}")
    sshkey = config.get(hostname, "sshkey", fallback=None)
    timeout = config.get(hostname, "timeout", fallback=None)
    try:
        session = Session.connect(
            config.get(hostname, "host"),
            config.get(hostname, "id"),
            password=config.get(hostname, "pw", fallback=None),
            port=config.getint(hostname, "port", fallback=830),
            ssh_private_key_file=sshkey or None,
            commit_timeout=config.getint(hostname, "commit_timeout", fallback=0),
            timeout=int(timeout) if timeout else None,
            huge_tree=config.getboolean(hostname, "huge_tree", fallback=False),
        )
    except JunosError as e:
        logger.error(f"{hostname}: cannot connect to device: {e}")
        return True, None
    logger.debug(f"connect: {hostname} {session.hostname=} {session.re_count=}")
    return False, session


def _get_host_tags(section: str) -> set[str]:
    """Return the set of tags for a config section."""
    raw = config.get(section, "tags", fallback="")
    if not raw or not raw.strip():
        return set()
    return {t.strip().lower() for t in raw.split(",")}


def _filter_by_tags(required_tags: set[str]) -> list[str]:
    """Return sections whose tags are a superset of required_tags (AND)."""
    return [s for s in config.sections() if required_tags <= _get_host_tags(s)]


def get_targets(hosts=None, tags=None):
    """Return target sections from explicit hosts, tags, or every section."""
    hosts = list(hosts or [])
    if tags:
        required_tags = {t.strip().lower() for t in tags.split(",") if t.strip()}
    else:
        required_tags = set()

    for i in hosts:
        if not config.has_section(i):
            raise InvalidArgument(f"{i} is not found in config")

    # タグなし: 指定ホスト、なければ全セクション
    if not required_tags:
        return hosts or config.sections()

    tag_matched = _filter_by_tags(required_tags)
    if not tag_matched and not hosts:
        raise InvalidArgument(f"no hosts matched tags: {tags}")

    # タグマッチ分 ∪ 指定ホスト（重複排除）
    seen = set()
    targets = []
    for i in tag_matched + hosts:
        if i not in seen:
            seen.add(i)
            targets.append(i)
    return targets


def load_commands(filepath: str) -> list[str]:
    """Load command lines from a file, stripping blank lines and comments.

    Lines starting with '#' are treated as comments and excluded.
    """
    with open(filepath) as f:
        return [
            line.strip() for line in f
            if line.strip() and not line.strip().startswith("#")
        ]


def run_parallel(func, targets, max_workers=1):
    """Run a function against targets using ThreadPoolExecutor.

    Each call should open its own Session; sessions are not shared
    between workers.  When max_workers=1, runs serially.
    """
    if max_workers <= 1:
        return {target: func(target) for target in targets}

    with futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_target = {
            executor.submit(func, target): target
            for target in targets
        }
        results = {}
        for future in futures.as_completed(future_to_target):
            target = future_to_target[future]
            try:
                results[target] = future.result()
            except Exception as e:
                logger.error(f"{target} generated an exception: {e}")
                results[target] = 1
        return results
