"""Connection settings for the Kubernetes API server."""

from __future__ import annotations

import base64
import binascii
import os
import ssl
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from kubestress._internal.errors import ConfigError
from kubestress._internal.logging import get_logger

logger = get_logger("kube.config")

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
DEFAULT_KUBECONFIG = Path("~/.kube/config")


@dataclass(frozen=True)
class ClusterConfig:
    """Where the API server lives and how to authenticate to it.

    Attributes:
        server: Base URL of the API server, e.g. ``https://10.0.0.1:6443``.
        token: Bearer token, if token authentication is used.
        ca_file: Path to a PEM bundle used to verify the server.
        ca_data: PEM text used to verify the server.
        client_cert_file: Path to a PEM client certificate.
        client_key_file: Path to the PEM key of the client certificate.
        client_cert_data: PEM text of the client certificate.
        client_key_data: PEM text of the client key.
        insecure_skip_tls_verify: Disable server certificate verification.
    """

    server: str
    token: str | None = None
    ca_file: str | None = None
    ca_data: str | None = None
    client_cert_file: str | None = None
    client_key_file: str | None = None
    client_cert_data: str | None = None
    client_key_data: str | None = None
    insecure_skip_tls_verify: bool = False

    def __post_init__(self) -> None:
        if not self.server.startswith(("http://", "https://")):
            msg = f"server must be an http(s) URL, got: {self.server!r}"
            raise ConfigError(msg)

    @property
    def base_url(self) -> str:
        """Return the server URL without a trailing slash."""
        return self.server.rstrip("/")

    def ssl_context(self) -> ssl.SSLContext | bool:
        """Build the ``ssl`` argument for the aiohttp connector.

        Returns:
            ``False`` to skip verification, ``True`` (aiohttp's default) for
            plain HTTP servers, or a configured :class:`ssl.SSLContext`.
        """
        if not self.base_url.startswith("https://"):
            return True
        if self.insecure_skip_tls_verify:
            return False

        context = ssl.create_default_context(cafile=self.ca_file, cadata=self.ca_data)
        if self.client_cert_file is not None or self.client_cert_data is not None:
            self._load_client_cert(context)
        return context

    def _load_client_cert(self, context: ssl.SSLContext) -> None:
        """Load the client certificate and key into ``context``.

        :meth:`ssl.SSLContext.load_cert_chain` only reads files, so inline PEM
        data goes through a private temporary directory that is removed as
        soon as the chain is loaded.
        """
        with tempfile.TemporaryDirectory(prefix="kubestress-") as tmp_dir:
            cert_file = self.client_cert_file or _write_pem(
                tmp_dir, "client.crt", self.client_cert_data
            )
            key_file = self.client_key_file
            if key_file is None and self.client_key_data is not None:
                key_file = _write_pem(tmp_dir, "client.key", self.client_key_data)
            try:
                context.load_cert_chain(cert_file, key_file)
            except OSError as exc:
                msg = f"cannot load client certificate: {exc}"
                raise ConfigError(msg) from exc


def load_cluster_config(
    kubeconfig: str | Path | None = None,
    context: str | None = None,
) -> ClusterConfig:
    """Resolve cluster connection settings.

    Resolution order: the explicit ``kubeconfig`` path, the first entry of
    ``$KUBECONFIG``, ``~/.kube/config``, and finally the in-cluster service
    account.

    Args:
        kubeconfig: Path to a kubeconfig file.
        context: Context name to use instead of ``current-context``.

    Returns:
        Populated ClusterConfig.

    Raises:
        ConfigError: If no usable configuration is found.
    """
    if kubeconfig:
        return load_kubeconfig(kubeconfig, context=context)

    env_paths = [p for p in os.environ.get("KUBECONFIG", "").split(os.pathsep) if p]
    if env_paths:
        return load_kubeconfig(env_paths[0], context=context)

    default_path = DEFAULT_KUBECONFIG.expanduser()
    if default_path.is_file():
        return load_kubeconfig(default_path, context=context)

    if os.environ.get("KUBERNETES_SERVICE_HOST"):
        return load_incluster_config()

    msg = "no kubeconfig found and not running inside a cluster"
    raise ConfigError(msg)


def load_incluster_config(sa_dir: Path = SERVICE_ACCOUNT_DIR) -> ClusterConfig:
    """Build a ClusterConfig from the pod's service account.

    Args:
        sa_dir: Directory holding ``token`` and ``ca.crt``.

    Returns:
        ClusterConfig pointing at the in-cluster API service.

    Raises:
        ConfigError: If the service environment or the token is missing.
    """
    host = os.environ.get("KUBERNETES_SERVICE_HOST")
    port = os.environ.get("KUBERNETES_SERVICE_PORT")
    if not host or not port:
        msg = "KUBERNETES_SERVICE_HOST and KUBERNETES_SERVICE_PORT must be set"
        raise ConfigError(msg)

    token_path = sa_dir / "token"
    try:
        token = token_path.read_text().strip()
    except OSError as exc:
        msg = f"cannot read service account token {token_path}: {exc}"
        raise ConfigError(msg) from exc

    ca_path = sa_dir / "ca.crt"
    if ":" in host:
        host = f"[{host}]"

    logger.debug("Using in-cluster configuration for https://%s:%s", host, port)
    return ClusterConfig(
        server=f"https://{host}:{port}",
        token=token,
        ca_file=str(ca_path) if ca_path.is_file() else None,
    )


def load_kubeconfig(path: str | Path, context: str | None = None) -> ClusterConfig:
    """Build a ClusterConfig from a kubeconfig file.

    Supports the ``server``, ``certificate-authority(-data)`` and
    ``insecure-skip-tls-verify`` cluster fields, and the ``token``,
    ``tokenFile`` and ``client-certificate(-data)``/``client-key(-data)``
    user fields. Relative file references are resolved against the
    kubeconfig's directory.

    Args:
        path: Kubeconfig location.
        context: Context name. Defaults to ``current-context``.

    Returns:
        ClusterConfig for the selected context.

    Raises:
        ConfigError: If the file is missing, malformed or incomplete.
    """
    config_path = Path(path).expanduser()
    try:
        with config_path.open() as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        msg = f"cannot read kubeconfig {config_path}: {exc}"
        raise ConfigError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"kubeconfig {config_path} is not valid YAML: {exc}"
        raise ConfigError(msg) from exc

    if not isinstance(data, dict):
        msg = f"kubeconfig {config_path} is empty or not a mapping"
        raise ConfigError(msg)

    context_name = context or data.get("current-context")
    if not context_name:
        msg = f"kubeconfig {config_path} has no current-context and none was given"
        raise ConfigError(msg)

    ctx = _named(data, "contexts", "context", context_name, config_path)
    cluster = _named(data, "clusters", "cluster", ctx.get("cluster"), config_path)
    user = _named(data, "users", "user", ctx.get("user"), config_path) if ctx.get("user") else {}

    server = cluster.get("server")
    if not server:
        msg = f"cluster {ctx.get('cluster')!r} in {config_path} has no server"
        raise ConfigError(msg)

    base_dir = config_path.parent
    ca_data = cluster.get("certificate-authority-data")
    token = user.get("token")
    if token is None and user.get("tokenFile"):
        token_path = _resolve(base_dir, user["tokenFile"])
        try:
            token = Path(token_path).read_text().strip()
        except OSError as exc:
            msg = f"cannot read tokenFile {token_path}: {exc}"
            raise ConfigError(msg) from exc

    cert_file, cert_data = _file_or_data(base_dir, user, "client-certificate")
    key_file, key_data = _file_or_data(base_dir, user, "client-key")

    logger.debug("Using context %r from %s (server %s)", context_name, config_path, server)
    return ClusterConfig(
        server=server,
        token=token,
        ca_file=_resolve(base_dir, cluster["certificate-authority"])
        if cluster.get("certificate-authority")
        else None,
        ca_data=_decode(ca_data, "certificate-authority-data") if ca_data else None,
        client_cert_file=cert_file,
        client_key_file=key_file,
        client_cert_data=cert_data,
        client_key_data=key_data,
        insecure_skip_tls_verify=bool(cluster.get("insecure-skip-tls-verify", False)),
    )


def _named(
    data: dict[str, Any],
    section: str,
    key: str,
    name: str | None,
    config_path: Path,
) -> dict[str, Any]:
    """Look up ``name`` in a kubeconfig list section such as ``clusters``."""
    for entry in data.get(section) or []:
        if isinstance(entry, dict) and entry.get("name") == name:
            value = entry.get(key)
            return value if isinstance(value, dict) else {}
    msg = f"{key} {name!r} not found in {config_path}"
    raise ConfigError(msg)


def _resolve(base_dir: Path, ref: str) -> str:
    candidate = Path(ref).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return str(candidate)


def _decode(value: str, field_name: str) -> str:
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        msg = f"{field_name} is not valid base64 PEM data"
        raise ConfigError(msg) from exc


def _file_or_data(
    base_dir: Path,
    user: dict[str, Any],
    field_name: str,
) -> tuple[str | None, str | None]:
    """Return ``(path, pem_text)`` for a PEM user field; at most one is set."""
    if user.get(field_name):
        return _resolve(base_dir, user[field_name]), None

    data = user.get(f"{field_name}-data")
    if not data:
        return None, None
    return None, _decode(data, f"{field_name}-data")


def _write_pem(directory: str, name: str, pem: str) -> str:
    path = os.path.join(directory, name)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(pem)
    return path
