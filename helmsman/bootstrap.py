"""
Helmsman client bootstrap: turn base options into a client handle.

Contract
- configure(options, schema) validates the credentials declared as required
  by the base schema (in declaration order), applies the region default and
  returns a ClientConfig. Nothing is mutated: the config is a new value.
- Bootstrap(factory) calls factory(config) once per invocation. The factory is
  opaque (an SDK adapter); it returns a handle scoped to the configured region
  or None when that region does not exist.

Region default
- --region-id beats $OPENSTACK_REGION_ID, which beats DEFAULT_REGION; the
  constant applies only when the value resolved by the parser is empty.

Proxies
- ProxyConfig snapshots HTTP_PROXY / HTTPS_PROXY / NO_PROXY (lower-case
  spellings as fallback) and is handed to the factory inside the config.
"""
import os
import urllib.parse
import urllib.request
from collections import namedtuple

from .faults import *
from .logs import get_logger
from .options import Namespace, Schema

logger = get_logger(__name__)

DEFAULT_REGION = "RegionOne"


def _getenv(environ, name):
    return environ.get(name) or environ.get(name.lower()) or ""


class ProxyConfig(namedtuple("ProxyConfig", ("http_proxy", "https_proxy", "no_proxy"))):
    """
    Proxy settings read from the environment.

    - proxies: requests-style {"http": ..., "https": ...} mapping of the set values.
    - select(url): the proxy to use for url, or None when none applies or the
      host is excluded by no_proxy.
    """
    __slots__ = ()

    @classmethod
    def from_environ(cls, environ=None, /):
        environ = os.environ if environ is None else environ
        return cls(
            _getenv(environ, "HTTP_PROXY"),
            _getenv(environ, "HTTPS_PROXY"),
            _getenv(environ, "NO_PROXY"),
        )

    @property
    def proxies(self):
        return {
            scheme: proxy
            for scheme, proxy in (("http", self.http_proxy), ("https", self.https_proxy))
            if proxy
        }

    def select(self, url, /):
        parts = urllib.parse.urlsplit(url)
        if not (proxy := self.proxies.get(parts.scheme)):
            return None
        if self.no_proxy and urllib.request.proxy_bypass_environment(parts.netloc, {"no": self.no_proxy}):
            return None
        return proxy


class ClientConfig(namedtuple("ClientConfig", (
    "auth_url",
    "username",
    "password",
    "project",
    "project_domain",
    "domain_name",
    "endpoint_type",
    "region_id",
    "debug",
    "proxy",
))):
    """
    Everything a client factory needs, already validated.
    """
    __slots__ = ()

    def __repr__(self):
        return "ClientConfig(%s)" % ", ".join(
            "%s=%r" % (name, "******" if name == "password" and value else value)
            for name, value in zip(self._fields, self)
        )


def _variable(field):
    # "$OPENSTACK_AUTH_URL|x" → "OPENSTACK_AUTH_URL"
    if isinstance(field.default, str) and field.default.startswith("$"):
        return field.default[1:].partition("|")[0]
    return None


def configure(options, schema, /, environ=None):
    """
    Build the ClientConfig of one invocation.

    Parameters
    - options: Namespace bound by the base pass.
    - schema: the base Schema (its required fields are the credentials).
    - environ: mapping for proxy settings; os.environ when omitted.

    Raises
    - MissingRequiredCredentialError for the first required field left empty.
    """
    if not isinstance(options, Namespace):
        raise TypeError("configure() first argument must be a namespace")
    if not isinstance(schema, Schema):
        raise TypeError("configure() second argument must be a schema")

    for field in schema.fields:
        if not field.required or field.positional:
            continue
        if not getattr(options, field.name, None):
            if variable := _variable(field):
                hint = "pass %s or set %s" % (field.flag, variable)
            else:
                hint = "pass %s" % field.flag
            raise MissingRequiredCredentialError(
                "missing required credential %s" % field.flag,
                hint=hint,
                input=field.flag,
            )

    values = options.as_dict()
    region = values.get("region_id") or DEFAULT_REGION
    return ClientConfig(
        auth_url=values.get("auth_url") or "",
        username=values.get("username") or "",
        password=values.get("password") or "",
        project=values.get("project") or "",
        project_domain=values.get("project_domain") or "",
        domain_name=values.get("domain_name") or "",
        endpoint_type=values.get("endpoint_type") or "",
        region_id=region,
        debug=bool(values.get("debug")),
        proxy=ProxyConfig.from_environ(environ),
    )


class Bootstrap:
    """
    Client bootstrap bound to a factory and the base schema.

        bootstrap = Bootstrap(factory, BASE_SCHEMA)
        client = bootstrap(options)
    """

    def __init__(self, factory, schema, /, *, environ=None):
        if not callable(factory):
            raise TypeError("client factory must be callable")
        if not isinstance(schema, Schema):
            raise TypeError("bootstrap schema must be a Schema")
        self._factory = factory
        self._schema = schema
        self._environ = environ

    @property
    def factory(self):
        return self._factory

    def __call__(self, options, /):
        """
        Validate options, call the factory once and return the handle.

        Raises
        - MissingRequiredCredentialError before the factory is ever called.
        - ClientBootstrapError when the factory raises (message kept verbatim)
          or returns no handle for the region.
        """
        config = configure(options, self._schema, self._environ)
        logger.debug("bootstrapping client for region %r at %s", config.region_id, config.auth_url)
        try:
            handle = self._factory(config)
        except CommandException:
            raise
        except Exception as exception:
            raise ClientBootstrapError(
                str(exception) or type(exception).__name__,
                hint="check the endpoint and credentials (run with --debug for details)",
                exception=exception,
            ) from exception
        if handle is None:
            raise ClientBootstrapError(
                "no such region %s" % config.region_id,
                hint="pass an existing region with --region-id or set OPENSTACK_REGION_ID",
                input=config.region_id,
            )
        return handle


__all__ = (
    "DEFAULT_REGION",
    "ProxyConfig",
    "ClientConfig",
    "configure",
    "Bootstrap",
)
