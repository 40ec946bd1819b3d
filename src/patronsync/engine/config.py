"""Run configuration: YAML loading, schema validation and dataclasses."""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from patronsync.errors import ConfigError
from patronsync.validate.rules import is_valid_email, parse_rule
from patronsync.validate.transforms import Transform, resolve_transform

__all__ = [
    "CONFIG_SCHEMA",
    "FieldSpec",
    "ClientDefaults",
    "ClientConfig",
    "DirectoryConfig",
    "DatabaseConfig",
    "SmtpConfig",
    "IngestConfig",
    "default_field_specs",
    "load_config",
    "parse_config",
]

MODE_CREATE = "create"
MODE_OVERLAY = "overlay"

_FIELD_TYPES = ("scalar", "resource", "address")

_DEFAULTS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "user_profile": {"type": "string"},
        "youth_profile": {"type": "string"},
        "home_library": {"type": "string"},
        "user_categories": {
            "type": "object",
            "propertyNames": {"pattern": "^[0-9]+$"},
            "additionalProperties": {"type": ["string", "integer"]},
        },
    },
    "additionalProperties": False,
}

_FIELD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "source": {"type": ["string", "null"]},
        "type": {"enum": list(_FIELD_TYPES)},
        "resource": {"type": "string"},
        "code": {"type": "string"},
        "rule": {"type": "string"},
        "transform": {"type": "string"},
        "overlay": {"type": "boolean"},
        "new_default": {"type": ["string", "integer", "null"]},
        "overlay_default": {"type": ["string", "integer", "null"]},
        "new_value": {"type": ["string", "integer", "null"]},
        "overlay_value": {"type": ["string", "integer", "null"]},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["directory", "database", "clients"],
    "properties": {
        "log_dir": {"type": "string"},
        "admin_contact": {"type": "string"},
        "directory": {
            "type": "object",
            "required": ["client_id", "username", "password"],
            "properties": {
                "base_url": {"type": "string"},
                "hostname": {"type": "string"},
                "port": {"type": ["integer", "string"]},
                "webapp": {"type": "string"},
                "client_id": {"type": "string"},
                "app_id": {"type": "string"},
                "username": {"type": "string"},
                "password": {"type": "string"},
                "timeout": {"type": "number", "exclusiveMinimum": 0},
                "max_retries": {"type": "integer", "minimum": 1},
                "retry_backoff": {"type": "number", "minimum": 0},
                "user_privilege_override": {"type": "string"},
                "search_result_cap": {"type": "integer", "minimum": 1},
                "verify_tls": {"type": "boolean"},
            },
            "anyOf": [{"required": ["base_url"]}, {"required": ["hostname", "webapp"]}],
        },
        "database": {
            "type": "object",
            "required": ["url"],
            "properties": {
                "url": {"type": "string"},
                "max_checksum_age": {"type": "integer", "minimum": 1},
            },
        },
        "smtp": {
            "type": "object",
            "properties": {
                "host": {"type": "string"},
                "port": {"type": "integer"},
                "from": {"type": "string"},
            },
        },
        "clients": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["id", "namespace"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "namespace": {"type": "string", "minLength": 1},
                    "name": {"type": "string"},
                    "schema": {"enum": ["district", "alternate"]},
                    "contact": {"type": "string"},
                    "email_reports": {"type": ["boolean", "string"]},
                    "email_domains": {"type": "array", "items": {"type": "string"}},
                    "adult_age": {"type": "integer", "minimum": 0},
                    "default_state": {"type": "string"},
                    "private_address": {
                        "type": "object",
                        "additionalProperties": {"type": "string"},
                    },
                    "new_defaults": _DEFAULTS_SCHEMA,
                    "overlay_defaults": _DEFAULTS_SCHEMA,
                    "fields": {"type": "array", "items": _FIELD_SCHEMA},
                },
            },
        },
    },
}


def _split_addresses(value: str | None, where: str) -> tuple[str, ...]:
    """Split a comma separated address list, rejecting malformed entries."""
    addresses = tuple(a.strip() for a in (value or "").split(",") if a.strip())
    for address in addresses:
        if not is_valid_email(address):
            raise ConfigError(f"Invalid email address in {where}: {address!r}")
    return addresses


@dataclass(frozen=True)
class FieldSpec:
    """Configuration of one payload field.

    Attributes
    ----------
    name : str
        Remote field name; address components use ``address1.<part>``.
    source : str | None
        StudentRecord attribute supplying the incoming value, None for
        derived fields.
    type : str
        ``scalar``, ``resource`` or ``address``.
    resource : str | None
        Policy path for resource fields, address resource for address fields.
    code : str | None
        Address code (``STREET``, ``ZIP``, ...) for address fields.
    rule : str | None
        Validation rule re-checked for derived fields.
    transform : str | None
        Transform registry name.
    overlay : bool
        Whether the field is sent when overlaying an existing record.
    new_default, overlay_default : Any
        Per-mode default values.
    new_value, overlay_value : Any
        Per-mode fixed values.
    """

    name: str
    source: str | None = None
    type: str = "scalar"
    resource: str | None = None
    code: str | None = None
    rule: str | None = None
    transform: str | None = None
    overlay: bool = True
    new_default: Any = None
    overlay_default: Any = None
    new_value: Any = None
    overlay_value: Any = None
    transform_fn: Transform = field(default=resolve_transform(None), compare=False, repr=False)

    def default_for(self, mode: str) -> Any:
        return self.new_default if mode == MODE_CREATE else self.overlay_default

    def value_for(self, mode: str) -> Any:
        return self.new_value if mode == MODE_CREATE else self.overlay_value

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldSpec":
        """Build a field spec, resolving its transform and checking its rule.

        Raises
        ------
        ConfigError
            If the transform or rule type is unknown, or an address field
            lacks a code.
        """
        spec = cls(**data)
        if spec.rule is not None:
            parse_rule(spec.rule)
        if spec.type == "address" and not spec.code:
            raise ConfigError(f"Address field {spec.name!r} needs a code")
        return cls(**data, transform_fn=resolve_transform(spec.transform))


@dataclass(frozen=True)
class ClientDefaults:
    """Per-mode profile, library and category values for a client."""

    user_profile: str | None = None
    youth_profile: str | None = None
    home_library: str | None = None
    user_categories: dict[str, str] = field(default_factory=dict)

    def category(self, number: int | str) -> str | None:
        value = self.user_categories.get(str(number))
        return None if value is None else str(value)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ClientDefaults":
        data = dict(data or {})
        # "01" and 1 both name category01
        raw = data.pop("user_categories", None) or {}
        categories = {str(int(k)): str(v) for k, v in raw.items()}
        return cls(user_categories=categories, **data)


def default_field_specs(new: ClientDefaults, overlay: ClientDefaults) -> list[FieldSpec]:
    """Field layout of a standard student patron record.

    Parameters
    ----------
    new : ClientDefaults
        Values used when creating a patron.
    overlay : ClientDefaults
        Values used when overlaying an existing patron.

    Returns
    -------
    list[FieldSpec]
        Field specifications with resolved transforms.
    """
    address = "/user/patron/address1"
    specs: list[dict[str, Any]] = [
        {"name": "barcode", "transform": "keep_barcode", "rule": "s:20"},
        {"name": "alternateID", "transform": "alternate_id", "rule": "s:20"},
        {"name": "firstName", "source": "first_name"},
        {"name": "middleName", "source": "middle_name"},
        {"name": "lastName", "source": "last_name"},
        {"name": "birthDate", "transform": "birth_date", "rule": "d:YYYY-MM-DD"},
        {"name": "pin", "transform": "pin", "rule": "i:8", "overlay": False},
        {
            "name": "profile",
            "type": "resource",
            "resource": "/policy/userProfile",
            "transform": "profile_by_age",
            "new_value": new.user_profile,
            "overlay_value": overlay.user_profile,
        },
        {
            "name": "library",
            "type": "resource",
            "resource": "/policy/library",
            "new_value": new.home_library,
            "overlay_value": overlay.home_library,
        },
        {
            "name": "address1.street",
            "source": "address",
            "type": "address",
            "code": "STREET",
            "resource": address,
        },
        {
            "name": "address1.city_state",
            "type": "address",
            "code": "CITY/STATE",
            "resource": address,
            "transform": "city_state",
        },
        {
            "name": "address1.zip",
            "source": "zipcode",
            "type": "address",
            "code": "ZIP",
            "resource": address,
        },
        {
            "name": "address1.email",
            "source": "email",
            "type": "address",
            "code": "EMAIL",
            "resource": address,
            "transform": "preserve_district_email",
        },
    ]
    for number in ("01", "02", "03", "07"):
        specs.append(
            {
                "name": f"category{number}",
                "type": "resource",
                "resource": f"/policy/patronCategory{number}",
                "new_value": new.category(int(number)),
                "overlay_value": overlay.category(int(number)),
                # category02 is only set on new records
                "overlay": number != "02",
            }
        )
    return [FieldSpec.from_dict(spec) for spec in specs]


@dataclass(frozen=True)
class ClientConfig:
    """Configuration of one school district.

    Attributes
    ----------
    id : str
        Client identifier, prefixed to student ids.
    namespace : str
        District namespace (upload directory prefix).
    name : str
        Display name for reports.
    schema : str
        ``district`` or ``alternate`` column order.
    contact : list[str]
        District report recipients.
    email_reports : bool
        Whether district contacts receive the run report.
    email_domains : tuple[re.Pattern[str], ...]
        Recognized district e-mail patterns.
    adult_age : int
        Age (inclusive) at which the adult profile applies.
    default_state : str | None
        State used when a row has none.
    private_address : dict[str, str]
        Substitute address for rows without any address.
    new_defaults, overlay_defaults : ClientDefaults
        Per-mode values.
    fields : tuple[FieldSpec, ...]
        Payload field layout.
    """

    id: str
    namespace: str
    name: str = ""
    schema: str = "district"
    contact: tuple[str, ...] = ()
    email_reports: bool = False
    email_domains: tuple[re.Pattern[str], ...] = ()
    adult_age: int = 13
    default_state: str | None = None
    private_address: dict[str, str] = field(default_factory=dict)
    new_defaults: ClientDefaults = field(default_factory=ClientDefaults)
    overlay_defaults: ClientDefaults = field(default_factory=ClientDefaults)
    fields: tuple[FieldSpec, ...] = ()

    @property
    def label(self) -> str:
        """Namespace and id as used in directory names (e.g. ``pps01``)."""
        return f"{self.namespace}{self.id}"

    def defaults_for(self, mode: str) -> ClientDefaults:
        return self.new_defaults if mode == MODE_CREATE else self.overlay_defaults

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClientConfig":
        """Build a client configuration from its YAML mapping."""
        new = ClientDefaults.from_dict(data.get("new_defaults"))
        overlay = ClientDefaults.from_dict(data.get("overlay_defaults"))

        if data.get("fields"):
            specs = [FieldSpec.from_dict(item) for item in data["fields"]]
        else:
            specs = default_field_specs(new, overlay)

        try:
            domains = tuple(re.compile(p, re.IGNORECASE) for p in data.get("email_domains") or [])
        except re.error as e:
            raise ConfigError(f"Invalid email_domains pattern for client {data['id']}: {e}") from e

        email_reports = data.get("email_reports", False)
        if isinstance(email_reports, str):
            email_reports = email_reports.strip().lower() == "true"

        contact = _split_addresses(data.get("contact"), f"client {data['id']} contact")

        return cls(
            id=str(data["id"]),
            namespace=str(data["namespace"]),
            name=data.get("name", ""),
            schema=data.get("schema", "district"),
            contact=contact,
            email_reports=bool(email_reports),
            email_domains=domains,
            adult_age=data.get("adult_age", 13),
            default_state=data.get("default_state"),
            private_address=dict(data.get("private_address") or {}),
            new_defaults=new,
            overlay_defaults=overlay,
            fields=tuple(sorted(specs, key=lambda s: s.name)),
        )


@dataclass(frozen=True)
class DirectoryConfig:
    """Connection settings for the patron directory web service."""

    base_url: str
    client_id: str
    username: str
    password: str
    app_id: str = "patronsync"
    timeout: float = 20.0
    max_retries: int = 3
    retry_backoff: float = 1.0
    user_privilege_override: str = ""
    search_result_cap: int = 1000
    verify_tls: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DirectoryConfig":
        data = dict(data)
        if "base_url" not in data:
            port = data.pop("port", 443)
            data["base_url"] = f"https://{data.pop('hostname')}:{port}/{data.pop('webapp')}"
        else:
            for key in ("hostname", "port", "webapp"):
                data.pop(key, None)
        data["base_url"] = data["base_url"].rstrip("/")
        return cls(**data)


@dataclass(frozen=True)
class DatabaseConfig:
    """Checksum store settings."""

    url: str
    max_checksum_age: int = 90


@dataclass(frozen=True)
class SmtpConfig:
    """Report mail settings."""

    host: str = "localhost"
    port: int = 25
    sender: str = ""


@dataclass(frozen=True)
class IngestConfig:
    """Complete installation configuration.

    Attributes
    ----------
    directory : DirectoryConfig
        Patron directory connection.
    database : DatabaseConfig
        Checksum store.
    smtp : SmtpConfig
        Report mail delivery.
    admin_contact : tuple[str, ...]
        Recipients of every run report.
    log_dir : Path
        Directory for event log, audit CSV and mail log.
    clients : tuple[ClientConfig, ...]
        Configured districts.
    """

    directory: DirectoryConfig
    database: DatabaseConfig
    smtp: SmtpConfig = field(default_factory=SmtpConfig)
    admin_contact: tuple[str, ...] = ()
    log_dir: Path = Path("log")
    clients: tuple[ClientConfig, ...] = ()

    def find_client(self, namespace: str, client_id: str) -> ClientConfig:
        """Return the client with the given namespace and id.

        Raises
        ------
        ConfigError
            If no client matches.
        """
        for client in self.clients:
            if client.namespace == namespace and client.id == client_id:
                return client
        raise ConfigError(f"Could not find configuration for {namespace}{client_id}")

    def find_client_by_label(self, label: str) -> ClientConfig:
        """Return the client whose ``namespace + id`` equals ``label``."""
        for client in self.clients:
            if client.label == label:
                return client
        raise ConfigError(f"Could not find configuration for {label}")

    def client_for_path(self, data_path: Path) -> ClientConfig:
        """Derive the client from an upload path.

        Uploads arrive as ``<root>/<namespace><id>/incoming/<file>.csv``;
        the district directory is the parent of the file's directory.
        """
        district = Path(data_path).resolve().parent.parent.name
        return self.find_client_by_label(district)


def parse_config(data: Any, base_dir: Path | None = None) -> IngestConfig:
    """Validate a decoded configuration mapping and build ``IngestConfig``.

    Parameters
    ----------
    data : Any
        Decoded YAML document.
    base_dir : Path | None, optional
        Directory relative paths (``log_dir``) are resolved against.

    Returns
    -------
    IngestConfig
        Immutable configuration.

    Raises
    ------
    ConfigError
        If the document violates the schema or names unknown transforms.
    """
    try:
        jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"Invalid configuration at {location}: {e.message}") from e

    smtp = data.get("smtp") or {}
    log_dir = Path(data.get("log_dir", "log"))
    if base_dir is not None and not log_dir.is_absolute():
        log_dir = base_dir / log_dir

    return IngestConfig(
        directory=DirectoryConfig.from_dict(data["directory"]),
        database=DatabaseConfig(**data["database"]),
        smtp=SmtpConfig(
            host=smtp.get("host", "localhost"),
            port=smtp.get("port", 25),
            sender=smtp.get("from", ""),
        ),
        admin_contact=_split_addresses(data.get("admin_contact"), "admin_contact"),
        log_dir=log_dir,
        clients=tuple(ClientConfig.from_dict(c) for c in data["clients"]),
    )


def load_config(path: Path | str) -> IngestConfig:
    """Load and validate a YAML configuration file.

    Parameters
    ----------
    path : Path | str
        Path to the YAML file.

    Returns
    -------
    IngestConfig
        Immutable configuration.

    Raises
    ------
    ConfigError
        If the file is unreadable, not valid YAML, or invalid.
    """
    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Could not read configuration {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse configuration {config_path}: {e}") from e

    return parse_config(data, base_dir=config_path.parent)
