"""Targets, the target registry and terminal HTTP responses."""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from requests.structures import CaseInsensitiveDict

from .errors import ErrorCodes, RegistryError
from .logger import get_logger

logger = get_logger("registry")


@dataclass(frozen=True)
class Target:
    """A website to scan, owned by one institution in one country."""
    country_code: str
    country_name: str
    name: str
    domain: str

    @property
    def label(self) -> str:
        return f"{self.name} ({self.country_code.upper()}, {self.domain})"


@dataclass
class Country:
    """A country of the registry and the targets it lists."""
    code: str
    name: str
    targets: List[Target] = field(default_factory=list)


@dataclass
class Registry:
    """Everything loaded from the registry directory."""
    targets: List[Target]
    countries: Dict[str, Country]


@dataclass
class TerminalResponse:
    """The 2xx response that ended a redirect chain."""
    url: str
    hostname: str
    status_code: int
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)
    body: str = ""


class DomainValidator:
    """Validate registry domain names."""

    LABEL_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")

    @classmethod
    def clean(cls, domain: str) -> str:
        """Normalize a domain: lower case, no scheme, path or port."""
        domain = domain.strip().lower()
        if domain.startswith(("http://", "https://")):
            domain = domain.split("://", 1)[1]
        domain = domain.split("/")[0]
        return domain.split(":")[0]

    @classmethod
    def validate(cls, domain: str) -> Tuple[bool, Optional[str]]:
        """
        Validate a cleaned domain name.

        Returns:
            Tuple of (is_valid, reason)
        """
        if not domain:
            return False, "empty domain"
        if len(domain) > 253:
            return False, "domain exceeds 253 characters"

        labels = domain.split(".")
        if len(labels) < 2:
            return False, "domain must have at least one dot"

        for label in labels:
            if not label:
                return False, "domain contains empty label"
            if not cls.LABEL_PATTERN.match(label):
                return False, f"invalid label '{label[:63]}'"

        if len(labels[-1]) < 2 or labels[-1].isdigit():
            return False, f"invalid top-level domain '{labels[-1]}'"

        return True, None


def _require(condition: bool, error, details: str) -> None:
    if not condition:
        raise RegistryError(details, error=error)


def _load_country(path: Path, extension: str) -> Country:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data: Any = json.load(f)
    except json.JSONDecodeError as e:
        raise RegistryError(f"{path.name}: {e}", error=ErrorCodes.REG_INVALID_FORMAT) from e

    _require(
        isinstance(data, dict) and data.get("code") and data.get("name")
        and isinstance(data.get("list"), list),
        ErrorCodes.REG_INVALID_FORMAT,
        path.name,
    )
    _require(
        f"{data['code']}{extension}" == path.name,
        ErrorCodes.REG_FILENAME_MISMATCH,
        path.name,
    )

    country = Country(code=data["code"], name=data["name"])

    for item in data["list"]:
        _require(
            isinstance(item, dict) and item.get("name") and item.get("domain"),
            ErrorCodes.REG_INVALID_TARGET,
            f"{path.name} {json.dumps(item)}",
        )
        domain = DomainValidator.clean(item["domain"])
        is_valid, reason = DomainValidator.validate(domain)
        _require(is_valid, ErrorCodes.REG_INVALID_DOMAIN, f"{path.name} {item['domain']}: {reason}")

        country.targets.append(Target(
            country_code=country.code,
            country_name=country.name,
            name=item["name"],
            domain=domain,
        ))

    return country


def load_registry(directory: Path, extension: str = ".json") -> Registry:
    """
    Read every country file of the registry directory.

    Args:
        directory: Directory holding one file per country
        extension: Registry file extension; filenames must be code + extension

    Returns:
        Registry with targets in file order (files sorted by name)

    Raises:
        RegistryError: If any file or target is malformed. Fatal for the run.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise RegistryError(str(directory), error=ErrorCodes.REG_NOT_FOUND)

    targets: List[Target] = []
    countries: Dict[str, Country] = {}

    for path in sorted(directory.iterdir()):
        if not path.is_file():
            continue
        country = _load_country(path, extension)
        countries[country.code] = country
        targets.extend(country.targets)

    logger.info(f"Found {len(targets)} targets from {len(countries)} countries")
    return Registry(targets=targets, countries=countries)


def sort_targets(targets: List[Target]) -> List[Target]:
    """
    Sort targets alphabetically by name, then by country code.

    Raises:
        RegistryError: If two targets share name and country.
    """
    ordered = sorted(targets, key=lambda t: (t.name, t.country_code))
    for previous, current in zip(ordered, ordered[1:]):
        if (previous.name, previous.country_code) == (current.name, current.country_code):
            raise RegistryError(
                f"{previous.label} / {current.label}",
                error=ErrorCodes.REG_DUPLICATE_TARGET,
            )
    return ordered
