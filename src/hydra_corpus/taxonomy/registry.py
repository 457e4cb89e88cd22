"""Solana vulnerability taxonomy.

The benchmark labels every vulnerable instruction with exactly one class from
a closed, versioned taxonomy. Classes are registered explicitly (in a fixed
order, so diagnostics are reproducible) and the registry is sealed before
validation runs.

Free-form text coming out of the fixture parser is only turned into a
``VulnerabilityClass`` through ``TaxonomyRegistry.lookup``; anything that does
not resolve there is an ``UnknownClass``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import yaml

from ..errors import ConfigValidationError, DuplicateClass, RegistryClosed, UnknownClass

CLASS_ID_RE = re.compile(r"^[a-z_]+$")

DEFAULT_TAXONOMY_VERSION = "solana-v1"


class Category(str, Enum):
    AUTHORIZATION = "authorization"
    PDA_DERIVATION = "pda_derivation"
    CPI_SAFETY = "cpi_safety"
    STATE_CONFUSION = "state_confusion"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SolanaVulnClass(str, Enum):
    """Class ids of the built-in Solana taxonomy."""
    MISSING_SIGNER_CHECK = "missing_signer_check"
    MISSING_HAS_ONE = "missing_has_one"
    ACCOUNT_TYPE_CONFUSION = "account_type_confusion"
    ARBITRARY_CPI = "arbitrary_cpi"
    CPI_SIGNER_SEED_BYPASS = "cpi_signer_seed_bypass"
    CPI_REENTRANCY = "cpi_reentrancy"
    NON_CANONICAL_BUMP = "non_canonical_bump"
    SEED_COLLISION = "seed_collision"
    ATTACKER_CONTROLLED_SEED = "attacker_controlled_seed"


@dataclass(frozen=True)
class VulnerabilityClass:
    """A registered vulnerability class."""
    class_id: str
    label: str
    category: Category
    severity: Severity = Severity.HIGH
    description: str = ""


class TaxonomyRegistry:
    """Closed set of vulnerability classes, kept in registration order."""

    def __init__(self, version: str = DEFAULT_TAXONOMY_VERSION):
        self.version = version
        self._classes: Dict[str, VulnerabilityClass] = {}
        self._sealed = False

    def register(
        self,
        class_id: str | SolanaVulnClass,
        category: str | Category,
        label: Optional[str] = None,
        *,
        severity: str | Severity = Severity.HIGH,
        description: str = "",
    ) -> VulnerabilityClass:
        if self._sealed:
            raise RegistryClosed(f"Taxonomy {self.version} is sealed; cannot register {class_id}")
        class_id = class_id.value if isinstance(class_id, SolanaVulnClass) else str(class_id)
        if not CLASS_ID_RE.match(class_id):
            raise ValueError(f"Invalid class id {class_id!r}: must match [a-z_]+")
        if class_id in self._classes:
            raise DuplicateClass(class_id)
        vc = VulnerabilityClass(
            class_id=class_id,
            label=label or class_id.replace("_", " ").capitalize(),
            category=Category(category),
            severity=Severity(severity),
            description=description,
        )
        self._classes[class_id] = vc
        return vc

    def seal(self) -> "TaxonomyRegistry":
        self._sealed = True
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    def lookup(self, class_id: str | SolanaVulnClass) -> VulnerabilityClass:
        key = class_id.value if isinstance(class_id, SolanaVulnClass) else class_id
        try:
            return self._classes[key]
        except KeyError:
            raise UnknownClass(str(key)) from None

    def contains(self, class_id: str) -> bool:
        return class_id in self._classes

    def all(self) -> Tuple[VulnerabilityClass, ...]:
        return tuple(self._classes.values())

    def ids(self) -> Tuple[str, ...]:
        return tuple(self._classes)

    def __contains__(self, class_id: object) -> bool:
        return class_id in self._classes

    def __iter__(self) -> Iterator[VulnerabilityClass]:
        return iter(self._classes.values())

    def __len__(self) -> int:
        return len(self._classes)


# Built-in taxonomy, in registration order.
SOLANA_TAXONOMY: List[Tuple[SolanaVulnClass, Category, str, Severity, str]] = [
    (
        SolanaVulnClass.MISSING_SIGNER_CHECK,
        Category.AUTHORIZATION,
        "Missing signer check",
        Severity.HIGH,
        "Authority account is read without requiring it to sign the transaction",
    ),
    (
        SolanaVulnClass.MISSING_HAS_ONE,
        Category.AUTHORIZATION,
        "Missing has_one constraint",
        Severity.MEDIUM,
        "Account relationship (e.g. config.admin == admin) is never enforced",
    ),
    (
        SolanaVulnClass.ACCOUNT_TYPE_CONFUSION,
        Category.STATE_CONFUSION,
        "Account type confusion",
        Severity.MEDIUM,
        "Raw AccountInfo is deserialized without an owner or discriminator check",
    ),
    (
        SolanaVulnClass.ARBITRARY_CPI,
        Category.CPI_SAFETY,
        "Arbitrary CPI target",
        Severity.CRITICAL,
        "Cross-program invocation target is supplied by the caller",
    ),
    (
        SolanaVulnClass.CPI_SIGNER_SEED_BYPASS,
        Category.CPI_SAFETY,
        "CPI signer seed bypass",
        Severity.CRITICAL,
        "Caller-provided signer seeds are forwarded to invoke_signed",
    ),
    (
        SolanaVulnClass.CPI_REENTRANCY,
        Category.CPI_SAFETY,
        "CPI reentrancy",
        Severity.CRITICAL,
        "State is mutated after a CPI that can call back into the program",
    ),
    (
        SolanaVulnClass.NON_CANONICAL_BUMP,
        Category.PDA_DERIVATION,
        "Non-canonical bump",
        Severity.HIGH,
        "PDA bump is taken from instruction data instead of find_program_address",
    ),
    (
        SolanaVulnClass.SEED_COLLISION,
        Category.PDA_DERIVATION,
        "PDA seed collision",
        Severity.MEDIUM,
        "PDA seeds lack a domain separation prefix",
    ),
    (
        SolanaVulnClass.ATTACKER_CONTROLLED_SEED,
        Category.PDA_DERIVATION,
        "Attacker-controlled seed",
        Severity.HIGH,
        "Instruction data is used directly as a PDA seed component",
    ),
]


def default_registry() -> TaxonomyRegistry:
    """Build the sealed built-in Solana taxonomy."""
    registry = TaxonomyRegistry(DEFAULT_TAXONOMY_VERSION)
    for class_id, category, label, severity, description in SOLANA_TAXONOMY:
        registry.register(class_id, category, label, severity=severity, description=description)
    return registry.seal()


def load_taxonomy(path: str | Path) -> TaxonomyRegistry:
    """Load and seal a taxonomy from YAML.

    Expected layout::

        version: solana-v2
        classes:
          - id: missing_signer_check
            category: authorization
            label: Missing signer check
            severity: high

    Raises:
        ConfigValidationError: If the file is malformed (all problems reported together)
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Taxonomy file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"{path}: invalid YAML: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("classes"), list):
        raise ConfigValidationError(f"{path}: expected a mapping with a 'classes' list")

    registry = TaxonomyRegistry(str(data.get("version", DEFAULT_TAXONOMY_VERSION)))
    errors = []
    for i, entry in enumerate(data["classes"]):
        if not isinstance(entry, dict):
            errors.append(f"classes[{i}]: expected a mapping")
            continue
        if "id" not in entry:
            errors.append(f"classes[{i}]: missing 'id' field")
            continue
        if "category" not in entry:
            errors.append(f"classes[{i}]: missing 'category' field")
            continue
        try:
            registry.register(
                entry["id"],
                entry["category"],
                entry.get("label"),
                severity=entry.get("severity", Severity.HIGH),
                description=entry.get("description", ""),
            )
        except (ValueError, DuplicateClass) as e:
            errors.append(f"classes[{i}]: {e}")

    if errors:
        raise ConfigValidationError("\n".join(errors))
    return registry.seal()
