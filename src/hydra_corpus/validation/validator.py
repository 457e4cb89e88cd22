"""Corpus validator.

Checks, in order:

    0. structural issues recorded at extraction time
    1. tag consistency (every tag, attributed or not, resolves in the taxonomy)
    2. partition-role consistency (control = clean, holdout = vulnerable)
    3. leakage (no class in both holdout and control/seeded)
    4. coverage (every class has a vulnerable and a safe exemplar)
    5. program id collisions across partition roles

Fixtures failing 0 or 1 are excluded from 2-5; the rest of the corpus is
still checked. All findings are collected in one pass.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Sequence, Set, Tuple

from ..corpus.models import Fixture, Instruction
from ..corpus.partition import PartitionRole
from ..taxonomy.registry import TaxonomyRegistry
from .findings import Finding, FindingKind, FindingSeverity, ValidationReport

logger = logging.getLogger(__name__)

DEFAULT_COUNTERPART_PREFIXES: Tuple[str, ...] = (
    "insecure_",
    "unsafe_",
    "vulnerable_",
    "vuln_",
    "safe_",
    "secure_",
    "checked_",
)


@dataclass(frozen=True)
class ValidationOptions:
    coverage_gap_blocking: bool = False
    mixed_holdout_blocking: bool = False
    ignored_program_ids: FrozenSet[str] = frozenset()
    counterpart_prefixes: Tuple[str, ...] = DEFAULT_COUNTERPART_PREFIXES


def instruction_shape(name: str, prefixes: Sequence[str] = DEFAULT_COUNTERPART_PREFIXES) -> str:
    """Name with one safe/vulnerable qualifier removed: insecure_withdraw -> withdraw."""
    for prefix in sorted(prefixes, key=len, reverse=True):
        if name.startswith(prefix) and len(name) > len(prefix):
            return name[len(prefix):]
    return name


def _check_structure(fixtures: Iterable[Fixture]) -> List[Finding]:
    findings = []
    for fx in fixtures:
        for issue in fx.issues:
            findings.append(Finding(
                kind=FindingKind(issue.kind.value),
                severity=FindingSeverity.ERROR,
                message=f"{fx.path}: {issue.message}",
                fixture=fx.path,
                instruction=issue.instruction,
                class_id=issue.class_ids[0] if len(issue.class_ids) == 1 else None,
                class_ids=issue.class_ids,
                partition=fx.role.value if fx.role else None,
                line=issue.line,
            ))
    return findings


def _check_tags(fixtures: Iterable[Fixture], registry: TaxonomyRegistry) -> Tuple[List[Finding], Set[str]]:
    findings = []
    unresolved: Set[str] = set()
    for fx in fixtures:
        for ins in fx.instructions:
            if ins.class_id is None or ins.class_id in registry:
                continue
            unresolved.add(fx.path)
            findings.append(Finding(
                kind=FindingKind.UNKNOWN_CLASS,
                severity=FindingSeverity.ERROR,
                message=f"{fx.path}: instruction '{ins.name}' references unknown class '{ins.class_id}'",
                fixture=fx.path,
                instruction=ins.name,
                class_id=ins.class_id,
                partition=fx.role.value if fx.role else None,
                line=ins.marker_line,
            ))
        # markers left untagged by a structural issue still name a class
        for issue in fx.issues:
            for class_id in dict.fromkeys(issue.class_ids):
                if class_id in registry:
                    continue
                unresolved.add(fx.path)
                where = f"instruction '{issue.instruction}'" if issue.instruction else f"line {issue.line}"
                findings.append(Finding(
                    kind=FindingKind.UNKNOWN_CLASS,
                    severity=FindingSeverity.ERROR,
                    message=f"{fx.path}: marker at {where} references unknown class '{class_id}'",
                    fixture=fx.path,
                    instruction=issue.instruction,
                    class_id=class_id,
                    partition=fx.role.value if fx.role else None,
                    line=issue.line,
                ))
    return findings, unresolved


def _check_roles(fixtures: Iterable[Fixture], options: ValidationOptions) -> List[Finding]:
    findings = []
    for fx in fixtures:
        if fx.role is PartitionRole.CONTROL:
            for ins in fx.vulnerable_instructions:
                findings.append(Finding(
                    kind=FindingKind.PARTITION_ROLE_VIOLATION,
                    severity=FindingSeverity.ERROR,
                    message=f"{fx.path}: control fixture has vulnerable instruction "
                            f"'{ins.name}' ({ins.class_id})",
                    fixture=fx.path,
                    instruction=ins.name,
                    class_id=ins.class_id,
                    partition=fx.role.value,
                    line=ins.marker_line,
                ))
        elif fx.role is PartitionRole.HOLDOUT:
            if not fx.vulnerable_instructions:
                findings.append(Finding(
                    kind=FindingKind.PARTITION_ROLE_VIOLATION,
                    severity=FindingSeverity.ERROR,
                    message=f"{fx.path}: holdout fixture has no vulnerable instruction",
                    fixture=fx.path,
                    partition=fx.role.value,
                ))
            elif fx.is_mixed:
                findings.append(Finding(
                    kind=FindingKind.MIXED_HOLDOUT_FIXTURE,
                    severity=FindingSeverity.ERROR if options.mixed_holdout_blocking else FindingSeverity.WARNING,
                    message=f"{fx.path}: holdout fixture mixes safe instructions ("
                            + ", ".join(i.name for i in fx.safe_instructions)
                            + ") with vulnerable ones",
                    fixture=fx.path,
                    partition=fx.role.value,
                    related=tuple(i.name for i in fx.safe_instructions),
                ))
    return findings


def _check_leakage(fixtures: Iterable[Fixture]) -> List[Finding]:
    holdout: Dict[str, List[str]] = defaultdict(list)
    calibration: Dict[str, List[Tuple[str, str]]] = defaultdict(list)
    for fx in fixtures:
        for class_id in fx.class_ids:
            if fx.role is PartitionRole.HOLDOUT:
                holdout[class_id].append(fx.path)
            else:
                calibration[class_id].append((fx.path, fx.role.value))

    findings = []
    for class_id in sorted(set(holdout) & set(calibration)):
        holdout_paths = sorted(holdout[class_id])
        other = sorted(calibration[class_id])
        roles = sorted({role for _, role in other})
        findings.append(Finding(
            kind=FindingKind.PARTITION_LEAKAGE,
            severity=FindingSeverity.ERROR,
            message=f"Class '{class_id}' appears in holdout ({', '.join(holdout_paths)}) "
                    f"and in {'/'.join(roles)} ({', '.join(p for p, _ in other)})",
            fixture=holdout_paths[0],
            class_id=class_id,
            partition=",".join(roles),
            related=tuple(holdout_paths + [p for p, _ in other]),
        ))
    return findings


def _check_coverage(
    fixtures: Sequence[Fixture],
    registry: TaxonomyRegistry,
    options: ValidationOptions,
) -> List[Finding]:
    vulnerable: Dict[str, List[Tuple[Fixture, Instruction]]] = defaultdict(list)
    safe_shapes: Set[str] = set()
    for fx in fixtures:
        for ins in fx.instructions:
            if ins.class_id is not None:
                vulnerable[ins.class_id].append((fx, ins))
            elif fx.role in (PartitionRole.SEEDED, PartitionRole.CONTROL):
                safe_shapes.add(instruction_shape(ins.name, options.counterpart_prefixes))

    severity = FindingSeverity.ERROR if options.coverage_gap_blocking else FindingSeverity.WARNING
    findings = []
    for vc in registry.all():
        instances = vulnerable.get(vc.class_id, [])
        if not instances:
            findings.append(Finding(
                kind=FindingKind.COVERAGE_GAP,
                severity=severity,
                message=f"Class '{vc.class_id}' has no vulnerable exemplar in the corpus",
                class_id=vc.class_id,
                missing_side="vulnerable",
            ))
        elif len(instances) == 1:
            fx, ins = instances[0]
            findings.append(Finding(
                kind=FindingKind.SINGLE_EXEMPLAR,
                severity=FindingSeverity.WARNING,
                message=f"Class '{vc.class_id}' is exemplified only once ({fx.path}::{ins.name})",
                fixture=fx.path,
                instruction=ins.name,
                class_id=vc.class_id,
                partition=fx.role.value,
            ))

        shapes = sorted({instruction_shape(ins.name, options.counterpart_prefixes) for _, ins in instances})
        if not any(shape in safe_shapes for shape in shapes):
            hint = f" (looked for: {', '.join(shapes)})" if shapes else ""
            findings.append(Finding(
                kind=FindingKind.COVERAGE_GAP,
                severity=severity,
                message=f"Class '{vc.class_id}' has no safe counterpart in seeded/control fixtures{hint}",
                class_id=vc.class_id,
                missing_side="safe",
                related=tuple(shapes),
            ))
    return findings


def _check_program_ids(fixtures: Iterable[Fixture], options: ValidationOptions) -> List[Finding]:
    by_id: Dict[str, List[Fixture]] = defaultdict(list)
    for fx in fixtures:
        if fx.program_id and fx.program_id not in options.ignored_program_ids:
            by_id[fx.program_id].append(fx)

    findings = []
    for program_id in sorted(by_id):
        owners = sorted(by_id[program_id], key=lambda f: f.path)
        roles = sorted({f.role.value for f in owners})
        if len(roles) < 2:
            continue
        findings.append(Finding(
            kind=FindingKind.IDENTIFIER_COLLISION,
            severity=FindingSeverity.ERROR,
            message=f"Program id {program_id} is declared in {', '.join(roles)} fixtures: "
                    + ", ".join(f.path for f in owners),
            fixture=owners[0].path,
            partition=",".join(roles),
            related=tuple(f.path for f in owners),
        ))
    return findings


def validate_corpus(
    fixtures: Iterable[Fixture],
    registry: TaxonomyRegistry,
    options: ValidationOptions | None = None,
) -> ValidationReport:
    """Validate the fully loaded corpus against the taxonomy.

    Pure function of its inputs: same fixtures, registry and options give the
    same ordered findings.
    """
    options = options or ValidationOptions()
    fixtures = tuple(sorted(fixtures, key=lambda f: f.path))

    findings: List[Finding] = []
    findings.extend(_check_structure(fixtures))

    well_formed = [f for f in fixtures if not f.is_malformed]
    tag_findings, unresolved = _check_tags(fixtures, registry)
    findings.extend(tag_findings)

    validated = tuple(f for f in well_formed if f.path not in unresolved)
    logger.debug(
        "Validating %d/%d fixtures (%d malformed, %d with unknown tags)",
        len(validated), len(fixtures), len(fixtures) - len(well_formed), len(unresolved),
    )

    findings.extend(_check_roles(validated, options))
    findings.extend(_check_leakage(validated))
    findings.extend(_check_coverage(validated, registry, options))
    findings.extend(_check_program_ids(validated, options))

    report = ValidationReport(
        taxonomy_version=registry.version,
        class_ids=registry.ids(),
        fixtures=fixtures,
        validated=validated,
        findings=findings,
    )
    logger.info(
        "Validation %s: %d blocking, %d warnings",
        "passed" if report.passed else "failed", len(report.blocking), len(report.warnings),
    )
    return report
