"""
ReleaseValidator - structural and content rules for a parsed Release.

Every rule is a pure function `rule(release) -> list[Violation]`. The
validator runs all of them in order and concatenates their findings, so an
operator sees every defect in one pass. Invalid releases are data, not
faults: validate() never raises for them; validate_or_raise() does.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Callable, Sequence

from preflight.errors import ValidationFailedError
from preflight.release import JOB_MONIT, JOB_TEMPLATES_DIR, Job, Release

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Violation:
    """
    A single broken rule.

    Attributes:
        entity: Offending entity, e.g. "release", "job 'worker'"
        rule: Stable rule identifier, e.g. "job-package"
        message: Human-readable description
    """
    entity: str
    rule: str
    message: str

    def __str__(self) -> str:
        return f"{self.entity}: {self.message} [{self.rule}]"


@dataclass(frozen=True)
class ValidationOutcome:
    """Ordered violations; empty means valid."""
    violations: tuple[Violation, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.violations

    def __bool__(self) -> bool:
        return self.is_valid

    def for_rule(self, rule: str) -> list[Violation]:
        return [v for v in self.violations if v.rule == rule]


Rule = Callable[[Release], list[Violation]]


def _job_entity(job: Job) -> str:
    return f"job '{job.name}'"


def check_release_name(release: Release) -> list[Violation]:
    if not release.name.strip():
        return [Violation("release", "release-name", "Release name must not be empty")]
    return []


def check_release_version(release: Release) -> list[Violation]:
    if not release.version.strip():
        return [Violation("release", "release-version", "Release version must not be empty")]
    return []


def check_job_names(release: Release) -> list[Violation]:
    return [
        Violation(f"jobs[{i}]", "job-name", "Job name must not be empty")
        for i, job in enumerate(release.jobs)
        if not job.name.strip()
    ]


def check_package_names(release: Release) -> list[Violation]:
    return [
        Violation(f"packages[{i}]", "package-name", "Package name must not be empty")
        for i, package in enumerate(release.packages)
        if not package.name.strip()
    ]


def check_duplicate_jobs(release: Release) -> list[Violation]:
    counts = Counter(job.name for job in release.jobs if job.name)
    return [
        Violation(f"job '{name}'", "duplicate-job", f"Job name is used {count} times")
        for name, count in counts.items()
        if count > 1
    ]


def check_duplicate_packages(release: Release) -> list[Violation]:
    counts = Counter(package.name for package in release.packages if package.name)
    return [
        Violation(f"package '{name}'", "duplicate-package", f"Package name is used {count} times")
        for name, count in counts.items()
        if count > 1
    ]


def check_job_packages(release: Release) -> list[Violation]:
    known = release.package_names
    violations = []
    for job in release.jobs:
        for package_name in job.packages:
            if package_name not in known:
                violations.append(
                    Violation(
                        _job_entity(job),
                        "job-package",
                        f"Job '{job.name}' requires package '{package_name}' "
                        f"which is not in the release",
                    )
                )
    return violations


def check_package_dependencies(release: Release) -> list[Violation]:
    known = release.package_names
    violations = []
    for package in release.packages:
        for dependency in package.dependencies:
            if dependency not in known:
                violations.append(
                    Violation(
                        f"package '{package.name}'",
                        "package-dependency",
                        f"Package '{package.name}' depends on '{dependency}' "
                        f"which is not in the release",
                    )
                )
    return violations


def check_package_cycles(release: Release) -> list[Violation]:
    """Report each dependency cycle once, starting from its smallest name."""
    names = release.package_names
    graph: dict[str, list[str]] = defaultdict(list)
    for package in release.packages:
        graph[package.name].extend(d for d in package.dependencies if d in names)

    cycles: set[tuple[str, ...]] = set()
    done: set[str] = set()

    # Explicit stack: dependency chains can be longer than the recursion limit
    for root in sorted(graph):
        if root in done:
            continue
        path = [root]
        on_path = {root}
        pending = [iter(graph[root])]
        while pending:
            dependency = next(pending[-1], None)
            if dependency is None:
                pending.pop()
                node = path.pop()
                on_path.discard(node)
                done.add(node)
            elif dependency in on_path:
                cycle = path[path.index(dependency):]
                start = cycle.index(min(cycle))
                cycles.add(tuple(cycle[start:] + cycle[:start]))
            elif dependency not in done:
                path.append(dependency)
                on_path.add(dependency)
                pending.append(iter(graph.get(dependency, ())))

    return [
        Violation(
            f"package '{cycle[0]}'",
            "package-cycle",
            "Package dependency cycle: " + " -> ".join(cycle + (cycle[0],)),
        )
        for cycle in sorted(cycles)
    ]


def check_job_manifest_names(release: Release) -> list[Violation]:
    return [
        Violation(
            _job_entity(job),
            "job-manifest-name",
            f"Job manifest declares name '{job.manifest_name}'",
        )
        for job in release.jobs
        if job.manifest_name is not None and job.manifest_name != job.name
    ]


def check_job_monit(release: Release) -> list[Violation]:
    violations = []
    for job in release.jobs:
        monit = job.monit_path
        if monit is not None and not monit.is_file():
            violations.append(
                Violation(_job_entity(job), "job-monit", f"Job is missing '{JOB_MONIT}' file")
            )
    return violations


def check_job_templates(release: Release) -> list[Violation]:
    violations = []
    for job in release.jobs:
        for template in job.templates:
            path = job.template_path(template)
            if path is not None and not path.is_file():
                violations.append(
                    Violation(
                        _job_entity(job),
                        "job-template",
                        f"Template '{JOB_TEMPLATES_DIR}/{template}' is missing",
                    )
                )
    return violations


DEFAULT_RULES: tuple[Rule, ...] = (
    check_release_name,
    check_release_version,
    check_job_names,
    check_package_names,
    check_duplicate_jobs,
    check_duplicate_packages,
    check_job_packages,
    check_package_dependencies,
    check_package_cycles,
    check_job_manifest_names,
    check_job_monit,
    check_job_templates,
)


class ReleaseValidator:
    """Runs every rule against a release and collects all violations."""

    def __init__(self, release: Release, rules: Sequence[Rule] = DEFAULT_RULES):
        self.release = release
        self.rules = tuple(rules)

    def validate(self) -> ValidationOutcome:
        """
        Evaluate all rules.

        Returns:
            ValidationOutcome listing every violation in rule order
        """
        violations: list[Violation] = []
        for rule in self.rules:
            violations.extend(rule(self.release))

        outcome = ValidationOutcome(tuple(violations))
        logger.info(
            f"Validated release {self.release.name}: {len(outcome.violations)} violation(s)",
            extra={
                "event": "release_validated",
                "metadata": {
                    "rules_count": len(self.rules),
                    "violations_count": len(outcome.violations),
                },
            },
        )
        return outcome

    def validate_or_raise(self) -> ValidationOutcome:
        """
        Evaluate all rules, raising if any violation was found.

        Raises:
            ValidationFailedError: Carrying the complete outcome
        """
        outcome = self.validate()
        if not outcome.is_valid:
            raise ValidationFailedError(outcome)
        return outcome
