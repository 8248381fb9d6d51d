"""Leave-certificate compliance analysis.

Certificates from the trailing 60 days are grouped by diagnosis prefix
(letter plus two digits, so "J06.9" and "j06" share the group "J06") and
summed per group. The largest single group is compared against the limit
of the employee's contract class: repeated leave for the same condition is
what triggers a referral, unrelated short absences do not add up.

Whether the per-group maximum (rather than the overall total) is the
intended policy has not been confirmed; the behaviour is kept as is.
"""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from officeflow.schemas.certificate_schema import Certificate
from officeflow.schemas.common import ContractClass, Escalation
from officeflow.schemas.employee_schema import Employee

WINDOW_DAYS = 60
PERMANENT_LIMIT = 10
DEFAULT_LIMIT = 15
NO_CODE_GROUP = "no-code"

_PREFIX = re.compile(r"^([A-Z])(\d{2})")


@dataclass(frozen=True)
class CertificateAnalysis:
    accumulated_days: float
    status: Escalation
    limit: int
    groups: dict[str, float] = field(default_factory=dict)


def limit_for(contract_class: ContractClass) -> int:
    return PERMANENT_LIMIT if ContractClass(contract_class) == ContractClass.permanent else DEFAULT_LIMIT


def diagnosis_group(code: Optional[str]) -> str:
    if code is None:
        return NO_CODE_GROUP
    normalized = code.strip().upper()
    if not normalized:
        return NO_CODE_GROUP
    match = _PREFIX.match(normalized)
    if match is None:
        # Not a letter+digits code; group by the text itself
        return normalized
    return match.group(1) + match.group(2)


def certificate_days(certificate: Certificate) -> float:
    return 0.5 if certificate.half_day else certificate.days


def analyze_certificates(
    certificates: Iterable[Certificate],
    contract_class: ContractClass,
    today: Optional[date] = None,
) -> CertificateAnalysis:
    today = today or date.today()
    window_start = today - timedelta(days=WINDOW_DAYS)
    limit = limit_for(contract_class)

    groups: dict[str, float] = defaultdict(float)
    for cert in certificates:
        if window_start <= cert.certificate_date <= today:
            groups[diagnosis_group(cert.diagnosis_code)] += certificate_days(cert)

    accumulated = max(groups.values(), default=0.0)
    status = Escalation.normal
    if accumulated >= limit:
        if ContractClass(contract_class) == ContractClass.permanent:
            status = Escalation.internal_committee
        else:
            status = Escalation.external_benefits

    return CertificateAnalysis(
        accumulated_days=round(accumulated, 1),
        status=status,
        limit=limit,
        groups={k: round(v, 1) for k, v in sorted(groups.items())},
    )


def flag_employees(
    employees: Iterable[Employee],
    certificates: Sequence[Certificate],
    today: Optional[date] = None,
) -> list[tuple[Employee, CertificateAnalysis]]:
    """Employees whose analysis is not normal, highest accumulation first."""
    by_employee: dict[str, list[Certificate]] = defaultdict(list)
    for cert in certificates:
        by_employee[cert.employee_id].append(cert)

    flagged = []
    for employee in employees:
        analysis = analyze_certificates(by_employee.get(employee.id, []), employee.contract_class, today)
        if analysis.status != Escalation.normal:
            flagged.append((employee, analysis))
    flagged.sort(key=lambda item: item[1].accumulated_days, reverse=True)
    return flagged
