"""
Rule checks of a finished panel design against DS/HD 60364.

Each rule is independent and only reads its inputs. Findings are returned
as ComplianceIssue records; nothing here raises for a non-compliant design.
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from .models import (
    BreakerType,
    CableSizingResult,
    CircuitConfig,
    ComplianceCheckResult,
    ComplianceIssue,
    ComplianceSummary,
    LoadCategory,
    PanelConfiguration,
    PhaseType,
    RCDGroup,
    RCDType,
    Room,
    Severity,
)
from .reference_data import (
    COORDINATION_CORES,
    COORDINATION_METHOD,
    cable_for_breaker,
    current_capacity,
)

logger = logging.getLogger(__name__)

CODE_RCD_SOCKET = "RCD_SOCKET"
CODE_RCD_WET_ROOM = "RCD_WET_ROOM"
CODE_EV_RCD_TYPE = "EV_RCD_TYPE"
CODE_CABLE_BREAKER_MISMATCH = "CABLE_BREAKER_MISMATCH"
CODE_VOLTAGE_DROP = "VOLTAGE_DROP"
CODE_PHASE_IMBALANCE = "PHASE_IMBALANCE"
CODE_SPARE_CAPACITY = "SPARE_CAPACITY"
CODE_SURGE_PROTECTION = "SURGE_PROTECTION"

SOCKET_RCD_MAX_RATING_A = 32
WET_ROOM_MAX_SENSITIVITY_MA = 30
PHASE_IMBALANCE_MAX_PCT = 25.0
SPARE_CAPACITY_MIN_PCT = 10.0

STANDARDS_CHECKED: tuple[str, ...] = (
    "DS/HD 60364-3 (Load assessment)",
    "DS/HD 60364-4-41 (Protection against electric shock)",
    "DS/HD 60364-4-43 (Protection against overcurrent)",
    "DS/HD 60364-4-44 (Protection against overvoltage)",
    "DS/HD 60364-5-52 (Wiring systems)",
    "DS/HD 60364-7-701 (Locations containing a bath or shower)",
    "DS/HD 60364-7-722 (Supplies for electric vehicles)",
)

RULE_SOCKET = "socket"
RULE_EV = "ev"
RULE_GENERAL = "general"


def category_rule(category: LoadCategory) -> str:
    """Category-specific rule set of a circuit. Every category must be handled here."""
    category = LoadCategory(category)
    if category == LoadCategory.SOCKET_OUTLET:
        return RULE_SOCKET
    if category == LoadCategory.EV_CHARGER:
        return RULE_EV
    if category in (
        LoadCategory.LIGHTING,
        LoadCategory.FIXED_APPLIANCE,
        LoadCategory.MOTOR,
        LoadCategory.HEATING,
        LoadCategory.COOKING,
        LoadCategory.DATA_EQUIPMENT,
        LoadCategory.OTHER,
    ):
        return RULE_GENERAL
    raise ValueError(f"Unhandled load category: {category}")


def effective_protection(
    circuit: CircuitConfig,
    groups_by_position: Mapping[int, RCDGroup],
) -> tuple[RCDType | None, int | None] | None:
    """
    (rcd_type, sensitivity_ma) protecting a circuit: its own RCBO/RCD fields,
    else the shared group listing its position, else None.
    """
    breaker_type = BreakerType(circuit.breaker_type)
    if breaker_type in (BreakerType.RCBO, BreakerType.RCD):
        return circuit.rcd_type, circuit.rcd_sensitivity_ma
    if breaker_type != BreakerType.MCB:
        raise ValueError(f"Unhandled breaker type: {breaker_type}")
    group = groups_by_position.get(circuit.position)
    if group is None:
        return None
    return group.rcd_type, group.sensitivity_ma


def _groups_by_position(rcd_groups: Sequence[RCDGroup]) -> dict[int, RCDGroup]:
    out: dict[int, RCDGroup] = {}
    for group in rcd_groups:
        for position in group.circuits:
            out.setdefault(position, group)
    return out


def _check_socket_rcd(circuit, protection) -> ComplianceIssue | None:
    if circuit.rating_a > SOCKET_RCD_MAX_RATING_A or protection is not None:
        return None
    return ComplianceIssue(
        code=CODE_RCD_SOCKET,
        severity=Severity.ERROR,
        standard_ref="DS/HD 60364-4-41 §411.3.3",
        description=f'Socket-outlet circuit "{circuit.description}" has no RCD protection',
        recommendation="Add 30 mA RCD protection to every socket-outlet circuit up to 32 A",
        affected_area=circuit.area,
    )


def _check_ev_rcd(circuit, protection) -> ComplianceIssue | None:
    if protection is not None and protection[0] == RCDType.B:
        return None
    return ComplianceIssue(
        code=CODE_EV_RCD_TYPE,
        severity=Severity.ERROR,
        standard_ref="DS/HD 60364-7-722 §722.531.3.101",
        description=f'EV charger circuit "{circuit.description}" requires an RCD of type B',
        recommendation="Use RCD type B (or type A with 6 mA DC fault detection) for EV chargers",
        affected_area=circuit.area,
    )


def _check_wet_room(circuit, protection, room_name: str) -> ComplianceIssue | None:
    if protection is not None:
        sensitivity = protection[1]
        if sensitivity is not None and sensitivity <= WET_ROOM_MAX_SENSITIVITY_MA:
            return None
    return ComplianceIssue(
        code=CODE_RCD_WET_ROOM,
        severity=Severity.ERROR,
        standard_ref="DS/HD 60364-7-701 §701.411.3.3",
        description=f'Circuit "{circuit.description}" in wet room "{room_name}" lacks 30 mA RCD protection',
        recommendation="All circuits in wet rooms require RCD protection of 30 mA or less",
        affected_area=room_name,
    )


def _check_coordination(circuit: CircuitConfig) -> ComplianceIssue | None:
    capacity = current_capacity(COORDINATION_METHOD, COORDINATION_CORES, circuit.cable_cross_section)
    if capacity is not None and capacity >= circuit.rating_a:
        return None
    shown = f"{capacity:g} A" if capacity is not None else "not tabulated"
    return ComplianceIssue(
        code=CODE_CABLE_BREAKER_MISMATCH,
        severity=Severity.ERROR,
        standard_ref="DS/HD 60364-4-43 §433.1",
        description=(
            f"Cable {circuit.cable_cross_section:g} mm² ({shown}) is not protected "
            f"by a {circuit.rating_a} A breaker"
        ),
        recommendation=(
            f"Use at least {cable_for_breaker(circuit.rating_a):g} mm² cable "
            "or reduce the breaker rating"
        ),
        affected_area=circuit.area,
    )


def _phase_imbalance_pct(circuits: Sequence[CircuitConfig]) -> float:
    sums = [0.0, 0.0, 0.0]
    for circuit in circuits:
        sums[circuit.phase - 1] += circuit.connected_load_w
    avg = sum(sums) / 3.0
    if avg <= 0:
        return 0.0
    return max(abs(p - avg) / avg for p in sums) * 100.0


def check_compliance(
    panel: PanelConfiguration,
    cable_sizings: Sequence[CableSizingResult],
    rooms: Sequence[Room],
) -> ComplianceCheckResult:
    issues: list[ComplianceIssue] = []
    groups = _groups_by_position(panel.rcd_groups)
    # unique, in room order
    wet_rooms = tuple(dict.fromkeys(room.name for room in rooms if room.is_wet_room))

    for circuit in panel.circuits:
        protection = effective_protection(circuit, groups)
        rule = category_rule(circuit.load_category)
        if rule == RULE_SOCKET:
            issue = _check_socket_rcd(circuit, protection)
        elif rule == RULE_EV:
            issue = _check_ev_rcd(circuit, protection)
        elif rule == RULE_GENERAL:
            issue = None
        else:
            raise ValueError(f"Unhandled rule set: {rule}")
        if issue is not None:
            issues.append(issue)

    for room_name in wet_rooms:
        for circuit in panel.circuits:
            if circuit.area != room_name:
                continue
            issue = _check_wet_room(circuit, effective_protection(circuit, groups), room_name)
            if issue is not None:
                issues.append(issue)

    for circuit in panel.circuits:
        issue = _check_coordination(circuit)
        if issue is not None:
            issues.append(issue)

    aligned = len(cable_sizings) == len(panel.circuits)
    for idx, sizing in enumerate(cable_sizings):
        if sizing.compliant:
            continue
        issues.append(
            ComplianceIssue(
                code=CODE_VOLTAGE_DROP,
                severity=Severity.WARNING,
                standard_ref="DS/HD 60364-5-52 §525",
                description=(
                    f"Voltage drop {sizing.voltage_drop_pct:g}% exceeds the recommended "
                    f"{sizing.max_voltage_drop_pct:g}% limit"
                ),
                recommendation="Increase the cable cross-section or shorten the cable run",
                affected_area=panel.circuits[idx].area if aligned else None,
            )
        )

    if PhaseType(panel.phase_type) == PhaseType.THREE:
        imbalance = _phase_imbalance_pct(panel.circuits)
        if imbalance > PHASE_IMBALANCE_MAX_PCT:
            issues.append(
                ComplianceIssue(
                    code=CODE_PHASE_IMBALANCE,
                    severity=Severity.WARNING,
                    standard_ref="DS/HD 60364-5-52",
                    description=f"Phase loads are {imbalance:.0f}% unbalanced, recommended max 20%",
                    recommendation="Redistribute circuits between the phases",
                )
            )

    if panel.spare_capacity_pct < SPARE_CAPACITY_MIN_PCT:
        issues.append(
            ComplianceIssue(
                code=CODE_SPARE_CAPACITY,
                severity=Severity.WARNING,
                standard_ref="General good practice",
                description=f"Only {panel.spare_capacity_pct:g}% spare capacity in the panel",
                recommendation="Consider a larger enclosure for future extensions (20% reserve recommended)",
            )
        )

    if not panel.surge_protection.required:
        issues.append(
            ComplianceIssue(
                code=CODE_SURGE_PROTECTION,
                severity=Severity.INFO,
                standard_ref="DS/HD 60364-4-44 §443",
                description="Surge protection is recommended for all new installations",
                recommendation="Install Type 2 surge protection in the main distribution board",
            )
        )

    summary = ComplianceSummary(
        errors=sum(1 for i in issues if i.severity == Severity.ERROR),
        warnings=sum(1 for i in issues if i.severity == Severity.WARNING),
        info=sum(1 for i in issues if i.severity == Severity.INFO),
    )
    logger.debug(
        "compliance: %d errors, %d warnings, %d info",
        summary.errors,
        summary.warnings,
        summary.info,
    )
    return ComplianceCheckResult(
        compliant=summary.errors == 0,
        issues=tuple(issues),
        summary=summary,
        standards_checked=STANDARDS_CHECKED,
    )
