"""Allowance / deduction evaluator."""

from payroll.calculators.money import Money
from payroll.exceptions import InvalidAmount, InvalidComponent
from payroll.models import (
    ComponentBase,
    ComponentDefinition,
    ComponentLine,
    FixedComponent,
    PercentageComponent,
)


def evaluate_component(component: ComponentDefinition, base: Money | None = None) -> Money:
    """Turn one component definition into a concrete amount.

    Fixed components return their value verbatim; percentage components
    return ``round(base * value / 100)``, rounded once.

    Raises:
        InvalidComponent: If the value is negative or non-finite, or a
            percentage component has no base to apply to.
    """
    try:
        value = Money.of(component.value, allow_negative=False)
    except InvalidAmount as e:
        raise InvalidComponent(
            f"Component {component.name!r} has an invalid value: {e.message}",
            component_id=component.id,
        ) from e

    match component:
        case FixedComponent():
            return value
        case PercentageComponent():
            if base is None:
                raise InvalidComponent(
                    f"Percentage component {component.name!r} requires a base amount",
                    component_id=component.id,
                )
            return base.percent(component.value).round()
        case _:
            raise InvalidComponent(
                f"Unsupported component kind: {getattr(component, 'kind', None)!r}",
                component_id=getattr(component, "id", None),
            )


def resolve_base(
    component: ComponentDefinition,
    default: ComponentBase,
    available: dict[ComponentBase, Money],
) -> Money | None:
    """Pick the base amount a component is evaluated against.

    Fixed components need no base. A percentage component uses its declared
    base, or ``default`` when it declares none. Only values already computed
    at this point of the payslip (``available``) may be referenced.
    """
    if not isinstance(component, PercentageComponent):
        return None
    base = component.base or default
    if base not in available:
        raise InvalidComponent(
            f"Component {component.name!r} cannot use {base.value} as its base here",
            component_id=component.id,
        )
    return available[base]


def component_line(
    component: ComponentDefinition,
    amount: Money,
    *,
    is_deduction: bool,
) -> ComponentLine:
    return ComponentLine(
        id=component.id,
        name=component.name,
        kind=component.kind,
        value=component.value,
        base=component.base if isinstance(component, PercentageComponent) else None,
        pre_tax=component.pre_tax if is_deduction else None,
        amount=amount,
    )
