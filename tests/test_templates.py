"""
Tests for Strategy Templates

Tests leg specifications, relative constraints, template validation, the
canonical catalog and the priority-ordered TemplateLibrary.
"""

import pytest
from datetime import date

from strategy_matcher.core.position import (
    OptionRight,
    SecurityKind,
    create_call,
    create_equity,
    create_put,
)
from strategy_matcher.templates import (
    ConstraintKind,
    Direction,
    LegConstraint,
    LegSpecification,
    OptionStrategyDefinitions,
    StrategyTemplate,
    TemplateDefinitionError,
    TemplateLibrary,
    DEFAULT_LIBRARY,
    call,
    put,
    underlying,
    equal_strike_spacing,
    expiry_after,
    expiry_before,
    same_expiry,
    same_strike,
    strike_above,
    strike_below,
    templates,
)

JAN = date(2024, 1, 19)
FEB = date(2024, 2, 16)

LONG = Direction.LONG
SHORT = Direction.SHORT


# =============================================================================
# Direction Tests
# =============================================================================

class TestDirection:

    def test_sign(self):
        assert LONG.sign == 1
        assert SHORT.sign == -1

    def test_flipped(self):
        assert LONG.flipped() is SHORT
        assert SHORT.flipped() is LONG

    def test_accepts(self):
        assert LONG.accepts(3)
        assert not LONG.accepts(-3)
        assert SHORT.accepts(-1)
        assert not SHORT.accepts(0)


# =============================================================================
# Constraint Tests
# =============================================================================

class TestLegConstraints:

    @pytest.fixture
    def bound(self):
        return [create_put('SPY', 100, JAN, 1), create_put('SPY', 105, JAN, -2)]

    def test_strike_above(self, bound):
        assert strike_above(0).is_satisfied(create_call('SPY', 101, JAN, 1), bound)
        assert not strike_above(0).is_satisfied(create_call('SPY', 100, JAN, 1), bound)

    def test_strike_below(self, bound):
        assert strike_below(1).is_satisfied(create_call('SPY', 104, JAN, 1), bound)
        assert not strike_below(1).is_satisfied(create_call('SPY', 105, JAN, 1), bound)

    def test_same_strike_tolerates_float_noise(self, bound):
        assert same_strike(0).is_satisfied(create_call('SPY', 100.0000000000001, JAN, 1), bound)
        assert not same_strike(0).is_satisfied(create_call('SPY', 100.5, JAN, 1), bound)

    def test_expiry_constraints(self, bound):
        far = create_call('SPY', 100, FEB, 1)
        assert same_expiry(0).is_satisfied(create_call('SPY', 100, JAN, 1), bound)
        assert not same_expiry(0).is_satisfied(far, bound)
        assert expiry_after(0).is_satisfied(far, bound)
        assert not expiry_before(0).is_satisfied(far, bound)

    def test_equal_strike_spacing(self, bound):
        assert equal_strike_spacing(0, 1).is_satisfied(create_put('SPY', 110, JAN, 1), bound)
        assert not equal_strike_spacing(0, 1).is_satisfied(create_put('SPY', 112, JAN, 1), bound)

    def test_arity(self):
        assert ConstraintKind.EQUAL_STRIKE_SPACING.arity == 2
        assert ConstraintKind.SAME_STRIKE.arity == 1

    def test_to_dict_and_str(self):
        constraint = equal_strike_spacing(0, 1)
        assert constraint.to_dict() == {'type': 'equal_strike_spacing', 'legs': [0, 1]}
        assert str(constraint) == "equal_strike_spacing(0, 1)"


# =============================================================================
# Leg Specification Tests
# =============================================================================

class TestLegSpecification:

    def test_call_factory(self):
        leg = call(SHORT, strike_above(0), ratio=2)
        assert leg.kind is SecurityKind.OPTION
        assert leg.right is OptionRight.CALL
        assert leg.ratio == 2
        assert leg.constraints == (strike_above(0),)

    def test_underlying_factory(self):
        leg = underlying(LONG)
        assert leg.is_equity
        assert leg.right is None

    def test_unit_quantity_option(self):
        assert call(SHORT, ratio=2).unit_quantity(100) == -2

    def test_unit_quantity_equity_scales_with_multiplier(self):
        assert underlying(LONG).unit_quantity(100) == 100
        assert underlying(SHORT, lots=2).unit_quantity(10) == -20

    def test_accepts_checks_kind_and_right(self):
        leg = put(LONG)
        assert leg.accepts(create_put('SPY', 100, JAN, 1), [])
        assert not leg.accepts(create_call('SPY', 100, JAN, 1), [])
        assert not leg.accepts(create_equity('SPY', 100), [])

    def test_accepts_ignores_quantity(self):
        assert put(LONG).accepts(create_put('SPY', 100, JAN, -1), [])

    def test_str(self):
        assert str(call(SHORT, strike_above(0))) == "short 1 call [strike_above(0)]"
        assert str(underlying(LONG)) == "long 1 lot underlying"


# =============================================================================
# StrategyTemplate Tests
# =============================================================================

class TestStrategyTemplate:

    def test_priority_key(self):
        template = OptionStrategyDefinitions.IRON_CONDOR
        assert template.priority_key == (-4, 'Iron Condor')

    def test_has_underlying(self):
        assert OptionStrategyDefinitions.COVERED_CALL.has_underlying
        assert not OptionStrategyDefinitions.STRADDLE.has_underlying

    def test_inverted_flips_every_direction(self):
        base = OptionStrategyDefinitions.BUTTERFLY_CALL
        inverted = base.inverted("Flipped")
        assert inverted.name == "Flipped"
        for original, flipped in zip(base.legs, inverted.legs):
            assert flipped.direction is original.direction.flipped()
            assert flipped.ratio == original.ratio
            assert flipped.constraints == original.constraints

    def test_empty_name_rejected(self):
        with pytest.raises(TemplateDefinitionError):
            StrategyTemplate("", (call(SHORT),)).validate()

    def test_no_legs_rejected(self):
        with pytest.raises(TemplateDefinitionError, match="no legs"):
            StrategyTemplate("Empty", ()).validate()

    def test_equity_leg_first_rejected(self):
        template = StrategyTemplate("Bad", (underlying(LONG), call(SHORT)))
        with pytest.raises(TemplateDefinitionError, match="must follow an option leg"):
            template.validate()

    def test_forward_reference_rejected(self):
        template = StrategyTemplate("Bad", (call(LONG, strike_above(1)), call(SHORT)))
        with pytest.raises(TemplateDefinitionError, match="earlier leg"):
            template.validate()

    def test_reference_to_equity_leg_rejected(self):
        template = StrategyTemplate(
            "Bad", (call(SHORT), underlying(LONG), put(LONG, same_strike(1)))
        )
        with pytest.raises(TemplateDefinitionError, match="equity leg"):
            template.validate()

    def test_wrong_arity_rejected(self):
        bad = LegConstraint(ConstraintKind.EQUAL_STRIKE_SPACING, (0,))
        template = StrategyTemplate("Bad", (call(LONG), call(SHORT, bad)))
        with pytest.raises(TemplateDefinitionError, match="expects 2"):
            template.validate()

    @pytest.mark.parametrize("ratio", [0, -1, True])
    def test_invalid_ratio_rejected(self, ratio):
        leg = LegSpecification(SecurityKind.OPTION, SHORT, ratio=ratio, right=OptionRight.CALL)
        with pytest.raises(TemplateDefinitionError, match="ratio"):
            StrategyTemplate("Bad", (leg,)).validate()

    def test_option_leg_without_right_rejected(self):
        leg = LegSpecification(SecurityKind.OPTION, SHORT)
        with pytest.raises(TemplateDefinitionError, match="needs a right"):
            StrategyTemplate("Bad", (leg,)).validate()

    def test_to_dict(self):
        data = OptionStrategyDefinitions.COVERED_CALL.to_dict()
        assert data['name'] == 'Covered Call'
        assert data['legs'][0] == {'kind': 'option', 'direction': 'short', 'ratio': 1, 'right': 'call'}
        assert data['legs'][1] == {'kind': 'equity', 'direction': 'long', 'ratio': 1}


# =============================================================================
# Catalog Tests
# =============================================================================

class TestOptionStrategyDefinitions:

    def test_catalog_size(self):
        assert len(OptionStrategyDefinitions.all()) == 37

    def test_names_unique(self):
        names = OptionStrategyDefinitions.names()
        assert len(names) == len(set(names))

    def test_all_definitions_valid(self):
        for template in OptionStrategyDefinitions.all():
            template.validate()

    @pytest.mark.parametrize("name", [
        "Naked Call", "Naked Put", "Covered Call", "Covered Put",
        "Protective Call", "Protective Put", "Protective Collar",
        "Conversion", "Reverse Conversion", "Bull Call Spread",
        "Bear Call Spread", "Bull Put Spread", "Bear Put Spread",
        "Straddle", "Short Straddle", "Strangle", "Short Strangle",
        "Call Calendar Spread", "Short Call Calendar Spread",
        "Put Calendar Spread", "Short Put Calendar Spread",
        "Butterfly Call", "Short Butterfly Call", "Butterfly Put",
        "Short Butterfly Put", "Bull Call Ladder", "Bear Call Ladder",
        "Bull Put Ladder", "Bear Put Ladder", "Iron Condor",
        "Short Iron Condor", "Iron Butterfly", "Short Iron Butterfly",
        "Box Spread", "Short Box Spread", "Jelly Roll", "Short Jelly Roll",
    ])
    def test_named_strategy_present(self, name):
        assert name in OptionStrategyDefinitions.names()

    def test_butterfly_body_ratio(self):
        body = OptionStrategyDefinitions.BUTTERFLY_CALL.legs[1]
        assert body.ratio == 2
        assert body.direction is SHORT


# =============================================================================
# TemplateLibrary Tests
# =============================================================================

class TestTemplateLibrary:

    def test_default_library_size(self):
        assert len(TemplateLibrary.default()) == 37
        assert len(templates()) == 37

    def test_priority_order(self):
        ordered = DEFAULT_LIBRARY.templates()
        keys = [t.priority_key for t in ordered]
        assert keys == sorted(keys)
        assert ordered[0].leg_count == 4
        assert ordered[-1].leg_count == 1
        assert ordered[0].name == 'Box Spread'
        assert DEFAULT_LIBRARY.names()[-2:] == ('Naked Call', 'Naked Put')

    def test_more_legs_before_fewer(self):
        names = DEFAULT_LIBRARY.names()
        assert names.index('Iron Condor') < names.index('Bull Put Spread')
        assert names.index('Protective Collar') < names.index('Covered Call')
        assert names.index('Covered Call') < names.index('Naked Call')

    def test_default_with_exclude(self):
        library = TemplateLibrary.default(exclude=['Naked Call', 'Naked Put'])
        assert len(library) == 35
        assert 'Naked Put' not in library

    def test_default_exclude_unknown_raises(self):
        with pytest.raises(KeyError):
            TemplateLibrary.default(exclude=['Nope'])

    def test_without(self):
        library = DEFAULT_LIBRARY.without(['Covered Call'])
        assert 'Covered Call' not in library
        assert 'Covered Call' in DEFAULT_LIBRARY

    def test_without_unknown_raises(self):
        with pytest.raises(KeyError):
            DEFAULT_LIBRARY.without(['Nope'])

    def test_extended(self):
        risk_reversal = StrategyTemplate(
            "Risk Reversal",
            (put(SHORT), call(LONG, strike_above(0), same_expiry(0))),
        )
        library = DEFAULT_LIBRARY.extended([risk_reversal])
        assert len(library) == 38
        assert library['Risk Reversal'] is risk_reversal

    def test_duplicate_name_rejected(self):
        with pytest.raises(TemplateDefinitionError, match="duplicate"):
            DEFAULT_LIBRARY.extended([StrategyTemplate("Naked Call", (call(SHORT),))])

    def test_invalid_template_rejected(self):
        with pytest.raises(TemplateDefinitionError):
            TemplateLibrary([StrategyTemplate("Bad", (underlying(LONG),))])

    def test_non_template_rejected(self):
        with pytest.raises(TemplateDefinitionError, match="expected StrategyTemplate"):
            TemplateLibrary(["Covered Call"])

    def test_immutable(self):
        with pytest.raises(AttributeError):
            DEFAULT_LIBRARY._templates = ()

    def test_lookup(self):
        assert DEFAULT_LIBRARY.get('Nope') is None
        assert DEFAULT_LIBRARY['Covered Call'] is OptionStrategyDefinitions.COVERED_CALL
        with pytest.raises(KeyError):
            DEFAULT_LIBRARY['Nope']

    def test_equality(self):
        assert TemplateLibrary.default() == DEFAULT_LIBRARY
        assert hash(TemplateLibrary.default()) == hash(DEFAULT_LIBRARY)
        assert TemplateLibrary.default(exclude=['Naked Put']) != DEFAULT_LIBRARY
