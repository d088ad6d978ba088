"""Unit tests for phenotype selection module."""

import pytest
import numpy as np
import pandas as pd

from cellseg_spatial.core.selection import (
    SELECT_ALL,
    AllOf,
    AnyOf,
    Predicate,
    SelectorKind,
    as_selector,
    is_plain_name,
    make_phenotype_rules,
    marker_column,
    parse_phenotype,
    parse_phenotypes,
    select_rows,
    selector_label,
    split_and_trim,
)
from cellseg_spatial.errors import (
    ConfigurationError,
    EvalError,
    ParseError,
    SchemaError,
    SelectorTypeError,
    ValidationError,
)
from tests.fixtures import PDL1_COLUMN, PDL1_EXPR, create_per_marker_table


class TestColumns:
    """Tests for column naming conventions."""

    def test_marker_column_strips_sign(self):
        """Positive and negative phenotypes share one column."""
        assert marker_column("CD8+") == "Phenotype CD8"
        assert marker_column("CD8-") == "Phenotype CD8"

    def test_marker_column_keeps_inner_spaces(self):
        """Marker names may contain spaces."""
        assert marker_column("Ki 67+") == "Phenotype Ki 67"

    def test_marker_column_requires_sign(self):
        """A name without a trailing sign is not a per-marker phenotype."""
        with pytest.raises(SchemaError, match="not a valid per-marker"):
            marker_column("CD8")


class TestSelectors:
    """Tests for selector types and coercion."""

    def test_string_is_single_any_of(self):
        """A bare string selects one phenotype."""
        assert as_selector("CD8+") == AnyOf(("CD8+",))

    def test_tuple_is_any_of(self):
        """A tuple of names selects any of them."""
        sel = as_selector(("CD8+", "FoxP3+"))
        assert sel.kind is SelectorKind.ANY_OF
        assert sel.names == ("CD8+", "FoxP3+")

    def test_list_is_all_of(self):
        """A list is a conjunction of its elements."""
        sel = as_selector(["CK+", Predicate(PDL1_EXPR)])
        assert sel.kind is SelectorKind.ALL_OF
        assert sel.parts[0] == AnyOf(("CK+",))
        assert sel.parts[1].kind is SelectorKind.PREDICATE

    def test_none_is_select_all(self):
        """None selects every row."""
        assert as_selector(None) is SELECT_ALL

    def test_structured_selector_passes_through(self):
        """Already-structured selectors are returned unchanged."""
        sel = AllOf((AnyOf(("CD3+",)), AnyOf(("CD8+",))))
        assert as_selector(sel) is sel

    def test_callable_is_predicate(self):
        """Callables become predicates labelled by function name."""
        def high_pdl1(df):
            return df[PDL1_COLUMN] > 3

        sel = as_selector(high_pdl1)
        assert sel.kind is SelectorKind.PREDICATE
        assert sel.label == "high_pdl1"

    def test_unsupported_shape_rejected(self):
        """Numbers and other shapes are not selectors."""
        with pytest.raises(SelectorTypeError):
            as_selector(42)
        with pytest.raises(SelectorTypeError):
            as_selector(("CD8+", 3))
        with pytest.raises(SelectorTypeError):
            as_selector([])

    def test_selector_label(self):
        """Labels join any-of with | and all-of with &."""
        assert selector_label(("CD8+", "FoxP3+")) == "CD8+|FoxP3+"
        assert selector_label(["CK+", ("CD8+", "FoxP3+")]) == "CK+&CD8+|FoxP3+"
        assert selector_label(Predicate(PDL1_EXPR)) == PDL1_EXPR
        assert selector_label(None) == "All"


class TestParser:
    """Tests for phenotype description parsing."""

    def test_split_and_trim(self):
        """Pieces are split and stripped."""
        assert split_and_trim(" CD3+ / CD8- ", "/") == ["CD3+", "CD8-"]

    def test_slash_is_all_of_singletons(self):
        """CD3+/CD8+ requires both phenotypes."""
        sel = parse_phenotype("CD3+/CD8+")
        assert sel == AllOf((AnyOf(("CD3+",)), AnyOf(("CD8+",))))

    def test_comma_is_any_of(self):
        """CD68+,CD163+ matches either phenotype."""
        assert parse_phenotype("CD68+,CD163+") == AnyOf(("CD68+", "CD163+"))

    def test_single_phenotype(self):
        """A signed name is a one-element any-of."""
        assert parse_phenotype("CD8-") == AnyOf(("CD8-",))

    @pytest.mark.parametrize("text", ["Total Cells", "All", "all cells", "TOTAL"])
    def test_total_or_all_selects_everything(self, text):
        """Unsigned names containing Total or All select every cell."""
        assert parse_phenotype(text) is SELECT_ALL

    def test_mixed_slash_and_comma_fails(self):
        """Slash and comma may not be combined."""
        with pytest.raises(ParseError, match="both"):
            parse_phenotype("CD3+/CD8+,X")

    def test_unsigned_part_fails(self):
        """Every part of a slash description must be signed."""
        with pytest.raises(ParseError, match="CD8"):
            parse_phenotype("CD3+/CD8")

    def test_unrecognized_fails(self):
        """Unsigned names without Total/All are rejected, naming the input."""
        with pytest.raises(ParseError, match="Tumor cells"):
            parse_phenotype("Tumor cells")

    def test_parse_phenotypes_names_and_order(self):
        """Unnamed entries are named by their trimmed text, order is kept."""
        selectors = parse_phenotypes(
            " CD3+ ", "CD3+/CD8+", "Total Cells", Macrophage="CD68+,CD163+"
        )
        assert list(selectors) == ["CD3+", "CD3+/CD8+", "Total Cells", "Macrophage"]
        assert selectors["CD3+"] == AnyOf(("CD3+",))
        assert selectors["Total Cells"] is SELECT_ALL
        assert selectors["Macrophage"] == AnyOf(("CD68+", "CD163+"))

    def test_parse_phenotypes_single_list(self):
        """A single list argument is unpacked."""
        selectors = parse_phenotypes(["CD3+", "CD8+"])
        assert list(selectors) == ["CD3+", "CD8+"]

    def test_parse_phenotypes_single_dict(self):
        """A dict maps names to descriptions."""
        selectors = parse_phenotypes({"Cytotoxic": "CD3+/CD8+"})
        assert selectors["Cytotoxic"].kind is SelectorKind.ALL_OF

    def test_blank_names_default_to_description(self):
        """Blank names in (name, description) pairs use the description."""
        selectors = parse_phenotypes([("", "CD3+"), ("Helper", "CD3+/CD8-")])
        assert list(selectors) == ["CD3+", "Helper"]

    def test_non_string_rejected(self):
        """Only text descriptions are accepted."""
        with pytest.raises(SelectorTypeError, match="text descriptions"):
            parse_phenotypes("CD3+", 5)

    def test_prebuilt_selector_rejected(self):
        """Structured selectors and callables are not re-parsed."""
        with pytest.raises(SelectorTypeError, match="pre-built"):
            parse_phenotypes(AnyOf(("CD3+",)))
        with pytest.raises(SelectorTypeError, match="pre-built"):
            parse_phenotypes(lambda df: df)

    def test_identical_descriptions_collide_silently(self):
        """Repeating a description yields a single entry."""
        selectors = parse_phenotypes("CD3+", " CD3+")
        assert list(selectors) == ["CD3+"]

    def test_conflicting_explicit_names_rejected(self):
        """The same name with different descriptions is an error."""
        with pytest.raises(ValidationError, match="Duplicate phenotype name 'T'"):
            parse_phenotypes([("T", "CD3+"), ("T", "CD3+/CD8+")])

    def test_explicit_name_shadowing_description_rejected(self):
        """A name equal to another entry's description must agree with it."""
        with pytest.raises(ValidationError):
            parse_phenotypes("CD3+", **{"CD3+": "CD3+/CD8+"})

    def test_repeated_explicit_name_rejected(self):
        """An explicit name may not repeat, even with the same description."""
        with pytest.raises(ValidationError, match="Duplicate phenotype name .T."):
            parse_phenotypes([("T", "CD3+"), ("T", "CD3+")])
        with pytest.raises(ValidationError):
            parse_phenotypes("CD3+", **{"CD3+": "CD3+"})

    def test_positional_tuple_rejected(self):
        """Tuples among positional arguments are not (name, description) pairs."""
        with pytest.raises(SelectorTypeError, match="text descriptions"):
            parse_phenotypes(("CD68+", "CD163+"))
        with pytest.raises(SelectorTypeError):
            parse_phenotypes("CD3+", ("T", "CD3+/CD8+"))

    def test_pairs_need_two_members(self):
        """Pairs inside a list have exactly a name and a description."""
        with pytest.raises(SelectorTypeError, match="pair"):
            parse_phenotypes([("T", "CD3+", "extra")])

    @pytest.mark.parametrize("text, plain", [
        ("A", True),
        ("Helper T", True),
        ("CD8+", False),
        ("CD3+/CD8-", False),
        ("CD68+,CD163+", False),
        ("Total Cells", False),
    ])
    def test_is_plain_name(self, text, plain):
        """Bare labels are those the description grammar does not cover."""
        assert is_plain_name(text) is plain


class TestSelectRows:
    """Tests for row selection."""

    def test_select_all(self, scenario_table):
        """Select-all returns an all-true mask of the table's length."""
        mask = select_rows(scenario_table, parse_phenotype("Total Cells"))
        assert mask.dtype == bool
        assert mask.shape == (10,)
        assert mask.all()

    def test_select_all_empty_table(self, scenario_table):
        """Select-all on an empty table is an empty mask."""
        mask = select_rows(scenario_table.iloc[:0], None)
        assert mask.shape == (0,)

    def test_unified_phenotype_column(self, scenario_table):
        """Names are matched against the Phenotype column."""
        mask = select_rows(scenario_table, "B")
        assert np.flatnonzero(mask).tolist() == [4, 5, 6]

    def test_any_of_is_or_of_singles(self, marker_table):
        """Comma descriptions equal the OR of their single masks."""
        combined = select_rows(marker_table, parse_phenotype("CD68+,CD163+"))
        expected = select_rows(marker_table, "CD68+") | select_rows(marker_table, "CD163+")
        np.testing.assert_array_equal(combined, expected)
        assert combined.sum() == 3

    def test_all_of_is_and_of_singles(self, per_marker_table):
        """Slash descriptions equal the AND of their single masks."""
        combined = select_rows(per_marker_table, parse_phenotype("CD3+/CD8+"))
        expected = select_rows(per_marker_table, "CD3+") & select_rows(per_marker_table, "CD8+")
        np.testing.assert_array_equal(combined, expected)
        assert np.flatnonzero(combined).tolist() == [0, 4]

    def test_per_marker_negative(self, per_marker_table):
        """Negative phenotypes match the negative marker value."""
        mask = select_rows(per_marker_table, parse_phenotype("CD3+/CD8-"))
        assert np.flatnonzero(mask).tolist() == [1]

    def test_per_marker_boolean_columns(self):
        """Boolean marker columns are true for positive cells."""
        table = create_per_marker_table(boolean=True)
        assert np.flatnonzero(select_rows(table, "CD8+")).tolist() == [0, 2, 4]
        assert np.flatnonzero(select_rows(table, "CD8-")).tolist() == [1, 3]
        mask = select_rows(table, parse_phenotype("CD3+/CD8+"))
        assert np.flatnonzero(mask).tolist() == [0, 4]

    def test_per_marker_any_of(self, per_marker_table):
        """Any-of across markers ORs their columns."""
        mask = select_rows(per_marker_table, ("CD3-", "CD8-"))
        assert np.flatnonzero(mask).tolist() == [1, 2, 3]

    def test_per_marker_missing_column(self, per_marker_table):
        """A marker without a column is a schema error."""
        with pytest.raises(SchemaError, match="Phenotype FoxP3"):
            select_rows(per_marker_table, "FoxP3+")

    def test_per_marker_unsigned_name(self, per_marker_table):
        """Per-marker names must be signed."""
        with pytest.raises(SchemaError, match="not a valid per-marker"):
            select_rows(per_marker_table, "CD3")

    def test_list_is_conjunction(self, scenario_table):
        """List fragments are combined with AND."""
        mask = select_rows(scenario_table, ["A", Predicate(PDL1_EXPR)])
        assert np.flatnonzero(mask).tolist() == [1, 3]

    def test_string_predicate(self, scenario_table):
        """Expression strings may quote column names with backticks."""
        mask = select_rows(scenario_table, Predicate(PDL1_EXPR))
        assert np.flatnonzero(mask).tolist() == [1, 3, 6]

    def test_callable_predicate(self, scenario_table):
        """Callables receive the table."""
        mask = select_rows(scenario_table, lambda df: df["Cell X Position"] >= 20)
        assert mask.sum() == 4

    def test_predicate_combined_with_category(self, scenario_table):
        """Predicates may test categorical columns."""
        mask = select_rows(
            scenario_table, ["A", Predicate("`Tissue Category` == 'Tumor'")]
        )
        assert np.flatnonzero(mask).tolist() == [0, 1]

    def test_predicate_missing_column(self, scenario_table):
        """Unknown columns raise EvalError."""
        with pytest.raises(EvalError, match="missing column"):
            select_rows(scenario_table, Predicate("`Nucleus CD8 Mean` > 1"))

    def test_callable_predicate_missing_column(self, scenario_table):
        """KeyError from a callable becomes EvalError."""
        with pytest.raises(EvalError):
            select_rows(scenario_table, lambda df: df["missing"] > 1)

    def test_predicate_wrong_length(self, scenario_table):
        """Predicates must return one value per row."""
        with pytest.raises(EvalError, match="shape"):
            select_rows(scenario_table, lambda df: np.array([True, False]))

    def test_all_fragments_evaluated(self, scenario_table):
        """Later fragments are evaluated even when the mask is already empty."""
        with pytest.raises(EvalError):
            select_rows(scenario_table, ["nothing", Predicate("`missing` > 0")])

    def test_empty_list_rejected(self, scenario_table):
        """An empty selector list is rejected, as in as_selector."""
        with pytest.raises(SelectorTypeError, match="Empty selector list"):
            select_rows(scenario_table, [])

    def test_requires_dataframe(self):
        """Only DataFrames are accepted."""
        with pytest.raises(SelectorTypeError):
            select_rows({"Phenotype": ["A"]}, "A")

    def test_result_aligned_with_nondefault_index(self, scenario_table):
        """Masks are positional even when the index is not a range."""
        table = scenario_table.set_index(pd.Index(range(100, 110)))
        mask = select_rows(table, "A")
        assert np.flatnonzero(mask).tolist() == [0, 1, 2, 3]


class TestPhenotypeRules:
    """Tests for phenotype rule resolution."""

    def test_identity_rules_added(self):
        """Names without a rule select themselves."""
        rules = make_phenotype_rules(["CK+", "CD8+"])
        assert rules["CK+"] == AnyOf(("CK+",))
        assert list(rules) == ["CK+", "CD8+"]

    def test_existing_rules_kept_first(self):
        """Declared rules come first, coerced to selectors."""
        rules = make_phenotype_rules(
            ["CK+", "CK+ PDL1+", "CD68+"],
            {"CK+ PDL1+": ["CK+", Predicate(PDL1_EXPR)]},
        )
        assert list(rules) == ["CK+ PDL1+", "CK+", "CD68+"]
        assert rules["CK+ PDL1+"].kind is SelectorKind.ALL_OF

    def test_duplicate_references_collapse(self):
        """Each referenced name appears once."""
        rules = make_phenotype_rules(["CK+", "CD8+", "CK+"])
        assert list(rules) == ["CK+", "CD8+"]

    def test_unused_rule_rejected(self):
        """Rules for unreferenced names are configuration errors."""
        with pytest.raises(ConfigurationError, match="Macrophage"):
            make_phenotype_rules(["CK+"], {"Macrophage": ("CD68+", "CD163+")})

    def test_rules_must_be_mapping(self):
        """Rules are a mapping of name to selector."""
        with pytest.raises(SelectorTypeError):
            make_phenotype_rules(["CK+"], [("CK+", "CK+")])

    def test_rules_are_read_only(self):
        """The resolved rule set cannot be modified."""
        rules = make_phenotype_rules(["CK+"])
        with pytest.raises(TypeError):
            rules["CD8+"] = AnyOf(("CD8+",))

    def test_rules_drive_selection(self, scenario_table):
        """Compound rules select the intended rows."""
        rules = make_phenotype_rules(
            ["A PDL1+"], {"A PDL1+": ["A", Predicate(PDL1_EXPR)]}
        )
        mask = select_rows(scenario_table, rules["A PDL1+"])
        assert np.flatnonzero(mask).tolist() == [1, 3]
