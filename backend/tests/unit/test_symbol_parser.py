"""Unit tests for symbol field normalization."""

import json

import pytest

from integrations.symbol_parser import (
    SymbolDescriptor,
    SymbolForm,
    classify_symbol,
    extract_symbol,
    parse_legacy_list,
    parse_legacy_object,
)


class TestClassifySymbol:
    @pytest.mark.parametrize(
        "value, form",
        [
            (None, SymbolForm.EMPTY),
            ("", SymbolForm.EMPTY),
            ("   ", SymbolForm.EMPTY),
            (42, SymbolForm.EMPTY),
            ([], SymbolForm.LIST),
            ({"symbol": "AAPL"}, SymbolForm.OBJECT),
            ('{"symbol": "AAPL"}', SymbolForm.JSON_TEXT),
            ('[{"symbol": "AAPL"}]', SymbolForm.JSON_TEXT),
            ("{symbol=AAPL}", SymbolForm.LEGACY_TEXT),
            ("[{symbol=AAPL}]", SymbolForm.LEGACY_TEXT),
            ("AAPL", SymbolForm.PLAIN_TEXT),
            ("null", SymbolForm.EMPTY),
            ("123", SymbolForm.EMPTY),
            ("true", SymbolForm.EMPTY),
        ],
    )
    def test_forms(self, value, form):
        assert classify_symbol(value).form is form

    def test_json_string_is_unwrapped(self):
        field = classify_symbol('"AAPL"')
        assert field.form is SymbolForm.PLAIN_TEXT
        assert field.value == "AAPL"


class TestExtractSymbolStructured:
    def test_flat_object(self):
        result = extract_symbol({"symbol": "AAPL", "description": "Apple Inc."})
        assert result == SymbolDescriptor("AAPL", "Apple Inc.")

    def test_nested_object(self):
        value = {"symbol": {"symbol": "XEQT.TO", "description": "iShares Core Equity"}, "id": "x"}
        assert extract_symbol(value) == SymbolDescriptor("XEQT.TO", "iShares Core Equity")

    def test_doubly_nested_object(self):
        value = {"symbol": {"symbol": {"symbol": "VTI", "description": "Vanguard"}}}
        assert extract_symbol(value) == SymbolDescriptor("VTI", "Vanguard")

    def test_list_uses_first_element(self):
        value = [{"symbol": "AAPL"}, {"symbol": "MSFT"}]
        assert extract_symbol(value).symbol == "AAPL"

    def test_empty_list(self):
        assert extract_symbol([]) == SymbolDescriptor("N/A", "")

    def test_description_trimmed_and_optional(self):
        assert extract_symbol({"symbol": " AAPL ", "description": "  Apple  "}) == SymbolDescriptor(
            "AAPL", "Apple"
        )
        assert extract_symbol({"symbol": "AAPL"}).description == ""
        assert extract_symbol({"symbol": "AAPL", "description": 5}).description == ""


class TestExtractSymbolText:
    def test_json_text_object(self):
        value = json.dumps({"symbol": {"symbol": "MSFT", "description": "Microsoft"}})
        assert extract_symbol(value) == SymbolDescriptor("MSFT", "Microsoft")

    def test_json_text_list(self):
        assert extract_symbol('[{"symbol": "TSLA"}]').symbol == "TSLA"

    def test_plain_ticker(self):
        assert extract_symbol("TSLA") == SymbolDescriptor("TSLA", "")

    def test_json_string_ticker(self):
        assert extract_symbol('"TSLA"').symbol == "TSLA"

    def test_legacy_object(self):
        value = "{symbol=AAPL, description=Apple Inc., currencies=[{code=USD}, {code=CAD}]}"
        assert extract_symbol(value) == SymbolDescriptor("AAPL", "Apple Inc.")

    def test_legacy_nested_object(self):
        value = "{symbol={symbol=AAPL, description=Apple}, id=123}"
        assert extract_symbol(value) == SymbolDescriptor("AAPL", "Apple")

    def test_legacy_list(self):
        assert extract_symbol("[{symbol=AAPL}, {symbol=MSFT}]").symbol == "AAPL"

    def test_legacy_value_with_comma(self):
        value = "{symbol=BRK.B, description=Berkshire Hathaway, Inc. Class B}"
        assert extract_symbol(value) == SymbolDescriptor("BRK.B", "Berkshire Hathaway, Inc. Class B")

    def test_legacy_unclosed_list_does_not_swallow_fields(self):
        value = "{symbol=VTI, currencies=[{code=USD}, description=Vanguard Total}"
        assert extract_symbol(value) == SymbolDescriptor("VTI", "Vanguard Total")

    def test_legacy_missing_closing_brace(self):
        assert extract_symbol("{symbol=AAPL").symbol == "AAPL"


class TestExtractSymbolDefaults:
    @pytest.mark.parametrize(
        "value",
        [
            None, "", 42, {}, {"symbol": ""}, {"description": "x"}, {"symbol": None},
            "{garbage", "[]", "null", "123", "1.5",
        ],
    )
    def test_unusable_input(self, value):
        assert extract_symbol(value) == SymbolDescriptor("N/A", "")


class TestDeepNesting:
    @pytest.mark.parametrize(
        "value",
        [
            "[" * 5000,
            "[" * 20000 + "]" * 20000,
            "{symbol=" * 5000,
            "[{symbol=" * 2000,
        ],
    )
    def test_deep_text_yields_defaults(self, value):
        assert extract_symbol(value) == SymbolDescriptor("N/A", "")

    def test_deep_nested_objects(self):
        value = {"symbol": "AAPL"}
        for _ in range(5000):
            value = {"symbol": value}
        assert extract_symbol(value) == SymbolDescriptor("N/A", "")

    def test_deep_nested_lists(self):
        value = ["AAPL"]
        for _ in range(5000):
            value = [value]
        assert extract_symbol(value) == SymbolDescriptor("N/A", "")

    def test_shallow_nesting_still_parsed(self):
        assert extract_symbol([[[{"symbol": {"symbol": "VTI"}}]]]).symbol == "VTI"
        assert extract_symbol("[[{symbol=VTI}]]").symbol == "VTI"

    def test_legacy_list_depth_is_capped(self):
        depth = 0
        value = parse_legacy_list("[" * 500)
        while isinstance(value, list) and value:
            value = value[0]
            depth += 1
        assert value is None
        assert depth <= 40


class TestLegacyParsers:
    def test_parse_object(self):
        result = parse_legacy_object("{a=1, b={c=2}, d=[x, y], e=null}")
        assert result == {"a": "1", "b": {"c": "2"}, "d": ["x", "y"], "e": None}

    def test_parse_object_skips_fragments_without_key(self):
        assert parse_legacy_object("{=1, a=2}") == {"a": "2"}

    def test_parse_list_missing_close(self):
        assert parse_legacy_list("[{code=USD}, {code=CAD}") == [{"code": "USD"}, {"code": "CAD"}]

    def test_parse_empty_list(self):
        assert parse_legacy_list("[]") == []
