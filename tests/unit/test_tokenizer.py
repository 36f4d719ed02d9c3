"""Tests for the SQL tokenizer."""

from cncquery.query.tokenizer import (
    TableReference,
    TokenKind,
    cte_names,
    extract_table_refs,
    function_calls,
    paren_depths,
    significant,
    statement_body,
    tokenize,
)


def _kinds(sql: str) -> list[TokenKind]:
    return [t.kind for t in tokenize(sql)]


class TestTokenize:
    """Token classification."""

    def test_words_punct_and_numbers(self):
        tokens = tokenize("SELECT a, 1.5 FROM t")
        assert [t.value for t in tokens] == ["SELECT", "a", ",", "1.5", "FROM", "t"]
        assert tokens[3].kind == TokenKind.NUMBER

    def test_keywords_inside_strings_stay_strings(self):
        tokens = tokenize("SELECT 'DROP TABLE inventory; --' FROM t")
        assert tokens[1].kind == TokenKind.STRING
        assert all(t.kind != TokenKind.COMMENT for t in tokens)
        assert not any(t.is_punct(";") for t in tokens)

    def test_doubled_quote_escape(self):
        tokens = tokenize("SELECT 'it''s'")
        assert tokens[1].kind == TokenKind.STRING
        assert tokens[1].value == "'it''s'"

    def test_quoted_identifier(self):
        tokens = tokenize('SELECT "Weird ""Name""" FROM t')
        assert tokens[1].kind == TokenKind.QUOTED_IDENT
        assert tokens[1].value == 'Weird "Name"'

    def test_comment_styles(self):
        assert TokenKind.COMMENT in _kinds("SELECT 1 -- trailing")
        assert TokenKind.COMMENT in _kinds("SELECT /* inline */ 1")
        assert TokenKind.COMMENT in _kinds("SELECT 1 # mysql style")
        assert TokenKind.COMMENT in _kinds("SELECT 1 */")

    def test_json_path_operator_is_not_a_comment(self):
        assert TokenKind.COMMENT not in _kinds("SELECT data #> '{a}' FROM t")

    def test_unterminated_string(self):
        assert _kinds("SELECT 'open")[-1] == TokenKind.UNTERMINATED

    def test_unterminated_identifier(self):
        assert _kinds('SELECT "open')[-1] == TokenKind.UNTERMINATED

    def test_dollar_quote_is_ambiguous(self):
        assert TokenKind.AMBIGUOUS in _kinds("SELECT $$text$$")
        assert TokenKind.AMBIGUOUS in _kinds("SELECT $tag$text$tag$")

    def test_escape_string_prefix_is_ambiguous(self):
        assert TokenKind.AMBIGUOUS in _kinds("SELECT E'\\x41'")

    def test_backslash_in_literal_is_ambiguous(self):
        assert TokenKind.AMBIGUOUS in _kinds("SELECT 'a\\'")

    def test_parameters(self):
        assert _kinds("SELECT ?") == [TokenKind.WORD, TokenKind.PARAM]
        assert _kinds("SELECT :name") == [TokenKind.WORD, TokenKind.PARAM]
        assert _kinds("SELECT $1") == [TokenKind.WORD, TokenKind.PARAM]

    def test_cast_is_not_a_parameter(self):
        tokens = tokenize("SELECT x::text")
        assert tokens[2].is_punct("::")
        assert TokenKind.PARAM not in [t.kind for t in tokens]

    def test_never_raises_on_garbage(self):
        for garbage in ["", "'", '"', "$", "/*", "\x00\x01", "((((", "`"]:
            tokenize(garbage)


class TestStructureHelpers:
    """Statement and parenthesis helpers."""

    def test_statement_body_stops_at_terminator(self):
        tokens = significant(tokenize("SELECT 1; DROP TABLE x"))
        assert [t.value for t in statement_body(tokens)] == ["SELECT", "1"]

    def test_paren_depths(self):
        assert paren_depths(tokenize("SELECT ((1))")) == (2, True)
        assert paren_depths(tokenize("SELECT (1")) == (1, False)
        assert paren_depths(tokenize("SELECT 1)")) == (0, False)

    def test_cte_names(self):
        tokens = tokenize(
            "WITH recent AS (SELECT 1), broken (n) AS MATERIALIZED (SELECT 2) SELECT * FROM recent"
        )
        names, main_idx = cte_names(tokens)
        assert names == ["recent", "broken"]
        assert tokens[main_idx].is_word("SELECT")

    def test_malformed_cte(self):
        _, main_idx = cte_names(tokenize("WITH x (SELECT 1) SELECT 1"))
        assert main_idx is None

    def test_no_cte(self):
        assert cte_names(tokenize("SELECT 1")) == ([], 0)


class TestTableReferences:
    """FROM/JOIN walking."""

    def test_from_and_join(self):
        refs, ambiguous = extract_table_refs(
            tokenize("SELECT * FROM tool_changes tc JOIN equipment e ON e.id = tc.equipment_id")
        )
        assert refs == [TableReference("tool_changes"), TableReference("equipment")]
        assert not ambiguous

    def test_comma_list_with_aliases(self):
        refs, _ = extract_table_refs(tokenize("SELECT 1 FROM inventory AS i, endmill_types t"))
        assert [r.name for r in refs] == ["inventory", "endmill_types"]

    def test_schema_qualified(self):
        refs, _ = extract_table_refs(tokenize("SELECT 1 FROM pg_catalog.pg_user"))
        assert refs == [TableReference("pg_user", "pg_catalog")]

    def test_names_fold_to_lower_case(self):
        refs, _ = extract_table_refs(tokenize("SELECT 1 FROM Tool_Changes"))
        assert refs[0].name == "tool_changes"

    def test_subquery_tables_are_found(self):
        refs, ambiguous = extract_table_refs(
            tokenize("SELECT * FROM (SELECT id FROM inventory) AS sub")
        )
        assert [r.name for r in refs] == ["inventory"]
        assert not ambiguous

    def test_extract_from_is_not_a_table(self):
        refs, ambiguous = extract_table_refs(
            tokenize("SELECT EXTRACT(MONTH FROM change_date) FROM tool_changes")
        )
        assert [r.name for r in refs] == ["tool_changes"]
        assert not ambiguous

    def test_is_distinct_from_is_not_a_table(self):
        refs, ambiguous = extract_table_refs(
            tokenize("SELECT 1 FROM inventory WHERE status IS NOT DISTINCT FROM location")
        )
        assert [r.name for r in refs] == ["inventory"]
        assert not ambiguous

    def test_table_function_is_ambiguous(self):
        _, ambiguous = extract_table_refs(tokenize("SELECT * FROM generate_series(1, 10)"))
        assert ambiguous

    def test_literal_after_from_is_ambiguous(self):
        _, ambiguous = extract_table_refs(tokenize("SELECT * FROM 'inventory'"))
        assert ambiguous


class TestFunctionCalls:
    """Function call detection."""

    def test_calls_are_lower_cased(self):
        assert function_calls(tokenize("SELECT COUNT(*), Date_Trunc('month', d) FROM t")) == [
            "count",
            "date_trunc",
        ]

    def test_keywords_are_not_calls(self):
        assert function_calls(tokenize("SELECT 1 WHERE x IN (1, 2) AND EXISTS (SELECT 1)")) == []

    def test_schema_qualified_call(self):
        assert function_calls(tokenize("SELECT public.lower(x)")) == ["public.lower"]

    def test_excluded_names(self):
        assert function_calls(tokenize("SELECT recent(1)"), exclude={"recent"}) == []
