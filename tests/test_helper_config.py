import pytest


def test_string_value_is_stripped(helper_config, monkeypatch):
    monkeypatch.setenv("RAG_SAMPLE", "  value  ")
    assert helper_config.get_string_val("RAG_SAMPLE") == "value"


def test_key_lookup_is_case_insensitive(helper_config, monkeypatch):
    monkeypatch.setenv("RAG_SAMPLE", "x")
    assert helper_config.get_string_val("rag_sample") == "x"


def test_missing_key_without_default_raises(helper_config):
    with pytest.raises(ValueError, match="RAG_MISSING"):
        helper_config.get_string_val("RAG_MISSING")


def test_empty_value_falls_back_to_default(helper_config, monkeypatch):
    monkeypatch.setenv("RAG_SAMPLE", "   ")
    assert helper_config.get_string_val("RAG_SAMPLE", default="fallback") == "fallback"


def test_number_parsing(helper_config, monkeypatch):
    monkeypatch.setenv("RAG_INT", "42")
    monkeypatch.setenv("RAG_FLOAT", "0.25")
    assert helper_config.get_number_val("RAG_INT") == 42
    assert isinstance(helper_config.get_number_val("RAG_INT"), int)
    assert helper_config.get_number_val("RAG_FLOAT") == 0.25


def test_invalid_number_raises(helper_config, monkeypatch):
    monkeypatch.setenv("RAG_INT", "many")
    with pytest.raises(ValueError, match="not a valid number"):
        helper_config.get_number_val("RAG_INT")


def test_int_value_lower_bound(helper_config, monkeypatch):
    monkeypatch.setenv("RAG_INT", "0")
    with pytest.raises(ValueError, match=">= 1"):
        helper_config.get_int_val("RAG_INT", default=5, min_val=1)


def test_int_value_rejects_fraction(helper_config, monkeypatch):
    monkeypatch.setenv("RAG_INT", "2.5")
    with pytest.raises(ValueError, match="integer"):
        helper_config.get_int_val("RAG_INT", default=1)


def test_float_value_range(helper_config, monkeypatch):
    monkeypatch.setenv("RAG_RATIO", "1.5")
    with pytest.raises(ValueError, match="<= 1.0"):
        helper_config.get_float_val("RAG_RATIO", default=0.5, min_val=0.0, max_val=1.0)
    monkeypatch.setenv("RAG_RATIO", "1")
    assert helper_config.get_float_val("RAG_RATIO", default=0.5, min_val=0.0, max_val=1.0) == 1.0


@pytest.mark.parametrize("raw, expected", [("true", True), ("1", True), ("YES", True), ("no", False), ("0", False)])
def test_bool_value(helper_config, monkeypatch, raw, expected):
    monkeypatch.setenv("RAG_FLAG", raw)
    assert helper_config.get_bool_val("RAG_FLAG", default=False) is expected


def test_list_value(helper_config, monkeypatch):
    monkeypatch.setenv("RAG_LIST", "[a, b ,c]")
    assert helper_config.get_list_val("RAG_LIST") == ["a", "b", "c"]
    monkeypatch.setenv("RAG_LIST", "[1,2]")
    assert helper_config.get_list_val("RAG_LIST", element_type=int) == [1, 2]


def test_list_value_optional_with_default(helper_config):
    assert helper_config.get_list_val("RAG_LIST", default=[]) == []


def test_list_value_requires_brackets(helper_config, monkeypatch):
    monkeypatch.setenv("RAG_LIST", "a,b")
    with pytest.raises(ValueError, match="format"):
        helper_config.get_list_val("RAG_LIST")
