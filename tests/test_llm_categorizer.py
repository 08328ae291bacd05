"""Tests for the LLM classifier tier."""

import pytest

from ledger_sync.core.llm_categorizer import (
    DEFAULT_MODEL,
    LLMCategorizer,
    extract_json_object,
    parse_classifier_result,
)

from conftest import FakeAnthropicClient


def test_extract_json_from_prose():
    """Test JSON surrounded by prose or fences is recovered."""
    text = 'Sure! Here is my answer:\n```json\n{"categoryId": "42", "confidence": 0.9}\n```\nHope that helps.'

    assert extract_json_object(text) == {'categoryId': '42', 'confidence': 0.9}


@pytest.mark.parametrize("text", ["", "I am not sure.", "{not json}", "[1, 2]", "} backwards {"])
def test_extract_json_rejects_non_objects(text):
    """Test unusable responses yield None."""
    assert extract_json_object(text) is None


def test_low_confidence_is_unclear(categories):
    """Test answers under 50% become an unclear suggestion."""
    suggestion = parse_classifier_result(
        {'categoryId': '42', 'categoryName': 'Office Supplies', 'confidence': 0.3, 'reasoning': 'vague'},
        categories,
    )

    assert suggestion.is_unclear
    assert suggestion.category_id is None
    assert suggestion.confidence == 0.3
    assert suggestion.reasoning == 'vague'


def test_answer_is_matched_to_candidates(categories):
    """Test the suggestion is resolved against the candidate list."""
    by_id = parse_classifier_result({'categoryId': 13, 'categoryName': 'whatever', 'confidence': 0.8}, categories)
    by_name = parse_classifier_result({'categoryId': None, 'categoryName': 'office supplies', 'confidence': 1.4},
                                      categories)
    unknown = parse_classifier_result({'categoryId': '999', 'categoryName': 'Yachts', 'confidence': 0.9}, categories)

    assert by_id.category_id == '13'
    assert by_id.category_name == 'Meals'
    assert by_name.category_id == '42'
    assert by_name.confidence == 1.0
    assert unknown is None


def test_classify_calls_model(categories, make_transaction):
    """Test a successful classification round trip."""
    client = FakeAnthropicClient(
        text='{"categoryId": "42", "categoryName": "Office Supplies", "confidence": 0.85, "reasoning": "stationery"}'
    )
    categorizer = LLMCategorizer(client=client)

    suggestion = categorizer.classify(make_transaction(description='Staples #4'), categories)

    assert suggestion.category_name == 'Office Supplies'
    assert suggestion.source == 'ai'
    request = client.requests[0]
    assert request['model'] == DEFAULT_MODEL
    assert request['max_tokens'] == 500
    assert 'Staples #4' in request['messages'][0]['content']
    assert '- Office Supplies (ID: 42)' in request['messages'][0]['content']


def test_classify_failure_returns_none(categories, make_transaction):
    """Test API errors and garbage output yield no suggestion."""
    failing = LLMCategorizer(client=FakeAnthropicClient(error=RuntimeError('rate limited')))
    garbage = LLMCategorizer(client=FakeAnthropicClient(text='no idea, sorry'))

    assert failing.classify(make_transaction(), categories) is None
    assert garbage.classify(make_transaction(), categories) is None


def test_classifier_disabled_without_key(monkeypatch, make_transaction, categories):
    """Test the classifier disables itself when no API key is configured."""
    monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)

    categorizer = LLMCategorizer()

    assert categorizer.enabled is False
    assert categorizer.classify(make_transaction(), categories) is None
