"""
LLM Categorizer

Uses the Claude API to suggest a category for transactions no rule covers.
The model is asked for a single JSON object; free text around it is
tolerated, anything unparsable is treated as "no suggestion".

A suggestion below 50% confidence comes back as an explicit "unclear"
Suggestion (no category), never as a guess.
"""
import json
import os
from typing import Dict, List, Optional

import anthropic

from .models import (
    SOURCE_AI,
    UNCLEAR_THRESHOLD,
    Category,
    Suggestion,
    Transaction,
)


DEFAULT_MODEL = 'claude-sonnet-4-20250514'


def extract_json_object(response_text: str) -> Optional[Dict]:
    """
    Pull the JSON object out of a model response

    Handles bare JSON, JSON inside markdown fences and JSON with prose
    before/after it.

    Returns:
        Parsed dict, or None if there is no parsable object
    """
    if not response_text:
        return None

    start_idx = response_text.find('{')
    end_idx = response_text.rfind('}')
    if start_idx == -1 or end_idx < start_idx:
        return None

    try:
        result = json.loads(response_text[start_idx:end_idx + 1])
    except json.JSONDecodeError as e:
        print(f"⚠️  LLM response not valid JSON: {e}")
        return None

    if not isinstance(result, dict):
        return None
    return result


def _find_category(categories: List[Category], category_id, category_name) -> Optional[Category]:
    if category_id is not None:
        for cat in categories:
            if cat.id == str(category_id):
                return cat
    if category_name:
        lower = str(category_name).lower()
        for cat in categories:
            if cat.name.lower() == lower or cat.fully_qualified_name.lower() == lower:
                return cat
    return None


def parse_classifier_result(result: Optional[Dict], categories: List[Category]) -> Optional[Suggestion]:
    """
    Validate a parsed classifier answer against the candidate categories

    Args:
        result: Dict with categoryId, categoryName, confidence, reasoning
        categories: Candidate categories the model was shown

    Returns:
        Suggestion (possibly the "unclear" one), or None if the answer is unusable
    """
    if not result:
        return None

    try:
        confidence = float(result.get('confidence') or 0.0)
    except (TypeError, ValueError):
        print(f"⚠️  LLM response has invalid confidence: {result.get('confidence')!r}")
        return None
    confidence = max(0.0, min(1.0, confidence))

    reasoning = result.get('reasoning')
    category_id = result.get('categoryId')
    category_name = result.get('categoryName')

    if confidence < UNCLEAR_THRESHOLD or (category_id is None and not category_name):
        return Suggestion(
            category_id=None,
            category_name=None,
            confidence=confidence,
            source=SOURCE_AI,
            reasoning=reasoning,
        )

    if not categories:
        return Suggestion(
            category_id=str(category_id) if category_id is not None else None,
            category_name=category_name,
            confidence=confidence,
            source=SOURCE_AI,
            reasoning=reasoning,
        )

    category = _find_category(categories, category_id, category_name)
    if category is None:
        print(f"⚠️  LLM suggested unknown category: {category_name} (ID: {category_id})")
        return None

    return Suggestion(
        category_id=category.id,
        category_name=category.name,
        confidence=confidence,
        source=SOURCE_AI,
        reasoning=reasoning,
    )


class LLMCategorizer:
    """
    Categorizes transactions using Claude API
    """

    def __init__(self,
                 api_key: Optional[str] = None,
                 model: str = DEFAULT_MODEL,
                 client=None):
        """
        Args:
            api_key: Anthropic API key (or read from ANTHROPIC_API_KEY env var)
            model: Model name
            client: Pre-built client (anything with messages.create); skips key lookup
        """
        self.model = model

        if client is not None:
            self.client = client
            self.enabled = True
            return

        self.api_key = api_key or os.environ.get('ANTHROPIC_API_KEY')
        if not self.api_key:
            print("⚠️  Warning: No ANTHROPIC_API_KEY found. LLM categorization disabled.")
            self.client = None
            self.enabled = False
        else:
            self.client = anthropic.Anthropic(api_key=self.api_key)
            self.enabled = True

    def build_prompt(self, transaction: Transaction, categories: List[Category]) -> str:
        """Build the single-transaction prompt"""
        category_list = '\n'.join(f"- {c.name} (ID: {c.id})" for c in categories)

        return f"""You are a bookkeeper categorizing a business expense transaction.

Transaction details:
- Description: {transaction.description}
- Vendor: {transaction.counterparty_name or 'Unknown'}
- Amount: ${abs(transaction.amount):.2f}
- Date: {transaction.date.isoformat()}

Available expense categories:
{category_list}

Based on the transaction description and vendor, which category best fits this expense?

Respond in JSON format only:
{{
    "categoryId": "the ID of the best matching category",
    "categoryName": "the name of the category",
    "confidence": 0.0 to 1.0 (how confident you are),
    "reasoning": "brief explanation of why you chose this category"
}}

If you cannot determine a category with at least 50% confidence, respond:
{{
    "categoryId": null,
    "categoryName": null,
    "confidence": 0,
    "reasoning": "explanation of why it's unclear"
}}"""

    def classify(self, transaction: Transaction, categories: List[Category]) -> Optional[Suggestion]:
        """
        Suggest a category using the LLM

        Args:
            transaction: Normalized transaction
            categories: Candidate categories

        Returns:
            Suggestion (possibly "unclear"), or None if disabled, failed or unparsable
        """
        if not self.enabled:
            return None

        prompt = self.build_prompt(transaction, categories)

        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=500,
                temperature=0.0,
                messages=[{
                    "role": "user",
                    "content": prompt
                }]
            )
            response_text = message.content[0].text.strip()
        except Exception as e:
            print(f"⚠️  LLM categorization failed for {transaction.id}: {e}")
            return None

        return parse_classifier_result(extract_json_object(response_text), categories)
