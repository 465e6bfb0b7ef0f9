"""OpenAI GPT client for personal finance suggestions."""

import logging

from openai import OpenAI, OpenAIError

from ..exceptions import OpenAIAPIError

logger = logging.getLogger(__name__)


class FinancialAdvisor:
    """GPT-based analyst producing suggestions from a financial profile."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        """Initialize the advisor."""
        self.client = OpenAI(api_key=api_key)
        self.model = model

    def get_suggestions(self, profile: str) -> str:
        """
        Ask GPT for a financial health analysis of the given profile.

        Args:
            profile: Profile text from build_financial_profile

        Returns:
            The analysis text, ending with follow-up questions

        Raises:
            OpenAIAPIError: If the request fails or returns nothing
        """
        system_prompt = """You are RupIQ, a professional and insightful personal finance analyst.
Perform a comprehensive, user-specific financial health analysis covering income, expenses, savings, investments, debt, and progress towards goals.
Provide actionable recommendations and explain your reasoning clearly.

After your analysis, add a distinct section titled:
---
Key Questions for Deeper Insight:
---
List 3-5 specific clarifying questions that would help you give more tailored advice."""

        user_prompt = f"""{profile}

Begin your analysis now:"""

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=0.7,
            )
        except OpenAIError as e:
            raise OpenAIAPIError(f"Failed to fetch suggestions: {e}") from e

        content = response.choices[0].message.content
        if not content:
            raise OpenAIAPIError("Empty response from OpenAI")

        logger.info(f"Received {len(content)} characters of suggestions")

        return content
