"""Safe fallback replies substituted for blocked content."""

from __future__ import annotations

import random
from types import MappingProxyType
from typing import Mapping

from aegis.core.models import GuardrailContext, GuardrailResult, IndustryType

TECHNICAL_FAILURE_RESPONSE = (
    "I apologize, but I'm unable to process your request at this time due to a "
    "technical issue. Please try again later or contact support if the problem persists."
)

DEFAULT_TEMPLATES: tuple[str, ...] = (
    "I apologize, but I cannot process that request to ensure safety and compliance. "
    "How else can I assist you today?",
    "I'm unable to help with that particular request. Is there something else I can assist you with?",
    "That request cannot be completed at this time. Please let me know how else I can help you.",
)

FALLBACK_TEMPLATES: Mapping[IndustryType, tuple[str, ...]] = MappingProxyType({
    IndustryType.REAL_ESTATE: (
        "I apologize, but I cannot provide that information as it may not comply with fair "
        "housing regulations. Let me help you with property details, market insights, or "
        "other real estate questions instead.",
        "I'm unable to assist with that request to ensure compliance with real estate "
        "regulations. How can I help you with property information or market analysis?",
        "That request cannot be processed to maintain compliance with fair housing laws. "
        "I'd be happy to help with property details, pricing information, or market trends instead.",
    ),
    IndustryType.FINANCE: (
        "I cannot provide that information as it may not meet financial compliance standards. "
        "I can help with general market information, investment education, or other "
        "financial topics instead.",
        "That request cannot be processed to ensure regulatory compliance. How can I assist "
        "you with financial planning or market insights?",
        "I'm unable to provide that information to maintain compliance with financial "
        "regulations. Let me help you with other financial topics instead.",
    ),
})


class FallbackResponseGenerator:
    """
    Pick an industry-appropriate fallback reply.

    The random source is injectable so callers can pin the selection.
    """

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    @staticmethod
    def templates_for(industry: IndustryType) -> tuple[str, ...]:
        return FALLBACK_TEMPLATES.get(industry, DEFAULT_TEMPLATES)

    async def generate(self, result: GuardrailResult, context: GuardrailContext) -> str:
        """Select a template for the context's industry."""
        return self.rng.choice(self.templates_for(context.industry))
