"""
Prompt templates for the AI services.

This module contains the system prompts used for ticket extraction
and chat resolution analysis.
"""

from .ticket_extraction import TICKET_EXTRACTION_PROMPT
from .resolution import RESOLUTION_ANALYSIS_PROMPT

__all__ = ["TICKET_EXTRACTION_PROMPT", "RESOLUTION_ANALYSIS_PROMPT"]
