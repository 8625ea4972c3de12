"""
DCF Assumption Suggestions

This package generates AI-suggested DCF assumption sets from company
financials using Financial Modeling Prep data and an OpenAI chat model.
"""

from suggestions.suggestion_service import OpenAISuggestionService, SuggestionService

__all__ = ['SuggestionService', 'OpenAISuggestionService']
