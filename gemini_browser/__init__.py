"""
Gemini Browser - a Gemini agent that drives Chrome through DevTools MCP.

Turns a natural-language task into browser actions step by step, using
Gemini's forced function calling, until the model reports an answer.
"""

__version__ = "0.1.0"
__author__ = "Gemini Browser Contributors"
