"""
Integrations Module - External Model Providers
==============================================

Adapters that put OpenAI, Azure OpenAI and Anthropic behind one
``complete`` call used by the intelligence gateway.
"""
