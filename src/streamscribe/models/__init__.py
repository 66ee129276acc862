"""Modelos Pydantic expostos ao caller."""
