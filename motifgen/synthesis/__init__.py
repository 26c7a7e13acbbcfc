"""Definition synthesis from accepted discoveries."""

from .hints import render_hints
from .synthesizer import DEFAULT_ACCEPTANCE_BAR, DefinitionSynthesizer, method_role

__all__ = ["DEFAULT_ACCEPTANCE_BAR", "DefinitionSynthesizer", "method_role", "render_hints"]
