"""
Citation graph of a vault.

Hub documents represent one OpenAlex work each. This package provides:
- the registry indexing existing hubs by OpenAlex id and parent paper
- the merger creating hubs and merging new edges into them
- the expander walking one level out through references and citing works
"""

from .expander import ExpansionLimits, ExpansionResult, GraphExpander
from .hubs import HubMerger, render_hub
from .registry import HubHeader, HubRegistry, parse_hub

__all__ = [
    "ExpansionLimits",
    "ExpansionResult",
    "GraphExpander",
    "HubMerger",
    "HubHeader",
    "HubRegistry",
    "parse_hub",
    "render_hub",
]
