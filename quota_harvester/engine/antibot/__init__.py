"""Anti-bot strategy chain and page classification."""

from .chain import AntiBotChain, AntiBotContext, PageDirective
from .detection import PageInspector, PageVerdict
from .strategies import build_chain

__all__ = [
    "AntiBotChain",
    "AntiBotContext",
    "PageDirective",
    "PageInspector",
    "PageVerdict",
    "build_chain",
]
