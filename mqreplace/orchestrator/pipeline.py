"""Build a replacer for a list of pairs and run one scan over a text."""

from __future__ import annotations

from collections.abc import Sequence

from mqreplace.orchestrator.replacer import MultiReplacer
from mqreplace.orchestrator.scan import Confirmer, perform_replace
from mqreplace.patterns.models import Pair
from mqreplace.render.context import description_scope
from mqreplace.render.models import ReplaceOutput
from mqreplace.rules.models import ReplaceOptions


def run_replace(
    text: str,
    pairs: Sequence[Pair],
    options: ReplaceOptions | None = None,
    confirmer: Confirmer | None = None,
) -> ReplaceOutput:
    """Replace every pair's matches in ``text`` in a single pass.

    Pattern and template syntax errors are raised before any scanning.
    """

    options = options or ReplaceOptions()
    with description_scope(options.regex):
        replacer = MultiReplacer(pairs, options)
        return perform_replace(text, replacer, options, confirmer)
