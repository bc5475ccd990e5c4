"""Interactive terminal input and result output."""
import sys
from typing import Sequence, TextIO

from docsearch.rag.chunker import Passage
from docsearch.rag.ranker import ScoredResult

QUERY_PROMPT = "What would you like to know about the document?: "


def prompt_query(prompt: str = QUERY_PROMPT) -> str:
    """Read one query line from stdin."""
    try:
        return input(prompt).strip()
    except EOFError:
        return ""


def format_result(result: ScoredResult, passages: Sequence[Passage]) -> str:
    passage = passages[result.passage_index]
    return f"Passage {passage.index} (similarity: {result.similarity:.4f}): {passage.text}"


def render_results(
    query: str,
    results: Sequence[ScoredResult],
    passages: Sequence[Passage],
    out: TextIO = None,
) -> None:
    """Print ranked passages, best first.

    Args:
        query: The query the results answer
        results: Ranked results from the ranker
        passages: All passages of the document, indexed by passage index
        out: Stream to write to (default stdout)
    """
    out = out or sys.stdout

    if not passages:
        print("No passages found in document.", file=out)
        return

    print(f'Results for query "{query}":', file=out)
    for result in results:
        print(format_result(result, passages), file=out)
