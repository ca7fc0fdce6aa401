"""
Search Result Formatter for huginn

Renders search responses as plain text, schema-validated JSON or an HTML
fragment with highlighted previews.
"""

import html
import json
from datetime import datetime, timezone
from typing import Any, Dict, List

import jsonschema
import numpy as np

from ..core.search import SearchResponse, SearchResult


class ResultFormatter:
    """
    Formats search responses for terminals, tools and web pages.

    Features:
    - Text output with score, location and preview per result
    - JSON output validated against ``OUTPUT_SCHEMA``
    - HTML output reusing the highlighted previews
    - Query improvement tips and context hints
    """

    OUTPUT_SCHEMA = {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "type": "object",
        "properties": {
            "search_metadata": {
                "type": "object",
                "properties": {
                    "query": {"type": "string"},
                    "timestamp": {"type": "string"},
                    "search_time_ms": {"type": "number", "minimum": 0},
                    "total_results": {"type": "integer", "minimum": 0},
                    "total_matching": {"type": "integer", "minimum": 0},
                    "format_version": {"type": "string"},
                },
                "required": ["query", "timestamp", "search_time_ms", "total_results", "format_version"],
            },
            "error": {"type": ["object", "null"]},
            "results": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string"},
                        "title": {"type": "string"},
                        "language": {"type": "string"},
                        "categories": {"type": "array", "items": {"type": "string"}},
                        "relevance_score": {"type": "number", "minimum": 0},
                        "match_counts": {"type": "object"},
                        "matches": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "line": {"type": "integer", "minimum": 1},
                                    "column": {"type": "integer", "minimum": 1},
                                    "text": {"type": "string"},
                                    "match_type": {"enum": ["exact", "partial", "fuzzy", "semantic"]},
                                },
                                "required": ["line", "column", "text", "match_type"],
                            },
                        },
                        "context_preview": {"type": "string"},
                        "highlighted_preview": {"type": "string"},
                    },
                    "required": ["id", "title", "language", "relevance_score", "matches", "context_preview"],
                },
            },
            "suggestions": {
                "type": "object",
                "properties": {
                    "improvement_tips": {"type": "array", "items": {"type": "string"}},
                    "context_hints": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["improvement_tips", "context_hints"],
            },
        },
        "required": ["search_metadata", "results", "suggestions"],
    }

    def __init__(self, validate_schema: bool = True):
        self.validate_schema = validate_schema
        self.format_version = "1.0.0"

    def _convert_numpy_types(self, obj: Any) -> Any:
        """Convert numpy types to native Python types for JSON serialization."""
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, dict):
            return {key: self._convert_numpy_types(value) for key, value in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [self._convert_numpy_types(item) for item in obj]
        return obj

    def format(self, response: SearchResponse, output_format: str = "text") -> str:
        if output_format == "json":
            return self.format_json(response)
        if output_format == "html":
            return self.format_html(response)
        return self.format_text(response)

    def format_json(self, response: SearchResponse) -> str:
        """
        Format a search response as JSON.

        Raises:
            jsonschema.ValidationError: If schema validation fails
        """
        output = {
            "search_metadata": {
                "query": response.query,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "search_time_ms": round(response.elapsed * 1000, 3),
                "total_results": len(response.results),
                "total_matching": response.total_matching,
                "format_version": self.format_version,
            },
            "error": response.error.to_dict() if response.error else None,
            "results": [result.to_dict() for result in response.results],
            "suggestions": self._generate_suggestions(response),
        }

        output = self._convert_numpy_types(output)

        if self.validate_schema:
            try:
                jsonschema.validate(output, self.OUTPUT_SCHEMA)
            except jsonschema.ValidationError as e:
                raise jsonschema.ValidationError(f"Output schema validation failed: {e.message}")

        return json.dumps(output, indent=2, ensure_ascii=False)

    def format_text(self, response: SearchResponse) -> str:
        if response.error is not None:
            return f"Invalid query: {response.error.message}"
        if not response.results:
            return f"No results for '{response.query}'"

        lines = [f"Found {len(response.results)} results for '{response.query}'", ""]
        for position, result in enumerate(response.results, start=1):
            lines.extend(self._format_text_result(position, result))
        return "\n".join(lines).rstrip()

    def _format_text_result(self, position: int, result: SearchResult) -> List[str]:
        entry = result.entry
        first = result.matches[0]
        counts = ", ".join(f"{count} {kind}" for kind, count in result.match_counts.items() if count)
        lines = [
            f"{position}. {entry.title} [{entry.language}] (score: {result.relevance_score:.2f})",
            f"   id: {entry.id}  line {first.line}, column {first.column}  ({counts})",
        ]
        lines.extend(f"   | {line}" for line in result.context_preview.split("\n"))
        lines.append("")
        return lines

    def format_html(self, response: SearchResponse) -> str:
        if response.error is not None:
            return f'<p class="search-error">{html.escape(response.error.message)}</p>'

        items = []
        for result in response.results:
            entry = result.entry
            items.append(
                '<li class="search-result" data-id="{id}">'
                '<h3>{title} <span class="language">{language}</span></h3>'
                '<pre><code>{preview}</code></pre>'
                "</li>".format(
                    id=html.escape(entry.id, quote=True),
                    title=html.escape(entry.title),
                    language=html.escape(entry.language),
                    preview=result.highlighted_preview,
                )
            )
        return '<ol class="search-results">' + "".join(items) + "</ol>"

    def _generate_suggestions(self, response: SearchResponse) -> Dict[str, List[str]]:
        suggestions: Dict[str, List[str]] = {"improvement_tips": [], "context_hints": []}
        results = response.results

        if response.error is not None:
            suggestions["improvement_tips"].append("Escape regex metacharacters or disable regex mode")
        elif not results:
            suggestions["improvement_tips"].extend(
                [
                    "Try broader search terms",
                    "Check for typos in your query",
                    "Enable fuzzy matching for near matches",
                ]
            )
        elif response.total_matching > 20:
            suggestions["improvement_tips"].extend(
                [
                    "Use more specific search terms",
                    "Filter by language or category to narrow results",
                    "Use whole-word matching to skip partial hits",
                ]
            )

        languages = sorted({r.entry.language for r in results[:5]})
        if languages:
            suggestions["context_hints"].append(f"Top results are written in {', '.join(languages)}")
        if any(m.match_type.value == "exact" for r in results for m in r.matches):
            suggestions["context_hints"].append("Exact line matches found")

        return suggestions

    def validate_output(self, output_json: str) -> bool:
        try:
            jsonschema.validate(json.loads(output_json), self.OUTPUT_SCHEMA)
            return True
        except (json.JSONDecodeError, jsonschema.ValidationError):
            return False

    def get_schema(self) -> Dict[str, Any]:
        return self.OUTPUT_SCHEMA.copy()
