"""Data transform executor: CSV/JSON conversion, field mapping, row filtering."""

import csv
import io
import json
from typing import Any

from src.novohaven.executors.base import (
    ExecutorContext,
    ExecutorResult,
    StepExecutor,
    ValidationResult,
    merged_config,
)
from src.novohaven.executors.row_filter import FilterExpressionError, RowFilter
from src.novohaven.models import RecipeStep
from src.novohaven.schemas.executor import ConfigField, ConfigFieldOption
from src.novohaven.services.prompt_compiler import stringify

TRANSFORM_TYPES = ("csv_to_json", "json_to_csv", "field_map", "filter")


def csv_to_rows(text: str, delimiter: str = ",") -> list[dict[str, str]]:
    """Parse CSV with a header row into dicts. Fewer than two lines gives []."""
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        return []
    reader = csv.reader(lines, delimiter=delimiter)
    header = [field.strip() for field in next(reader)]
    rows = []
    for values in reader:
        values = [value.strip() for value in values]
        rows.append({name: values[i] if i < len(values) else "" for i, name in enumerate(header)})
    return rows


def rows_to_csv(rows: list[dict[str, Any]], delimiter: str = ",") -> str:
    """Render dicts as CSV using the first row's keys as the header."""
    if not rows:
        return ""
    header = list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(["" if row.get(name) is None else row.get(name) for name in header])
    return buffer.getvalue().rstrip("\n")


def _parse_json_rows(text: str) -> list[Any]:
    parsed = json.loads(text)
    return parsed if isinstance(parsed, list) else [parsed]


class TransformExecutor(StepExecutor):
    type = "transform"
    display_name = "Data Transform"
    icon = "🔄"
    description = "Transform data between formats (CSV/JSON), map fields, or filter rows"

    def _config(self, step: RecipeStep) -> dict[str, Any]:
        return merged_config(
            {"transform_type": "csv_to_json", "delimiter": ",", "input_source": "auto"},
            step.executor_config,
        )

    def validate_config(self, step: RecipeStep) -> ValidationResult:
        config = self._config(step)
        result = ValidationResult()
        transform_type = config["transform_type"]
        if transform_type not in TRANSFORM_TYPES:
            result.errors.append(
                "Transform type must be csv_to_json, json_to_csv, field_map, or filter"
            )
        if transform_type == "field_map" and not config.get("mapping"):
            result.errors.append("Field mapping is required for field_map transform")
        if transform_type == "filter" and not config.get("filter_expression"):
            result.errors.append("Filter expression is required for filter transform")
        if len(config["delimiter"]) != 1:
            result.errors.append("Delimiter must be a single character")
        return result

    def _input(self, context: ExecutorContext, input_source: str) -> str:
        """The named user input, else the most recent completed step's content."""
        if input_source and input_source != "auto":
            value = context.user_inputs.get(input_source)
            if value:
                return stringify(value)
        completed = context.completed_step_executions
        if not completed:
            return ""
        content = completed[-1].content
        if content is None:
            return ""
        return stringify(content)

    def _rows(self, text: str, delimiter: str) -> list[Any]:
        """JSON rows, falling back to CSV; empty when neither parses."""
        try:
            return _parse_json_rows(text)
        except json.JSONDecodeError:
            return csv_to_rows(text, delimiter)

    async def execute(self, step: RecipeStep, context: ExecutorContext) -> ExecutorResult:
        config = self._config(step)
        transform_type = config["transform_type"]
        delimiter = config["delimiter"]
        text = self._input(context, config["input_source"])
        if not text:
            return ExecutorResult.failure("No input data available to transform")

        try:
            match transform_type:
                case "csv_to_json":
                    output = json.dumps(csv_to_rows(text, delimiter), indent=2)
                case "json_to_csv":
                    try:
                        rows = _parse_json_rows(text)
                    except json.JSONDecodeError:
                        return ExecutorResult.failure(
                            "Input is not valid JSON for json_to_csv transform"
                        )
                    output = rows_to_csv(rows, delimiter)
                case "field_map":
                    rows = self._rows(text, delimiter)
                    if not rows:
                        return ExecutorResult.failure(
                            "Input could not be parsed as JSON or CSV for field mapping"
                        )
                    mapping: dict[str, str] = config.get("mapping") or {}
                    mapped = [
                        {target: row.get(source) for source, target in mapping.items()}
                        for row in rows
                    ]
                    output = json.dumps(mapped, indent=2)
                case "filter":
                    rows = self._rows(text, delimiter)
                    if not rows:
                        return ExecutorResult.failure(
                            "Input could not be parsed as JSON or CSV for filtering"
                        )
                    row_filter = RowFilter(config.get("filter_expression") or "true")
                    kept = [
                        row for row in rows if isinstance(row, dict) and row_filter.matches(row)
                    ]
                    output = json.dumps(kept, indent=2)
                case _:
                    return ExecutorResult.failure(f"Unknown transform type: {transform_type}")
        except (FilterExpressionError, csv.Error, AttributeError, TypeError) as e:
            return ExecutorResult.failure(str(e) or "Transform failed")

        return ExecutorResult(
            success=True,
            content=output,
            metadata={
                "transform_type": transform_type,
                "input_length": len(text),
                "output_length": len(output),
            },
            prompt_used=f"[transform] {transform_type}",
            model_used="transform",
        )

    def get_config_schema(self) -> list[ConfigField]:
        return [
            ConfigField(
                name="transform_type",
                label="Transform Type",
                type="select",
                required=True,
                default_value="csv_to_json",
                options=[
                    ConfigFieldOption(value="csv_to_json", label="CSV → JSON"),
                    ConfigFieldOption(value="json_to_csv", label="JSON → CSV"),
                    ConfigFieldOption(value="field_map", label="Field Mapping"),
                    ConfigFieldOption(value="filter", label="Filter Rows"),
                ],
            ),
            ConfigField(
                name="mapping",
                label="Field Mapping",
                type="json",
                help_text=(
                    "JSON object mapping source fields to target fields. "
                    'Example: {"old_name": "new_name"}'
                ),
            ),
            ConfigField(
                name="filter_expression",
                label="Filter Expression",
                type="text",
                help_text='Expression over "row". Example: row.price > 100',
            ),
            ConfigField(
                name="input_source",
                label="Input Source",
                type="text",
                default_value="auto",
                help_text='Variable name or "auto" (default) to use previous step output',
            ),
            ConfigField(
                name="delimiter",
                label="CSV Delimiter",
                type="text",
                default_value=",",
                help_text="Delimiter for CSV parsing/generation",
            ),
        ]
