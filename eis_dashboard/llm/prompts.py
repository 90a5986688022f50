"""Instructions and report schemas per analysis topic."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, Literal

from eis_dashboard.models.measurement import DatasetKind, MeasurementPoint

Topic = Literal["general", "soil", "plant"]
TOPICS: tuple[str, ...] = ("general", "soil", "plant")

_GENERAL_INSTRUCTIONS = """You are an expert in Electrochemical Impedance Spectroscopy (EIS).
The user has provided sweep data. Give a brief, one-paragraph summary of what the data represents (e.g., capacitive, resistive, diffusion-limited behaviour).
Then list 2-3 key metrics or observations.
All measurements are below 5 kHz."""

_SOIL_INSTRUCTIONS = """You are an agricultural EIS expert. The data comes from a soil sample (below 5 kHz).
Estimate moisture and salinity from the data.
- Moisture: correlates with the phase angle at low frequencies (e.g., 100 Hz). A more negative phase suggests higher moisture.
- Salinity: correlates with the overall impedance magnitude at high frequencies (e.g., 5 kHz). Lower impedance suggests higher salinity."""

_SOIL_SWEEP_FOCUS = "Provide a summary and specific metrics for moisture and salinity."

_SOIL_MAP_FOCUS = """The user provided a 2D tomography map. Your analysis MUST focus on SPATIAL VARIATION.
Identify areas (e.g., 'Top-Left', 'Center') of high or low moisture and salinity."""

_PLANT_INSTRUCTIONS = """You are a plant pathologist using EIS. The data comes from a plant stem or leaf (below 5 kHz).
Look for signs of early stress or disease.
- Stress (e.g., dehydration, nutrient loss): often increases overall impedance.
- Disease (e.g., cell wall breakdown): often decreases impedance, especially at low frequencies, and shifts the phase.
Provide a summary and metrics for plant health."""

_TREND_ADDENDUM = """--- TASK: TREND ANALYSIS ---
The user has provided historical context for this *same subject*.
Your primary task is to compare the NEW data to that context. Look specifically for:
1. **Magnitude trend:** is the impedance at key frequencies (e.g., 100 Hz, 5 kHz) increasing or decreasing over time?
2. **Phase trend:** is the low-frequency phase (e.g., 100 Hz) becoming more or less negative?
3. **Anomaly detection:** is this reading a significant deviation from the historical average, or part of a stable trend?
Your summary *must* include this trend analysis."""

_JSON_INSTRUCTION = """Provide your final answer as a single, valid JSON object matching this schema.
Output ONLY the JSON object. No markdown, no text outside the JSON.

{schema}"""

FOLLOW_UP_INSTRUCTIONS = """You are an expert EIS assistant.
The user has provided data and a subject context, and you have already given an initial analysis.
Answer the user's follow-up question based on the *entire* conversation so far.
Be helpful and concise. If the user asks for new metrics, provide them."""


def report_schema(
    title_hint: str,
    summary_hint: str,
    metric_hints: tuple[str, str, str],
) -> dict[str, Any]:
    """JSON schema of a StructuredReport. Topics only change descriptions."""
    name_hint, value_hint, insight_hint = metric_hints
    return {
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": title_hint},
            "summary": {"type": "string", "description": summary_hint},
            "metrics": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": name_hint},
                        "value": {"type": "string", "description": value_hint},
                        "insight": {"type": "string", "description": insight_hint},
                    },
                    "required": ["name", "value", "insight"],
                },
            },
        },
        "required": ["title", "summary", "metrics"],
    }


def topic_instructions(topic: str, kind: DatasetKind, has_history: bool) -> str:
    """System instructions for the first, structured exchange."""
    if topic == "soil":
        focus = _SOIL_MAP_FOCUS if kind == "map" else _SOIL_SWEEP_FOCUS
        parts = [_SOIL_INSTRUCTIONS, focus]
    elif topic == "plant":
        parts = [_PLANT_INSTRUCTIONS]
    elif topic == "general":
        parts = [_GENERAL_INSTRUCTIONS]
    else:
        raise ValueError(f"Unknown analysis topic {topic!r}; expected one of {', '.join(TOPICS)}")
    if has_history:
        parts.append(_TREND_ADDENDUM)
    return "\n\n".join(parts)


def topic_schema(topic: str, kind: DatasetKind) -> dict[str, Any]:
    if topic == "soil":
        is_map = kind == "map"
        return report_schema(
            title_hint="e.g., '2D Soil Map Analysis'" if is_map else "e.g., 'Soil Analysis Report'",
            summary_hint="A one-paragraph summary of soil health."
            + (" Focus on spatial variations." if is_map else ""),
            metric_hints=(
                "e.g., 'Moisture Index' or 'Salinity (Spatial)'",
                "e.g., 'High' or 'High in center, low at edges'",
                "e.g., 'Based on low-freq phase' or 'Based on high-freq magnitude map'",
            ),
        )
    if topic == "plant":
        return report_schema(
            title_hint="e.g., 'Plant Health Analysis'",
            summary_hint="A one-paragraph summary of plant health.",
            metric_hints=(
                "e.g., 'Stress Level' or 'Disease Indicator'",
                "e.g., 'High' or 'Potential cell degradation'",
                "e.g., 'Based on high impedance' or 'Based on low-freq phase shift'",
            ),
        )
    if topic == "general":
        return report_schema(
            title_hint="e.g., 'General EIS Analysis'",
            summary_hint="A one-paragraph summary.",
            metric_hints=(
                "Name of the metric (e.g., 'Low-Freq Behavior')",
                "Value (e.g., 'Capacitive')",
                "Brief insight",
            ),
        )
    raise ValueError(f"Unknown analysis topic {topic!r}; expected one of {', '.join(TOPICS)}")


def json_output_instruction(schema: dict[str, Any]) -> str:
    return _JSON_INSTRUCTION.format(schema=json.dumps(schema, indent=2))


def render_dataset_summary(points: Sequence[MeasurementPoint], kind: DatasetKind) -> str:
    if kind == "map":
        freqs = sorted({p.frequency for p in points})
        coords = {p.coordinate for p in points}
        lines = [
            "Type: 2D Tomography Map",
            f"Frequencies: {', '.join(f'{f:g}' for f in freqs)} Hz",
            f"Spatial Points: {len(coords)}",
            "Data summary (first 5 points):",
        ]
        lines.extend(
            f"(x:{p.x:g}, y:{p.y:g}) @ {p.frequency:g}Hz: {p.magnitude:.0f}Ω, {p.phase_degrees:.1f}°"
            for p in points[:5]
        )
        return "\n".join(lines)

    lines = ["Type: 1D Frequency Sweep"]
    lines.extend(
        f"Freq: {p.frequency:.0f} Hz, Mag: {p.magnitude:.2f} Ω, Phase: {p.phase_degrees:.2f}°"
        for p in points
    )
    return "\n".join(lines)


def first_turn_text(digest: str, dataset_summary: str) -> str:
    return (
        f"{digest}"
        "Here is the NEW data to analyze:\n"
        f"{dataset_summary}\n"
        "Please provide the analysis for the NEW data, comparing it to the historical context if provided."
    )
