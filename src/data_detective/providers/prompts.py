from __future__ import annotations

import json
from dataclasses import dataclass

from ..models import AnalysisContext, DataInsights, Message
from .catalog import ProviderKind

_BASE_SYSTEM_PROMPT = (
    "You are a data analysis expert specializing in business intelligence and statistical analysis. "
    "Provide precise, actionable insights based on the data context provided. "
    "You MUST NOT invent facts that the data context does not support."
)

_SYSTEM_SUFFIX: dict[ProviderKind, str] = {
    ProviderKind.REASONING: (
        "Think step-by-step through complex patterns and relationships in the data. "
        "Focus on nuanced interpretations and sophisticated analysis techniques."
    ),
    ProviderKind.SEARCH: (
        "Use your real-time knowledge to provide current market context and industry benchmarks. "
        "Compare findings with recent trends and external data sources when relevant."
    ),
    ProviderKind.GENERAL: (
        "Focus on statistical patterns, business implications, and specific recommendations. "
        "Be thorough but concise."
    ),
}

_REQUESTED_SECTIONS: dict[ProviderKind, list[str]] = {
    ProviderKind.REASONING: [
        "A direct, reasoned answer to the research question with logical steps",
        "Deep statistical insights with sophisticated interpretations",
        "Pattern recognition and relationship analysis",
        "Strategic business implications with detailed reasoning",
        "Recommendations for next analytical steps",
        "Data quality assessment with improvement suggestions",
    ],
    ProviderKind.SEARCH: [
        "A direct answer to the research question",
        "Key statistical insights compared to industry standards",
        "Current market context and recent trends (if applicable)",
        "Business implications with real-world examples",
        "Data quality observations and external validation opportunities",
    ],
    ProviderKind.GENERAL: [
        "A direct answer to the research question",
        "Key statistical insights from the data",
        "Business implications and recommendations",
        "Potential next analysis steps",
        "Data quality observations",
    ],
}

MAX_SAMPLE_CHARS = 500


@dataclass(frozen=True)
class GenerationSettings:
    max_tokens: int
    temperature: float


GENERATION_SETTINGS: dict[ProviderKind, GenerationSettings] = {
    ProviderKind.REASONING: GenerationSettings(max_tokens=3000, temperature=0.3),
    ProviderKind.SEARCH: GenerationSettings(max_tokens=2500, temperature=0.2),
    ProviderKind.GENERAL: GenerationSettings(max_tokens=2000, temperature=0.7),
}


def build_system_prompt(kind: ProviderKind) -> str:
    return f"{_BASE_SYSTEM_PROMPT} {_SYSTEM_SUFFIX[kind]}"


def build_analysis_prompt(context: AnalysisContext, insights: DataInsights, kind: ProviderKind) -> str:
    sample = json.dumps(insights.sample_data, default=str)[:MAX_SAMPLE_CHARS]
    lines = [
        "Analyze the following data context and answer the research question.",
        "",
        f"**Research Question:** {context.question}",
        "",
        "**Data Context:**",
        f"- File Types: {', '.join(context.file_types) or 'unknown'}",
        f"- Data Source: {context.data_source}",
        f"- Total Rows: {insights.row_count}",
        f"- Total Columns: {insights.column_count}",
        f"- Column Types: {', '.join(t.value for t in insights.column_types)}",
        f"- Sample Data Structure: {sample}",
        "",
        "**Data Insights:**",
    ]
    lines.extend(f"- {p}" for p in insights.patterns)
    lines.append("")
    lines.append("Please provide:")
    lines.extend(f"{i}. {s}" for i, s in enumerate(_REQUESTED_SECTIONS[kind], start=1))
    lines.append("")
    lines.append(
        "Focus on actionable insights that can drive business decisions. "
        "Be specific and provide concrete examples where possible."
    )
    return "\n".join(lines)


def build_messages(context: AnalysisContext, insights: DataInsights, kind: ProviderKind) -> list[Message]:
    return [
        Message(role="system", content=build_system_prompt(kind)),
        Message(role="user", content=build_analysis_prompt(context, insights, kind)),
    ]
