"""Keyword-based intent classification for legal chat messages.

Every message is scored against three keyword families (drafting a filing,
strategic analysis, legal research). The winning profile selects the
generation parameters for the active provider family: thinking budget,
reasoning effort, output size and whether web search is worth the cost.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Literal

IntentProfile = Literal["simples", "pesquisa", "analise", "peca"]
ProviderFamily = Literal["claude", "gpt5", "gemini"]
ReasoningEffort = Literal["none", "low", "medium", "high"]
Verbosity = Literal["low", "medium", "high"]
ThinkingLevel = Literal["minimal", "low", "medium", "high"]


@dataclass(frozen=True)
class ThinkingConfig:
    enabled: bool
    budget_tokens: int


@dataclass(frozen=True)
class ClaudeIntentConfig:
    profile: str
    thinking: ThinkingConfig
    use_web_search: bool
    max_tokens: int


@dataclass(frozen=True)
class GPT5IntentConfig:
    profile: str
    reasoning_effort: str
    verbosity: str
    max_output_tokens: int
    use_web_search: bool


@dataclass(frozen=True)
class GeminiIntentConfig:
    profile: str
    thinking_level: str
    max_output_tokens: int
    use_web_search: bool


IntentConfig = ClaudeIntentConfig | GPT5IntentConfig | GeminiIntentConfig

# Order matters: on equal counts the earlier profile wins.
_KEYWORDS: dict[str, tuple[str, ...]] = {
    "peca": (
        "elabore", "redija", "escreva", "faça", "crie", "monte", "prepare",
        "petição", "peticao", "recurso", "contestação", "contestacao",
        "apelação", "apelacao", "agravo", "embargo", "mandado", "inicial",
        "contrarrazões", "contrarrazoes", "réplica", "replica", "defesa",
        "parecer", "minuta", "contrato", "procuração", "procuracao",
        "notificação", "notificacao", "interpelação", "interpelacao",
    ),
    "analise": (
        "analise", "avalie", "examine", "verifique", "revise", "compare",
        "estratégia", "estrategia", "viabilidade", "probabilidade", "chances",
        "riscos", "prós e contras", "pros e contras", "fundamentação",
        "fundamentacao", "argumentação", "argumentacao", "tese", "antítese",
        "melhor abordagem", "como proceder", "qual caminho", "recomendação",
        "recomendacao", "opinião", "opiniao", "entendimento",
    ),
    "pesquisa": (
        "busque", "pesquise", "encontre", "procure", "localize",
        "jurisprudência", "jurisprudencia", "decisões", "decisoes", "julgados",
        "súmula", "sumula", "precedente", "entendimento", "posição", "posicao",
        "tribunal", "stf", "stj", "trf", "tjsp", "tjrj", "recente", "atual",
        "atualizado", "2024", "2025", "última", "ultima", "novo", "nova",
        "mudança", "mudanca", "alteração", "alteracao",
    ),
}

_CLAUDE_PROFILES: dict[str, ClaudeIntentConfig] = {
    "simples": ClaudeIntentConfig("simples", ThinkingConfig(False, 0), False, 4096),
    "pesquisa": ClaudeIntentConfig("pesquisa", ThinkingConfig(False, 0), True, 8192),
    "analise": ClaudeIntentConfig("analise", ThinkingConfig(True, 10000), False, 8192),
    "peca": ClaudeIntentConfig("peca", ThinkingConfig(True, 16000), False, 16384),
}

_GPT5_PROFILES: dict[str, GPT5IntentConfig] = {
    "simples": GPT5IntentConfig("simples", "none", "low", 2048, False),
    "pesquisa": GPT5IntentConfig("pesquisa", "low", "medium", 4096, True),
    "analise": GPT5IntentConfig("analise", "medium", "medium", 4096, False),
    "peca": GPT5IntentConfig("peca", "high", "high", 8192, False),
}

_GEMINI_PROFILES: dict[str, GeminiIntentConfig] = {
    "simples": GeminiIntentConfig("simples", "minimal", 2048, False),
    "pesquisa": GeminiIntentConfig("pesquisa", "low", 4096, True),
    "analise": GeminiIntentConfig("analise", "high", 4096, False),
    "peca": GeminiIntentConfig("peca", "high", 8192, False),
}

_PROFILE_TABLES: dict[str, dict] = {
    "claude": _CLAUDE_PROFILES,
    "gpt5": _GPT5_PROFILES,
    "gemini": _GEMINI_PROFILES,
}

_PROFILE_DESCRIPTIONS = {
    "simples": "Dúvida simples",
    "pesquisa": "Pesquisa jurídica",
    "analise": "Análise estratégica",
    "peca": "Elaboração de peça",
}


def normalize_text(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


_NORMALIZED_KEYWORDS: dict[str, tuple[str, ...]] = {
    profile: tuple(normalize_text(k) for k in keywords)
    for profile, keywords in _KEYWORDS.items()
}


def count_matches(normalized_text: str, keywords: tuple[str, ...]) -> int:
    return sum(1 for keyword in keywords if keyword in normalized_text)


def detect_profile(text: str) -> str:
    if not text or not text.strip():
        return "simples"

    normalized = normalize_text(text)
    best_profile = "simples"
    best_count = 0
    for profile, keywords in _NORMALIZED_KEYWORDS.items():
        count = count_matches(normalized, keywords)
        if count > best_count:
            best_profile = profile
            best_count = count
    return best_profile


def classify_intent(family: str, text: str) -> IntentConfig:
    table = _PROFILE_TABLES.get(family)
    if table is None:
        raise ValueError(f"Unknown provider family: {family!r}")
    return table[detect_profile(text)]


def classify_intent_claude(text: str) -> ClaudeIntentConfig:
    return _CLAUDE_PROFILES[detect_profile(text)]


def classify_intent_gpt5(text: str) -> GPT5IntentConfig:
    return _GPT5_PROFILES[detect_profile(text)]


def classify_intent_gemini(text: str) -> GeminiIntentConfig:
    return _GEMINI_PROFILES[detect_profile(text)]


def requires_thinking(text: str) -> bool:
    return classify_intent_claude(text).thinking.enabled


def requires_web_search(text: str) -> bool:
    return classify_intent_claude(text).use_web_search


def requires_reasoning_gpt5(text: str) -> bool:
    return classify_intent_gpt5(text).reasoning_effort != "none"


def requires_thinking_gemini(text: str) -> bool:
    return classify_intent_gemini(text).thinking_level != "minimal"


def get_profile_description(profile: str | None) -> str:
    return _PROFILE_DESCRIPTIONS.get(profile or "", "Consulta")
