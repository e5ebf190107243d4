from __future__ import annotations

from query_router.extract.parameters import extract_parameters
from query_router.extract.patterns import HIGHEST_LOWEST, STATISTICAL_WORDS
from query_router.extract.types import ParameterBag
from query_router.logging import get_logger
from query_router.text.fuzzy import fuzzy_keyword_match, should_fuzzy

from . import catalog
from .types import Candidate, IntentDefinition, IntentResult

logger = get_logger(__name__)


def keyword_weight(keyword: str, text: str) -> float:
    """Weight a matched keyword.

    Multi-word keywords are worth 3 per word plus a bonus when the whole phrase
    appears verbatim. Generic retrieval verbs are flattened to 1.
    """
    word_count = len(keyword.split())
    weight = float(word_count * 3)
    if word_count > 1 and catalog.KEYWORD_PATTERNS[keyword].search(text):
        weight += catalog.EXACT_PHRASE_BONUS
    if word_count == 1 and keyword in catalog.GENERIC_WORDS:
        weight = 1.0
    if keyword in catalog.DISCRIMINATORS:
        weight += catalog.DISCRIMINATOR_BONUS
    return weight


def _score_intent(definition: IntentDefinition, text: str) -> Candidate:
    candidate = Candidate(intent=definition.name, tier=definition.tier)
    for kw in definition.keywords:
        exact = catalog.KEYWORD_PATTERNS[kw].search(text) is not None
        fuzzy = not exact and should_fuzzy(kw) and fuzzy_keyword_match(text, kw)
        if not (exact or fuzzy):
            continue
        weight = keyword_weight(kw, text)
        candidate.score += weight * catalog.FUZZY_DISCOUNT if fuzzy else weight
        candidate.matched_keywords.append(kw)
        if fuzzy:
            candidate.fuzzy_keywords.append(kw)
    return candidate


def _add_candidate(candidates: dict[str, Candidate], name: str, amount: float, label: str) -> None:
    definition = catalog.INTENTS_BY_NAME[name]
    cand = candidates.setdefault(name, Candidate(intent=name, tier=definition.tier))
    cand.score += amount
    cand.matched_keywords.append(label)


def _drop(candidates: dict[str, Candidate], *names: str) -> None:
    for name in names:
        candidates.pop(name, None)


def _apply_evidence(candidates: dict[str, Candidate], params: ParameterBag) -> None:
    """Add score from structured parameters that only one intent can explain."""
    if params.equipment_ids:
        count = min(len(params.equipment_ids), catalog.EQUIPMENT_ID_EVIDENCE_MAX)
        _add_candidate(
            candidates,
            "EQUIPMENT_SPECIFIC_PRODUCTION",
            catalog.EQUIPMENT_ID_EVIDENCE * count,
            "param:equipment_ids",
        )
    if params.row_number is not None:
        _add_candidate(
            candidates, "ORDINAL_ROW_QUERY", catalog.ROW_NUMBER_EVIDENCE, "param:row_number"
        )
    if params.n is not None:
        _add_candidate(candidates, "TOP_N_RANKING", catalog.TOP_N_EVIDENCE, "param:n")


def _apply_statistical_override(candidates: dict[str, Candidate], text: str) -> None:
    """Mean/median/mode style wording always selects STATISTICAL_QUERY."""
    if not STATISTICAL_WORDS.search(text):
        return
    stat = candidates.get("STATISTICAL_QUERY")
    if stat is None:
        _add_candidate(
            candidates,
            "STATISTICAL_QUERY",
            catalog.STATISTICAL_FORCED_SCORE,
            "<statistical words detected>",
        )
    else:
        stat.score = max(stat.score * catalog.STATISTICAL_BOOST, catalog.STATISTICAL_FORCED_SCORE)
    _drop(candidates, "AGGREGATION_QUERY", "DATA_RETRIEVAL")


def _apply_context_filters(candidates: dict[str, Candidate], text: str) -> None:
    if catalog.SPECIFIC_DAY_CUE.search(text):
        _drop(candidates, "MONTHLY_SUMMARY")

    if "MONTHLY_SUMMARY" in candidates and not catalog.SUMMARY_CUE.search(text):
        if any(cue.search(text) for cue in catalog.EQUIPMENT_FOCUS_CUES):
            _drop(candidates, "MONTHLY_SUMMARY")

    if "FORECASTING" in candidates:
        if catalog.FORECAST_SUMMARY_CUE.search(text) and not catalog.FORECAST_WORDS.search(text):
            _drop(candidates, "FORECASTING")

    if "FORECASTING" in candidates:
        retrieval = catalog.RETRIEVAL_OPENER.search(text.strip())
        if (
            retrieval
            and catalog.PERIOD_CUE.search(text)
            and not catalog.FORECAST_WORDS_WIDE.search(text)
        ):
            _drop(candidates, "FORECASTING")

    if "FORECASTING" in candidates:
        if catalog.FACE_CUE.search(text) and not catalog.FORECAST_WORDS_FACE.search(text):
            _drop(candidates, "FORECASTING")
            if "ROUTES_FACES_ANALYSIS" not in candidates:
                _add_candidate(
                    candidates,
                    "ROUTES_FACES_ANALYSIS",
                    catalog.FACE_INFERRED_SCORE,
                    "<inferred from face keyword>",
                )


def _apply_match_ratio(candidates: dict[str, Candidate]) -> None:
    """Reward intents whose keyword list is well covered by the question."""
    for cand in candidates.values():
        keywords = catalog.INTENTS_BY_NAME[cand.intent].keywords
        hits = sum(1 for kw in cand.matched_keywords if kw in keywords)
        if hits >= catalog.MATCH_RATIO_MIN_HITS and hits / len(keywords) >= catalog.MATCH_RATIO_MIN:
            cand.score *= catalog.MATCH_RATIO_BOOST


def sort_key(candidate: Candidate) -> tuple:
    return (
        -candidate.score,
        candidate.tier,
        -candidate.matched_count,
        -candidate.matched_length,
        candidate.intent,
    )


def rank_candidates(
    candidates: list[Candidate], params: ParameterBag | None = None, text: str = ""
) -> list[Candidate]:
    """Filter by tier and mutual exclusion, then order deterministically."""
    survivors = [c for c in candidates if c.score > 0]
    if any(c.tier in (1, 2) for c in survivors):
        survivors = [c for c in survivors if c.tier != 3]

    names = {c.intent for c in survivors}
    dropped: set[str] = set()
    if names & catalog.SPECIFIC_AGGREGATIONS:
        dropped.add("AGGREGATION_QUERY")
    if "ROUTES_FACES_ANALYSIS" in names:
        dropped.add("MONTHLY_SUMMARY")
    if "ORDINAL_ROW_QUERY" in names and HIGHEST_LOWEST.search(text):
        dropped.add("EQUIPMENT_COMBINATION")
    if "EQUIPMENT_SPECIFIC_PRODUCTION" in names and params is not None and params.has_equipment:
        dropped.add("EQUIPMENT_COMBINATION")

    survivors = [c for c in survivors if c.intent not in dropped]
    return sorted(survivors, key=sort_key)


def _select_winner(ranked: list[Candidate], text: str) -> Candidate:
    best = ranked[0]

    if best.intent == "EQUIPMENT_COMBINATION":
        wants_advice = catalog.OPTIMIZATION_CUE.search(text) or (
            catalog.OPTIMIZATION_TYPO_CUE.search(text)
        )
        if wants_advice and not catalog.PAIRING_ACTION_CUE.search(text):
            optimization = next(
                (c for c in ranked if c.intent == "EQUIPMENT_OPTIMIZATION"),
                Candidate(
                    intent="EQUIPMENT_OPTIMIZATION",
                    tier=catalog.INTENTS_BY_NAME["EQUIPMENT_OPTIMIZATION"].tier,
                    matched_keywords=["<inferred from optimization signals>"],
                ),
            )
            # The pairing evidence carries over to the optimizer request
            optimization.score = max(optimization.score, best.score)
            return optimization

    if best.intent == "FORECASTING":
        if catalog.VISUALIZATION_CUE.search(text) and not catalog.FORECAST_SIGNALS.search(text):
            chart = next((c for c in ranked if c.intent == "CHART_VISUALIZATION"), None)
            if chart is not None and chart.score >= best.score * catalog.VISUALIZATION_MIN_SHARE:
                return chart

    return best


def confidence_for(candidate: Candidate) -> float:
    normalizer = catalog.TIER_NORMALIZERS.get(candidate.tier, 20.0)
    return round(min(1.0, max(0.0, candidate.score / normalizer)), 2)


def _fallback_result(params: ParameterBag) -> IntentResult:
    if params.has_date or params.has_shift:
        return IntentResult(
            intent="DATA_RETRIEVAL",
            confidence=0.5,
            parameters=params,
            matched_keywords=["<inferred from parameters>"],
            tier=3,
        )
    if params.has_equipment:
        return IntentResult(
            intent="EQUIPMENT_SPECIFIC_PRODUCTION",
            confidence=0.6,
            parameters=params,
            matched_keywords=["<inferred from equipment ID>"],
            tier=1,
        )
    return IntentResult(intent=catalog.UNKNOWN, confidence=0.0, parameters=params)


def classify(text: str, parameters: ParameterBag | None = None) -> IntentResult:
    """Score every catalog intent against ``text`` and pick a single winner."""
    raw = text or ""
    lower = raw.lower()
    params = parameters if parameters is not None else extract_parameters(raw)

    scored = {d.name: _score_intent(d, lower) for d in catalog.INTENTS}
    candidates = {name: c for name, c in scored.items() if c.score > 0}
    _apply_evidence(candidates, params)
    _apply_statistical_override(candidates, lower)
    _apply_context_filters(candidates, lower)

    if not candidates:
        result = _fallback_result(params)
        logger.debug(f"No intent candidates for {raw!r}; using {result.intent}")
        return result

    _apply_match_ratio(candidates)
    ranked = rank_candidates(list(candidates.values()), params, lower)
    best = _select_winner(ranked, lower)
    result = IntentResult(
        intent=best.intent,
        confidence=confidence_for(best),
        parameters=params,
        matched_keywords=list(best.matched_keywords),
        fuzzy_matches=list(best.fuzzy_keywords),
        tier=best.tier,
        score=round(best.score, 2),
    )
    logger.debug(
        "Candidates: "
        + ", ".join(f"{c.intent}={c.score:.2f}" for c in ranked[:5])
        + f" | winner {result.intent} ({result.confidence})"
    )
    return result
